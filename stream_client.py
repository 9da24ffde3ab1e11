"""Converse endpoint client and incremental ``data: {json}`` frame decoder.

One POST per turn carries the base64 utterance. The response body is a live
sequence of ``data: <json>\\n`` lines. Network chunks do not respect line
boundaries, so ``SSELineDecoder`` buffers the trailing partial line between
``feed`` calls.
"""

from __future__ import annotations

import base64
import codecs
import json
import logging
import threading
from typing import Callable, Dict, List, Optional

import httpx

from errors import AUTH_FAILED, FRAME_PARSE_ERROR, STREAM_ERROR, TRANSPORT_ERROR, VoiceChatError
from models import StreamEvent, StreamEventKind, Utterance

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DEFAULT_PATH = "/functions/v1/voice-chat-stream"


def parse_frame(line: str) -> Optional[StreamEvent]:
    """Parse one line. Returns None for blank or non-data lines.

    Raises ValueError if the JSON payload is malformed.
    """
    if not line.strip() or not line.startswith(DATA_PREFIX):
        return None
    payload = json.loads(line[len(DATA_PREFIX):])
    if not isinstance(payload, dict):
        raise ValueError(f"frame is not an object: {payload!r}")
    return StreamEvent(kind=str(payload.get("event", "")), data=payload)


class SSELineDecoder:
    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self.skipped = 0

    def feed(self, chunk: bytes) -> List[StreamEvent]:
        self._buffer += self._decoder.decode(chunk)
        lines = self._buffer.split("\n")
        self._buffer = lines.pop()
        return self._parse_lines(lines)

    def flush(self) -> List[StreamEvent]:
        """Parse whatever remains once the body has ended."""
        self._buffer += self._decoder.decode(b"", final=True)
        line, self._buffer = self._buffer, ""
        return self._parse_lines([line])

    def _parse_lines(self, lines: List[str]) -> List[StreamEvent]:
        events: List[StreamEvent] = []
        for line in lines:
            line = line.rstrip("\r")
            try:
                event = parse_frame(line)
            except ValueError as exc:
                self.skipped += 1
                logger.warning("%s: skipping frame %r (%s)", FRAME_PARSE_ERROR, line[:200], exc)
                continue
            if event is not None:
                events.append(event)
        return events


def decode_audio(event: StreamEvent) -> bytes:
    payload = event.data.get("data") or event.data.get("audio") or ""
    if not isinstance(payload, str):
        raise ValueError(f"audio payload must be a base64 string, got {type(payload).__name__}")
    return base64.b64decode(payload)


class ConversationStreamClient:
    def __init__(
        self,
        endpoint: str,
        access_token: str = "",
        agent_id: str = "",
        conversation_id: str = "",
        voice: str = "alloy",
        path: str = DEFAULT_PATH,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._url = endpoint.rstrip("/") + path
        self._access_token = access_token
        self.agent_id = agent_id
        self.conversation_id = conversation_id
        self.voice = voice
        self._client = client or httpx.Client(
            timeout=httpx.Timeout(connect=10.0, read=None, write=None, pool=None)
        )

    @property
    def url(self) -> str:
        return self._url

    def build_payload(self, utterance: Utterance) -> Dict[str, str]:
        return {
            "audio_input": base64.b64encode(utterance.data).decode("ascii"),
            "conversation_id": self.conversation_id,
            "agent_id": self.agent_id,
            "voice": self.voice,
            "format": utterance.format,
        }

    def converse(
        self,
        utterance: Utterance,
        on_event: Callable[[StreamEvent], None],
        cancel_event: Optional[threading.Event] = None,
    ) -> bool:
        """Upload one utterance and dispatch response frames as they arrive.

        Returns True once a ``complete`` frame was dispatched, False if the body
        ended (or the turn was cancelled) without one. Raises VoiceChatError for
        transport failures and ``error`` frames.
        """
        if not self._access_token:
            raise VoiceChatError(AUTH_FAILED)
        cancel_event = cancel_event or threading.Event()
        headers = {"Authorization": f"Bearer {self._access_token}"}
        decoder = SSELineDecoder()

        try:
            with self._client.stream(
                "POST", self._url, json=self.build_payload(utterance), headers=headers
            ) as response:
                if not response.is_success:
                    response.read()
                    raise VoiceChatError(TRANSPORT_ERROR, _error_message(response))
                for chunk in response.iter_bytes():
                    if cancel_event.is_set():
                        return False
                    if self._dispatch(decoder.feed(chunk), on_event, cancel_event):
                        return True
                if cancel_event.is_set():
                    return False
                return self._dispatch(decoder.flush(), on_event, cancel_event)
        except httpx.HTTPError as exc:
            if cancel_event.is_set():
                return False
            raise VoiceChatError(TRANSPORT_ERROR, str(exc)) from exc

    def close(self) -> None:
        self._client.close()

    def _dispatch(
        self,
        events: List[StreamEvent],
        on_event: Callable[[StreamEvent], None],
        cancel_event: threading.Event,
    ) -> bool:
        for event in events:
            if cancel_event.is_set():
                return False
            if event.kind == StreamEventKind.ERROR.value:
                raise VoiceChatError(STREAM_ERROR, str(event.data.get("error") or "Stream error"))
            on_event(event)
            if event.kind == StreamEventKind.COMPLETE.value:
                return True
        return False


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = {}
    if isinstance(payload, dict) and payload.get("error"):
        return str(payload["error"])
    return f"Voice chat failed: {response.status_code}"
