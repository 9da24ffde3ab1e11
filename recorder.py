"""Microphone input capability over sounddevice."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable

from clock import now_ms
from errors import DEVICE_UNAVAILABLE, PERMISSION_DENIED, VoiceChatError
from models import AudioFrame, CaptureConstraints

try:
    import numpy as np
except Exception:  # pragma: no cover
    np = None  # type: ignore

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore

logger = logging.getLogger(__name__)

_PERMISSION_HINTS = ("permission", "access denied", "not authorized", "unauthorized")


class SoundDeviceStream:
    """An open microphone stream. ``close()`` is safe to call more than once."""

    def __init__(self, stream: Any, on_frame: Callable[[AudioFrame], None], constraints: CaptureConstraints) -> None:
        self._stream = stream
        self._on_frame = on_frame
        self._constraints = constraints
        self._lock = threading.Lock()
        self._running = True

    @property
    def closed(self) -> bool:
        return not self._running

    def close(self) -> None:
        with self._lock:
            if not self._running:
                return
            self._running = False
            stream, self._stream = self._stream, None
        if stream is not None:
            stream.stop()
            stream.close()

    def _on_audio(self, indata: Any, frames: int, time_info: Any, status: Any) -> None:
        if not self._running or np is None:
            return
        if status:
            logger.debug("input stream status: %s", status)
        payload = np.asarray(indata, dtype=np.int16).tobytes()
        self._on_frame(
            AudioFrame(
                pcm16_bytes=payload,
                sample_rate=self._constraints.sample_rate,
                channels=self._constraints.channels,
                timestamp_ms=now_ms(),
            )
        )


class SoundDeviceInput:
    def open(
        self,
        constraints: CaptureConstraints,
        on_frame: Callable[[AudioFrame], None],
    ) -> SoundDeviceStream:
        if sd is None:
            raise VoiceChatError(DEVICE_UNAVAILABLE, "sounddevice is not installed")
        if constraints.echo_cancellation or constraints.noise_suppression:
            # PortAudio exposes raw devices only; processing is up to the OS source.
            logger.debug("echo cancellation / noise suppression delegated to the input device")

        blocksize = int(constraints.sample_rate * (constraints.chunk_ms / 1000.0))
        handle = SoundDeviceStream(None, on_frame, constraints)
        try:
            handle._stream = sd.InputStream(
                samplerate=constraints.sample_rate,
                channels=constraints.channels,
                dtype="int16",
                blocksize=blocksize,
                device=constraints.device,
                callback=handle._on_audio,
            )
            handle._stream.start()
        except Exception as exc:
            handle.close()
            raise _to_capture_error(exc) from exc
        return handle


def _to_capture_error(exc: Exception) -> VoiceChatError:
    message = str(exc)
    low = message.lower()
    if any(hint in low for hint in _PERMISSION_HINTS):
        return VoiceChatError(PERMISSION_DENIED, message)
    return VoiceChatError(DEVICE_UNAVAILABLE, message)
