"""Capture session: owns the microphone stream and the WAV encoder for one turn."""

from __future__ import annotations

import io
import logging
import threading
import wave
from typing import Callable, Optional

from errors import TOO_SHORT, VoiceChatError
from interfaces import AudioInput, InputHandle
from models import AudioFrame, CaptureConstraints, Utterance

logger = logging.getLogger(__name__)

MIN_UTTERANCE_BYTES = 1000

FrameListener = Callable[[AudioFrame], None]


def pcm_to_wav(
    pcm: bytes,
    sample_rate: int = 24000,
    channels: int = 1,
    sample_width: int = 2,
) -> bytes:
    """Wrap raw PCM bytes in a WAV container."""
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(sample_width)
        wf.setframerate(sample_rate)
        wf.writeframes(pcm)
    return buf.getvalue()


class AudioCaptureSession:
    def __init__(self, constraints: CaptureConstraints) -> None:
        self.constraints = constraints
        self._handle: Optional[InputHandle] = None
        self._pcm = bytearray()
        self._listeners: list[FrameListener] = []
        self._lock = threading.Lock()
        self._released = False

    @classmethod
    def open(
        cls,
        audio_input: AudioInput,
        constraints: Optional[CaptureConstraints] = None,
    ) -> "AudioCaptureSession":
        """Acquire the microphone. Raises VoiceChatError on permission/device failure."""
        session = cls(constraints or CaptureConstraints())
        session._handle = audio_input.open(session.constraints, session._on_frame)
        logger.debug("microphone opened at %d Hz", session.constraints.sample_rate)
        return session

    @property
    def released(self) -> bool:
        return self._released

    @property
    def recorded_bytes(self) -> int:
        return len(self._pcm)

    def add_frame_listener(self, listener: FrameListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def finish(self) -> Utterance:
        """Release the microphone and encode what was recorded.

        Raises VoiceChatError(TOO_SHORT) if the encoded audio is below
        ``MIN_UTTERANCE_BYTES``; the stream is released either way.
        """
        self.release()
        with self._lock:
            pcm = bytes(self._pcm)
            self._pcm.clear()
        data = pcm_to_wav(pcm, self.constraints.sample_rate, self.constraints.channels)
        if len(data) < MIN_UTTERANCE_BYTES:
            raise VoiceChatError(TOO_SHORT)
        bytes_per_second = self.constraints.sample_rate * self.constraints.channels * 2
        duration_ms = int(len(pcm) * 1000 / bytes_per_second) if bytes_per_second else 0
        return Utterance(data=data, duration_ms=duration_ms)

    def abort(self) -> None:
        self.release()
        with self._lock:
            self._pcm.clear()

    def release(self) -> None:
        with self._lock:
            if self._released:
                return
            self._released = True
            handle, self._handle = self._handle, None
            self._listeners.clear()
        if handle is not None:
            handle.close()
            logger.debug("microphone released")

    def _on_frame(self, frame: AudioFrame) -> None:
        with self._lock:
            if self._released:
                return
            self._pcm.extend(frame.pcm16_bytes)
            listeners = list(self._listeners)
        for listener in listeners:
            listener(frame)
