"""Normalized microphone level sampling."""

from __future__ import annotations

import threading
from typing import Callable, Optional

from models import AudioFrame

try:
    import numpy as np
except Exception:  # pragma: no cover
    np = None  # type: ignore

FULL_SCALE = 32768.0


def compute_level(pcm16: bytes) -> float:
    """Return the RMS of a PCM16 block scaled to 0..1."""
    if np is None or len(pcm16) < 2:
        return 0.0
    samples = np.frombuffer(pcm16[: len(pcm16) - len(pcm16) % 2], dtype=np.int16)
    if samples.size == 0:
        return 0.0
    rms = float(np.sqrt(np.mean(samples.astype(np.float64) ** 2)))
    return min(rms / FULL_SCALE, 1.0)


class AudioLevelMonitor:
    """Owns its own level state; one instance per consumer.

    Frames arrive on the audio thread via ``feed``. A sampling loop reports the
    most recent level to ``on_level`` at a fixed rate until ``stop`` is called.
    """

    def __init__(
        self,
        on_level: Optional[Callable[[float], None]] = None,
        interval_s: float = 1 / 60,
    ) -> None:
        self._on_level = on_level
        self._interval_s = interval_s
        self._level = 0.0
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def level(self) -> float:
        return self._level

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def feed(self, frame: AudioFrame) -> None:
        level = compute_level(frame.pcm16_bytes)
        with self._lock:
            self._level = level

    def sample(self) -> float:
        with self._lock:
            level = self._level
        if self._on_level:
            self._on_level(level)
        return level

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()
        self._thread = None
        with self._lock:
            self._level = 0.0

    def _loop(self) -> None:
        while not self._stop_event.wait(self._interval_s):
            self.sample()
