"""Voice activity detection over a sampled volume signal.

The detector is a debounced hysteresis gate. Rising above the threshold marks
speech and cancels any pending silence timer. Falling to or below it while
speaking, once ``min_recording_duration_ms`` has elapsed since ``start``, arms
a single timer for ``silence_duration_ms``. If that timer fires before speech
resumes the detector emits ``on_silence_detected`` once and drops back to
not-speaking, so brief dips never end a turn.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from clock import SystemClock
from config import VADSettings
from interfaces import Clock, TimerHandle

logger = logging.getLogger(__name__)


class VoiceActivityDetector:
    def __init__(
        self,
        settings: Optional[VADSettings] = None,
        on_silence_detected: Optional[Callable[[], None]] = None,
        on_speech_start: Optional[Callable[[], None]] = None,
        on_volume_change: Optional[Callable[[float], None]] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self.settings = settings or VADSettings()
        self._on_silence_detected = on_silence_detected
        self._on_speech_start = on_speech_start
        self._on_volume_change = on_volume_change
        self._clock = clock or SystemClock()
        self._lock = threading.Lock()
        self._is_speaking = False
        self._started_ms: Optional[int] = None
        self._timer: Optional[TimerHandle] = None
        self._generation = 0

    @property
    def is_speaking(self) -> bool:
        return self._is_speaking

    @property
    def timer_pending(self) -> bool:
        return self._timer is not None

    def start(self) -> None:
        with self._lock:
            self._cancel_timer_locked()
            self._is_speaking = False
            self._started_ms = self._clock.now_ms()

    def process(self, volume: float) -> None:
        if self._on_volume_change:
            self._on_volume_change(volume)

        speech_started = False
        with self._lock:
            if self._started_ms is None:
                return
            if volume > self.settings.silence_threshold:
                self._cancel_timer_locked()
                if not self._is_speaking:
                    self._is_speaking = True
                    speech_started = True
            elif self._is_speaking and self._timer is None:
                elapsed = self._clock.now_ms() - self._started_ms
                if elapsed >= self.settings.min_recording_duration_ms:
                    self._generation += 1
                    generation = self._generation
                    self._timer = self._clock.call_later(
                        self.settings.silence_duration_ms / 1000.0,
                        lambda: self._on_timer(generation),
                    )

        if speech_started:
            logger.debug("speech started")
            if self._on_speech_start:
                self._on_speech_start()

    def cleanup(self) -> None:
        with self._lock:
            self._cancel_timer_locked()
            self._is_speaking = False
            self._started_ms = None

    def _on_timer(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or self._timer is None:
                return
            self._timer = None
            self._is_speaking = False
        logger.debug("silence detected")
        if self._on_silence_detected:
            self._on_silence_detected()

    def _cancel_timer_locked(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._generation += 1
