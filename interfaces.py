"""Protocol interfaces for the host capabilities used by the engine."""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Optional, Protocol

from models import AudioChunk, AudioFrame, CaptureConstraints

if TYPE_CHECKING:
    from config import VADSettings

class InputHandle(Protocol):
    def close(self) -> None: ...

class AudioInput(Protocol):
    def open(
        self,
        constraints: CaptureConstraints,
        on_frame: Callable[[AudioFrame], None],
    ) -> InputHandle: ...

class PlaybackHandle(Protocol):
    def stop(self) -> None: ...

class AudioOutput(Protocol):
    def play(
        self,
        chunk: AudioChunk,
        on_done: Callable[[Optional[Exception]], None],
    ) -> PlaybackHandle: ...

class TimerHandle(Protocol):
    def cancel(self) -> None: ...

class Clock(Protocol):
    def now_ms(self) -> int: ...

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> TimerHandle: ...

class KeySource(Protocol):
    def subscribe(
        self,
        on_key_down: Callable[..., None],
        on_key_up: Callable[..., None],
    ) -> None: ...

    def unsubscribe(self) -> None: ...


class ConfigStore(Protocol):
    def get_endpoint(self) -> str: ...

    def get_access_token(self) -> str: ...

    def get_agent_id(self) -> str: ...

    def get_voice(self) -> str: ...

    def get_recording_mode(self) -> str: ...

    def get_ptt_key(self) -> str: ...

    def get_vad_settings(self) -> VADSettings: ...
