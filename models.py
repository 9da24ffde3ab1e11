"""Core data models for the voice engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class RecordingMode(str, Enum):
    MANUAL = "manual"
    CONVERSATIONAL = "conversational"
    PUSH_TO_TALK = "push-to-talk"


class TurnState(str, Enum):
    IDLE = "IDLE"
    CAPTURING = "CAPTURING"
    STREAMING = "STREAMING"
    ERROR = "ERROR"


class TranscriptRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class ToolStatus(str, Enum):
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"


class StreamEventKind(str, Enum):
    CONVERSATION_CREATED = "conversation_created"
    TEXT = "text"
    TEXT_DELTA = "text_delta"
    AUDIO = "audio"
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass
class AudioFrame:
    pcm16_bytes: bytes
    sample_rate: int = 24000
    channels: int = 1
    timestamp_ms: int = 0


@dataclass(frozen=True)
class CaptureConstraints:
    sample_rate: int = 24000
    channels: int = 1
    echo_cancellation: bool = True
    noise_suppression: bool = True
    auto_gain_control: bool = True
    device: Optional[int | str] = None
    chunk_ms: int = 20


@dataclass(frozen=True)
class Utterance:
    """One finalized turn of recorded audio."""

    data: bytes
    mime_type: str = "audio/wav"
    format: str = "wav"
    duration_ms: int = 0

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class AudioChunk:
    data: bytes
    mime_type: str = "audio/wav"


@dataclass
class TranscriptEntry:
    role: TranscriptRole
    content: str
    timestamp: datetime = field(default_factory=datetime.now)
    final: bool = True


@dataclass(frozen=True)
class ToolExecutionEvent:
    name: str
    status: ToolStatus
    result: Any = None
    error: Optional[str] = None


@dataclass(frozen=True)
class StreamEvent:
    kind: str
    data: dict = field(default_factory=dict)


@dataclass(frozen=True)
class EngineState:
    is_recording: bool = False
    is_processing: bool = False
    is_playing: bool = False
    audio_level: float = 0.0
    error: Optional[str] = None
