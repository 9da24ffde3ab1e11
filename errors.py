"""Shared error codes, user-facing messages and the engine exception."""

from __future__ import annotations

PERMISSION_DENIED = "PERMISSION_DENIED"
DEVICE_UNAVAILABLE = "DEVICE_UNAVAILABLE"
TOO_SHORT = "TOO_SHORT"
TRANSPORT_ERROR = "TRANSPORT_ERROR"
STREAM_ERROR = "STREAM_ERROR"
FRAME_PARSE_ERROR = "FRAME_PARSE_ERROR"
PLAYBACK_ERROR = "PLAYBACK_ERROR"
AUTH_FAILED = "AUTH_FAILED"
BUSY = "BUSY"
INTERNAL_ERROR = "INTERNAL_ERROR"

ERROR_MESSAGES = {
    PERMISSION_DENIED: "Microphone access was denied.",
    DEVICE_UNAVAILABLE: "No usable microphone was found.",
    TOO_SHORT: "Recording is too short. Please try again.",
    TRANSPORT_ERROR: "Network failed, please retry.",
    STREAM_ERROR: "The voice service reported an error.",
    FRAME_PARSE_ERROR: "A response frame could not be parsed.",
    PLAYBACK_ERROR: "An audio response could not be played.",
    AUTH_FAILED: "Not authenticated.",
    BUSY: "A turn is already in progress.",
    INTERNAL_ERROR: "Something went wrong while handling the reply.",
}


class VoiceChatError(Exception):
    """Error raised across engine boundaries, tagged with one of the codes above."""

    def __init__(self, code: str, message: str = "") -> None:
        self.code = code
        self.message = message or ERROR_MESSAGES.get(code, code)
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"VoiceChatError({self.code!r}, {self.message!r})"
