"""Simple JSON-based config store."""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass
from pathlib import Path

from models import RecordingMode

VOICES = ("alloy", "echo", "fable", "onyx", "nova", "shimmer")
PTT_KEYS = ("Space", "ControlLeft", "ControlRight")
TOKEN_ENV = "VOICE_CHAT_TOKEN"


@dataclass
class VADSettings:
    silence_threshold: float = 0.01
    silence_duration_ms: int = 1500
    min_recording_duration_ms: int = 1000

    @classmethod
    def from_dict(cls, data: dict) -> "VADSettings":
        d = cls()
        try:
            return cls(
                silence_threshold=float(data.get("silence_threshold", d.silence_threshold)),
                silence_duration_ms=int(data.get("silence_duration_ms", d.silence_duration_ms)),
                min_recording_duration_ms=int(
                    data.get("min_recording_duration_ms", d.min_recording_duration_ms)
                ),
            )
        except (TypeError, ValueError):
            return d


class JsonConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or Path.home() / ".config" / "voice_chat" / "config.json"
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def get_endpoint(self) -> str:
        return str(self._read_all().get("endpoint", ""))

    def set_endpoint(self, endpoint: str) -> None:
        self._set("endpoint", endpoint)

    def get_access_token(self) -> str:
        token = str(self._read_all().get("access_token", ""))
        return token or os.getenv(TOKEN_ENV, "")

    def set_access_token(self, token: str) -> None:
        self._set("access_token", token)

    def get_agent_id(self) -> str:
        return str(self._read_all().get("agent_id", ""))

    def set_agent_id(self, agent_id: str) -> None:
        self._set("agent_id", agent_id)

    def get_voice(self) -> str:
        voice = str(self._read_all().get("voice", "alloy"))
        return voice if voice in VOICES else "alloy"

    def set_voice(self, voice: str) -> None:
        if voice not in VOICES:
            raise ValueError(f"unknown voice: {voice}")
        self._set("voice", voice)

    def get_recording_mode(self) -> str:
        mode = str(self._read_all().get("recording_mode", RecordingMode.MANUAL.value))
        try:
            return RecordingMode(mode).value
        except ValueError:
            return RecordingMode.MANUAL.value

    def set_recording_mode(self, mode: str) -> None:
        self._set("recording_mode", RecordingMode(mode).value)

    def get_ptt_key(self) -> str:
        key = str(self._read_all().get("ptt_key", "Space"))
        return key if key in PTT_KEYS else "Space"

    def set_ptt_key(self, key: str) -> None:
        if key not in PTT_KEYS:
            raise ValueError(f"unsupported push-to-talk key: {key}")
        self._set("ptt_key", key)

    def get_vad_settings(self) -> VADSettings:
        data = self._read_all().get("vad", {})
        if not isinstance(data, dict):
            return VADSettings()
        return VADSettings.from_dict(data)

    def set_vad_settings(self, settings: VADSettings) -> None:
        self._set("vad", asdict(settings))

    def _set(self, key: str, value: object) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
