"""Append-only conversation transcript."""

from __future__ import annotations

import threading
from dataclasses import replace
from typing import Callable, List, Optional

from models import TranscriptEntry, TranscriptRole

TranscriptCallback = Callable[[List[TranscriptEntry]], None]


class TranscriptLog:
    """Entries are appended in arrival order.

    Only the trailing assistant entry is ever mutated, and only while it is
    not final. ``entries()`` and callbacks receive copies.
    """

    def __init__(self, on_update: Optional[TranscriptCallback] = None) -> None:
        self._on_update = on_update
        self._entries: List[TranscriptEntry] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def entries(self) -> List[TranscriptEntry]:
        with self._lock:
            return [replace(entry) for entry in self._entries]

    def add(self, role: TranscriptRole, content: str) -> TranscriptEntry:
        entry = TranscriptEntry(role=role, content=content)
        with self._lock:
            self._entries.append(entry)
        self._publish()
        return entry

    def append_assistant_text(self, fragment: str) -> None:
        if not fragment:
            return
        with self._lock:
            last = self._entries[-1] if self._entries else None
            if last is not None and last.role == TranscriptRole.ASSISTANT and not last.final:
                last.content += fragment
            else:
                self._entries.append(
                    TranscriptEntry(role=TranscriptRole.ASSISTANT, content=fragment, final=False)
                )
        self._publish()

    def finalize_assistant(self) -> Optional[TranscriptEntry]:
        with self._lock:
            last = self._entries[-1] if self._entries else None
            if last is None or last.role != TranscriptRole.ASSISTANT or last.final:
                return None
            last.final = True
            finalized = replace(last)
        self._publish()
        return finalized

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
        self._publish()

    def _publish(self) -> None:
        if self._on_update:
            self._on_update(self.entries())
