from __future__ import annotations

from models import TranscriptEntry, TranscriptRole
from transcript import TranscriptLog


def test_streamed_text_accumulates_in_one_entry() -> None:
    updates: list[list[TranscriptEntry]] = []
    log = TranscriptLog(on_update=updates.append)

    log.add(TranscriptRole.USER, "[Speaking...]")
    log.append_assistant_text("Hel")
    log.append_assistant_text("lo")
    finalized = log.finalize_assistant()

    entries = log.entries()
    assert [(e.role, e.content) for e in entries] == [
        (TranscriptRole.USER, "[Speaking...]"),
        (TranscriptRole.ASSISTANT, "Hello"),
    ]
    assert entries[1].final is True
    assert finalized is not None and finalized.content == "Hello"
    assert updates[1][-1].final is False


def test_finalized_entry_is_not_mutated_again() -> None:
    log = TranscriptLog()
    log.append_assistant_text("first")
    log.finalize_assistant()
    log.append_assistant_text("second")

    assert [e.content for e in log.entries()] == ["first", "second"]
    assert log.finalize_assistant().content == "second"
    assert log.finalize_assistant() is None


def test_snapshots_are_copies() -> None:
    log = TranscriptLog()
    log.append_assistant_text("a")
    snapshot = log.entries()
    log.append_assistant_text("b")

    assert snapshot[0].content == "a"


def test_clear_notifies() -> None:
    updates: list[list[TranscriptEntry]] = []
    log = TranscriptLog(on_update=updates.append)
    log.add(TranscriptRole.SYSTEM, "hi")
    log.clear()

    assert len(log) == 0
    assert updates[-1] == []
