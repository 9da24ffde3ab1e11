from __future__ import annotations

from fakes import FakeClock
from models import ToolExecutionEvent, ToolStatus
from tool_tracker import ToolExecutionTracker


def test_call_then_result_then_auto_clear() -> None:
    clock = FakeClock()
    published: list[ToolExecutionEvent] = []
    changes: list[ToolExecutionEvent | None] = []
    tracker = ToolExecutionTracker(on_tool_execution=published.append, on_change=changes.append, clock=clock)

    tracker.tool_call("search_web")
    assert tracker.current == ToolExecutionEvent("search_web", ToolStatus.EXECUTING)

    tracker.tool_result("search_web", True, result={"hits": 3})
    assert tracker.current.status == ToolStatus.COMPLETED
    assert tracker.current.result == {"hits": 3}

    clock.advance(2999)
    assert tracker.current is not None
    clock.advance(1)
    assert tracker.current is None

    assert [e.status for e in published] == [ToolStatus.EXECUTING, ToolStatus.COMPLETED]
    assert changes[-1] is None


def test_failed_result_carries_error() -> None:
    tracker = ToolExecutionTracker(clock=FakeClock())
    tracker.tool_call("send_email")
    event = tracker.tool_result("send_email", False, error="smtp down")

    assert event.status == ToolStatus.FAILED
    assert event.error == "smtp down"


def test_new_event_cancels_pending_clear() -> None:
    clock = FakeClock()
    tracker = ToolExecutionTracker(clock=clock)

    tracker.tool_result("first", True)
    timer = clock.pending()[0]
    clock.advance(1000)
    tracker.tool_call("second")

    assert timer.cancelled is True
    clock.advance(5000)
    assert tracker.current == ToolExecutionEvent("second", ToolStatus.EXECUTING)


def test_clear_drops_event_and_timer() -> None:
    clock = FakeClock()
    tracker = ToolExecutionTracker(clock=clock)
    tracker.tool_result("x", True)

    tracker.clear()

    assert tracker.current is None
    assert clock.pending() == []
