"""Tracks the tool call currently being shown to the user."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Optional

from clock import SystemClock
from interfaces import Clock, TimerHandle
from models import ToolExecutionEvent, ToolStatus

logger = logging.getLogger(__name__)

TOOL_DISPLAY_S = 3.0


class ToolExecutionTracker:
    """Holds at most one visible tool event.

    A result stays visible for ``display_s`` seconds, or until the next event
    replaces it.
    """

    def __init__(
        self,
        on_tool_execution: Optional[Callable[[ToolExecutionEvent], None]] = None,
        on_change: Optional[Callable[[Optional[ToolExecutionEvent]], None]] = None,
        clock: Optional[Clock] = None,
        display_s: float = TOOL_DISPLAY_S,
    ) -> None:
        self._on_tool_execution = on_tool_execution
        self._on_change = on_change
        self._clock = clock or SystemClock()
        self._display_s = display_s
        self._lock = threading.Lock()
        self._current: Optional[ToolExecutionEvent] = None
        self._timer: Optional[TimerHandle] = None
        self._generation = 0

    @property
    def current(self) -> Optional[ToolExecutionEvent]:
        return self._current

    def tool_call(self, name: str) -> ToolExecutionEvent:
        event = ToolExecutionEvent(name=name, status=ToolStatus.EXECUTING)
        with self._lock:
            self._cancel_timer_locked()
            self._current = event
        logger.info("tool %s executing", name)
        self._publish(event)
        return event

    def tool_result(
        self,
        name: str,
        success: bool,
        result: Any = None,
        error: Optional[str] = None,
    ) -> ToolExecutionEvent:
        event = ToolExecutionEvent(
            name=name,
            status=ToolStatus.COMPLETED if success else ToolStatus.FAILED,
            result=result,
            error=error,
        )
        with self._lock:
            self._cancel_timer_locked()
            if self._current is not None and self._current.name != name:
                logger.debug("result for %s replaces %s", name, self._current.name)
            self._current = event
            generation = self._generation
            self._timer = self._clock.call_later(self._display_s, lambda: self._expire(generation))
        if success:
            logger.info("tool %s completed", name)
        else:
            logger.warning("tool %s failed: %s", name, error)
        self._publish(event)
        return event

    def clear(self) -> None:
        with self._lock:
            self._cancel_timer_locked()
            had_event = self._current is not None
            self._current = None
        if had_event and self._on_change:
            self._on_change(None)

    def _expire(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self._timer = None
            self._current = None
        if self._on_change:
            self._on_change(None)

    def _publish(self, event: ToolExecutionEvent) -> None:
        if self._on_change:
            self._on_change(event)
        if self._on_tool_execution:
            self._on_tool_execution(event)

    def _cancel_timer_locked(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._generation += 1
