"""Push-to-talk binding and a global key source based on pynput."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional

from config import PTT_KEYS
from interfaces import KeySource

try:
    from pynput import keyboard
except Exception:  # pragma: no cover
    keyboard = None  # type: ignore

logger = logging.getLogger(__name__)

# Keys whose default action (scrolling, shortcuts) must not leak while talking.
KEYS_WITH_SIDE_EFFECTS = frozenset({"Space"})


@dataclass
class KeyEvent:
    code: str
    is_repeat: bool = False
    target_editable: bool = False
    default_prevented: bool = False

    def prevent_default(self) -> None:
        self.default_prevented = True


class PushToTalkController:
    def __init__(
        self,
        key_source: KeySource,
        key: str = "Space",
        on_press_start: Optional[Callable[[], None]] = None,
        on_press_end: Optional[Callable[[], None]] = None,
    ) -> None:
        if key not in PTT_KEYS:
            raise ValueError(f"unsupported push-to-talk key: {key}")
        self._key_source = key_source
        self.key = key
        self._on_press_start = on_press_start
        self._on_press_end = on_press_end
        self._pressed = False
        self._bound = False
        self._lock = threading.Lock()

    @property
    def is_pressed(self) -> bool:
        return self._pressed

    @property
    def bound(self) -> bool:
        return self._bound

    def bind(self) -> None:
        if self._bound:
            return
        self._key_source.subscribe(self.handle_key_down, self.handle_key_up)
        self._bound = True

    def unbind(self) -> None:
        if not self._bound:
            return
        self._key_source.unsubscribe()
        self._bound = False
        with self._lock:
            self._pressed = False

    def handle_key_down(self, event: KeyEvent) -> None:
        if event.target_editable or event.code != self.key:
            return
        if self.key in KEYS_WITH_SIDE_EFFECTS:
            event.prevent_default()
        with self._lock:
            if self._pressed or event.is_repeat:
                return
            self._pressed = True
        logger.debug("push-to-talk key %s pressed", self.key)
        if self._on_press_start:
            self._on_press_start()

    def handle_key_up(self, event: KeyEvent) -> None:
        if event.code != self.key:
            return
        with self._lock:
            if not self._pressed:
                return
            self._pressed = False
        if self.key in KEYS_WITH_SIDE_EFFECTS:
            event.prevent_default()
        logger.debug("push-to-talk key %s released", self.key)
        if self._on_press_end:
            self._on_press_end()


def _key_code(key: object) -> str:
    if keyboard is not None:
        if key == keyboard.Key.space:
            return "Space"
        if key == keyboard.Key.ctrl_l:
            return "ControlLeft"
        if key == keyboard.Key.ctrl_r:
            return "ControlRight"
    return str(key)


class PynputKeySource:
    """Global keyboard hook.

    A global hook has no event target, so ``focus_probe`` reports whether a
    text field currently owns focus. Default actions cannot be cancelled from
    a pynput listener; ``default_prevented`` is informational here.
    """

    def __init__(self, focus_probe: Optional[Callable[[], bool]] = None) -> None:
        self._focus_probe = focus_probe or (lambda: False)
        self._listener: Optional[object] = None
        self._down: set[str] = set()

    def subscribe(
        self,
        on_key_down: Callable[[KeyEvent], None],
        on_key_up: Callable[[KeyEvent], None],
    ) -> None:
        if keyboard is None:
            raise RuntimeError("pynput is not installed")
        self.unsubscribe()

        def _on_press(key: object) -> None:
            code = _key_code(key)
            repeat = code in self._down
            self._down.add(code)
            on_key_down(KeyEvent(code=code, is_repeat=repeat, target_editable=self._focus_probe()))

        def _on_release(key: object) -> None:
            code = _key_code(key)
            self._down.discard(code)
            on_key_up(KeyEvent(code=code, target_editable=self._focus_probe()))

        self._listener = keyboard.Listener(on_press=_on_press, on_release=_on_release)
        self._listener.start()

    def unsubscribe(self) -> None:
        listener = self._listener
        if listener is not None:
            listener.stop()
            self._listener = None
        self._down.clear()
