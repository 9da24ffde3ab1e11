"""Wall-clock and timer capability backed by ``time`` and ``threading``."""

from __future__ import annotations

import threading
import time
from typing import Callable


class SystemClock:
    def now_ms(self) -> int:
        return int(time.monotonic() * 1000)

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> threading.Timer:
        timer = threading.Timer(delay_s, callback)
        timer.daemon = True
        timer.start()
        return timer


def now_ms() -> int:
    return int(time.time() * 1000)
