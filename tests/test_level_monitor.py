from __future__ import annotations

import time

from fakes import loud_pcm, silent_pcm
from level_monitor import AudioLevelMonitor, compute_level
from models import AudioFrame


def test_silence_is_zero_and_full_scale_is_one() -> None:
    assert compute_level(silent_pcm(160)) == 0.0
    assert compute_level(loud_pcm(160, amplitude=32767)) > 0.99
    assert compute_level(b"") == 0.0


def test_level_is_between_bounds() -> None:
    level = compute_level(loud_pcm(160, amplitude=3277))
    assert 0.09 < level < 0.11


def test_sample_reports_latest_level() -> None:
    levels: list[float] = []
    monitor = AudioLevelMonitor(on_level=levels.append)

    monitor.feed(AudioFrame(pcm16_bytes=loud_pcm(160)))
    monitor.feed(AudioFrame(pcm16_bytes=silent_pcm(160)))

    assert monitor.sample() == 0.0
    assert levels == [0.0]


def test_loop_runs_until_stopped() -> None:
    levels: list[float] = []
    monitor = AudioLevelMonitor(on_level=levels.append, interval_s=0.005)
    monitor.feed(AudioFrame(pcm16_bytes=loud_pcm(160)))

    monitor.start()
    deadline = time.time() + 1.0
    while not levels and time.time() < deadline:
        time.sleep(0.01)
    monitor.stop()

    assert levels
    assert monitor.running is False
    assert monitor.level == 0.0
