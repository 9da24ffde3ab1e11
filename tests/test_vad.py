from __future__ import annotations

from config import VADSettings
from fakes import FakeClock
from vad import VoiceActivityDetector


def _detector(clock: FakeClock, events: list[str]) -> VoiceActivityDetector:
    vad = VoiceActivityDetector(
        VADSettings(silence_threshold=0.01, silence_duration_ms=1500, min_recording_duration_ms=1000),
        on_silence_detected=lambda: events.append("silence"),
        on_speech_start=lambda: events.append("speech"),
        clock=clock,
    )
    vad.start()
    return vad


def test_sustained_silence_after_min_duration_fires_once() -> None:
    clock = FakeClock()
    events: list[str] = []
    vad = _detector(clock, events)

    vad.process(0.3)
    clock.advance(1200)
    vad.process(0.0)
    assert vad.timer_pending is True

    for _ in range(20):
        clock.advance(100)
        vad.process(0.0)
    clock.advance(2000)

    assert events == ["speech", "silence"]
    assert vad.is_speaking is False


def test_short_dip_never_emits_silence() -> None:
    clock = FakeClock()
    events: list[str] = []
    vad = _detector(clock, events)

    vad.process(0.3)
    clock.advance(1200)
    vad.process(0.005)
    clock.advance(1000)
    vad.process(0.4)
    assert vad.timer_pending is False
    clock.advance(5000)

    assert events == ["speech"]
    assert vad.is_speaking is True


def test_silence_before_min_duration_does_not_arm() -> None:
    clock = FakeClock()
    events: list[str] = []
    vad = _detector(clock, events)

    vad.process(0.3)
    clock.advance(500)
    vad.process(0.0)
    assert vad.timer_pending is False
    clock.advance(3000)
    assert "silence" not in events

    # once the minimum has passed the next quiet sample arms the timer
    vad.process(0.0)
    clock.advance(1500)
    assert events == ["speech", "silence"]


def test_no_speech_means_no_stop() -> None:
    clock = FakeClock()
    events: list[str] = []
    vad = _detector(clock, events)

    for _ in range(50):
        clock.advance(100)
        vad.process(0.0)

    assert events == []


def test_noise_spikes_while_speaking_do_not_retrigger_start() -> None:
    clock = FakeClock()
    events: list[str] = []
    vad = _detector(clock, events)

    for volume in (0.2, 0.5, 0.3, 0.9):
        vad.process(volume)

    assert events == ["speech"]


def test_cleanup_cancels_pending_timer() -> None:
    clock = FakeClock()
    events: list[str] = []
    vad = _detector(clock, events)

    vad.process(0.3)
    clock.advance(1200)
    vad.process(0.0)
    timer = clock.pending()[0]

    vad.cleanup()

    assert timer.cancelled is True
    clock.advance(5000)
    assert events == ["speech"]
    vad.process(0.5)  # ignored until start() again
    assert events == ["speech"]


def test_volume_callback_sees_every_sample() -> None:
    volumes: list[float] = []
    vad = VoiceActivityDetector(on_volume_change=volumes.append, clock=FakeClock())
    vad.start()
    vad.process(0.1)
    vad.process(0.0)
    assert volumes == [0.1, 0.0]
