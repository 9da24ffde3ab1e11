from __future__ import annotations

import pytest

import hotkey
from fakes import FakeKeySource
from hotkey import PushToTalkController, PynputKeySource


def _controller(source: FakeKeySource, key: str = "Space") -> tuple[PushToTalkController, list[str]]:
    calls: list[str] = []
    ptt = PushToTalkController(
        source,
        key=key,
        on_press_start=lambda: calls.append("start"),
        on_press_end=lambda: calls.append("stop"),
    )
    ptt.bind()
    return ptt, calls


def test_held_key_starts_exactly_once() -> None:
    source = FakeKeySource()
    ptt, calls = _controller(source)

    source.key_down("Space")
    source.key_down("Space", repeat=True)
    source.key_down("Space", repeat=True)
    source.key_down("Space")  # repeat without the flag set is caught by the latch
    assert ptt.is_pressed is True
    source.key_up("Space")

    assert calls == ["start", "stop"]
    assert ptt.is_pressed is False


def test_editable_target_is_ignored() -> None:
    source = FakeKeySource()
    ptt, calls = _controller(source)

    event = source.key_down("Space", editable=True)
    source.key_up("Space")

    assert calls == []
    assert event.default_prevented is False
    assert ptt.is_pressed is False


def test_space_default_action_is_suppressed() -> None:
    source = FakeKeySource()
    _, _ = _controller(source)

    down = source.key_down("Space")
    repeat = source.key_down("Space", repeat=True)
    up = source.key_up("Space")

    assert down.default_prevented is True
    assert repeat.default_prevented is True
    assert up.default_prevented is True


def test_control_key_keeps_default_action() -> None:
    source = FakeKeySource()
    _, calls = _controller(source, key="ControlLeft")

    down = source.key_down("ControlLeft")
    source.key_up("ControlLeft")

    assert calls == ["start", "stop"]
    assert down.default_prevented is False


def test_other_keys_are_ignored() -> None:
    source = FakeKeySource()
    _, calls = _controller(source)

    source.key_down("KeyA")
    source.key_up("KeyA")
    source.key_up("Space")  # release without a press

    assert calls == []


def test_unbind_resets_latch_and_unsubscribes() -> None:
    source = FakeKeySource()
    ptt, calls = _controller(source)

    source.key_down("Space")
    ptt.unbind()

    assert ptt.is_pressed is False
    assert source.subscribed is False
    assert calls == ["start"]

    ptt.bind()
    source.key_down("Space")
    assert calls == ["start", "start"]


def test_unsupported_key_is_rejected() -> None:
    with pytest.raises(ValueError):
        PushToTalkController(FakeKeySource(), key="KeyQ")


def test_pynput_source_requires_pynput(monkeypatch) -> None:  # noqa: ANN001
    monkeypatch.setattr(hotkey, "keyboard", None)
    source = PynputKeySource()
    with pytest.raises(RuntimeError, match="pynput is not installed"):
        source.subscribe(lambda e: None, lambda e: None)
