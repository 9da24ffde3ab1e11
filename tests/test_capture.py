from __future__ import annotations

import io
import wave

import pytest

from capture import MIN_UTTERANCE_BYTES, AudioCaptureSession, pcm_to_wav
from errors import PERMISSION_DENIED, TOO_SHORT, VoiceChatError
from fakes import FakeAudioInput, silent_pcm
from models import AudioFrame, CaptureConstraints


def test_pcm_to_wav_has_riff_header() -> None:
    data = pcm_to_wav(silent_pcm(100), sample_rate=16000)
    assert data[:4] == b"RIFF"
    with wave.open(io.BytesIO(data)) as wf:
        assert wf.getframerate() == 16000
        assert wf.getnframes() == 100


def test_finish_encodes_and_releases() -> None:
    audio_input = FakeAudioInput()
    session = AudioCaptureSession.open(audio_input, CaptureConstraints(sample_rate=24000))
    audio_input.push(silent_pcm(2400))
    audio_input.push(silent_pcm(2400))

    utterance = session.finish()

    assert audio_input.handle.close_count == 1
    assert session.released is True
    assert utterance.size == 44 + 9600
    assert utterance.mime_type == "audio/wav"
    assert utterance.duration_ms == 200


def test_too_short_still_releases_microphone() -> None:
    audio_input = FakeAudioInput()
    session = AudioCaptureSession.open(audio_input)
    audio_input.push(silent_pcm(10))

    with pytest.raises(VoiceChatError) as info:
        session.finish()

    assert info.value.code == TOO_SHORT
    assert audio_input.handle.close_count == 1


def test_threshold_is_on_encoded_size() -> None:
    audio_input = FakeAudioInput()
    session = AudioCaptureSession.open(audio_input)
    audio_input.push(b"\x00" * (MIN_UTTERANCE_BYTES - 44))

    assert session.finish().size == MIN_UTTERANCE_BYTES


def test_open_errors_propagate() -> None:
    audio_input = FakeAudioInput(error=VoiceChatError(PERMISSION_DENIED))
    with pytest.raises(VoiceChatError) as info:
        AudioCaptureSession.open(audio_input)
    assert info.value.code == PERMISSION_DENIED


def test_release_is_idempotent_and_frames_after_release_are_dropped() -> None:
    audio_input = FakeAudioInput()
    seen: list[AudioFrame] = []
    session = AudioCaptureSession.open(audio_input)
    session.add_frame_listener(seen.append)

    audio_input.push(silent_pcm(10))
    session.abort()
    session.release()
    audio_input.push(silent_pcm(10))

    assert audio_input.handle.close_count == 1
    assert len(seen) == 1
    assert session.recorded_bytes == 0
