"""Ordered playback of synthesized-speech chunks."""

from __future__ import annotations

import io
import logging
import threading
from collections import deque
from functools import partial
from typing import Callable, Deque, Optional

from errors import PLAYBACK_ERROR
from interfaces import AudioOutput, PlaybackHandle
from models import AudioChunk

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore

try:
    import soundfile as sf
except Exception:  # pragma: no cover
    sf = None  # type: ignore

logger = logging.getLogger(__name__)


class AudioPlaybackQueue:
    """FIFO of chunks with a single active player.

    A chunk that fails to decode or play is logged and skipped. Host callbacks
    run without the queue lock held.
    """

    def __init__(
        self,
        output: AudioOutput,
        on_playing_change: Optional[Callable[[bool], None]] = None,
    ) -> None:
        self._output = output
        self._on_playing_change = on_playing_change
        self._queue: Deque[AudioChunk] = deque()
        self._lock = threading.RLock()
        self._current: Optional[PlaybackHandle] = None
        self._token: Optional[object] = None
        self._starting = False
        self._finished_early = False
        self._playing = False

    @property
    def is_playing(self) -> bool:
        return self._playing

    @property
    def pending(self) -> int:
        return len(self._queue)

    def enqueue(self, chunk: AudioChunk) -> None:
        with self._lock:
            self._queue.append(chunk)
            if self._playing:
                return
            self._playing = True
        self._notify(True)
        self._play_next()

    def stop_all(self) -> None:
        with self._lock:
            self._queue.clear()
            self._token = None
            self._finished_early = False
            handle, self._current = self._current, None
            was_playing, self._playing = self._playing, False
        if handle is not None:
            handle.stop()
        if was_playing:
            self._notify(False)

    def _play_next(self) -> None:
        while True:
            with self._lock:
                if not self._queue:
                    if not self._playing:
                        return
                    self._playing = False
                    self._current = None
                    break
                chunk = self._queue.popleft()
                token = object()
                self._token = token
                self._starting = True
                self._finished_early = False

            try:
                handle = self._output.play(chunk, partial(self._on_done, token))
            except Exception as exc:
                logger.warning("%s: could not start chunk (%s)", PLAYBACK_ERROR, exc)
                with self._lock:
                    self._starting = False
                    if self._token is token:
                        self._token = None
                        continue
                return

            stale: Optional[PlaybackHandle] = None
            with self._lock:
                self._starting = False
                if self._finished_early:
                    self._finished_early = False
                    continue
                if self._token is not token:
                    stale = handle
                else:
                    self._current = handle
            if stale is not None:
                stale.stop()
            return
        self._notify(False)

    def _on_done(self, token: object, error: Optional[Exception] = None) -> None:
        if error is not None:
            logger.warning("%s: chunk failed, skipping (%s)", PLAYBACK_ERROR, error)
        with self._lock:
            if token is not self._token:
                return
            self._token = None
            self._current = None
            if self._starting:
                self._finished_early = True
                return
        self._play_next()

    def _notify(self, playing: bool) -> None:
        if self._on_playing_change:
            self._on_playing_change(playing)


class _SoundDevicePlayback:
    def __init__(self) -> None:
        self._stop_event = threading.Event()

    def stop(self) -> None:
        self._stop_event.set()
        if sd is not None:
            sd.stop()


class SoundDeviceOutput:
    """Decodes each chunk with soundfile and plays it on a daemon thread."""

    def play(
        self,
        chunk: AudioChunk,
        on_done: Callable[[Optional[Exception]], None],
    ) -> _SoundDevicePlayback:
        playback = _SoundDevicePlayback()
        threading.Thread(target=self._run, args=(chunk, playback, on_done), daemon=True).start()
        return playback

    def _run(
        self,
        chunk: AudioChunk,
        playback: _SoundDevicePlayback,
        on_done: Callable[[Optional[Exception]], None],
    ) -> None:
        if sd is None or sf is None:
            on_done(RuntimeError("sounddevice/soundfile is not installed"))
            return
        try:
            data, sample_rate = sf.read(io.BytesIO(chunk.data), dtype="float32")
            if playback._stop_event.is_set():
                return
            sd.play(data, sample_rate)
            sd.wait()
        except Exception as exc:
            on_done(exc)
            return
        if not playback._stop_event.is_set():
            on_done(None)
