"""State-machine based turn orchestration."""

from __future__ import annotations

import binascii
import logging
import threading
from dataclasses import replace
from typing import Callable, List, Optional

from capture import AudioCaptureSession
from clock import SystemClock
from config import PTT_KEYS, VADSettings
from errors import BUSY, INTERNAL_ERROR, VoiceChatError
from hotkey import PushToTalkController
from interfaces import AudioInput, AudioOutput, Clock, KeySource
from level_monitor import AudioLevelMonitor
from models import (
    AudioChunk,
    CaptureConstraints,
    EngineState,
    RecordingMode,
    StreamEvent,
    StreamEventKind,
    ToolExecutionEvent,
    TranscriptEntry,
    TranscriptRole,
    TurnState,
    Utterance,
)
from playback import AudioPlaybackQueue
from stream_client import ConversationStreamClient, decode_audio
from tool_tracker import ToolExecutionTracker
from transcript import TranscriptLog
from vad import VoiceActivityDetector

logger = logging.getLogger(__name__)

USER_PLACEHOLDER = "[Speaking...]"

StateCallback = Callable[[EngineState], None]
TranscriptCallback = Callable[[List[TranscriptEntry]], None]
ToolCallback = Callable[[ToolExecutionEvent], None]
ErrorCallback = Callable[[VoiceChatError], None]
MessageCallback = Callable[[str], None]


class TurnController:
    """Owns turn boundaries for one conversation session.

    At most one turn is in flight: ``start`` is ignored unless IDLE and
    ``stop`` is ignored unless CAPTURING, whichever source calls them. VAD
    timers and stream workers carry the id of the turn they belong to and are
    ignored once that turn has been superseded or cancelled.
    """

    def __init__(
        self,
        audio_input: AudioInput,
        audio_output: AudioOutput,
        stream_client: ConversationStreamClient,
        mode: RecordingMode | str = RecordingMode.MANUAL,
        ptt_key: str = "Space",
        key_source: Optional[KeySource] = None,
        vad_settings: Optional[VADSettings] = None,
        constraints: Optional[CaptureConstraints] = None,
        clock: Optional[Clock] = None,
        level_interval_s: float = 1 / 60,
        clear_transcript_on_start: bool = False,
        on_state_change: Optional[StateCallback] = None,
        on_transcript_update: Optional[TranscriptCallback] = None,
        on_tool_execution: Optional[ToolCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        on_conversation_created: Optional[MessageCallback] = None,
        on_complete: Optional[MessageCallback] = None,
    ) -> None:
        self._audio_input = audio_input
        self._stream_client = stream_client
        self._key_source = key_source
        self._vad_settings = vad_settings or VADSettings()
        self._constraints = constraints or CaptureConstraints()
        self._clock = clock or SystemClock()
        self._level_interval_s = level_interval_s
        self._clear_transcript_on_start = clear_transcript_on_start
        self._on_state_change = on_state_change
        self._on_error = on_error
        self._on_conversation_created = on_conversation_created
        self._on_complete = on_complete

        self._lock = threading.RLock()
        self._state = TurnState.IDLE
        self._engine = EngineState()
        self._turn_id = 0
        self._mode = RecordingMode.MANUAL
        self._ptt_key = "Space"
        self._ptt: Optional[PushToTalkController] = None
        self._capture: Optional[AudioCaptureSession] = None
        self._monitor: Optional[AudioLevelMonitor] = None
        self._vad: Optional[VoiceActivityDetector] = None
        self._cancel_event: Optional[threading.Event] = None
        self._worker: Optional[threading.Thread] = None

        self._transcript = TranscriptLog(on_update=on_transcript_update)
        self._tracker = ToolExecutionTracker(on_tool_execution=on_tool_execution, clock=self._clock)
        self._playback = AudioPlaybackQueue(audio_output, on_playing_change=self._on_playing_change)

        self.configure(mode, ptt_key)

    @property
    def state(self) -> TurnState:
        return self._state

    @property
    def mode(self) -> RecordingMode:
        return self._mode

    @property
    def ptt_key(self) -> str:
        return self._ptt_key

    @property
    def engine_state(self) -> EngineState:
        return self._engine

    @property
    def transcript(self) -> List[TranscriptEntry]:
        return self._transcript.entries()

    @property
    def current_tool(self) -> Optional[ToolExecutionEvent]:
        return self._tracker.current

    @property
    def is_ptt_pressed(self) -> bool:
        return self._ptt is not None and self._ptt.is_pressed

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def configure(self, mode: RecordingMode | str, key: Optional[str] = None) -> None:
        mode = RecordingMode(mode)
        if key is not None and key not in PTT_KEYS:
            raise ValueError(f"unsupported push-to-talk key: {key}")
        with self._lock:
            if self._state != TurnState.IDLE:
                raise VoiceChatError(BUSY)
            if mode == RecordingMode.PUSH_TO_TALK and self._key_source is None:
                raise ValueError("push-to-talk mode needs a key source")
            self._release_ptt()
            self._mode = mode
            if key is not None:
                self._ptt_key = key
            if mode == RecordingMode.PUSH_TO_TALK:
                self._ptt = PushToTalkController(
                    self._key_source,
                    key=self._ptt_key,
                    on_press_start=self.start,
                    on_press_end=self.stop,
                )
                self._ptt.bind()
            logger.info("recording mode set to %s", mode.value)

    def start(self) -> None:
        with self._lock:
            if self._state != TurnState.IDLE:
                return
            self._turn_id += 1
            turn_id = self._turn_id
            self._update(error=None, audio_level=0.0)
            if self._clear_transcript_on_start:
                self._transcript.clear()
            try:
                capture = AudioCaptureSession.open(self._audio_input, self._constraints)
            except VoiceChatError as exc:
                self._fail(exc)
                return
            self._capture = capture
            self._attach_detector(capture, turn_id)
            self._transition(TurnState.CAPTURING)

    def stop(self) -> None:
        with self._lock:
            if self._state != TurnState.CAPTURING:
                return
            capture, self._capture = self._capture, None
            self._detach_detector()
            try:
                utterance = capture.finish()
            except VoiceChatError as exc:
                self._fail(exc)
                return

            self._transition(TurnState.STREAMING)
            logger.info("uploading %d byte utterance", utterance.size)
            self._transcript.add(TranscriptRole.USER, USER_PLACEHOLDER)
            cancel_event = threading.Event()
            self._cancel_event = cancel_event
            self._worker = threading.Thread(
                target=self._run_turn,
                args=(self._turn_id, utterance, cancel_event),
                daemon=True,
            )
            self._worker.start()

    def cancel(self) -> None:
        """Tear down the current turn and silence playback. Never blocks on the network."""
        with self._lock:
            self._turn_id += 1
            self._release_turn_resources()
            self._playback.stop_all()
            self._tracker.clear()
            self._transcript.finalize_assistant()
            if self._state != TurnState.IDLE:
                logger.info("turn cancelled")
                self._transition(TurnState.IDLE)

    def stop_playback(self) -> None:
        self._playback.stop_all()

    def clear_transcript(self) -> None:
        self._transcript.clear()

    def shutdown(self) -> None:
        with self._lock:
            self.cancel()
            self._release_ptt()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the in-flight upload worker (if any) has finished."""
        worker = self._worker
        if worker is None:
            return True
        worker.join(timeout)
        return not worker.is_alive()

    # ------------------------------------------------------------------
    # Detectors
    # ------------------------------------------------------------------

    def _attach_detector(self, capture: AudioCaptureSession, turn_id: int) -> None:
        if self._mode == RecordingMode.CONVERSATIONAL:
            vad = VoiceActivityDetector(
                self._vad_settings,
                on_silence_detected=lambda: self._on_silence(turn_id),
                on_volume_change=self._on_audio_level,
                clock=self._clock,
            )
            monitor = AudioLevelMonitor(on_level=vad.process, interval_s=self._level_interval_s)
            vad.start()
            self._vad = vad
        else:
            monitor = AudioLevelMonitor(on_level=self._on_audio_level, interval_s=self._level_interval_s)
        capture.add_frame_listener(monitor.feed)
        monitor.start()
        self._monitor = monitor

    def _detach_detector(self) -> None:
        monitor, self._monitor = self._monitor, None
        if monitor is not None:
            monitor.stop()
        vad, self._vad = self._vad, None
        if vad is not None:
            vad.cleanup()

    def _on_silence(self, turn_id: int) -> None:
        with self._lock:
            if turn_id != self._turn_id:
                return
            logger.info("silence detected, ending turn")
            self.stop()

    def _on_audio_level(self, level: float) -> None:
        with self._lock:
            if self._state == TurnState.CAPTURING:
                self._update(audio_level=level)

    def _on_playing_change(self, playing: bool) -> None:
        # Notifications can arrive out of order; the queue's own flag is authoritative.
        with self._lock:
            self._update(is_playing=self._playback.is_playing)

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------

    def _run_turn(self, turn_id: int, utterance: Utterance, cancel_event: threading.Event) -> None:
        try:
            completed = self._stream_client.converse(
                utterance,
                lambda event: self._handle_stream_event(turn_id, event),
                cancel_event,
            )
        except VoiceChatError as exc:
            self._fail_turn(turn_id, exc)
            return
        except Exception as exc:
            logger.exception("%s: unexpected failure while handling the stream", INTERNAL_ERROR)
            self._fail_turn(turn_id, VoiceChatError(INTERNAL_ERROR, str(exc)))
            return

        with self._lock:
            if cancel_event.is_set() or not self._is_current(turn_id):
                return
            if not completed:
                logger.warning("stream ended without a complete frame")
                self._finish_turn(None)

    def _handle_stream_event(self, turn_id: int, event: StreamEvent) -> None:
        with self._lock:
            if not self._is_current(turn_id):
                return
            kind = event.kind
            data = event.data
            if kind == StreamEventKind.CONVERSATION_CREATED.value:
                conversation_id = str(data.get("conversation_id", ""))
                logger.info("conversation created: %s", conversation_id)
                if self._on_conversation_created:
                    self._on_conversation_created(conversation_id)
            elif kind in (StreamEventKind.TEXT.value, StreamEventKind.TEXT_DELTA.value):
                self._transcript.append_assistant_text(str(data.get("data") or data.get("text") or ""))
            elif kind == StreamEventKind.AUDIO.value:
                self._enqueue_audio(event)
            elif kind == StreamEventKind.TOOL_CALL.value:
                self._tracker.tool_call(str(data.get("tool_name") or data.get("name") or ""))
            elif kind == StreamEventKind.TOOL_RESULT.value:
                result = data.get("result") or {}
                if not isinstance(result, dict):
                    result = {"success": True, "result": result}
                self._tracker.tool_result(
                    str(data.get("tool_name") or data.get("name") or ""),
                    bool(result.get("success")),
                    result=result.get("result"),
                    error=result.get("error"),
                )
            elif kind == StreamEventKind.COMPLETE.value:
                message_id = data.get("message_id")
                self._finish_turn(str(message_id) if message_id else None)
            else:
                logger.debug("ignoring stream event %r", kind)

    def _enqueue_audio(self, event: StreamEvent) -> None:
        try:
            payload = decode_audio(event)
        except (binascii.Error, ValueError) as exc:
            logger.warning("audio frame payload is not valid base64, skipping (%s)", exc)
            return
        if not payload:
            return
        mime_type = str(event.data.get("mime_type") or "audio/wav")
        self._playback.enqueue(AudioChunk(data=payload, mime_type=mime_type))

    def _finish_turn(self, message_id: Optional[str]) -> None:
        self._transcript.finalize_assistant()
        self._tracker.clear()
        self._cancel_event = None
        self._transition(TurnState.IDLE)
        if message_id and self._on_complete:
            self._on_complete(message_id)

    def _is_current(self, turn_id: int) -> bool:
        return turn_id == self._turn_id and self._state == TurnState.STREAMING

    # ------------------------------------------------------------------
    # Failure and cleanup
    # ------------------------------------------------------------------

    def _fail_turn(self, turn_id: int, exc: VoiceChatError) -> None:
        with self._lock:
            if not self._is_current(turn_id):
                return
            self._fail(exc)

    def _fail(self, exc: VoiceChatError) -> None:
        logger.error("turn failed: %s: %s", exc.code, exc.message)
        self._transition(TurnState.ERROR)
        self._release_turn_resources()
        self._transcript.finalize_assistant()
        self._update(error=exc.message)
        self._emit_error(exc)
        self._transition(TurnState.IDLE)

    def _emit_error(self, exc: VoiceChatError) -> None:
        if self._on_error:
            self._on_error(exc)

    def _release_turn_resources(self) -> None:
        self._detach_detector()
        capture, self._capture = self._capture, None
        if capture is not None:
            capture.abort()
        cancel_event, self._cancel_event = self._cancel_event, None
        if cancel_event is not None:
            cancel_event.set()

    def _release_ptt(self) -> None:
        ptt, self._ptt = self._ptt, None
        if ptt is not None:
            ptt.unbind()

    def _transition(self, to_state: TurnState) -> None:
        from_state = self._state
        if from_state == to_state:
            return
        self._state = to_state
        logger.debug("turn state %s -> %s", from_state.value, to_state.value)
        self._update(
            is_recording=to_state == TurnState.CAPTURING,
            is_processing=to_state == TurnState.STREAMING,
            audio_level=self._engine.audio_level if to_state == TurnState.CAPTURING else 0.0,
        )

    def _update(self, **changes) -> None:  # noqa: ANN003
        new_state = replace(self._engine, **changes)
        if new_state == self._engine:
            return
        self._engine = new_state
        if self._on_state_change:
            self._on_state_change(new_state)


def is_supported() -> bool:
    """Whether the audio and keyboard libraries needed by the default host are importable."""
    import hotkey
    import playback
    import recorder

    return recorder.sd is not None and playback.sf is not None and hotkey.keyboard is not None
