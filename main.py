"""Terminal entrypoint: hold a spoken conversation with a remote agent."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional, Tuple

from config import PTT_KEYS, VOICES, JsonConfigStore
from errors import VoiceChatError
from hotkey import PynputKeySource
from interfaces import ConfigStore
from models import EngineState, RecordingMode, ToolExecutionEvent, TranscriptEntry, TurnState
from playback import SoundDeviceOutput
from recorder import SoundDeviceInput
from stream_client import ConversationStreamClient
from turn_controller import TurnController, is_supported


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Real-time voice conversation client")
    parser.add_argument("--endpoint", help="base URL of the converse service")
    parser.add_argument("--agent-id", help="agent to talk to")
    parser.add_argument("--conversation-id", default="", help="existing conversation id")
    parser.add_argument("--voice", choices=VOICES)
    parser.add_argument("--mode", choices=[m.value for m in RecordingMode])
    parser.add_argument("--ptt-key", choices=PTT_KEYS)
    parser.add_argument("--save", action="store_true", help="persist the given options to the config file")
    parser.add_argument("--debug", action="store_true")
    return parser


class ConsoleHost:
    """Prints engine callbacks to stdout."""

    def __init__(self) -> None:
        self._printed = 0
        self._last_state: Optional[EngineState] = None

    def on_state_change(self, state: EngineState) -> None:
        previous = self._last_state
        self._last_state = state
        if previous is None or previous.is_recording != state.is_recording:
            if state.is_recording:
                print("🎙️  Listening...")
        if previous is None or previous.is_processing != state.is_processing:
            if state.is_processing:
                print("…  Thinking")

    def on_transcript_update(self, entries: List[TranscriptEntry]) -> None:
        if len(entries) < self._printed:
            self._printed = 0
        for entry in entries[self._printed:]:
            if entry.final:
                print(f"{entry.role.value:>9}: {entry.content}")
                self._printed += 1
            else:
                break

    def on_tool_execution(self, event: ToolExecutionEvent) -> None:
        detail = f" ({event.error})" if event.error else ""
        print(f"   [tool] {event.name}: {event.status.value}{detail}")

    def on_error(self, error: VoiceChatError) -> None:
        print(f"⚠️  {error.code}: {error.message}", file=sys.stderr)


def _adopt_conversation(client: ConversationStreamClient, conversation_id: str) -> None:
    if conversation_id and not client.conversation_id:
        client.conversation_id = conversation_id


def build_engine(
    args: argparse.Namespace,
    store: ConfigStore,
    endpoint: str,
    host: ConsoleHost,
) -> Tuple[ConversationStreamClient, TurnController]:
    """Wire the sounddevice/pynput capabilities into a controller; CLI flags win over stored values."""
    mode = RecordingMode(args.mode or store.get_recording_mode())
    client = ConversationStreamClient(
        endpoint,
        access_token=store.get_access_token(),
        agent_id=args.agent_id or store.get_agent_id(),
        conversation_id=args.conversation_id,
        voice=args.voice or store.get_voice(),
    )
    controller = TurnController(
        audio_input=SoundDeviceInput(),
        audio_output=SoundDeviceOutput(),
        stream_client=client,
        mode=mode,
        ptt_key=args.ptt_key or store.get_ptt_key(),
        key_source=PynputKeySource() if mode == RecordingMode.PUSH_TO_TALK else None,
        vad_settings=store.get_vad_settings(),
        on_state_change=host.on_state_change,
        on_transcript_update=host.on_transcript_update,
        on_tool_execution=host.on_tool_execution,
        on_error=host.on_error,
        on_conversation_created=lambda cid: _adopt_conversation(client, cid),
    )
    return client, controller


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    store = JsonConfigStore()
    if args.save:
        if args.endpoint:
            store.set_endpoint(args.endpoint)
        if args.agent_id:
            store.set_agent_id(args.agent_id)
        if args.voice:
            store.set_voice(args.voice)
        if args.mode:
            store.set_recording_mode(args.mode)
        if args.ptt_key:
            store.set_ptt_key(args.ptt_key)

    endpoint = args.endpoint or store.get_endpoint()
    if not endpoint:
        print("No endpoint configured; pass --endpoint.", file=sys.stderr)
        return 2
    if not is_supported():
        print("sounddevice, soundfile and pynput are required.", file=sys.stderr)
        return 2

    client, controller = build_engine(args, store, endpoint, ConsoleHost())
    mode = controller.mode

    if mode == RecordingMode.PUSH_TO_TALK:
        print(f"Hold {controller.ptt_key} to talk. Type q + Enter to quit.")
    elif mode == RecordingMode.CONVERSATIONAL:
        print("Press Enter to speak; the turn ends when you pause. Type q + Enter to quit.")
    else:
        print("Press Enter to start and again to stop. Type q + Enter to quit.")

    try:
        for line in sys.stdin:
            if line.strip().lower() == "q":
                break
            if mode == RecordingMode.PUSH_TO_TALK:
                continue
            if controller.state == TurnState.CAPTURING:
                controller.stop()
            else:
                controller.start()
    except KeyboardInterrupt:
        pass
    finally:
        controller.shutdown()
        client.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
