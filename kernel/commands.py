# kernel/commands.py
"""
Asuna Relay — User Commands

Slash commands are answered locally and never reach the model:

    /reset            clear conversation history (name is kept)
    /name <text>      set the name the bot calls you; /name alone shows it
    /voice [on|off]   voice replies; /voice alone toggles
    /help             list commands

Only these words are commands. Anything else starting with "/" is ordinary
chat text and goes to the model.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Tuple

from kernel.conversation_store import ConversationStore

MAX_NAME_LENGTH = 40

RESET_REPLY = "🔄 Conversation history has been reset!"

HELP_TEXT = (
    "Commands:\n"
    "/reset - clear our conversation history\n"
    "/name <your name> - tell me what to call you\n"
    "/voice [on|off] - turn voice replies on or off\n"
    "/help - show this message"
)


@dataclass
class CommandResponse:
    ok: bool = True
    command: str = ""
    summary: str = ""
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"ok": self.ok, "command": self.command, "text": self.summary, **self.data}


HandlerFn = Callable[[ConversationStore, str, str], CommandResponse]


def parse_command(text: str) -> Optional[Tuple[str, str]]:
    """('name', 'rest of line') for a known command, else None."""
    stripped = (text or "").strip()
    if not stripped.startswith("/"):
        return None
    word, _, args = stripped[1:].partition(" ")
    name = word.lower()
    if name not in COMMAND_HANDLERS:
        return None
    return name, args.strip()


# -----------------------------------------------------------------------------
# Handlers
# -----------------------------------------------------------------------------

def handle_reset(store: ConversationStore, user_id: str, args: str) -> CommandResponse:
    store.reset(user_id)
    return CommandResponse(command="reset", summary=RESET_REPLY)


def handle_name(store: ConversationStore, user_id: str, args: str) -> CommandResponse:
    if not args:
        current = store.get_display_name(user_id)
        if current:
            return CommandResponse(command="name", summary=f"👤 I'm calling you {current}.", data={"name": current})
        return CommandResponse(
            command="name",
            summary="👤 I don't know your name yet. Use /name <your name>.",
            data={"name": None},
        )

    name = " ".join(args.split())[:MAX_NAME_LENGTH].strip()
    store.set_display_name(user_id, name)
    return CommandResponse(command="name", summary=f"👤 Got it, I'll call you {name}.", data={"name": name})


def handle_voice(store: ConversationStore, user_id: str, args: str) -> CommandResponse:
    arg = args.lower()
    if arg in ("on", "enable", "true", "1"):
        enabled = True
    elif arg in ("off", "disable", "false", "0"):
        enabled = False
    elif not arg:
        enabled = not store.get_voice_mode(user_id)
    else:
        return CommandResponse(ok=False, command="voice", summary="Usage: /voice [on|off]")

    store.set_voice_mode(user_id, enabled)
    state = "on" if enabled else "off"
    return CommandResponse(command="voice", summary=f"🎤 Voice replies {state}.", data={"voice": enabled})


def handle_help(store: ConversationStore, user_id: str, args: str) -> CommandResponse:
    return CommandResponse(command="help", summary=HELP_TEXT)


COMMAND_HANDLERS: Dict[str, HandlerFn] = {
    "reset": handle_reset,
    "name": handle_name,
    "voice": handle_voice,
    "help": handle_help,
}


def dispatch(store: ConversationStore, user_id: str, text: str) -> Optional[CommandResponse]:
    """Run the command in `text`, or None if it is not a command."""
    parsed = parse_command(text)
    if parsed is None:
        return None
    name, args = parsed
    return COMMAND_HANDLERS[name](store, user_id, args)
