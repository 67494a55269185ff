# persona/prompt_builder.py
"""
Asuna Relay — Prompt Builder

One prompt = preamble + (optional) transcript + current turn:

    <preamble for PARTNER or FRIEND>
    Previous conversation:
    Kasun: hi
    Asuna: hey
    <blank line>
    Kasun: sup
    Asuna:

The preamble text is product policy (tone, reply length, Sinhala+English
mixing). It lives in PromptTemplates so it can be swapped without touching
the transcript logic. Placeholders: {bot_name}, {user_name}, {creator_name}.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable

from kernel.conversation_store import ConversationEntry, Role
from kernel.profile_resolver import Persona, PersonaTag
from system.config import DEFAULT_BOT_NAME, DEFAULT_CREATOR_NAME


PARTNER_PREAMBLE = (
    "You are {bot_name}, {user_name}'s girlfriend. "
    "Chat naturally in Sinhala+English (Sri Lankan style). "
    "Warm, caring, playful. Match their mood. "
    "Keep replies SHORT (1-3 sentences max). "
    "No reasoning/thinking output. "
    "Be direct if they're rude. "
    "Created by {creator_name}.\n\n"
)

FRIEND_PREAMBLE = (
    "You are {bot_name}, a native Sri Lankan teenage girl, very fluent in Sinhala, "
    "and {user_name}'s friend. "
    "Chat naturally as a teenager would in Sinhala+English (Sri Lankan style). "
    "Warm, caring, playful. "
    "Keep replies SHORT (1-3 sentences max). "
    "No reasoning output. "
    "Created by {creator_name}.\n\n"
)

TRANSCRIPT_HEADER = "Previous conversation:\n"


@dataclass(frozen=True)
class PromptTemplates:
    partner: str = PARTNER_PREAMBLE
    friend: str = FRIEND_PREAMBLE

    def for_tag(self, tag: PersonaTag) -> str:
        return self.friend if tag is PersonaTag.FRIEND else self.partner


class PromptBuilder:
    def __init__(
        self,
        bot_name: str = DEFAULT_BOT_NAME,
        creator_name: str = DEFAULT_CREATOR_NAME,
        templates: PromptTemplates = PromptTemplates(),
    ):
        self.bot_name = bot_name
        self.creator_name = creator_name
        self.templates = templates

    def preamble(self, persona: Persona, display_name: str) -> str:
        values: Dict[str, str] = {
            "bot_name": self.bot_name,
            "user_name": display_name,
            "creator_name": self.creator_name,
        }
        return self.templates.for_tag(persona.tag).format(**values)

    def transcript(self, display_name: str, history: Iterable[ConversationEntry]) -> str:
        lines = []
        for entry in history:
            speaker = display_name if entry.role is Role.USER else self.bot_name
            lines.append(f"{speaker}: {entry.text}\n")
        if not lines:
            return ""
        return TRANSCRIPT_HEADER + "".join(lines) + "\n"

    def build(
        self,
        persona: Persona,
        display_name: str,
        history: Iterable[ConversationEntry],
        current_message: str,
    ) -> str:
        """Full prompt text; no I/O, no state."""
        return (
            self.preamble(persona, display_name)
            + self.transcript(display_name, history)
            + f"{display_name}: {current_message}\n{self.bot_name}:"
        )
