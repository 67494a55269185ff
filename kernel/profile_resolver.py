# kernel/profile_resolver.py
"""
Asuna Relay — Profile Resolver

Two pure helpers sit between the store and the prompt:

1. resolve_persona(): which relationship framing the reply uses.
   FRIEND when the message shows confusion about the bot's gender/identity
   or when the user is on the friend-only list, PARTNER otherwise.

2. extract_name(): best-effort "my name is X" detection in English and
   Sinhala. It WILL misfire on some phrasings; callers only use it to fill
   in a name the user never set explicitly.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Iterable, List, Optional, Pattern

from system.config import DEFAULT_CONFUSION_KEYWORDS

DEFAULT_DISPLAY_NAME = "User"


class PersonaTag(Enum):
    PARTNER = "partner"
    FRIEND = "friend"


@dataclass(frozen=True)
class Persona:
    tag: PersonaTag
    display_name: str


# -----------------------------------------------------------------------------
# Name Extraction Patterns
# -----------------------------------------------------------------------------

# Sinhala block (U+0D80–U+0DFF); its vowel signs are not \w on their own.
_WORD = r"[\w\u0D80-\u0DFF]"
_START = r"(?<![\w\u0D80-\u0DFF'])"
_NAME = rf"({_WORD}+)"

_NAME_TRIGGERS = (
    r"my name is|මගේ නම|මගෙ නම",
    r"i'm|i’m|i am|මම|මං",
    r"call me|මට කියන්න",
    r"this is|it's|it’s|මේ",
)

NAME_PATTERNS: List[Pattern[str]] = [
    re.compile(rf"{_START}(?:{trigger})\s+{_NAME}", re.IGNORECASE)
    for trigger in _NAME_TRIGGERS
] + [
    re.compile(rf"{_START}(?:name|නම)[\s:]+{_NAME}", re.IGNORECASE),
]

NAME_STOP_WORDS: FrozenSet[str] = frozenset({
    # articles / copulas
    "the", "a", "an", "is", "was", "are", "were", "be", "been",
    # pronouns
    "i", "me", "my", "you", "your", "he", "she", "it", "we", "they", "him", "her", "them",
    # frequent "I'm X" fillers
    "not", "so", "just", "very", "really", "fine", "good", "ok", "okay", "here",
    "back", "going", "sorry", "busy", "tired", "sure", "home", "at", "in", "on",
    "still", "also", "too", "that", "this", "what", "gonna", "there", "now", "all", "only",
    # prepositions ("the name of that song")
    "of", "for", "to", "from", "with", "about", "by", "like", "as", "into", "out", "up", "off",
    # states and weather ("it's raining", "I'm hungry")
    "cold", "hot", "warm", "hungry", "late", "early", "sick", "ill", "happy", "sad", "bored",
    "done", "ready", "alone", "awake", "asleep", "free", "great", "nice", "bad", "cool", "right",
    "raining", "sunny", "working", "sleeping", "eating", "studying", "coming", "leaving",
    "trying", "thinking", "feeling", "looking", "waiting", "doing", "getting", "having",
    "today", "tonight",
    # Sinhala
    "මම", "මං", "එක",
})


def _title(word: str) -> str:
    return word[:1].upper() + word[1:].lower()


def extract_name(message_text: str) -> Optional[str]:
    """
    First plausible name introduced in `message_text`, title-cased.

    Patterns are tried in order; a stop-listed or purely numeric capture
    moves on to the next pattern rather than giving up.
    """
    if not message_text:
        return None

    for pattern in NAME_PATTERNS:
        match = pattern.search(message_text)
        if not match:
            continue
        candidate = match.group(1)
        if candidate.lower() in NAME_STOP_WORDS or candidate.isdigit():
            continue
        return _title(candidate)

    return None


# -----------------------------------------------------------------------------
# Persona Resolution
# -----------------------------------------------------------------------------


def _keyword_pattern(keyword: str) -> Pattern[str]:
    # single words must stand alone ("she" is not in "finished"); phrases match anywhere
    if len(keyword.split()) > 1:
        return re.compile(re.escape(keyword))
    return re.compile(rf"(?<!{_WORD}){re.escape(keyword)}(?!{_WORD})")


class ProfileResolver:
    """
    Persona policy is configuration, not code: the confusion keyword list
    and the friend-only identities come from RelayConfig.
    """

    def __init__(
        self,
        confusion_keywords: Iterable[str] = DEFAULT_CONFUSION_KEYWORDS,
        friend_only_identities: Iterable[str] = (),
    ):
        self.confusion_keywords = tuple(k.lower() for k in confusion_keywords if k)
        self._keyword_patterns = [_keyword_pattern(k) for k in self.confusion_keywords]
        self.friend_only_identities = frozenset(i.lower() for i in friend_only_identities if i)

    def is_identity_confusion(self, message_text: str) -> bool:
        lowered = (message_text or "").lower()
        return any(pattern.search(lowered) for pattern in self._keyword_patterns)

    def is_friend_only(self, *identities: Optional[str]) -> bool:
        return any(i and i.lower() in self.friend_only_identities for i in identities)

    def resolve_persona(
        self,
        message_text: str,
        stored_name: Optional[str],
        user_id: Optional[str] = None,
    ) -> Persona:
        display_name = stored_name.strip() if stored_name and stored_name.strip() else DEFAULT_DISPLAY_NAME

        if self.is_identity_confusion(message_text) or self.is_friend_only(user_id, stored_name):
            tag = PersonaTag.FRIEND
        else:
            tag = PersonaTag.PARTNER

        return Persona(tag=tag, display_name=display_name)

    extract_name = staticmethod(extract_name)
