# kernel/conversation_store.py
"""
Asuna Relay — Conversation Store

Per-user, in-RAM conversation memory. No database: a restart forgets
everything, which is acceptable for a chat relay.

Retention:
- A user's log physically keeps at most 2 × max_context entries.
  Pruning only kicks in once the buffer passes that size, so most appends
  are a plain list append.
- Readers only ever see the last max_context entries, oldest first.

Profiles (display name, voice mode) live next to the logs but have their
own lifetime: reset() drops the log and keeps the profile.

All public methods take the store lock; they are safe to call from the
Flask worker threads and the console transport at the same time.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from system.config import DEFAULT_MAX_CONTEXT


class Role(Enum):
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class ConversationEntry:
    role: Role
    text: str
    timestamp: datetime

    def to_dict(self) -> Dict[str, str]:
        return {
            "role": self.role.value,
            "text": self.text,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class UserProfile:
    user_id: str
    display_name: Optional[str] = None
    voice_mode_enabled: bool = False


class ConversationStore:
    """
    Usage:
        store = ConversationStore(max_context=20)
        store.append("9477...@c.us", Role.USER, "hey")
        history = store.recent_history("9477...@c.us")
    """

    def __init__(self, max_context: int = DEFAULT_MAX_CONTEXT):
        if max_context < 1:
            raise ValueError(f"max_context must be >= 1, got {max_context}")
        self._max_context = max_context
        self._logs: Dict[str, List[ConversationEntry]] = {}
        self._profiles: Dict[str, UserProfile] = {}
        self._lock = threading.Lock()

    @property
    def max_context(self) -> int:
        return self._max_context

    @property
    def retention_limit(self) -> int:
        return self._max_context * 2

    # ─────────────────────────────────────────────────────────────────────
    # Conversation Log
    # ─────────────────────────────────────────────────────────────────────

    def append(self, user_id: str, role: Role, text: str) -> None:
        entry = ConversationEntry(role=Role(role), text=text, timestamp=datetime.now(timezone.utc))
        with self._lock:
            log = self._logs.setdefault(user_id, [])
            log.append(entry)
            self._prune(user_id, log)

    def _prune(self, user_id: str, log: List[ConversationEntry]) -> None:
        # Caller holds the lock.
        limit = self.retention_limit
        if len(log) > limit:
            self._logs[user_id] = log[-limit:]

    def recent_history(self, user_id: str) -> List[ConversationEntry]:
        with self._lock:
            log = self._logs.get(user_id)
            if not log:
                return []
            return list(log[-self._max_context:])

    def reset(self, user_id: str) -> None:
        with self._lock:
            self._logs.pop(user_id, None)

    def active_user_count(self) -> int:
        with self._lock:
            return sum(1 for log in self._logs.values() if log)

    def physical_length(self, user_id: str) -> int:
        """Entries actually retained for a user (>= what recent_history shows)."""
        with self._lock:
            return len(self._logs.get(user_id, ()))

    # ─────────────────────────────────────────────────────────────────────
    # Profiles
    # ─────────────────────────────────────────────────────────────────────

    def get_profile(self, user_id: str) -> UserProfile:
        with self._lock:
            return self._profiles.get(user_id) or UserProfile(user_id=user_id)

    def get_display_name(self, user_id: str) -> Optional[str]:
        return self.get_profile(user_id).display_name

    def set_display_name(self, user_id: str, name: Optional[str]) -> None:
        with self._lock:
            profile = self._profiles.get(user_id) or UserProfile(user_id=user_id)
            self._profiles[user_id] = replace(profile, display_name=name or None)

    def get_voice_mode(self, user_id: str) -> bool:
        return self.get_profile(user_id).voice_mode_enabled

    def set_voice_mode(self, user_id: str, enabled: bool) -> None:
        with self._lock:
            profile = self._profiles.get(user_id) or UserProfile(user_id=user_id)
            self._profiles[user_id] = replace(profile, voice_mode_enabled=bool(enabled))

    def close(self) -> None:
        """Drop all logs and profiles (process shutdown)."""
        with self._lock:
            self._logs.clear()
            self._profiles.clear()
