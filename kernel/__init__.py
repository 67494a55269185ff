# kernel/__init__.py
"""
Asuna Relay Kernel Package

- logger.py             : RelayLogger (console + ring buffer + optional file)
- conversation_store.py : per-user bounded conversation log and profile
- profile_resolver.py   : persona selection and name extraction
- commands.py           : /reset, /name, /voice, /help
- diary.py              : browsing-history diary behind /history/*
- relay.py              : RelayBot, the per-message pipeline

Example imports:
    from kernel.relay import RelayBot
    from kernel import ConversationStore, RelayLogger
"""

from .logger import RelayLogger
from .conversation_store import ConversationStore, Role
from .profile_resolver import Persona, PersonaTag, ProfileResolver, extract_name

__all__ = [
    "RelayLogger",
    "ConversationStore",
    "Role",
    "Persona",
    "PersonaTag",
    "ProfileResolver",
    "extract_name",
]
