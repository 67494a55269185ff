# kernel/diary.py
"""
Asuna Relay — Browsing Diary

The companion app uploads the user's recent browsing history; the text
model turns it into a short first-person diary entry. Entries are kept in
memory, newest first, and served back as "insights".
"""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Sequence

from backend.model_fallback import ModelFallbackExecutor

# Only the most recent history items go into the prompt.
HISTORY_SAMPLE_LIMIT = 50

MAX_DIARY_ENTRIES = 100

DIARY_UNAVAILABLE = "Could not generate diary."

PLACEHOLDER_REFLECTION = "Reflecting on the digital footprint I left today..."

DIARY_PROMPT = (
    "Based on the following recent browsing history, write a short, personal diary entry "
    "(max 150 words) as if you are the user reflecting on their day. Be insightful, slightly "
    'dramatic or "digital noir" in tone. Also suggest 2 topics they seem interested in.\n\n'
    "History:\n{history}"
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def format_history_item(item: Dict[str, Any]) -> str:
    visits = item.get("visitCount", 0)
    title = item.get("title") or "(untitled)"
    url = item.get("url") or ""
    return f"- [{visits} visits] {title} ({url})"


def build_diary_prompt(history_data: Sequence[Any]) -> str:
    """Non-dict items are skipped."""
    lines = [
        format_history_item(item)
        for item in list(history_data)[:HISTORY_SAMPLE_LIMIT]
        if isinstance(item, dict)
    ]
    return DIARY_PROMPT.format(history="\n".join(lines))


def compose_diary_entry(executor: ModelFallbackExecutor, history_data: Sequence[Any]) -> str:
    result = executor.run(build_diary_prompt(history_data))
    return result.text if result.succeeded else DIARY_UNAVAILABLE


@dataclass(frozen=True)
class DiaryEntry:
    date: str
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"date": self.date, "content": self.content}


class DiaryStore:
    def __init__(self, max_entries: int = MAX_DIARY_ENTRIES):
        self._lock = threading.Lock()
        self._entries: Deque[DiaryEntry] = deque(maxlen=max_entries)

    def add(self, content: str) -> DiaryEntry:
        entry = DiaryEntry(date=_now_iso(), content=content)
        with self._lock:
            self._entries.appendleft(entry)
        return entry

    def entries(self) -> List[DiaryEntry]:
        """Newest first."""
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
