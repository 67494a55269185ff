# kernel/logger.py
"""
Asuna Relay — Logger

Every line goes three places:
- Terminal: "[Tag] message" (warnings/errors on stderr)
- Ring buffer: last MAX_LOGS records, served by GET /logs
- Log file (optional): "<iso-ts> [LEVEL] [Tag] message", append-only

Writing to the file must never take the relay down; a failed write is
reported once on stderr and the file sink is disabled.
"""

from __future__ import annotations

import sys
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Deque, List, Optional

MAX_LOGS = 100

LEVELS = ("info", "warning", "error")


@dataclass(frozen=True)
class LogRecord:
    timestamp: str  # HH:MM:SS, UTC
    level: str
    message: str

    def format(self) -> str:
        return f"[{self.timestamp}] {self.message}"


class RelayLogger:
    def __init__(self, log_file: Optional[Path] = None, max_records: int = MAX_LOGS):
        self._records: Deque[LogRecord] = deque(maxlen=max_records)
        self._lock = threading.Lock()
        self.log_file = Path(log_file) if log_file else None

    @property
    def capacity(self) -> int:
        return self._records.maxlen or 0

    def info(self, tag: str, message: str) -> None:
        self._emit("info", tag, message)

    def warning(self, tag: str, message: str) -> None:
        self._emit("warning", tag, message)

    def error(self, tag: str, message: str) -> None:
        self._emit("error", tag, message)

    def recent(self, limit: int) -> List[LogRecord]:
        """Last `limit` records, oldest first."""
        if limit <= 0:
            return []
        with self._lock:
            records = list(self._records)
        return records[-limit:]

    def _emit(self, level: str, tag: str, message: str) -> None:
        now = datetime.now(timezone.utc)
        line = f"[{tag}] {message}"
        stream = sys.stdout if level == "info" else sys.stderr
        print(line, file=stream, flush=True)

        with self._lock:
            self._records.append(LogRecord(now.strftime("%H:%M:%S"), level, line))
            if self.log_file is not None:
                self._write(f"{now.isoformat()} [{level.upper()}] {line}")

    def _write(self, line: str) -> None:
        try:
            self.log_file.parent.mkdir(parents=True, exist_ok=True)
            with self.log_file.open("a", encoding="utf-8") as f:
                f.write(line + "\n")
        except OSError as e:
            print(f"[Logger] Disabling file log {self.log_file}: {e}", file=sys.stderr, flush=True)
            self.log_file = None
