from __future__ import annotations

import re
from datetime import datetime, timezone

from switchyard.config import LOG_LEVELS
from switchyard.storage import MessagePackStore

MAX_LOG_ROWS = 2000
_EMPHASIS_RE = re.compile(r"(\*\*|__)(.+?)\1")


def strip_markup(text: str) -> str:
    """Drop `**bold**` / `__underline__` markers, keeping the wrapped text."""
    return _EMPHASIS_RE.sub(r"\2", text)


class LoggerService:
    def __init__(self, store: MessagePackStore, level: str = "info") -> None:
        if level not in LOG_LEVELS:
            raise ValueError(f"unknown log level: {level}")
        self.store = store
        self.level = level

    def enabled_for(self, level: str) -> bool:
        return LOG_LEVELS.index(level) >= LOG_LEVELS.index(self.level)

    def log(self, text: str, level: str = "info", **data: object) -> None:
        if level not in LOG_LEVELS:
            raise ValueError(f"unknown log level: {level}")
        if not self.enabled_for(level):
            return
        row = {
            "ts": datetime.now(tz=timezone.utc).isoformat(),
            "level": level,
            "text": text,
            "data": data,
        }
        logs = self.store.data["logs"]
        logs.append(row)
        if len(logs) > MAX_LOG_ROWS:
            del logs[: len(logs) - MAX_LOG_ROWS]
        self.store.touch()
        suffix = f" {data}" if data else ""
        print(f"[{row['ts']}] [{level.upper()}] {strip_markup(text)}{suffix}")

    def debug(self, text: str, **data: object) -> None:
        self.log(text, "debug", **data)

    def info(self, text: str, **data: object) -> None:
        self.log(text, "info", **data)

    def warn(self, text: str, **data: object) -> None:
        self.log(text, "warn", **data)

    def err(self, text: str, error: BaseException | None = None, **data: object) -> None:
        if error is not None:
            data["error"] = f"{type(error).__name__}: {error}"[:300]
        self.log(text, "err", **data)
