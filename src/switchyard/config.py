from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

LOG_LEVELS = ("debug", "info", "warn", "err")


@dataclass(frozen=True)
class Settings:
    discord_token: str
    store_path: Path
    default_guild_prefix: str = ""
    owner_ids: tuple[str, ...] = field(default_factory=tuple)
    spam_max_actions: int = 10
    spam_window_sec: float = 10.0
    log_level: str = "info"

    @staticmethod
    def load(path: Path = Path("passwords.txt")) -> "Settings":
        values = _parse_passwords_file(path)
        token = values.get("DISCORD_TOKEN", "").strip()
        if not token:
            raise RuntimeError("DISCORD_TOKEN is required in passwords.txt.")
        store_path = Path(values.get("STORE_PATH", "data/switchyard.msgpack"))
        owner_ids = tuple(part.strip() for part in values.get("OWNER_IDS", "").split(",") if part.strip())
        log_level = values.get("LOG_LEVEL", "info").strip().lower()
        if log_level not in LOG_LEVELS:
            raise RuntimeError(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}.")
        try:
            spam_max_actions = int(values.get("SPAM_MAX_ACTIONS", "10"))
            spam_window_sec = float(values.get("SPAM_WINDOW_SEC", "10"))
        except ValueError as exc:
            raise RuntimeError(f"Invalid spam settings in passwords.txt: {exc}") from exc
        if spam_max_actions < 1 or spam_window_sec <= 0:
            raise RuntimeError("SPAM_MAX_ACTIONS and SPAM_WINDOW_SEC must be positive.")
        return Settings(
            discord_token=token,
            store_path=store_path,
            default_guild_prefix=values.get("DEFAULT_GUILD_PREFIX", ""),
            owner_ids=owner_ids,
            spam_max_actions=spam_max_actions,
            spam_window_sec=spam_window_sec,
            log_level=log_level,
        )


def _parse_passwords_file(path: Path) -> dict[str, str]:
    if not path.exists():
        raise RuntimeError("passwords.txt not found. Copy passwords.example.txt to passwords.txt and fill values.")
    values: dict[str, str] = {}
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        values[key.strip()] = value.strip()
    return values
