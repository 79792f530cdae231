from __future__ import annotations

from pathlib import Path

import pytest

from switchyard.config import Settings


def test_load_reads_values_and_defaults(tmp_path: Path) -> None:
    path = tmp_path / "passwords.txt"
    path.write_text(
        "# comment\nDISCORD_TOKEN=abc\nOWNER_IDS=1, 2,,3\nSPAM_MAX_ACTIONS=4\nnot a pair\n",
        encoding="utf-8",
    )
    settings = Settings.load(path)
    assert settings.discord_token == "abc"
    assert settings.owner_ids == ("1", "2", "3")
    assert settings.spam_max_actions == 4
    assert settings.spam_window_sec == 10.0
    assert settings.default_guild_prefix == ""
    assert settings.store_path == Path("data/switchyard.msgpack")
    assert settings.log_level == "info"


def test_missing_token_is_fatal(tmp_path: Path) -> None:
    path = tmp_path / "passwords.txt"
    path.write_text("DISCORD_TOKEN=\n", encoding="utf-8")
    with pytest.raises(RuntimeError, match="DISCORD_TOKEN"):
        Settings.load(path)


def test_missing_file_is_fatal(tmp_path: Path) -> None:
    with pytest.raises(RuntimeError, match="passwords.txt not found"):
        Settings.load(tmp_path / "nope.txt")


def test_bad_log_level_rejected(tmp_path: Path) -> None:
    path = tmp_path / "passwords.txt"
    path.write_text("DISCORD_TOKEN=abc\nLOG_LEVEL=loud\n", encoding="utf-8")
    with pytest.raises(RuntimeError, match="LOG_LEVEL"):
        Settings.load(path)
