from __future__ import annotations

import asyncio
from pathlib import Path

from switchyard.database import Database
from switchyard.services.logger_service import LoggerService
from switchyard.services.owner_service import OwnerService
from switchyard.storage import MessagePackStore


def _make_service(tmp_path: Path) -> OwnerService:
    store = MessagePackStore(tmp_path / "state.msgpack")
    asyncio.run(store.load())
    logger = LoggerService(store, "debug")
    return OwnerService(Database(store, logger), logger)


def test_set_owners_replaces_and_persists(tmp_path: Path) -> None:
    owners = _make_service(tmp_path)

    async def scenario() -> None:
        owners.set_owners(["1", "2"])
        owners.set_owners(["3"])
        assert owners.is_owner("3") is True
        assert owners.is_owner("1") is False
        await owners.db.drain()

    asyncio.run(scenario())
    assert owners.db.store.table("Owners") == [{"user_id": "3"}]


def test_empty_set_owners_is_a_noop(tmp_path: Path) -> None:
    owners = _make_service(tmp_path)

    async def scenario() -> None:
        owners.set_owners(["1"])
        owners.set_owners([])
        await owners.db.drain()
        assert await owners.get_owners() == ["1"]

    asyncio.run(scenario())
    assert owners.db.store.table("Owners") == [{"user_id": "1"}]
    assert any(row["level"] == "warn" for row in owners.db.store.data["logs"])


def test_is_owner_false_for_missing_input(tmp_path: Path) -> None:
    owners = _make_service(tmp_path)
    assert owners.is_owner(None) is False
    assert owners.is_owner("") is False


def test_get_owners_lazily_loads_from_storage(tmp_path: Path) -> None:
    owners = _make_service(tmp_path)

    async def scenario() -> list[str]:
        await owners.db.insert("Owners", {"user_id": "9"})
        assert owners.is_owner("9") is False
        return await owners.get_owners()

    assert asyncio.run(scenario()) == ["9"]
    assert owners.is_owner("9") is True


def test_load_seeds_only_when_storage_is_empty(tmp_path: Path) -> None:
    owners = _make_service(tmp_path)

    async def scenario() -> None:
        await owners.load(seed=["5"])
        await owners.db.drain()
        assert owners.is_owner("5")
        await owners.load(seed=["6"])
        assert owners.is_owner("6") is False

    asyncio.run(scenario())
