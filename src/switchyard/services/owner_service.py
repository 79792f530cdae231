from __future__ import annotations

from typing import Iterable

from switchyard.database import Database
from switchyard.services.logger_service import LoggerService

OWNERS_TABLE = "Owners"


class OwnerService:
    """Bot owners: users who bypass maintenance mode and spam detection."""

    def __init__(self, db: Database, logger: LoggerService) -> None:
        self.db = db
        self.logger = logger
        self._owners: frozenset[str] = frozenset()

    async def load(self, seed: Iterable[str] = ()) -> None:
        rows = await self.db.select(OWNERS_TABLE, ["user_id"])
        owners = frozenset(str(row["user_id"]) for row in rows if row.get("user_id"))
        if owners:
            self._owners = owners
            return
        seed_ids = [str(item) for item in seed if str(item)]
        if seed_ids:
            self.logger.info(f"No owners stored, seeding **{len(seed_ids)}** from settings")
            self.set_owners(seed_ids)

    def set_owners(self, user_ids: Iterable[str]) -> None:
        ids = [str(item) for item in user_ids if str(item)]
        if not ids:
            self.logger.warn("Ignoring request to set an empty owner list")
            return
        self._owners = frozenset(ids)
        self.db.schedule(self._persist(sorted(self._owners)), context="owners.set")

    async def _persist(self, user_ids: list[str]) -> None:
        await self.db.delete(OWNERS_TABLE, {}, everything=True)
        for user_id in user_ids:
            await self.db.insert(OWNERS_TABLE, {"user_id": user_id})

    def is_owner(self, user_id: str | None) -> bool:
        if not user_id:
            return False
        return str(user_id) in self._owners

    async def get_owners(self) -> list[str]:
        if not self._owners:
            rows = await self.db.select(OWNERS_TABLE, ["user_id"])
            self._owners = frozenset(str(row["user_id"]) for row in rows if row.get("user_id"))
        return sorted(self._owners)
