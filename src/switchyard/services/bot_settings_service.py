from __future__ import annotations

from switchyard.database import Database
from switchyard.services.logger_service import LoggerService

BOT_SETTINGS_TABLE = "BotSettings"


class BotSettingsService:
    def __init__(self, db: Database, logger: LoggerService) -> None:
        self.db = db
        self.logger = logger
        self._maintenance = False

    @property
    def maintenance(self) -> bool:
        return self._maintenance

    async def load(self) -> None:
        rows = await self.db.select(BOT_SETTINGS_TABLE, ["maintenance"])
        if not rows:
            await self.db.insert(BOT_SETTINGS_TABLE, {"maintenance": False})
            return
        self._maintenance = bool(rows[0].get("maintenance"))
        if self._maintenance:
            self.logger.warn("Bot is starting in **maintenance** mode")

    def set_maintenance(self, enabled: bool) -> None:
        self._maintenance = bool(enabled)
        self.logger.info(f"Maintenance mode **{'on' if enabled else 'off'}**")
        self.db.schedule(self._persist(self._maintenance), context="bot_settings.maintenance")

    async def _persist(self, enabled: bool) -> None:
        updated = await self.db.update(BOT_SETTINGS_TABLE, {"maintenance": enabled}, {})
        if not updated:
            await self.db.insert(BOT_SETTINGS_TABLE, {"maintenance": enabled})
