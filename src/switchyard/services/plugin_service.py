from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Protocol

from switchyard.database import Database
from switchyard.models import InboundMessage, Plugin
from switchyard.services.logger_service import LoggerService
from switchyard.services.owner_service import OwnerService

PLUGINS_TABLE = "Plugins"
PERMISSIONS_TABLE = "Permissions"
PLUGIN_ID_RE = re.compile(r"[a-z][a-z0-9_-]{0,39}")


class PluginLifecycleListener(Protocol):
    def on_plugin_loaded(self, plugin_id: str) -> None: ...

    def on_plugin_deleted(self, plugin_id: str) -> None: ...


@dataclass
class PluginApi:
    """What a plugin's command actions get to touch."""

    plugin_id: str
    client: Any
    logger: LoggerService
    owners: OwnerService

    def log(self, text: str, level: str = "info") -> None:
        self.logger.log(f"[**{self.plugin_id}**] {text}", level)

    def is_owner(self, user_id: str) -> bool:
        return self.owners.is_owner(user_id)

    async def reply(self, message: InboundMessage, text: str) -> None:
        channel = getattr(message.raw, "channel", None)
        if channel is None:
            self.log(f"Cannot reply without a channel: {text[:80]}", "warn")
            return
        await channel.send(text[:1900])


class PluginService:
    def __init__(self, db: Database, logger: LoggerService, owners: OwnerService, client: Any = None) -> None:
        self.db = db
        self.logger = logger
        self.owners = owners
        self.client = client
        self._plugins: dict[str, Plugin] = {}
        self._apis: dict[str, PluginApi] = {}
        self._listeners: list[PluginLifecycleListener] = []

    def subscribe(self, listener: PluginLifecycleListener) -> None:
        self._listeners.append(listener)

    def get(self, plugin_id: str) -> Plugin | None:
        plugin = self._plugins.get(plugin_id)
        if plugin is None or not plugin.ready:
            return None
        return plugin

    def list_all(self) -> list[Plugin]:
        return [plugin for plugin in self._plugins.values() if plugin.ready]

    def ids(self) -> list[str]:
        return [plugin.id for plugin in self.list_all()]

    def api_for(self, plugin_id: str) -> PluginApi:
        api = self._apis.get(plugin_id)
        if api is None:
            api = PluginApi(plugin_id=plugin_id, client=self.client, logger=self.logger, owners=self.owners)
            self._apis[plugin_id] = api
        return api

    async def register(self, plugin: Plugin) -> Plugin:
        if not PLUGIN_ID_RE.fullmatch(plugin.id or ""):
            raise ValueError(f"invalid plugin id: {plugin.id!r}")
        if plugin.id in self._plugins:
            raise ValueError(f"plugin already registered: {plugin.id}")
        rows = await self.db.select(PLUGINS_TABLE, ["prefix", "enabled"], {"plugin_id": plugin.id})
        if rows:
            plugin.prefix = str(rows[0].get("prefix") or "")
            plugin.enabled = bool(rows[0].get("enabled"))
        else:
            await self.db.insert(
                PLUGINS_TABLE,
                {"plugin_id": plugin.id, "prefix": plugin.prefix, "enabled": plugin.enabled},
            )
        self._plugins[plugin.id] = plugin
        plugin.ready = True
        self.logger.info(f"Plugin **{plugin.name}** loaded ({len(plugin.commands)} commands)")
        self._notify("plugin-loaded", plugin.id)
        return plugin

    def delete(self, plugin_id: str) -> bool:
        if plugin_id not in self._plugins:
            return False
        self._notify("plugin-deleted", plugin_id)
        plugin = self._plugins.pop(plugin_id)
        plugin.ready = False
        self._apis.pop(plugin_id, None)
        self.db.schedule(self._delete_rows(plugin_id), context=f"plugins.delete:{plugin_id}")
        self.logger.info(f"Plugin **{plugin.name}** deleted")
        return True

    async def _delete_rows(self, plugin_id: str) -> None:
        await self.db.delete(PLUGINS_TABLE, {"plugin_id": plugin_id})
        await self.db.delete(PERMISSIONS_TABLE, {"plugin_id": plugin_id})
        await self.db.delete("GuildEnabledPlugins", {"plugin_id": plugin_id})

    def set_enabled(self, plugin_id: str, enabled: bool) -> None:
        plugin = self._require(plugin_id)
        plugin.enabled = bool(enabled)
        self.db.schedule(
            self.db.update(PLUGINS_TABLE, {"enabled": plugin.enabled}, {"plugin_id": plugin_id}),
            context=f"plugins.enabled:{plugin_id}",
        )

    def set_prefix(self, plugin_id: str, prefix: str) -> None:
        plugin = self._require(plugin_id)
        plugin.prefix = prefix
        self.db.schedule(
            self.db.update(PLUGINS_TABLE, {"prefix": prefix}, {"plugin_id": plugin_id}),
            context=f"plugins.prefix:{plugin_id}",
        )

    def _require(self, plugin_id: str) -> Plugin:
        plugin = self.get(plugin_id)
        if plugin is None:
            raise KeyError(f"unknown plugin: {plugin_id}")
        return plugin

    def _notify(self, event: str, plugin_id: str) -> None:
        if not self._listeners:
            self.logger.warn(f"No listeners registered for **{event}**")
            return
        for listener in self._listeners:
            try:
                if event == "plugin-loaded":
                    listener.on_plugin_loaded(plugin_id)
                else:
                    listener.on_plugin_deleted(plugin_id)
            except Exception as exc:  # noqa: BLE001
                self.logger.err(f"Listener **{type(listener).__name__}** failed on **{event}** for **{plugin_id}**", exc)
