from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Protocol

from switchyard.database import Database
from switchyard.models import Permission, Selection, UserRole
from switchyard.services.logger_service import LoggerService
from switchyard.services.plugin_service import PluginService

GUILD_TABLES = ("Guilds", "GuildSettings", "AllowedChannels", "GuildEnabledPlugins", "Admins", "Permissions")


class RoleLookup(Protocol):
    def role_ids(self, guild_id: str, user_id: str) -> set[str]: ...


class GuildDirectory(Protocol):
    def connected_guild_ids(self) -> Iterable[str]: ...

    def native_admins(self, guild_id: str) -> list[UserRole]: ...


class GuildState(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


@dataclass
class Guild:
    guild_id: str
    command_prefix: str = ""
    allowed_channels: Selection = field(default_factory=Selection.everything)
    enabled_plugins: Selection = field(default_factory=Selection.everything)
    admins: list[UserRole] = field(default_factory=list)
    native_admins: list[UserRole] = field(default_factory=list)
    permissions: dict[str, Permission] = field(default_factory=dict)
    state: GuildState = GuildState.UNINITIALIZED

    @property
    def ready(self) -> bool:
        return self.state is GuildState.READY

    def is_channel_allowed(self, channel_id: str) -> bool:
        return self.allowed_channels.allows(channel_id)

    def is_plugin_enabled(self, plugin_id: str) -> bool:
        return self.enabled_plugins.allows(plugin_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "guild_id": self.guild_id,
            "prefix": self.command_prefix,
            "allowed_channel_ids": self.allowed_channels.sorted_ids(),
            "enabled_plugin_ids": self.enabled_plugins.sorted_ids(),
            "admins": [admin.to_row() for admin in self.admins],
            "permissions": {plugin_id: permission.to_dict() for plugin_id, permission in self.permissions.items()},
            "state": self.state.value,
        }


class GuildService:
    """
    In-memory guild configuration, written through to the database.

    Memory is always the read path. Mutators update it synchronously and
    schedule the matching write, so a caller never waits on storage.
    """

    def __init__(
        self,
        db: Database,
        logger: LoggerService,
        plugins: PluginService,
        roles: RoleLookup,
        default_prefix: str = "",
    ) -> None:
        self.db = db
        self.logger = logger
        self.plugins = plugins
        self.roles = roles
        self.default_prefix = default_prefix
        self._guilds: dict[str, Guild] = {}
        plugins.subscribe(self)

    # Queries

    def get(self, guild_id: str) -> Guild | None:
        return self._guilds.get(guild_id)

    def list_all(self) -> list[Guild]:
        return list(self._guilds.values())

    def is_admin(self, guild_id: str, user_id: str) -> bool:
        if not guild_id or not user_id:
            return False
        guild = self._guilds.get(guild_id)
        if guild is None:
            return False
        role_ids: set[str] | None = None
        for principal in [*guild.admins, *guild.native_admins]:
            if principal.user_id is not None:
                if principal.user_id == user_id:
                    return True
                continue
            if role_ids is None:
                role_ids = self.roles.role_ids(guild_id, user_id)
            if principal.describes(user_id, role_ids):
                return True
        return False

    # Lifecycle

    async def load_all(self) -> None:
        rows = await self.db.select("GuildSettings", ["guild_id"])
        for row in rows:
            guild_id = str(row["guild_id"])
            if guild_id in self._guilds:
                continue
            guild = Guild(guild_id=guild_id, state=GuildState.LOADING)
            self._guilds[guild_id] = guild
            await self._init(guild)
        self.logger.info(f"Loaded **{len(self._guilds)}** guilds")

    def create(self, guild_id: str) -> Guild:
        existing = self._guilds.get(guild_id)
        if existing is not None:
            return existing
        guild = Guild(guild_id=guild_id, command_prefix=self.default_prefix, state=GuildState.LOADING)
        self._guilds[guild_id] = guild
        self.db.schedule(self._init(guild), context=f"guilds.init:{guild_id}")
        return guild

    def delete(self, guild_id: str) -> bool:
        guild = self._guilds.pop(guild_id, None)
        if guild is None:
            return False
        guild.state = GuildState.UNINITIALIZED
        self.db.schedule(self._delete_rows(guild_id), context=f"guilds.delete:{guild_id}")
        self.logger.info(f"Guild **{guild_id}** removed")
        return True

    def update_guilds(self, directory: GuildDirectory) -> tuple[list[str], list[str]]:
        connected = [str(guild_id) for guild_id in directory.connected_guild_ids()]
        connected_set = set(connected)
        added = [guild_id for guild_id in connected if guild_id not in self._guilds]
        removed = [guild_id for guild_id in self._guilds if guild_id not in connected_set]
        for guild_id in added:
            self.create(guild_id)
        for guild_id in removed:
            self.delete(guild_id)
        for guild_id in connected:
            self._guilds[guild_id].native_admins = list(directory.native_admins(guild_id))
        if added or removed:
            self.logger.info(f"Guilds reconciled: **{len(added)}** added, **{len(removed)}** removed")
        return added, removed

    async def _init(self, guild: Guild) -> None:
        try:
            await self._try_add(guild.guild_id)
            await self._load_settings(guild)
            await self._load_admins(guild)
            await self._load_allowed_channels(guild)
            await self._load_enabled_plugins(guild)
            for plugin_id in self.plugins.ids():
                await self._load_plugin_permission(guild, plugin_id)
        except Exception as exc:  # noqa: BLE001
            guild.state = GuildState.FAILED
            self.logger.err(f"Could not load guild **{guild.guild_id}**", exc)
            return
        if self._guilds.get(guild.guild_id) is guild:
            guild.state = GuildState.READY

    async def _try_add(self, guild_id: str) -> None:
        if not await self.db.select("Guilds", ["guild_id"], {"guild_id": guild_id}):
            self.logger.debug(f"Discord guild with id **{guild_id}** added to database")
            await self.db.insert("Guilds", {"guild_id": guild_id})
        if not await self.db.select("GuildSettings", ["guild_id"], {"guild_id": guild_id}):
            await self.db.insert("GuildSettings", {"guild_id": guild_id, "prefix": self.default_prefix})

    async def _load_settings(self, guild: Guild) -> None:
        rows = await self.db.select("GuildSettings", ["prefix"], {"guild_id": guild.guild_id})
        if not rows:
            raise LookupError(f"GuildSettings not found for {guild.guild_id}")
        guild.command_prefix = str(rows[0].get("prefix") or "")

    async def _load_admins(self, guild: Guild) -> None:
        rows = await self.db.select("Admins", ["user_id", "role_id"], {"guild_id": guild.guild_id})
        guild.admins = [UserRole.from_row(row) for row in rows]

    async def _load_allowed_channels(self, guild: Guild) -> None:
        rows = await self.db.select("AllowedChannels", ["channel_id"], {"guild_id": guild.guild_id})
        guild.allowed_channels = Selection.from_ids(str(row["channel_id"]) for row in rows)

    async def _load_enabled_plugins(self, guild: Guild) -> None:
        rows = await self.db.select("GuildEnabledPlugins", ["plugin_id"], {"guild_id": guild.guild_id})
        guild.enabled_plugins = Selection.from_ids(str(row["plugin_id"]) for row in rows)

    async def _load_plugin_permission(
        self,
        guild: Guild,
        plugin_id: str,
        placeholder: Permission | None = None,
    ) -> None:
        rows = await self.db.select(
            "Permissions",
            ["user_id", "role_id"],
            {"guild_id": guild.guild_id, "plugin_id": plugin_id},
        )
        # A mutator replaced the placeholder while the rows were in flight.
        if placeholder is not None and guild.permissions.get(plugin_id) is not placeholder:
            self.logger.debug(f"Discarding stale permission rows for **{plugin_id}** in **{guild.guild_id}**")
            return
        guild.permissions[plugin_id] = Permission(
            guild_id=guild.guild_id,
            plugin_id=plugin_id,
            principals=[UserRole.from_row(row) for row in rows],
        )

    async def _delete_rows(self, guild_id: str) -> None:
        for table in GUILD_TABLES:
            await self.db.delete(table, {"guild_id": guild_id})

    # Plugin lifecycle

    def on_plugin_loaded(self, plugin_id: str) -> None:
        for guild in self._guilds.values():
            placeholder = guild.permissions.setdefault(
                plugin_id, Permission(guild_id=guild.guild_id, plugin_id=plugin_id)
            )
            self.db.schedule(
                self._load_plugin_permission(guild, plugin_id, placeholder),
                context=f"guilds.permission_load:{guild.guild_id}:{plugin_id}",
            )

    def on_plugin_deleted(self, plugin_id: str) -> None:
        for guild in self._guilds.values():
            guild.permissions.pop(plugin_id, None)
            guild.enabled_plugins = self._collapse(guild, guild.enabled_plugins.without_item(plugin_id))

    # Mutators

    def set_command_prefix(self, guild_id: str, prefix: str) -> None:
        guild = self._require(guild_id)
        guild.command_prefix = prefix
        self.db.schedule(
            self.db.update("GuildSettings", {"prefix": prefix}, {"guild_id": guild_id}),
            context=f"guilds.prefix:{guild_id}",
        )

    def set_allowed_channels(self, guild_id: str, channel_ids: Iterable[str]) -> None:
        guild = self._require(guild_id)
        guild.allowed_channels = Selection.from_ids(channel_ids)
        rows = [{"channel_id": channel_id} for channel_id in guild.allowed_channels.sorted_ids()]
        self.db.schedule(
            self.db.replace("AllowedChannels", {"guild_id": guild_id}, rows),
            context=f"guilds.allowed_channels:{guild_id}",
        )

    def set_plugin_enabled(self, guild_id: str, plugin_id: str, enabled: bool) -> None:
        guild = self._require(guild_id)
        if self.plugins.get(plugin_id) is None:
            raise KeyError(f"unknown plugin: {plugin_id}")
        current = guild.enabled_plugins
        if current.unrestricted:
            if enabled:
                return
            updated = Selection.only(pid for pid in self.plugins.ids() if pid != plugin_id)
        elif enabled:
            updated = current.with_item(plugin_id)
        else:
            updated = current.without_item(plugin_id)
        guild.enabled_plugins = self._collapse(guild, updated)
        rows = [{"plugin_id": pid} for pid in guild.enabled_plugins.sorted_ids()]
        self.db.schedule(
            self.db.replace("GuildEnabledPlugins", {"guild_id": guild_id}, rows),
            context=f"guilds.enabled_plugins:{guild_id}",
        )

    def set_admins(self, guild_id: str, principals: Iterable[UserRole]) -> None:
        guild = self._require(guild_id)
        guild.admins = list(dict.fromkeys(principals))
        rows = [admin.to_row() for admin in guild.admins]
        self.db.schedule(
            self.db.replace("Admins", {"guild_id": guild_id}, rows),
            context=f"guilds.admins:{guild_id}",
        )

    def set_plugin_permission(self, guild_id: str, plugin_id: str, principals: Iterable[UserRole]) -> None:
        guild = self._require(guild_id)
        if self.plugins.get(plugin_id) is None:
            raise KeyError(f"unknown plugin: {plugin_id}")
        permission = Permission(guild_id=guild_id, plugin_id=plugin_id, principals=list(dict.fromkeys(principals)))
        guild.permissions[plugin_id] = permission
        rows = [principal.to_row() for principal in permission.principals]
        self.db.schedule(
            self.db.replace("Permissions", {"guild_id": guild_id, "plugin_id": plugin_id}, rows),
            context=f"guilds.permissions:{guild_id}:{plugin_id}",
        )

    def _require(self, guild_id: str) -> Guild:
        guild = self._guilds.get(guild_id)
        if guild is None:
            raise KeyError(f"unknown guild: {guild_id}")
        if not guild.ready:
            # _init would overwrite the change with the stored rows.
            raise LookupError(f"guild {guild_id} is not ready ({guild.state.value})")
        return guild

    def _collapse(self, guild: Guild, selection: Selection) -> Selection:
        # Stored as rows, an empty allow-list reads back as "every plugin".
        if not selection.unrestricted and not selection.ids:
            self.logger.warn(f"Guild **{guild.guild_id}** has no enabled plugin left, falling back to all plugins")
            return Selection.everything()
        return selection
