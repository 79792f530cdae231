from __future__ import annotations

import asyncio
from pathlib import Path
from types import SimpleNamespace

from switchyard.database import Database
from switchyard.models import Command, DefaultPermission, Plugin, UserRole
from switchyard.services.guild_service import GuildService
from switchyard.services.logger_service import LoggerService
from switchyard.services.owner_service import OwnerService
from switchyard.services.permission_service import PermissionService
from switchyard.services.plugin_service import PluginService
from switchyard.storage import MessagePackStore


class StubDirectory:
    def __init__(self, roles=None, admins=None) -> None:
        self.roles = dict(roles or {})
        self.admins = dict(admins or {})
        self.lookups = 0

    def connected_guild_ids(self):
        return ["g1"]

    def role_ids(self, guild_id: str, user_id: str) -> set[str]:
        self.lookups += 1
        return set(self.roles.get((guild_id, user_id), set()))

    def native_admins(self, guild_id: str) -> list[UserRole]:
        return list(self.admins.get(guild_id, []))


def _noop(message, words, api) -> None:
    return None


def _make_env(tmp_path: Path, directory: StubDirectory) -> SimpleNamespace:
    store = MessagePackStore(tmp_path / "state.msgpack")
    asyncio.run(store.load())
    logger = LoggerService(store, "debug")
    db = Database(store, logger)
    plugins = PluginService(db, logger, OwnerService(db, logger))
    guilds = GuildService(db, logger, plugins, directory)
    permissions = PermissionService(guilds, plugins, directory)

    async def setup() -> None:
        await plugins.register(Plugin(id="open", name="Open", commands=[Command("hi", _noop)]))
        await plugins.register(
            Plugin(
                id="staff",
                name="Staff",
                commands=[Command("hi", _noop)],
                default_permission=DefaultPermission.ADMIN,
            )
        )
        guilds.update_guilds(directory)
        await db.drain()

    asyncio.run(setup())
    return SimpleNamespace(db=db, plugins=plugins, guilds=guilds, permissions=permissions)


def test_role_principal_allows_role_holders_only(tmp_path: Path) -> None:
    directory = StubDirectory(roles={("g1", "u1"): {"R"}, ("g1", "u2"): {"other"}})
    env = _make_env(tmp_path, directory)

    async def scenario() -> None:
        env.guilds.set_plugin_permission("g1", "open", [UserRole.role("R")])
        await env.db.drain()

    asyncio.run(scenario())
    assert env.permissions.allows("g1", "open", "u1") is True
    assert env.permissions.allows("g1", "open", "u2") is False


def test_user_principal_matches_without_role_lookup(tmp_path: Path) -> None:
    directory = StubDirectory()
    env = _make_env(tmp_path, directory)

    async def scenario() -> None:
        env.guilds.set_plugin_permission("g1", "open", [UserRole.user("u7")])
        await env.db.drain()

    asyncio.run(scenario())
    assert env.permissions.allows("g1", "open", "u7") is True
    assert env.permissions.allows("g1", "open", "u8") is False
    assert directory.lookups == 0


def test_empty_record_applies_plugin_default(tmp_path: Path) -> None:
    directory = StubDirectory(admins={"g1": [UserRole.user("boss")]})
    env = _make_env(tmp_path, directory)
    assert env.permissions.allows("g1", "open", "anyone") is True
    assert env.permissions.allows("g1", "staff", "anyone") is False
    assert env.permissions.allows("g1", "staff", "boss") is True


def test_unknown_guild_plugin_or_record_denies(tmp_path: Path) -> None:
    env = _make_env(tmp_path, StubDirectory())
    assert env.permissions.allows("nope", "open", "u1") is False
    assert env.permissions.allows("g1", "nope", "u1") is False
    del env.guilds.get("g1").permissions["open"]
    assert env.permissions.allows("g1", "open", "u1") is False
