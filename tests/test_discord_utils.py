from __future__ import annotations

from types import SimpleNamespace

from switchyard.models import UserRole
from switchyard.utils.discord_utils import DiscordGuildDirectory


class StubRole:
    def __init__(self, rid: int, *, administrator: bool = False) -> None:
        self.id = rid
        self.permissions = SimpleNamespace(administrator=administrator)


class StubGuild:
    def __init__(self, gid: int, owner_id: int, roles: list[StubRole], members: dict[int, list[StubRole]]) -> None:
        self.id = gid
        self.owner_id = owner_id
        self.roles = roles
        self._members = members

    def get_member(self, user_id: int):
        roles = self._members.get(user_id)
        if roles is None:
            return None
        return SimpleNamespace(id=user_id, roles=roles)


class StubClient:
    def __init__(self, guilds: list[StubGuild]) -> None:
        self.guilds = guilds

    def get_guild(self, guild_id: int):
        return next((guild for guild in self.guilds if guild.id == guild_id), None)


def _directory() -> DiscordGuildDirectory:
    admin = StubRole(10, administrator=True)
    member = StubRole(11)
    guild = StubGuild(1, owner_id=99, roles=[admin, member], members={5: [member], 6: [admin, member]})
    return DiscordGuildDirectory(StubClient([guild]))


def test_connected_guild_ids_are_strings() -> None:
    assert list(_directory().connected_guild_ids()) == ["1"]


def test_role_ids_for_members() -> None:
    directory = _directory()
    assert directory.role_ids("1", "6") == {"10", "11"}
    assert directory.role_ids("1", "7") == set()
    assert directory.role_ids("2", "6") == set()
    assert directory.role_ids("not-a-number", "6") == set()


def test_native_admins_are_owner_and_administrator_roles() -> None:
    assert _directory().native_admins("1") == [UserRole.user(99), UserRole.role(10)]
    assert _directory().native_admins("2") == []
