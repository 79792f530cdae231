from __future__ import annotations

from typing import Iterable

import discord

from switchyard.models import UserRole


class DiscordGuildDirectory:
    """
    Guild membership facts read from the discord.py cache.

    Serves both role lookups for permission checks and the connected guild
    list used when reconciling guild configuration.
    """

    def __init__(self, client: discord.Client) -> None:
        self.client = client

    def connected_guild_ids(self) -> Iterable[str]:
        return [str(guild.id) for guild in self.client.guilds]

    def role_ids(self, guild_id: str, user_id: str) -> set[str]:
        guild = self._guild(guild_id)
        if guild is None:
            return set()
        member = guild.get_member(int(user_id))
        if member is None:
            return set()
        return {str(role.id) for role in member.roles}

    def native_admins(self, guild_id: str) -> list[UserRole]:
        guild = self._guild(guild_id)
        if guild is None:
            return []
        admins: list[UserRole] = []
        if guild.owner_id:
            admins.append(UserRole.user(guild.owner_id))
        for role in guild.roles:
            if role.permissions.administrator:
                admins.append(UserRole.role(role.id))
        return admins

    def _guild(self, guild_id: str) -> discord.Guild | None:
        try:
            return self.client.get_guild(int(guild_id))
        except (TypeError, ValueError):
            return None
