from __future__ import annotations

from switchyard.models import DefaultPermission
from switchyard.services.guild_service import GuildService, RoleLookup
from switchyard.services.plugin_service import PluginService


class PermissionService:
    def __init__(self, guilds: GuildService, plugins: PluginService, roles: RoleLookup) -> None:
        self.guilds = guilds
        self.plugins = plugins
        self.roles = roles

    def allows(self, guild_id: str, plugin_id: str, user_id: str) -> bool:
        guild = self.guilds.get(guild_id)
        plugin = self.plugins.get(plugin_id)
        if guild is None or plugin is None:
            return False
        permission = guild.permissions.get(plugin_id)
        if permission is None:
            return False
        if not permission.principals:
            if plugin.default_permission is DefaultPermission.ADMIN:
                return self.guilds.is_admin(guild_id, user_id)
            return True
        if any(principal.user_id == user_id for principal in permission.principals):
            return True
        if not any(principal.role_id for principal in permission.principals):
            return False
        role_ids = self.roles.role_ids(guild_id, user_id)
        return any(principal.describes(user_id, role_ids) for principal in permission.principals)
