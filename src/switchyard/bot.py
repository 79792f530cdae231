from __future__ import annotations

import asyncio

import discord

from switchyard.config import Settings
from switchyard.database import Database
from switchyard.models import InboundMessage, Plugin
from switchyard.plugins import owner_tools, ping
from switchyard.services.bot_settings_service import BotSettingsService
from switchyard.services.guild_service import GuildService
from switchyard.services.logger_service import LoggerService
from switchyard.services.owner_service import OwnerService
from switchyard.services.permission_service import PermissionService
from switchyard.services.plugin_service import PluginService
from switchyard.services.router_service import RouterService
from switchyard.services.spam_service import SpamService
from switchyard.storage import MessagePackStore
from switchyard.utils.discord_utils import DiscordGuildDirectory


class SwitchyardBot(discord.Client):
    def __init__(self, settings: Settings) -> None:
        intents = discord.Intents.default()
        intents.guilds = True
        intents.members = True
        intents.messages = True
        intents.message_content = True
        intents.dm_messages = True
        super().__init__(intents=intents)
        self.settings = settings
        self.store = MessagePackStore(settings.store_path)
        self.logger = LoggerService(self.store, settings.log_level)
        self.db = Database(self.store, self.logger)
        self.directory = DiscordGuildDirectory(self)
        self.owners = OwnerService(self.db, self.logger)
        self.bot_settings = BotSettingsService(self.db, self.logger)
        self.spam = SpamService(settings.spam_max_actions, settings.spam_window_sec)
        self.plugins = PluginService(self.db, self.logger, self.owners, client=self)
        self.guild_configs = GuildService(
            self.db,
            self.logger,
            self.plugins,
            self.directory,
            default_prefix=settings.default_guild_prefix,
        )
        self.permissions = PermissionService(self.guild_configs, self.plugins, self.directory)
        self.router = RouterService(
            self.logger,
            self.bot_settings,
            self.owners,
            self.guild_configs,
            self.plugins,
            self.permissions,
            self.spam,
        )
        self._autosave_task: asyncio.Task | None = None

    def builtin_plugins(self) -> list[Plugin]:
        return [ping.build(), owner_tools.build(self.bot_settings, self.owners)]

    async def setup_hook(self) -> None:
        await self.store.load()
        self._autosave_task = asyncio.create_task(self.store.autosave_loop(), name="msgpack-autosave")
        await self.owners.load(self.settings.owner_ids)
        await self.bot_settings.load()
        await self.guild_configs.load_all()
        for plugin in self.builtin_plugins():
            await self.plugins.register(plugin)
        await self.db.drain()

    async def on_ready(self) -> None:
        self.logger.info(f"Logged into Discord as **{self.user}**", guilds=len(self.guilds))
        self.guild_configs.update_guilds(self.directory)

    async def on_guild_join(self, guild: discord.Guild) -> None:
        self.guild_configs.update_guilds(self.directory)

    async def on_guild_remove(self, guild: discord.Guild) -> None:
        self.guild_configs.update_guilds(self.directory)

    async def on_guild_update(self, before: discord.Guild, after: discord.Guild) -> None:
        self.guild_configs.update_guilds(self.directory)

    async def on_guild_role_update(self, before: discord.Role, after: discord.Role) -> None:
        self.guild_configs.update_guilds(self.directory)

    async def on_guild_role_delete(self, role: discord.Role) -> None:
        self.guild_configs.update_guilds(self.directory)

    async def on_message(self, message: discord.Message) -> None:
        self.logger.debug(f"__#{getattr(message.channel, 'name', 'dm')}__ <{message.author}>: {message.content[:200]}")
        await self.router.route(InboundMessage.from_discord(message))

    async def close(self) -> None:
        if self._autosave_task is not None:
            self._autosave_task.cancel()
        await self.db.drain()
        await self.store.save()
        await super().close()


def main() -> None:
    settings = Settings.load()
    bot = SwitchyardBot(settings)
    bot.run(settings.discord_token)
