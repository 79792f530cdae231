from __future__ import annotations

import inspect
from dataclasses import dataclass

from switchyard.models import Command, InboundMessage, Plugin, TriggerType
from switchyard.services.bot_settings_service import BotSettingsService
from switchyard.services.guild_service import Guild, GuildService
from switchyard.services.logger_service import LoggerService
from switchyard.services.owner_service import OwnerService
from switchyard.services.permission_service import PermissionService
from switchyard.services.plugin_service import PluginService
from switchyard.services.spam_service import SpamService


@dataclass(frozen=True)
class Execution:
    plugin_id: str
    trigger: str


class RouterService:
    """
    Decides which plugin commands an inbound message fires, then runs them.

    Gates apply in this order: bot authors, maintenance mode, guild
    readiness, allowed channels, then per plugin: global enable, guild
    enable, permission, trigger matching, spam, scope.
    """

    def __init__(
        self,
        logger: LoggerService,
        bot_settings: BotSettingsService,
        owners: OwnerService,
        guilds: GuildService,
        plugins: PluginService,
        permissions: PermissionService,
        spam: SpamService,
    ) -> None:
        self.logger = logger
        self.bot_settings = bot_settings
        self.owners = owners
        self.guilds = guilds
        self.plugins = plugins
        self.permissions = permissions
        self.spam = spam

    async def route(self, message: InboundMessage) -> list[Execution]:
        if message.author_is_bot:
            return []
        is_owner = self.owners.is_owner(message.author_id)
        if self.bot_settings.maintenance and not is_owner:
            return []

        guild: Guild | None = None
        if message.guild_id is not None:
            guild = self.guilds.get(message.guild_id)
            if guild is None or not guild.ready:
                self.logger.debug(f"Dropping message for guild **{message.guild_id}**, configuration not ready")
                return []
            if not guild.is_channel_allowed(message.channel_id):
                return []

        lowered = message.content.lower()
        is_command = guild is None or lowered.startswith(guild.command_prefix)
        words = message.words()

        executed: list[Execution] = []
        for plugin in self.plugins.list_all():
            if not plugin.enabled:
                continue
            commands = self._select_commands(plugin, message, guild, lowered, is_command, is_owner)
            if commands:
                executed.extend(await self._execute(plugin, commands, message, words))
        return executed

    def _select_commands(
        self,
        plugin: Plugin,
        message: InboundMessage,
        guild: Guild | None,
        lowered: str,
        is_command: bool,
        is_owner: bool,
    ) -> list[Command]:
        if guild is not None:
            if not guild.is_plugin_enabled(plugin.id):
                return []
            if not self.permissions.allows(guild.guild_id, plugin.id, message.author_id):
                return []

        prefix = (guild.command_prefix if guild is not None else "") + plugin.prefix

        matched: list[Command] = []
        if is_command and lowered.startswith(prefix):
            matched = [
                command
                for command in plugin.commands_of(TriggerType.COMMAND)
                if command.triggered_by(message, lowered, prefix)
            ]
        if not matched:
            matched = [
                command for command in plugin.commands_of(TriggerType.WORDS) if command.triggered_by(message, lowered)
            ]

        if matched and not is_owner and any(not command.bypass_spam_detection for command in matched):
            self.spam.on_action(message.author_id)
            if self.spam.is_restricted(message.author_id):
                self.logger.debug(f"User **{message.author_id}** is spam restricted, skipping **{plugin.name}**")
                matched = []

        matched.extend(
            command for command in plugin.commands_of(TriggerType.ALL) if command.triggered_by(message, lowered, prefix)
        )
        return [command for command in matched if command.scope.matches(guild is not None)]

    async def _execute(
        self,
        plugin: Plugin,
        commands: list[Command],
        message: InboundMessage,
        words: list[str],
    ) -> list[Execution]:
        api = self.plugins.api_for(plugin.id)
        executed: list[Execution] = []
        for command in commands:
            try:
                result = command.action(message, words, api)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:  # noqa: BLE001
                self.logger.err(
                    f"An error occurred in plugin **{plugin.name}** while executing command **{command.label}**",
                    exc,
                )
                continue
            executed.append(Execution(plugin_id=plugin.id, trigger=command.label))
        return executed
