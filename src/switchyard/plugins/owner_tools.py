from __future__ import annotations

from switchyard.models import Command, DefaultPermission, InboundMessage, Plugin
from switchyard.services.bot_settings_service import BotSettingsService
from switchyard.services.owner_service import OwnerService
from switchyard.services.plugin_service import PluginApi


def build(bot_settings: BotSettingsService, owners: OwnerService) -> Plugin:
    async def maintenance(message: InboundMessage, words: list[str], api: PluginApi) -> None:
        if not api.is_owner(message.author_id):
            await api.reply(message, "Owners only.")
            return
        args = [word.lower() for word in words[1:] if word.lower() in ("on", "off")]
        if not args:
            state = "on" if bot_settings.maintenance else "off"
            await api.reply(message, f"Maintenance is `{state}`. Use `maintenance on|off`.")
            return
        bot_settings.set_maintenance(args[-1] == "on")
        api.log(f"Maintenance set to **{args[-1]}** by {message.author_id}")
        await api.reply(message, f"Maintenance `{args[-1]}`.")

    async def set_owners(message: InboundMessage, words: list[str], api: PluginApi) -> None:
        if not api.is_owner(message.author_id):
            await api.reply(message, "Owners only.")
            return
        ids = [word for word in words if word.isdigit()]
        if not ids:
            current = await owners.get_owners()
            await api.reply(message, "Owners: " + ", ".join(f"`{owner}`" for owner in current))
            return
        owners.set_owners(ids)
        api.log(f"Owners replaced by {message.author_id}: {', '.join(ids)}")
        await api.reply(message, f"Owners set: {len(ids)}.")

    return Plugin(
        id="owner_tools",
        name="Owner tools",
        description="Bot-wide switches for owners.",
        default_permission=DefaultPermission.ADMIN,
        commands=[
            Command(trigger="maintenance", action=maintenance, bypass_spam_detection=True),
            Command(trigger="owners", action=set_owners, bypass_spam_detection=True),
        ],
    )
