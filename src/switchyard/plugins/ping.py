from __future__ import annotations

from switchyard.models import Command, InboundMessage, Plugin
from switchyard.services.plugin_service import PluginApi


async def _ping(message: InboundMessage, words: list[str], api: PluginApi) -> None:
    await api.reply(message, "pong")


def build() -> Plugin:
    return Plugin(
        id="ping",
        name="Ping",
        description="Simple liveness check.",
        commands=[Command(trigger="ping", action=_ping, description="Reply with pong.")],
    )
