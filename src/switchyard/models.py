from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable

import discord


class Scope(str, Enum):
    EVERYWHERE = "everywhere"
    PM = "pm"
    GUILD = "guild"

    def matches(self, in_guild: bool) -> bool:
        if self is Scope.EVERYWHERE:
            return True
        if self is Scope.PM:
            return not in_guild
        return in_guild


class TriggerType(str, Enum):
    COMMAND = "command"
    WORDS = "words"
    ALL = "all"


class DefaultPermission(str, Enum):
    EVERYONE = "everyone"
    ADMIN = "admin"


@dataclass(frozen=True)
class UserRole:
    """A principal: either one user or every holder of one role."""

    user_id: str | None = None
    role_id: str | None = None

    def __post_init__(self) -> None:
        if bool(self.user_id) == bool(self.role_id):
            raise ValueError("UserRole needs exactly one of user_id or role_id")

    @classmethod
    def user(cls, user_id: str | int) -> "UserRole":
        return cls(user_id=str(user_id))

    @classmethod
    def role(cls, role_id: str | int) -> "UserRole":
        return cls(role_id=str(role_id))

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "UserRole":
        return cls(user_id=row.get("user_id") or None, role_id=row.get("role_id") or None)

    def to_row(self) -> dict[str, Any]:
        return {"user_id": self.user_id, "role_id": self.role_id}

    def describes(self, user_id: str, role_ids: Iterable[str] = ()) -> bool:
        if self.user_id is not None:
            return self.user_id == user_id
        return self.role_id in set(role_ids)


@dataclass(frozen=True)
class Selection:
    """
    Allow-list that can also mean "no restriction".

    Persisted as rows, where having no rows is the unrestricted form, so an
    empty restricted selection is collapsed to `everything()` by callers
    that write it back.
    """

    ids: frozenset[str] = frozenset()
    unrestricted: bool = True

    @classmethod
    def everything(cls) -> "Selection":
        return cls()

    @classmethod
    def only(cls, ids: Iterable[str]) -> "Selection":
        return cls(ids=frozenset(str(item) for item in ids), unrestricted=False)

    @classmethod
    def from_ids(cls, ids: Iterable[str]) -> "Selection":
        values = frozenset(str(item) for item in ids)
        return cls.only(values) if values else cls.everything()

    def allows(self, item: str) -> bool:
        return self.unrestricted or item in self.ids

    def with_item(self, item: str) -> "Selection":
        if self.unrestricted:
            return self
        return Selection.only(self.ids | {item})

    def without_item(self, item: str) -> "Selection":
        if self.unrestricted:
            return self
        return Selection.only(self.ids - {item})

    def sorted_ids(self) -> list[str]:
        return sorted(self.ids)


@dataclass
class Permission:
    guild_id: str
    plugin_id: str
    principals: list[UserRole] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "guild_id": self.guild_id,
            "plugin_id": self.plugin_id,
            "principals": [principal.to_row() for principal in self.principals],
        }


@dataclass(frozen=True)
class InboundMessage:
    author_id: str
    author_is_bot: bool
    guild_id: str | None
    channel_id: str
    content: str
    raw: Any = None

    @classmethod
    def from_discord(cls, message: discord.Message) -> "InboundMessage":
        return cls(
            author_id=str(message.author.id),
            author_is_bot=bool(message.author.bot),
            guild_id=str(message.guild.id) if message.guild else None,
            channel_id=str(message.channel.id),
            content=message.content or "",
            raw=message,
        )

    @property
    def in_guild(self) -> bool:
        return self.guild_id is not None

    def words(self) -> list[str]:
        return self.content.split()


Predicate = Callable[[InboundMessage, str, str], bool]
Action = Callable[[InboundMessage, list, Any], Any]


@dataclass
class Command:
    trigger: str | list[str] | re.Pattern
    action: Action
    trigger_type: TriggerType = TriggerType.COMMAND
    scope: Scope = Scope.EVERYWHERE
    bypass_spam_detection: bool = False
    predicate: Predicate | None = None
    description: str = ""

    @property
    def label(self) -> str:
        if isinstance(self.trigger, re.Pattern):
            return self.trigger.pattern
        if isinstance(self.trigger, list):
            return "|".join(self.trigger)
        return self.trigger

    def triggered_by(self, message: InboundMessage, lowered: str, prefix: str = "") -> bool:
        if self.predicate is not None:
            return bool(self.predicate(message, lowered, prefix))
        if self.trigger_type is TriggerType.ALL:
            return True
        if isinstance(self.trigger, re.Pattern):
            target = lowered[len(prefix):] if self.trigger_type is TriggerType.COMMAND else lowered
            return self.trigger.search(target) is not None
        names = {word.lower() for word in ([self.trigger] if isinstance(self.trigger, str) else self.trigger)}
        if self.trigger_type is TriggerType.COMMAND:
            if not lowered.startswith(prefix):
                return False
            tokens = lowered[len(prefix):].split(maxsplit=1)
            return bool(tokens) and tokens[0] in names
        return not names.isdisjoint(lowered.split())

    def to_dict(self) -> dict[str, Any]:
        return {
            "trigger": self.label,
            "trigger_type": self.trigger_type.value,
            "scope": self.scope.value,
            "bypass_spam_detection": self.bypass_spam_detection,
            "description": self.description,
        }


@dataclass
class Plugin:
    id: str
    name: str
    commands: list[Command] = field(default_factory=list)
    prefix: str = ""
    description: str = ""
    version: str = "0.1.0"
    enabled: bool = True
    default_permission: DefaultPermission = DefaultPermission.EVERYONE
    ready: bool = False

    def commands_of(self, trigger_type: TriggerType) -> list[Command]:
        return [command for command in self.commands if command.trigger_type is trigger_type]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "version": self.version,
            "prefix": self.prefix,
            "enabled": self.enabled,
            "default_permission": self.default_permission.value,
            "commands": {
                trigger_type.value: [command.to_dict() for command in self.commands_of(trigger_type)]
                for trigger_type in TriggerType
            },
        }
