from __future__ import annotations

import re

import pytest

from switchyard.models import Command, InboundMessage, Scope, Selection, TriggerType, UserRole


def _msg(content: str) -> InboundMessage:
    return InboundMessage(author_id="u1", author_is_bot=False, guild_id="g1", channel_id="c1", content=content)


def _noop(message, words, api) -> None:
    return None


def test_command_trigger_needs_the_trigger_as_first_token() -> None:
    command = Command("hello", _noop)
    assert command.triggered_by(_msg(""), "!p hello world", "!p ") is True
    assert command.triggered_by(_msg(""), "!p hellooo", "!p ") is False
    assert command.triggered_by(_msg(""), "!p", "!p ") is False
    assert command.triggered_by(_msg(""), "p hello", "!p ") is False


def test_words_trigger_matches_any_token() -> None:
    single = Command("cake", _noop, trigger_type=TriggerType.WORDS)
    several = Command(["tea", "coffee"], _noop, trigger_type=TriggerType.WORDS)
    assert single.triggered_by(_msg(""), "i want cake now") is True
    assert single.triggered_by(_msg(""), "cupcake") is False
    assert several.triggered_by(_msg(""), "coffee please") is True


def test_regex_and_custom_predicates() -> None:
    pattern = Command(re.compile(r"\bd\d+\b"), _noop, trigger_type=TriggerType.WORDS)
    custom = Command("x", _noop, predicate=lambda message, lowered, prefix: message.author_id == "u1")
    assert pattern.triggered_by(_msg(""), "roll d20") is True
    assert pattern.label == r"\bd\d+\b"
    assert custom.triggered_by(_msg(""), "anything") is True


def test_all_trigger_matches_empty_text() -> None:
    command = Command("", _noop, trigger_type=TriggerType.ALL)
    assert command.triggered_by(_msg(""), "") is True


def test_scope_matching() -> None:
    assert Scope.EVERYWHERE.matches(True) and Scope.EVERYWHERE.matches(False)
    assert Scope.PM.matches(False) and not Scope.PM.matches(True)
    assert Scope.GUILD.matches(True) and not Scope.GUILD.matches(False)


def test_selection_sentinel() -> None:
    assert Selection.from_ids([]).unrestricted is True
    assert Selection.from_ids([]).allows("anything") is True
    only = Selection.from_ids(["a"])
    assert only.allows("a") and not only.allows("b")
    assert only.with_item("b").sorted_ids() == ["a", "b"]
    assert only.without_item("a").ids == frozenset()
    assert only.without_item("a").unrestricted is False
    assert Selection.everything().without_item("a").unrestricted is True


def test_user_role_principals() -> None:
    assert UserRole.user(5).describes("5") is True
    assert UserRole.role("r1").describes("5", {"r1"}) is True
    assert UserRole.role("r1").describes("5", set()) is False
    assert UserRole.from_row(UserRole.role("r1").to_row()) == UserRole.role("r1")
    with pytest.raises(ValueError):
        UserRole()
    with pytest.raises(ValueError):
        UserRole(user_id="1", role_id="2")


def test_words_split_on_whitespace() -> None:
    assert _msg("  a   b\tc ").words() == ["a", "b", "c"]
    assert _msg("").words() == []
