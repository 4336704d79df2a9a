"""Tests for admin command parsing."""

import pytest

from dialogue.delivery.commands import (
    CommandError,
    GoTo,
    is_admin_command,
    parse_admin_command,
)


def test_recognizes_command_prefix():
    assert is_admin_command("//go to 3")
    assert not is_admin_command("/go to 3")
    assert not is_admin_command("what is // for?")


def test_parses_go_to():
    command = parse_admin_command("//go to 15.2")
    assert command == GoTo(node_id="15.2", echo="// go to 15.2")


def test_go_to_is_case_insensitive_and_trims():
    command = parse_admin_command("//  Go To  7.1 ")
    assert command == GoTo(node_id="7.1", echo="// Go To  7.1")


@pytest.mark.parametrize(
    "text,message",
    [
        ("//", "⚠️ Empty admin command"),
        ("//   ", "⚠️ Empty admin command"),
        ("//go to " + "1" * 21, "⚠️ Invalid sequence ID format"),
    ],
)
def test_malformed_commands(text, message):
    assert parse_admin_command(text) == CommandError(message)


def test_unknown_command_lists_available():
    command = parse_admin_command("//jump 4")
    assert isinstance(command, CommandError)
    assert command.message == "Unknown admin command: jump 4. Available: 'go to {id}'"
