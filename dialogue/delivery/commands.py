"""Admin commands typed into the chat box ("//go to 15.2")."""

from dataclasses import dataclass

COMMAND_PREFIX = "//"
MAX_SEQUENCE_ID_LENGTH = 20


@dataclass(frozen=True)
class GoTo:
    node_id: str
    echo: str  # Shown as the learner's message


@dataclass(frozen=True)
class CommandError:
    message: str


def is_admin_command(text: str) -> bool:
    return text.startswith(COMMAND_PREFIX)


def parse_admin_command(text: str) -> GoTo | CommandError:
    command = text[len(COMMAND_PREFIX) :].strip()
    if not command:
        return CommandError("⚠️ Empty admin command")

    if command.lower().startswith("go to "):
        node_id = command[len("go to ") :].strip()
        if not node_id or len(node_id) > MAX_SEQUENCE_ID_LENGTH:
            return CommandError("⚠️ Invalid sequence ID format")
        return GoTo(node_id=node_id, echo=f"// {command}")

    return CommandError(f"Unknown admin command: {command}. Available: 'go to {{id}}'")
