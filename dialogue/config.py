"""
Centralized configuration for the curriculum chat service.

Settings come from environment variables (loaded from .env / .env.local by
main.py and the root conftest). Each setting has a small accessor so tests
can monkeypatch the environment without touching module state.
"""

import os
from dataclasses import dataclass
from pathlib import Path


def is_dev_mode() -> bool:
    """Check if running in development mode (--dev flag or DEV_MODE env)."""
    return os.getenv("DEV_MODE", "").lower() in ("true", "1", "yes")


def get_api_port() -> int:
    """Get API server port from env or default."""
    return int(os.getenv("API_PORT", "8000"))


def get_content_csv_path() -> Path:
    """Path to the authored curriculum CSV."""
    return Path(os.getenv("CONTENT_CSV_PATH", "content/learning_path.csv"))


def get_overrides_path() -> Path | None:
    """Path to the per-node override table (YAML), if configured."""
    value = os.getenv("CONTENT_OVERRIDES_PATH")
    return Path(value) if value else None


def get_start_node_id() -> str:
    """Node the learning path starts at."""
    return os.getenv("START_NODE_ID", "1")


def get_title_node_id() -> str:
    """Node holding the module title, read once at session start."""
    return os.getenv("TITLE_NODE_ID", "0")


def get_delivery_speed() -> float:
    """Default reading-speed multiplier (1.0 = normal, lower = slower)."""
    return float(os.getenv("DELIVERY_SPEED", "1.0"))


def get_pause_threshold() -> float:
    """Fraction of the available viewport that may fill before pausing."""
    return float(os.getenv("PAUSE_THRESHOLD", "0.9"))


def get_choice_dedupe_scope() -> str:
    """Either "global" (hide a chosen option everywhere) or "parent"."""
    scope = os.getenv("CHOICE_DEDUPE_SCOPE", "global").lower()
    if scope not in ("global", "parent"):
        raise ValueError(
            f"CHOICE_DEDUPE_SCOPE must be 'global' or 'parent', got {scope!r}"
        )
    return scope


def admin_commands_enabled() -> bool:
    """Whether "//go to <id>" style commands are honoured in free text."""
    return os.getenv("ADMIN_COMMANDS_ENABLED", "true").lower() in ("true", "1", "yes")


@dataclass
class DeliverySettings:
    """Per-session pacing and traversal knobs.

    The fixed AI timings mirror the chat client's animation: a short beat
    before the first paragraph, a small gap after each one, and a settle
    delay before the authored path resumes.
    """

    speed_multiplier: float = 1.0
    pause_threshold: float = 0.9
    dedupe_scope: str = "global"
    start_node_id: str = "1"
    title_node_id: str = "0"
    admin_commands: bool = True
    first_reply_delay: float = 0.5
    reply_gap: float = 0.1
    continuation_settle_delay: float = 2.0

    def __post_init__(self):
        if self.speed_multiplier <= 0:
            raise ValueError(
                f"speed_multiplier must be positive, got {self.speed_multiplier}"
            )
        if self.dedupe_scope not in ("global", "parent"):
            raise ValueError(f"Unknown dedupe scope: {self.dedupe_scope}")


def load_delivery_settings() -> DeliverySettings:
    """Build DeliverySettings from the environment."""
    return DeliverySettings(
        speed_multiplier=get_delivery_speed(),
        pause_threshold=get_pause_threshold(),
        dedupe_scope=get_choice_dedupe_scope(),
        start_node_id=get_start_node_id(),
        title_node_id=get_title_node_id(),
        admin_commands=admin_commands_enabled(),
    )
