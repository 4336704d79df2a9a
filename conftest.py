"""Root pytest configuration."""

from pathlib import Path

import pytest
from dotenv import load_dotenv

# Load environment variables before tests run; .env.local wins
_root = Path(__file__).parent
load_dotenv(_root / ".env")
load_dotenv(_root / ".env.local", override=True)


@pytest.fixture(scope="session")
def event_loop_policy():
    """Use default event loop policy for all async tests."""
    import asyncio

    return asyncio.DefaultEventLoopPolicy()


@pytest.fixture(autouse=True)
def reset_shared_state():
    """Forget registered sessions and the shared graph store after each test."""
    yield
    from dialogue.delivery.sessions import end_all_sessions
    from dialogue.graph.store import clear_store

    end_all_sessions()
    clear_store()
