"""Pytest fixtures for delivery tests."""

import pytest
import pytest_asyncio

from dialogue.delivery.engine import TraversalEngine
from dialogue.delivery.tests.fakes import (
    SCENARIO_NODES,
    FakeAIHandler,
    fast_settings,
    instant_sleep,
    make_store,
)


@pytest.fixture
def scenario_store():
    """Welcome -> Ready? (Yes | No) -> Done, with a module title node."""
    return make_store(SCENARIO_NODES)


@pytest.fixture
def ai_handler():
    return FakeAIHandler()


@pytest_asyncio.fixture
async def engine(scenario_store, ai_handler):
    """Started engine on the scenario graph. No viewport reported yet."""
    engine = TraversalEngine(
        store=scenario_store,
        ai_handler=ai_handler,
        settings=fast_settings(),
        sleep=instant_sleep,
    )
    ai_handler.engine = engine
    await engine.start()
    yield engine
    engine.close()
