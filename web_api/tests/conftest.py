"""Pytest fixtures for web API tests.

Installs a small curriculum as the shared graph store and swaps the LLM
tutor for a canned responder, so API tests run without content files or
provider credentials.
"""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from dialogue.delivery.tests.fakes import SCENARIO_NODES, FakeAIHandler, make_store
from dialogue.graph.store import set_store
from main import app


@pytest.fixture(autouse=True)
def api_test_store():
    """Welcome -> Ready? (Yes | No) -> Done as the shared store."""
    store = make_store(SCENARIO_NODES)
    set_store(store)
    return store


@pytest.fixture(autouse=True)
def fake_tutor():
    with patch("dialogue.delivery.sessions.LLMTurnHandler", FakeAIHandler):
        yield


@pytest.fixture
def client(api_test_store):
    """Client with the app lifespan running, so sessions share one event loop."""
    with TestClient(app) as client:
        yield client
