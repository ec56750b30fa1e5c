"""
Shared fixtures: both storage backends, a seeded store, and an app wired
to a fake LLM client.
"""

import json

import pytest
from fastapi.testclient import TestClient

from formulary_pa.init_db import init_db
from formulary_pa.llm import LLMError
from formulary_pa.main import create_app
from formulary_pa.services.pa_analyzer import PAAnalyzer
from formulary_pa.storage.database import DatabaseStorage
from formulary_pa.storage.memory import MemoryStorage


class FakeLLMClient:
    """Stands in for GroqClient. Replies are queued; each call pops one."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls = []

    def generate(self, system, prompt, max_tokens=None):
        self.calls.append(prompt)
        if not self.replies:
            raise LLMError("no reply queued")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, dict):
            return json.dumps(reply)
        return reply


def make_database_storage() -> DatabaseStorage:
    storage = DatabaseStorage.from_url("sqlite://")
    storage.ensure_schema()
    return storage


@pytest.fixture(params=["memory", "database"])
def storage(request):
    if request.param == "memory":
        return MemoryStorage()
    return make_database_storage()


@pytest.fixture
def seeded_storage(storage):
    init_db(storage)
    return storage


@pytest.fixture
def fake_llm():
    return FakeLLMClient()


@pytest.fixture
def client(fake_llm):
    storage = MemoryStorage()
    init_db(storage)
    app = create_app(storage=storage, analyzer=PAAnalyzer(client=fake_llm), seed=False)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture(params=["memory", "database"])
def backend_client(request, fake_llm):
    """Same as `client`, once per storage backend."""
    storage = MemoryStorage() if request.param == "memory" else make_database_storage()
    init_db(storage)
    app = create_app(storage=storage, analyzer=PAAnalyzer(client=fake_llm), seed=False)
    with TestClient(app) as test_client:
        yield test_client
