import os
import sys
from typing import Callable, List, Optional, Union
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Add backend to path so we can import the partassist package without installing it
sys.path.append(os.path.join(os.path.dirname(__file__), "../backend"))

from partassist.core.errors import ProviderError
from partassist.llm.providers import CompletionProvider
from partassist.storage.cache import InMemoryCache
from partassist.storage.db import init_db
from partassist.storage.session_context import SessionContextStore


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeProvider(CompletionProvider):
    """
    Scripted completion provider. Each call pops the next reply; an exception
    instance in the script is raised instead of returned.
    """

    def __init__(self, name: str, replies: Optional[List[Union[str, Exception]]] = None,
                 default: Union[str, Exception] = "ok", timeout: float = 2.0):
        self.name = name
        self.timeout = timeout
        self.replies = list(replies or [])
        self.default = default
        self.calls: List[list] = []

    def complete(self, messages, config) -> str:
        self.calls.append(messages)
        reply = self.replies.pop(0) if self.replies else self.default
        if isinstance(reply, Exception):
            raise reply
        return reply


def failing(name: str) -> ProviderError:
    return ProviderError(name, "boom")


# --- FIXTURES ---

@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def memory_cache(clock):
    return InMemoryCache(clock=clock)


@pytest.fixture
def session_store(memory_cache):
    return SessionContextStore(memory_cache, ttl_seconds=3600)


@pytest.fixture
def session_factory():
    """Fresh in-memory SQLite database per test, shared across threads."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture
def mock_client():
    """Stand-in for ResilientCompletionClient; set ``complete`` per test."""
    client = MagicMock()
    client.complete = AsyncMock(return_value="Happy to help!")
    return client


@pytest.fixture
def mock_catalog():
    catalog = MagicMock()
    catalog.find_part = AsyncMock(return_value=[])
    catalog.find_similar = AsyncMock(return_value=[])
    catalog.check_compatibility = AsyncMock()
    return catalog


@pytest.fixture
def provider_factory() -> Callable[..., FakeProvider]:
    return FakeProvider
