"""
Shared fakes for namedmem tests: an in-memory MemoryHandle, an opener that
records every open call, and a FastMCP stand-in that captures tools.
"""

from datetime import datetime, timedelta, timezone

import pytest

from namedmem.config import NamedMemoryConfig, StoreConfig
from namedmem.registry import SessionContext, StoreRegistry
from namedmem.types import MemoryRecord


class FakeHandle:
    """MemoryHandle double with scripted search results and predicate."""

    def __init__(self, db_path, cache_dir=None, *, accept=True, results=None):
        self.db_path = db_path
        self.cache_dir = cache_dir
        self.accept = accept
        self.results = results if results is not None else []
        self.thresholds = None
        self.added = []
        self.searches = []
        self.predicate_calls = []
        self.closed = False
        self.add_error = None

    async def should_create(self, importance_threshold, novelty_threshold):
        self.thresholds = (importance_threshold, novelty_threshold)

        async def predicate(text):
            self.predicate_calls.append(text)
            return self.accept

        return predicate

    async def add(self, text, metadata):
        if self.add_error is not None:
            raise self.add_error
        self.added.append((text, dict(metadata)))
        return f"fake-{len(self.added)}"

    async def search_hybrid(self, query, limit):
        self.searches.append((query, limit))
        if isinstance(self.results, Exception):
            raise self.results
        return list(self.results)[:limit]

    async def get_stats(self):
        return {"total": len(self.added), "by_type": {}}

    async def close(self):
        self.closed = True


class FakeOpener:
    """Opener recording each call; fails for names listed in ``fail_on``."""

    def __init__(self, fail_on=()):
        self.calls = []
        self.handles = []
        self.fail_on = set(fail_on)

    async def __call__(self, db_path, cache_dir=None):
        self.calls.append(db_path)
        for name in self.fail_on:
            if db_path.endswith(f"named-memory-{name}.db"):
                raise OSError("disk full")
        handle = FakeHandle(db_path, cache_dir)
        self.handles.append(handle)
        return handle


class MockMCP:
    """Minimal FastMCP mock that captures tool registrations."""

    def __init__(self):
        self.tools = {}

    def tool(self):
        def decorator(fn):
            self.tools[fn.__name__] = fn
            return fn
        return decorator


def record(content, score, hours_ago=0.0, now=None, **metadata):
    """MemoryRecord created ``hours_ago`` before ``now``."""
    now = now or datetime.now(timezone.utc)
    return MemoryRecord(
        content=content,
        score=score,
        created_at=(now - timedelta(hours=hours_ago)).isoformat(),
        metadata=metadata,
    )


@pytest.fixture
def config(tmp_path):
    """Config pinned to a temporary store directory."""
    return NamedMemoryConfig(store=StoreConfig(base_dir=str(tmp_path / "stores")))


@pytest.fixture
def opener():
    return FakeOpener()


@pytest.fixture
def registry(config, opener):
    return StoreRegistry(config, opener=opener)


@pytest.fixture
def session():
    return SessionContext()
