from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from pagegen import cache as cache_mod
from pagegen.cache import MemoryPageCache
from pagegen.main import PageService, app, get_page_service


class FakeCompletionClient:
    """Stands in for CompletionClient; records every call."""

    def __init__(self, html: str = "<html><head></head><body>Hi</body></html>", error: Optional[Exception] = None):
        self.html = html
        self.error = error
        self.api_key = "fake-key"
        self.model = "test/model"
        self.calls: List[Dict[str, Any]] = []

    async def complete(self, system_prompt, user_prompt, output_mode="text", model=None):
        self.calls.append(
            {"system": system_prompt, "user": user_prompt, "output_mode": output_mode, "model": model}
        )
        if self.error is not None:
            raise self.error
        return self.html

    def status(self) -> Dict[str, Any]:
        return {"provider": "fake", "model": self.model, "has_token": True}


class FakeRedis:
    """In-process stand-in for redis.asyncio.Redis."""

    def __init__(self, fail_ping: bool = False, fail_ops: bool = False, **kwargs: Any):
        self.kwargs = kwargs
        self.fail_ping = fail_ping
        self.fail_ops = fail_ops
        self.store: Dict[str, str] = {}
        self.set_calls: List[Dict[str, Any]] = []
        self.closed = False

    async def ping(self):
        if self.fail_ping:
            raise ConnectionError("Connection refused")
        return True

    async def get(self, key):
        if self.fail_ops:
            raise ConnectionError("Connection reset by peer")
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        if self.fail_ops:
            raise ConnectionError("Connection reset by peer")
        self.set_calls.append({"key": key, "value": value, "ex": ex})
        self.store[key] = value
        return True

    async def aclose(self):
        self.closed = True


@pytest.fixture()
def fake_redis(monkeypatch):
    """Patch the redis client class; exposes created fakes and failure knobs."""
    created: List[FakeRedis] = []
    knobs = {"fail_ping": False, "fail_ops": False}

    def _factory(**kwargs):
        client = FakeRedis(fail_ping=knobs["fail_ping"], fail_ops=knobs["fail_ops"], **kwargs)
        created.append(client)
        return client

    monkeypatch.setattr(cache_mod.aioredis, "Redis", _factory)
    return {"created": created, "knobs": knobs}


@pytest.fixture()
def fake_llm():
    return FakeCompletionClient()


@pytest.fixture()
def memory_cache():
    return MemoryPageCache()


@pytest.fixture()
def make_client():
    """Build a TestClient whose PageService uses the given collaborators."""

    def _make(cache, llm, ttl_seconds=3600, model="test/model"):
        service = PageService(cache, llm, ttl_seconds=ttl_seconds, model=model)
        app.dependency_overrides[get_page_service] = lambda: service
        return TestClient(app)

    yield _make
    app.dependency_overrides.clear()
