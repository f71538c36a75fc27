# tests/conftest.py
# Pytest configuration
#
# What it provides:
# 1. Loads .env before any iplocate module reads settings
# 2. A time-skipping Temporal test environment (downloads the test server
#    on first use)
# 3. HTTP and Redis fakes for the activity tests
#
# Run:
#   pip install -e ".[test]"
#   pytest -v

import uuid
from typing import Callable, Dict, Optional

import httpx
import pytest
from temporalio.testing import WorkflowEnvironment


# ==================== Environment ====================

def pytest_configure(config):
    """Load .env at startup"""
    from dotenv import load_dotenv
    load_dotenv()


# ==================== Temporal ====================

@pytest.fixture
async def workflow_env():
    """Time-skipping Temporal environment; timers complete instantly"""
    env = await WorkflowEnvironment.start_time_skipping()
    yield env
    await env.shutdown()


@pytest.fixture
def task_queue() -> str:
    """A task queue private to one test"""
    return f"test-queue-{uuid.uuid4()}"


# ==================== HTTP ====================

@pytest.fixture
def mock_http():
    """
    Route activity HTTP calls to a handler

    Usage:
        def handler(request: httpx.Request) -> httpx.Response: ...
        mock_http(handler)
    """
    from iplocate.workflows.activities.base import set_http_client

    def _install(handler: Callable[[httpx.Request], httpx.Response]) -> None:
        set_http_client(httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    yield _install

    set_http_client(None)


# ==================== Redis ====================

class FakeRedis:
    """In-memory stand-in for RedisClient (set / delete)"""

    def __init__(self):
        self.data: Dict[str, str] = {}
        self.expiry: Dict[str, Optional[int]] = {}

    async def ensure_connected(self):
        return self

    async def set(self, key: str, value: str, ex: Optional[int] = None, nx: bool = False) -> bool:
        if nx and key in self.data:
            return False
        self.data[key] = value
        self.expiry[key] = ex
        return True

    async def delete(self, key: str) -> int:
        if key in self.data:
            del self.data[key]
            self.expiry.pop(key, None)
            return 1
        return 0


@pytest.fixture
def fake_redis(monkeypatch):
    """Replace the Redis client used by the lookup record activities"""
    from iplocate.workflows.activities import lookup_record

    fake = FakeRedis()
    monkeypatch.setattr(lookup_record, "redis_client", fake)
    return fake
