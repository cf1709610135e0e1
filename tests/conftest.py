"""
Shared fixtures.

Everything here runs in-process: no Redis server or network is needed.
"""
import pytest
import redis

from botdetector.config import TrackerConfig
from botdetector.tracking.session import Session


class FakeRedis:
    """The handful of list commands the service and workers use."""

    def __init__(self, fail=False):
        self.lists = {}
        self.fail = fail

    def _check(self):
        if self.fail:
            raise redis.ConnectionError("Connection refused")

    def ping(self):
        self._check()
        return True

    def rpush(self, key, value):
        self._check()
        if isinstance(value, str):
            value = value.encode("utf-8")
        self.lists.setdefault(key, []).append(value)
        return len(self.lists[key])

    def lpop(self, key):
        self._check()
        items = self.lists.get(key) or []
        return items.pop(0) if items else None

    def lrange(self, key, start, end):
        self._check()
        items = self.lists.get(key, [])
        return items[start:] if end == -1 else items[start:end + 1]


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def broken_redis():
    return FakeRedis(fail=True)


@pytest.fixture
def config():
    return TrackerConfig()


@pytest.fixture
def session(config):
    return Session(started_at=0.0, config=config, session_id="test")
