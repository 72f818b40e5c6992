"""Shared test doubles for Redis and the GeoIP database."""

import asyncio

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from visit_stats.storage.connection import ConnectionConfig, RedisConnection


class FakeRedis:
    """In-memory stand-in for the async Redis client (hash commands only)."""

    def __init__(self, ping_failures: int = 0):
        self.hashes = {}
        self.ping_failures = ping_failures
        self.ping_calls = 0
        self.ping_delay = 0.0
        self.fail_with = None
        self.command_delay = 0.0
        self.closed = False

    async def _command(self):
        if self.command_delay:
            await asyncio.sleep(self.command_delay)
        else:
            await asyncio.sleep(0)
        if self.fail_with is not None:
            raise self.fail_with

    async def ping(self):
        self.ping_calls += 1
        if self.ping_delay:
            await asyncio.sleep(self.ping_delay)
        if self.ping_failures > 0:
            self.ping_failures -= 1
            raise RedisConnectionError("Connection refused")
        return True

    async def hincrby(self, key, field, amount):
        await self._command()
        fields = self.hashes.setdefault(key, {})
        value = int(fields.get(field, "0")) + amount
        fields[field] = str(value)
        return value

    async def hgetall(self, key):
        await self._command()
        return dict(self.hashes.get(key, {}))

    async def hget(self, key, field):
        await self._command()
        return self.hashes.get(key, {}).get(field)

    async def delete(self, key):
        await self._command()
        return 1 if self.hashes.pop(key, None) is not None else 0

    async def aclose(self):
        self.closed = True


class StubGeoLookup:
    """Geo lookup answering from a dict and recording every query."""

    def __init__(self, countries=None, error=None):
        self.countries = countries or {}
        self.error = error
        self.calls = []

    def lookup(self, ip):
        self.calls.append(ip)
        if self.error is not None:
            raise self.error
        return self.countries.get(ip)


def fast_config(**overrides):
    """Connection config with no backoff delay, for tests."""
    values = {"backoff_base": 0.0, "backoff_max": 0.0, "command_timeout": 1.0}
    values.update(overrides)
    return ConnectionConfig(**values)


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def make_connection(fake_redis):
    """Build a RedisConnection backed by ``fake_redis``."""

    def factory(**overrides):
        return RedisConnection(fast_config(**overrides), client_factory=lambda config: fake_redis)

    return factory
