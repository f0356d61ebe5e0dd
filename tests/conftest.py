"""
Shared pytest fixtures for bulkcache tests.

This module provides:
- An in-memory Redis stand-in behind a pool (``fake_pool``)
- MagicMock pool/connection pairs for call-level assertions
- Ready-made clients and string codecs

Usage:
    def test_something(client, codecs):
        ser, de = codecs
        client.put("k", "v", ser, ser)
"""

from unittest.mock import MagicMock

import pytest

from bulkcache.cache import CacheClientConfig, RedisBulkCacheClient
from bulkcache.serialization import StringDeserializer, StringSerializer
from tests._support.fake_redis import FakeRedisPool


@pytest.fixture
def codecs() -> tuple[StringSerializer, StringDeserializer]:
    return StringSerializer(), StringDeserializer()


@pytest.fixture
def fake_pool() -> FakeRedisPool:
    return FakeRedisPool()


@pytest.fixture
def client(fake_pool: FakeRedisPool) -> RedisBulkCacheClient:
    """Client with no expiration over the in-memory store."""
    return RedisBulkCacheClient(CacheClientConfig(fake_pool))


@pytest.fixture
def mock_conn() -> MagicMock:
    return MagicMock(name="conn")


@pytest.fixture
def mock_pool(mock_conn: MagicMock) -> MagicMock:
    pool = MagicMock(name="pool")
    pool.acquire.return_value = mock_conn
    return pool


@pytest.fixture
def mock_client(mock_pool: MagicMock) -> RedisBulkCacheClient:
    return RedisBulkCacheClient(CacheClientConfig(mock_pool, ttl_seconds=60))
