"""
Bulk cache client contract and its Redis-backed implementation.

Provides the ``BulkCacheClient`` protocol, six operations with explicit
per-call serializers, and ``RedisBulkCacheClient`` which runs them against
Redis through a caller-owned connection pool. A dataflow pipeline uses it
to deduplicate and stage records: ``get_and_put_if_absent`` inserts a whole
batch of records and reports, per key, whatever was already there.

Manifesto:
    The store is the only source of truth. The client keeps no entries,
    no locks and no buffers of its own; every call is a fresh round trip
    on a freshly borrowed connection. What it does keep (pool handle and
    TTL) is fixed by ``enable()`` and dropped by ``disable()``.

    - **Explicit codecs:** Serializers are passed on every call
    - **Miss is None:** Absent values are ``None``, never an exception
    - **Atomic batches:** ``get_and_put_if_absent`` is one Lua script
    - **Typed failures:** Connectivity vs transient vs permanent

Architecture:
    ::

        BulkCacheClient (Protocol)
        └── RedisBulkCacheClient
              ├── CacheClientConfig(connection_pool, ttl_seconds, atomic_put_if_absent)
              ├── borrow_connection()      acquire / classify / always release
              ├── TtlPolicy                0 → NO_EXPIRATION
              └── bulk.*                   Lua get-or-insert engine

        API: get(key, key_ser, value_deser)               → value | None
             contains_key(key, key_ser)                   → bool
             put(key, value, key_ser, value_ser)          → None
             put_if_absent(key, value, key_ser, value_ser) → bool
             remove(keys, key_ser)                        → int
             get_and_put_if_absent(values, key_ser, value_ser, value_deser)
                                                          → dict[key, previous | None]

Examples:
    >>> from bulkcache import CacheClientConfig, RedisBulkCacheClient, RedisConnectionPool
    >>> from bulkcache import StringSerializer, StringDeserializer
    >>> pool = RedisConnectionPool.from_url("redis://localhost:6379/0")
    >>> client = RedisBulkCacheClient(CacheClientConfig(pool, ttl_seconds=3600))
    >>> ser, de = StringSerializer(), StringDeserializer()
    >>> client.get_and_put_if_absent({"order:1": "a", "order:2": "b"}, ser, ser, de)
    {'order:1': None, 'order:2': None}

Guardrails:
    ❌ DON'T: Cache values in-process in front of the client
    ✅ DO: Treat Redis as the only authority

    ❌ DON'T: Assume put_if_absent + TTL is atomic by default
    ✅ DO: Set ``atomic_put_if_absent=True`` if a crash between SETNX and
       EXPIRE must never leave a key without expiration

Tags:
    cache, redis, bulk, atomic, dedup, ttl, bulkcache
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING, Any, Protocol, TypeVar

from bulkcache.bulk import decode_results, encode_batch, run_get_and_put_if_absent
from bulkcache.connection import ConnectionPool, RedisConnectionPool, borrow_connection
from bulkcache.errors import ClientNotEnabledError, InvalidConfigError
from bulkcache.logging import get_logger
from bulkcache.serialization import Deserializer, Serializer, deserialize, serialize
from bulkcache.ttl import TtlPolicy

if TYPE_CHECKING:
    from bulkcache.settings import BulkCacheSettings

K = TypeVar("K")
V = TypeVar("V")

logger = get_logger(__name__)


class BulkCacheClient(Protocol):
    """Contract shared by bulk cache clients.

    Every operation raises ``ConnectivityError`` when the store cannot be
    reached and ``DataAccessError`` when it rejects a command.
    """

    def get(
        self,
        key: K,
        key_serializer: Serializer[K],
        value_deserializer: Deserializer[V],
    ) -> V | None:
        """Return the value stored under ``key``, or ``None`` if absent."""
        ...

    def contains_key(self, key: K, key_serializer: Serializer[K]) -> bool:
        """Return ``True`` if ``key`` is present."""
        ...

    def put(
        self,
        key: K,
        value: V,
        key_serializer: Serializer[K],
        value_serializer: Serializer[V],
    ) -> None:
        """Store ``value`` under ``key``, overwriting, with the client TTL."""
        ...

    def put_if_absent(
        self,
        key: K,
        value: V,
        key_serializer: Serializer[K],
        value_serializer: Serializer[V],
    ) -> bool:
        """Store ``value`` only if ``key`` is absent; ``True`` if stored."""
        ...

    def remove(self, keys: Sequence[K], key_serializer: Serializer[K]) -> int:
        """Delete ``keys``; return how many existed."""
        ...

    def get_and_put_if_absent(
        self,
        values: Mapping[K, V],
        key_serializer: Serializer[K],
        value_serializer: Serializer[V],
        value_deserializer: Deserializer[V],
    ) -> dict[K, V | None]:
        """Insert every absent key atomically; return each key's previous value."""
        ...


@dataclass(frozen=True)
class CacheClientConfig:
    """Configuration fixed for a client between ``enable()`` and ``disable()``.

    Attributes:
        connection_pool: Caller-owned source of connections.
        ttl_seconds: Entry lifetime; ``0`` means entries never expire.
        atomic_put_if_absent: Send ``SET NX EX`` instead of ``SETNX`` + ``EXPIRE``.
    """

    connection_pool: ConnectionPool
    ttl_seconds: int | float | timedelta | str = 0
    atomic_put_if_absent: bool = False

    @classmethod
    def from_settings(cls, settings: BulkCacheSettings) -> CacheClientConfig:
        return cls(
            connection_pool=RedisConnectionPool.from_settings(settings),
            ttl_seconds=settings.ttl,
            atomic_put_if_absent=settings.atomic_put_if_absent,
        )


class RedisBulkCacheClient:
    """Redis-backed ``BulkCacheClient``.

    Safe to share between threads: each call borrows its own connection
    and the only state is the configuration set by ``enable()``.
    """

    def __init__(self, config: CacheClientConfig | None = None):
        self._pool: ConnectionPool | None = None
        self._ttl: TtlPolicy | None = None
        self._atomic_put_if_absent = False
        self._owns_pool = False
        if config is not None:
            self.enable(config)

    @classmethod
    def from_settings(cls, settings: BulkCacheSettings) -> RedisBulkCacheClient:
        """Build a client and a pool it owns; ``disable()`` closes that pool."""
        client = cls(CacheClientConfig.from_settings(settings))
        client._owns_pool = True
        return client

    # ── Lifecycle ────────────────────────────────────────────────────────

    def enable(self, config: CacheClientConfig) -> None:
        """Fix the pool and TTL for subsequent operations.

        A pool the client built itself (``from_settings``) is closed first.

        Raises:
            InvalidConfigError: If no pool is given or the TTL is invalid.
        """
        if config.connection_pool is None:
            raise InvalidConfigError("connection_pool", None, "A connection pool is required")
        ttl = TtlPolicy.from_value(config.ttl_seconds)
        if self._owns_pool:
            self.disable()
        self._ttl = ttl
        self._pool = config.connection_pool
        self._atomic_put_if_absent = config.atomic_put_if_absent
        self._owns_pool = False
        logger.info(
            "cache_client_enabled",
            ttl=str(self._ttl),
            atomic_put_if_absent=self._atomic_put_if_absent,
        )

    def disable(self) -> None:
        """Drop the pool handle and TTL. Closes the pool only if the client built it."""
        pool, self._pool = self._pool, None
        self._ttl = None
        if pool is not None and self._owns_pool and isinstance(pool, RedisConnectionPool):
            pool.close()
        self._owns_pool = False
        logger.info("cache_client_disabled")

    @property
    def enabled(self) -> bool:
        return self._pool is not None

    @property
    def ttl(self) -> TtlPolicy:
        if self._ttl is None:
            raise ClientNotEnabledError("ttl")
        return self._ttl

    @contextmanager
    def _connection(self, operation: str) -> Iterator[Any]:
        if self._pool is None:
            raise ClientNotEnabledError(operation)
        with borrow_connection(self._pool, operation=operation) as conn:
            yield conn

    # ── Single-key operations ────────────────────────────────────────────

    def get(
        self,
        key: K,
        key_serializer: Serializer[K],
        value_deserializer: Deserializer[V],
    ) -> V | None:
        k = serialize(key, key_serializer, role="key")
        with self._connection("get") as conn:
            raw = conn.get(k)
        return deserialize(raw, value_deserializer, key=key)

    def contains_key(self, key: K, key_serializer: Serializer[K]) -> bool:
        k = serialize(key, key_serializer, role="key")
        with self._connection("contains_key") as conn:
            return bool(conn.exists(k))

    def put(
        self,
        key: K,
        value: V,
        key_serializer: Serializer[K],
        value_serializer: Serializer[V],
    ) -> None:
        k = serialize(key, key_serializer, role="key")
        v = serialize(value, value_serializer, role="value")
        with self._connection("put") as conn:
            ttl = self.ttl
            if ttl.expires:
                conn.set(k, v, ex=ttl.seconds)
            else:
                conn.set(k, v)

    def put_if_absent(
        self,
        key: K,
        value: V,
        key_serializer: Serializer[K],
        value_serializer: Serializer[V],
    ) -> bool:
        k = serialize(key, key_serializer, role="key")
        v = serialize(value, value_serializer, role="value")
        with self._connection("put_if_absent") as conn:
            ttl = self.ttl

            if ttl.expires and self._atomic_put_if_absent:
                return bool(conn.set(k, v, nx=True, ex=ttl.seconds))

            inserted = bool(conn.setnx(k, v))
            # Not atomic with the insert: a failure here leaves the key without expiration.
            if inserted and ttl.expires:
                conn.expire(k, ttl.seconds)
            return inserted

    # ── Bulk operations ──────────────────────────────────────────────────

    def remove(self, keys: Sequence[K], key_serializer: Serializer[K]) -> int:
        if not keys:
            return 0
        serialized = [serialize(key, key_serializer, role="key") for key in keys]
        with self._connection("remove") as conn:
            removed = int(conn.delete(*serialized))
        logger.debug("cache_remove", key_count=len(serialized), removed=removed)
        return removed

    def get_and_put_if_absent(
        self,
        values: Mapping[K, V],
        key_serializer: Serializer[K],
        value_serializer: Serializer[V],
        value_deserializer: Deserializer[V],
    ) -> dict[K, V | None]:
        if not values:
            return {}
        batch = encode_batch(values, key_serializer, value_serializer)
        with self._connection("get_and_put_if_absent") as conn:
            raw = run_get_and_put_if_absent(conn, batch)
        result = decode_results(batch, raw, value_deserializer)
        logger.debug(
            "bulk_get_and_put_if_absent",
            key_count=len(batch),
            inserted=sum(1 for previous in raw if previous is None),
        )
        return result

    def __repr__(self) -> str:
        state = f"ttl={self._ttl}" if self.enabled else "disabled"
        return f"RedisBulkCacheClient({state})"


__all__ = [
    "BulkCacheClient",
    "CacheClientConfig",
    "RedisBulkCacheClient",
]
