"""Connection discipline — borrow one pooled connection per operation.

Every client operation runs inside ``borrow_connection()``:

1. acquire a connection from the pool; if that fails the error propagates
   as a connectivity fault and nothing is sent to the store;
2. run the operation on that connection; driver errors are classified into
   the ``bulkcache.errors`` taxonomy;
3. close the connection on every exit path. A failure while closing is
   logged as a warning and never replaces the operation's own outcome.

The pool itself belongs to the caller. ``RedisConnectionPool`` adapts a
redis-py ``BlockingConnectionPool`` to the ``acquire()`` contract: each
acquired ``redis.Redis`` is pinned to a single pooled connection and
``close()`` hands it back.

Error classification
--------------------
==========================================  ==============================
redis-py exception                          Raised as
==========================================  ==============================
``AuthenticationError``                     ``ConnectivityError`` (not retryable)
``BusyLoadingError``                        ``TransientDataAccessError``
``ConnectionError``, ``TimeoutError``       ``ConnectivityError``
``InvalidResponse``                         ``ConnectivityError``
``ReadOnlyError``, ``OutOfMemoryError``,    ``TransientDataAccessError``
``TryAgainError``, ``ClusterDownError``
``ResponseError`` with a transient reply    ``TransientDataAccessError``
code (``BUSY``, ``LOADING``, ...)
other ``ResponseError``, ``DataError``,     ``PermanentDataAccessError``
other ``RedisError``
==========================================  ==============================
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Protocol

import redis
from redis import exceptions as redis_exceptions

from bulkcache.errors import (
    CacheError,
    ConnectivityError,
    ErrorContext,
    PermanentDataAccessError,
    TransientDataAccessError,
)
from bulkcache.logging import get_logger

if TYPE_CHECKING:
    from bulkcache.settings import BulkCacheSettings

logger = get_logger(__name__)

TRANSIENT_REPLY_CODES = frozenset(
    {
        "LOADING",
        "BUSY",
        "TRYAGAIN",
        "CLUSTERDOWN",
        "MASTERDOWN",
        "READONLY",
        "OOM",
        "NOREPLICAS",
    }
)

_TRANSIENT_RESPONSE_ERRORS = (
    redis_exceptions.ReadOnlyError,
    redis_exceptions.OutOfMemoryError,
    redis_exceptions.TryAgainError,
    redis_exceptions.ClusterDownError,
)


class ConnectionPool(Protocol):
    """Source of store connections, owned outside the client."""

    def acquire(self) -> Any:
        """Return a connection; the caller must ``close()`` it."""
        ...


class RedisConnectionPool:
    """``ConnectionPool`` over a redis-py connection pool.

    Example::

        pool = RedisConnectionPool.from_url("redis://localhost:6379/0", max_connections=4)
        conn = pool.acquire()
        try:
            conn.get(b"key")
        finally:
            conn.close()
    """

    def __init__(self, pool: redis.ConnectionPool):
        self._pool = pool

    @classmethod
    def from_url(
        cls,
        url: str,
        *,
        max_connections: int = 8,
        pool_timeout: float = 5.0,
        socket_timeout: float | None = 5.0,
        socket_connect_timeout: float | None = 5.0,
    ) -> RedisConnectionPool:
        """Create a blocking pool; waiting longer than ``pool_timeout`` for a
        free connection raises a connectivity fault."""
        pool = redis.BlockingConnectionPool.from_url(
            url,
            max_connections=max_connections,
            timeout=pool_timeout,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_connect_timeout,
        )
        return cls(pool)

    @classmethod
    def from_settings(cls, settings: BulkCacheSettings) -> RedisConnectionPool:
        return cls.from_url(
            settings.redis_url,
            max_connections=settings.max_connections,
            pool_timeout=settings.pool_timeout,
            socket_timeout=settings.socket_timeout,
            socket_connect_timeout=settings.socket_connect_timeout,
        )

    @property
    def pool(self) -> redis.ConnectionPool:
        return self._pool

    def acquire(self) -> redis.Redis:
        return redis.Redis(connection_pool=self._pool, single_connection_client=True)

    def close(self) -> None:
        """Disconnect every pooled connection."""
        self._pool.disconnect()

    def __repr__(self) -> str:
        return f"RedisConnectionPool({self._pool!r})"


# ── Classification ───────────────────────────────────────────────────────


def _reply_code(exc: Exception) -> str | None:
    message = str(exc).strip()
    if not message:
        return None
    head = message.split(None, 1)[0]
    return head if head.isalpha() and head.isupper() else None


def classify_redis_error(exc: Exception, *, operation: str | None = None) -> CacheError:
    """Map a redis-py exception to a ``CacheError``.

    ``CacheError`` instances are returned unchanged.
    """
    if isinstance(exc, CacheError):
        return exc

    code = _reply_code(exc)
    context = ErrorContext(operation=operation, reply_code=code)
    message = f"{operation or 'redis'} failed: {exc}"

    if isinstance(exc, redis_exceptions.AuthenticationError):
        return ConnectivityError(message, retryable=False, context=context, cause=exc)
    if isinstance(exc, redis_exceptions.BusyLoadingError):
        context.reply_code = context.reply_code or "LOADING"
        return TransientDataAccessError(message, context=context, cause=exc)
    if isinstance(
        exc,
        (redis_exceptions.ConnectionError, redis_exceptions.TimeoutError, redis_exceptions.InvalidResponse),
    ):
        return ConnectivityError(message, context=context, cause=exc)
    if isinstance(exc, _TRANSIENT_RESPONSE_ERRORS):
        return TransientDataAccessError(message, context=context, cause=exc)
    if isinstance(exc, redis_exceptions.ResponseError) and code in TRANSIENT_REPLY_CODES:
        return TransientDataAccessError(message, context=context, cause=exc)
    return PermanentDataAccessError(message, context=context, cause=exc)


# ── Scoped acquisition ───────────────────────────────────────────────────


def _release(conn: Any, operation: str) -> None:
    try:
        conn.close()
    except Exception as exc:
        logger.warning(
            "connection_close_failed",
            operation=operation,
            error=str(exc),
            exc_info=True,
        )


@contextmanager
def borrow_connection(pool: ConnectionPool, *, operation: str) -> Iterator[Any]:
    """Acquire a connection for exactly one operation and always release it.

    Raises:
        ConnectivityError: If no connection could be acquired.
        DataAccessError: If the store rejected a command.
    """
    try:
        conn = pool.acquire()
    except CacheError:
        raise
    except redis_exceptions.RedisError as exc:
        raise classify_redis_error(exc, operation=operation) from exc
    except Exception as exc:
        raise ConnectivityError(
            f"Failed to acquire connection for {operation}: {exc}",
            context=ErrorContext(operation=operation),
            cause=exc,
        ) from exc

    try:
        yield conn
    except redis_exceptions.RedisError as exc:
        raise classify_redis_error(exc, operation=operation) from exc
    finally:
        _release(conn, operation)


__all__ = [
    "ConnectionPool",
    "RedisConnectionPool",
    "TRANSIENT_REPLY_CODES",
    "borrow_connection",
    "classify_redis_error",
]
