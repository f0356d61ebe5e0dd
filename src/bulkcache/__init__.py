"""
bulkcache - bulk atomic cache client over Redis.

Deduplicate and stage records from a dataflow pipeline: insert a whole
batch of keys atomically and learn, per key, what was already stored.
"""

__version__ = "0.1.0"

from bulkcache.cache import BulkCacheClient, CacheClientConfig, RedisBulkCacheClient
from bulkcache.connection import ConnectionPool, RedisConnectionPool, borrow_connection, classify_redis_error
from bulkcache.errors import (
    CacheError,
    ClientNotEnabledError,
    ConfigError,
    ConnectivityError,
    DataAccessError,
    DeserializationError,
    ErrorCategory,
    ErrorContext,
    InvalidConfigError,
    PermanentDataAccessError,
    SerializationError,
    TransientDataAccessError,
    categorize_error,
    is_retryable,
)
from bulkcache.serialization import (
    BytesDeserializer,
    BytesSerializer,
    Deserializer,
    JsonDeserializer,
    JsonSerializer,
    Serializer,
    StringDeserializer,
    StringSerializer,
)
from bulkcache.ttl import NO_EXPIRATION, TtlPolicy, parse_time_period

__all__ = [
    "__version__",
    # Client
    "BulkCacheClient",
    "CacheClientConfig",
    "RedisBulkCacheClient",
    # Connections
    "ConnectionPool",
    "RedisConnectionPool",
    "borrow_connection",
    "classify_redis_error",
    # Errors
    "CacheError",
    "ClientNotEnabledError",
    "ConfigError",
    "ConnectivityError",
    "DataAccessError",
    "DeserializationError",
    "ErrorCategory",
    "ErrorContext",
    "InvalidConfigError",
    "PermanentDataAccessError",
    "SerializationError",
    "TransientDataAccessError",
    "categorize_error",
    "is_retryable",
    # Serialization
    "Serializer",
    "Deserializer",
    "StringSerializer",
    "StringDeserializer",
    "BytesSerializer",
    "BytesDeserializer",
    "JsonSerializer",
    "JsonDeserializer",
    # TTL
    "NO_EXPIRATION",
    "TtlPolicy",
    "parse_time_period",
]
