"""Environment-driven settings for the bulk cache client.

``BulkCacheSettings`` collects everything needed to build a Redis-backed
client: where the store is, how the connection pool behaves, the TTL and
logging. Values come from ``BULKCACHE_*`` environment variables or a
``.env`` file.

Examples:
    >>> from bulkcache.settings import BulkCacheSettings
    >>> settings = BulkCacheSettings(ttl="5 mins")
    >>> settings.ttl_policy.seconds
    300

Fields
──────
redis_url               : Store location, ``redis://host:port/db``
ttl                     : Seconds, ``timedelta`` or time period (``"0 secs"`` = never)
max_connections         : Pool size
pool_timeout            : Seconds to wait for a free pooled connection
socket_timeout          : Read/write timeout per command
socket_connect_timeout  : Connect timeout
atomic_put_if_absent    : Apply TTL in the same command as the conditional insert
log_level               : Structlog log level
log_json                : JSON logs (``None`` = auto-detect from tty)
"""

from __future__ import annotations

from datetime import timedelta

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from bulkcache.errors import InvalidConfigError
from bulkcache.ttl import TtlPolicy, parse_time_period


class BulkCacheSettings(BaseSettings):
    """Settings for a Redis-backed bulk cache client."""

    model_config = SettingsConfigDict(
        env_prefix="BULKCACHE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Store ────────────────────────────────────────────────────
    redis_url: str = "redis://localhost:6379/0"
    max_connections: int = Field(default=8, ge=1)
    pool_timeout: float = Field(default=5.0, ge=0)
    socket_timeout: float | None = 5.0
    socket_connect_timeout: float | None = 5.0

    # ── Cache behavior ───────────────────────────────────────────
    ttl: timedelta = Field(
        default=timedelta(0),
        description="Entry lifetime; zero means entries never expire",
    )
    atomic_put_if_absent: bool = False

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    log_json: bool | None = None

    @field_validator("ttl", mode="before")
    @classmethod
    def _parse_ttl(cls, value: object) -> object:
        # "60" and "5 mins" style periods; anything else (ISO 8601) is left to pydantic
        if isinstance(value, str):
            if value.strip().isdigit():
                return timedelta(seconds=int(value.strip()))
            try:
                return timedelta(seconds=parse_time_period(value))
            except InvalidConfigError:
                return value
        return value

    @field_validator("ttl")
    @classmethod
    def _non_negative_ttl(cls, value: timedelta) -> timedelta:
        if value < timedelta(0):
            raise ValueError("ttl must be non-negative")
        return value

    @property
    def ttl_policy(self) -> TtlPolicy:
        return TtlPolicy.from_value(self.ttl)
