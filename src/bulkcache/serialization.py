"""
Serializer / deserializer contracts and built-in codecs.

Keys and values only exist for the store as bytes; two keys are the same
cache entry exactly when their serialized bytes are equal. Callers pass a
serializer and deserializer on every call, there is no codec registry.

Contract:
    - ``Serializer.serialize(None)`` returns ``b""`` and never raises.
    - ``Deserializer.deserialize(None)`` and ``deserialize(b"")`` return
      ``None`` and never raise. A miss is ``None``, not an exception.
    - A deserializer may raise only for a malformed, non-empty payload;
      the operation then fails with ``DeserializationError`` for that key.

Examples:
    >>> from bulkcache.serialization import StringSerializer, StringDeserializer
    >>> StringSerializer().serialize("user:1")
    b'user:1'
    >>> StringDeserializer().deserialize(None) is None
    True

Tags:
    serialization, codec, bytes, protocol, bulkcache
"""

from __future__ import annotations

import json
from typing import Any, Protocol, TypeVar, runtime_checkable

from bulkcache.errors import DeserializationError, ErrorContext, SerializationError

T = TypeVar("T")
T_contra = TypeVar("T_contra", contravariant=True)
T_co = TypeVar("T_co", covariant=True)


@runtime_checkable
class Serializer(Protocol[T_contra]):
    """Converts a value to bytes. Must be deterministic."""

    def serialize(self, value: T_contra | None) -> bytes:
        ...


@runtime_checkable
class Deserializer(Protocol[T_co]):
    """Converts bytes (or their absence) back to a value."""

    def deserialize(self, data: bytes | None) -> T_co | None:
        ...


# ------------------------------------------------------------------ #
# Built-in codecs
# ------------------------------------------------------------------ #


class StringSerializer:
    """Encodes ``str`` values; ``None`` writes nothing."""

    def __init__(self, encoding: str = "utf-8"):
        self.encoding = encoding

    def serialize(self, value: str | None) -> bytes:
        if value is None:
            return b""
        return value.encode(self.encoding)


class StringDeserializer:
    """Decodes ``str`` values; absent or empty input is ``None``."""

    def __init__(self, encoding: str = "utf-8"):
        self.encoding = encoding

    def deserialize(self, data: bytes | None) -> str | None:
        if not data:
            return None
        return bytes(data).decode(self.encoding)


class BytesSerializer:
    """Pass-through for values that already are bytes."""

    def serialize(self, value: bytes | None) -> bytes:
        if value is None:
            return b""
        return bytes(value)


class BytesDeserializer:
    def deserialize(self, data: bytes | None) -> bytes | None:
        if not data:
            return None
        return bytes(data)


class JsonSerializer:
    """
    Encodes JSON-compatible records.

    Output is compact and key-sorted so that equal records always map to
    the same bytes, which makes JSON records usable as dedup keys.
    """

    def __init__(self, encoding: str = "utf-8"):
        self.encoding = encoding

    def serialize(self, value: Any) -> bytes:
        if value is None:
            return b""
        return json.dumps(value, sort_keys=True, separators=(",", ":")).encode(self.encoding)


class JsonDeserializer:
    def __init__(self, encoding: str = "utf-8"):
        self.encoding = encoding

    def deserialize(self, data: bytes | None) -> Any:
        if not data:
            return None
        return json.loads(bytes(data).decode(self.encoding))


# ------------------------------------------------------------------ #
# Boundary helpers used by the client
# ------------------------------------------------------------------ #


def serialize(value: T | None, serializer: Serializer[T], *, role: str = "value") -> bytes:
    """Run ``serializer`` and normalize its output to ``bytes``.

    Args:
        value: Key or value to convert.
        serializer: Caller-supplied serializer.
        role: ``"key"`` or ``"value"``, recorded on failure.

    Raises:
        SerializationError: If the serializer raises or returns non-bytes.
    """
    try:
        data = serializer.serialize(value)
    except Exception as exc:
        raise SerializationError(
            f"Failed to serialize {role}: {exc}",
            context=ErrorContext(key=repr(value) if role == "key" else None),
            cause=exc,
        ) from exc

    if isinstance(data, bytes):
        return data
    if isinstance(data, (bytearray, memoryview)):
        return bytes(data)
    raise SerializationError(
        f"{type(serializer).__name__} returned {type(data).__name__} for {role}, expected bytes",
        context=ErrorContext(key=repr(value) if role == "key" else None),
    )


def deserialize(data: bytes | None, deserializer: Deserializer[T], *, key: Any = None) -> T | None:
    """Run ``deserializer`` on a raw store reply.

    Args:
        data: Raw bytes from the store, ``None`` on a miss.
        deserializer: Caller-supplied deserializer (must map ``None`` to ``None``).
        key: Original key, recorded on failure.

    Raises:
        DeserializationError: If the deserializer rejects the payload.
    """
    try:
        return deserializer.deserialize(data)
    except Exception as exc:
        raise DeserializationError(
            f"Failed to deserialize value for key {key!r}: {exc}",
            context=ErrorContext(key=repr(key)),
            cause=exc,
        ) from exc


__all__ = [
    "Serializer",
    "Deserializer",
    "StringSerializer",
    "StringDeserializer",
    "BytesSerializer",
    "BytesDeserializer",
    "JsonSerializer",
    "JsonDeserializer",
    "serialize",
    "deserialize",
]
