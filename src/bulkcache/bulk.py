"""
Atomic bulk get-or-insert, executed as one server-side script.

Redis has no multi-key compare-and-set, but it runs a Lua script as one
indivisible unit: no other client's command can interleave with the steps
inside it. Pushing the whole "read, insert if absent, remember what was
read" loop into a single script therefore makes a batch of N conditional
inserts atomic with respect to every other caller, in one round trip and
with no client-side locking.

Architecture:
    ::

        Mapping[K, V]
            │ encode_batch()        serialize keys/values in submission order
            ▼
        BulkBatch(originals, keys, values)
            │ run_get_and_put_if_absent()
            ▼
        EVALSHA <sha> N k1..kN v1..vN     (NOSCRIPT → SCRIPT LOAD, retry)
            │   for i in KEYS: old = GET; if not old: SET; result[i] = old
            ▼
        [old1 | nil, ..., oldN | nil]
            │ decode_results()
            ▼
        dict[K, V | None]                previous value, None = just inserted

Ordering:
    Keys are processed in submission order. Two keys whose serialized
    bytes are equal are the same entry: the first one inserts, the second
    one reads back the first one's value.

Guardrails:
    ❌ DON'T: Replace the script with N independent GET/SET round trips
    ✅ DO: Keep the loop inside one script invocation

Tags:
    redis, lua, atomic, bulk, dedup, bulkcache
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from bulkcache.errors import ErrorContext, PermanentDataAccessError
from bulkcache.logging import get_logger
from bulkcache.serialization import Deserializer, Serializer, deserialize, serialize

K = TypeVar("K")
V = TypeVar("V")

logger = get_logger(__name__)

GET_AND_PUT_IF_ABSENT_SCRIPT = """\
local result = {}
for i in ipairs(KEYS) do
  local currentValue = redis.call("GET", KEYS[i])
  if (not currentValue) then
    redis.call("SET", KEYS[i], ARGV[i])
  end
  result[i] = currentValue
end
return result
"""


@dataclass(frozen=True)
class BulkBatch(Generic[K]):
    """Serialized form of one ``get_and_put_if_absent`` request.

    ``originals[i]``, ``keys[i]`` and ``values[i]`` describe the same entry.
    """

    originals: list[K]
    keys: list[bytes]
    values: list[bytes]

    def __len__(self) -> int:
        return len(self.keys)


def encode_batch(
    values: Mapping[K, V],
    key_serializer: Serializer[K],
    value_serializer: Serializer[V],
) -> BulkBatch[K]:
    """Serialize every key and value, keeping submission order."""
    originals: list[K] = []
    keys: list[bytes] = []
    encoded: list[bytes] = []
    for key, value in values.items():
        originals.append(key)
        keys.append(serialize(key, key_serializer, role="key"))
        encoded.append(serialize(value, value_serializer, role="value"))
    return BulkBatch(originals=originals, keys=keys, values=encoded)


def run_get_and_put_if_absent(conn: Any, batch: BulkBatch[Any]) -> list[bytes | None]:
    """Execute the script for ``batch`` on ``conn`` in a single round trip.

    redis-py sends ``EVALSHA`` and, when the server answers ``NOSCRIPT``,
    loads the script and runs it again.
    """
    script = conn.register_script(GET_AND_PUT_IF_ABSENT_SCRIPT)
    logger.debug("bulk_script_eval", key_count=len(batch), sha=script.sha)
    result = script(keys=batch.keys, args=batch.values)
    return list(result) if result is not None else []


def decode_results(
    batch: BulkBatch[K],
    raw: list[bytes | None],
    value_deserializer: Deserializer[V],
) -> dict[K, V | None]:
    """Pair each previous value with its original key.

    Raises:
        PermanentDataAccessError: If the script returned a different number
            of results than keys were submitted.
        DeserializationError: If a previous value cannot be decoded.
    """
    if len(raw) != len(batch):
        raise PermanentDataAccessError(
            f"get_and_put_if_absent returned {len(raw)} results for {len(batch)} keys",
            context=ErrorContext(operation="get_and_put_if_absent", key_count=len(batch)),
        )

    result: dict[K, V | None] = {}
    for original, previous in zip(batch.originals, raw):
        if previous is None:
            result[original] = None
        else:
            result[original] = deserialize(previous, value_deserializer, key=original)
    return result


__all__ = [
    "GET_AND_PUT_IF_ABSENT_SCRIPT",
    "BulkBatch",
    "encode_batch",
    "run_get_and_put_if_absent",
    "decode_results",
]
