"""Store-level behavior of ``RedisBulkCacheClient`` over the in-memory Redis stand-in.

Each test checks what a caller observes across several calls: values
round-trip, conditional inserts never overwrite, TTLs expire, and every
borrowed connection goes back to the pool.
"""

from __future__ import annotations

import pytest

from bulkcache.cache import CacheClientConfig, RedisBulkCacheClient
from bulkcache.errors import DeserializationError
from bulkcache.serialization import JsonDeserializer, JsonSerializer, StringSerializer


class _LowercaseKeys(StringSerializer):
    def serialize(self, value):
        return super().serialize(value.lower() if value is not None else None)


class TestSingleKeyRoundTrip:
    def test_put_then_get(self, client, codecs):
        ser, de = codecs
        client.put("user:1", "alice", ser, ser)
        assert client.get("user:1", ser, de) == "alice"

    def test_put_overwrites(self, client, codecs):
        ser, de = codecs
        client.put("k", "v1", ser, ser)
        client.put("k", "v2", ser, ser)
        assert client.get("k", ser, de) == "v2"

    def test_missing_key(self, client, codecs):
        ser, de = codecs
        assert client.get("nope", ser, de) is None
        assert client.contains_key("nope", ser) is False

    def test_put_if_absent_never_overwrites(self, client, codecs):
        ser, de = codecs
        assert client.put_if_absent("k", "v1", ser, ser) is True
        assert client.put_if_absent("k", "v2", ser, ser) is False
        assert client.get("k", ser, de) == "v1"

    def test_json_values(self, client):
        ser = StringSerializer()
        client.put("order:1", {"id": 1, "items": [1, 2]}, ser, JsonSerializer())
        assert client.get("order:1", ser, JsonDeserializer()) == {"id": 1, "items": [1, 2]}


class TestRemove:
    def test_remove_existing_keys(self, client, codecs):
        ser, _ = codecs
        client.put("k1", "a", ser, ser)
        client.put("k2", "b", ser, ser)

        assert client.remove(["k1", "k2"], ser) == 2
        assert client.contains_key("k1", ser) is False
        assert client.contains_key("k2", ser) is False
        assert client.remove(["k1", "k2"], ser) == 0

    def test_remove_counts_only_existing(self, client, codecs):
        ser, _ = codecs
        client.put("k1", "a", ser, ser)
        assert client.remove(["k1", "missing"], ser) == 1


class TestBulkGetAndPutIfAbsent:
    def test_new_keys_all_inserted(self, client, codecs):
        ser, de = codecs
        values = {f"k{i}": f"v{i}" for i in range(5)}

        result = client.get_and_put_if_absent(values, ser, ser, de)

        assert result == {key: None for key in values}
        for key, value in values.items():
            assert client.get(key, ser, de) == value

    def test_existing_key_reports_old_value_and_keeps_it(self, client, codecs):
        ser, de = codecs
        client.put("k", "old", ser, ser)

        result = client.get_and_put_if_absent({"k": "new", "fresh": "x"}, ser, ser, de)

        assert result == {"k": "old", "fresh": None}
        assert client.get("k", ser, de) == "old"
        assert client.get("fresh", ser, de) == "x"

    def test_result_in_submission_order(self, client, codecs):
        ser, de = codecs
        result = client.get_and_put_if_absent({"z": "1", "a": "2", "m": "3"}, ser, ser, de)
        assert list(result) == ["z", "a", "m"]

    def test_duplicate_serialized_keys_first_wins(self, client, codecs):
        _, de = codecs
        ser = StringSerializer()
        keys = _LowercaseKeys()

        result = client.get_and_put_if_absent({"A": "first", "a": "second"}, keys, ser, de)

        assert result == {"A": None, "a": "first"}
        assert client.get("a", keys, de) == "first"

    def test_second_batch_sees_first(self, client, codecs):
        ser, de = codecs
        client.get_and_put_if_absent({"k": "v1"}, ser, ser, de)
        assert client.get_and_put_if_absent({"k": "v2"}, ser, ser, de) == {"k": "v1"}

    def test_single_script_invocation(self, client, codecs, fake_pool):
        ser, de = codecs
        client.get_and_put_if_absent({"a": "1", "b": "2", "c": "3"}, ser, ser, de)
        assert fake_pool.store.commands == ["EVALSHA"]

    def test_bulk_inserts_carry_no_ttl(self, fake_pool, codecs):
        ser, de = codecs
        client = RedisBulkCacheClient(CacheClientConfig(fake_pool, ttl_seconds=2))
        client.get_and_put_if_absent({"k": "v"}, ser, ser, de)
        assert fake_pool.store.ttl_of(b"k") is None

    def test_malformed_previous_value(self, client):
        ser = StringSerializer()
        client.put("k", "not json", ser, ser)
        with pytest.raises(DeserializationError):
            client.get_and_put_if_absent({"k": {"a": 1}}, ser, JsonSerializer(), JsonDeserializer())


class TestEmptyInput:
    def test_no_store_interaction(self, client, codecs, fake_pool):
        ser, de = codecs
        assert client.get_and_put_if_absent({}, ser, ser, de) == {}
        assert client.remove([], ser) == 0
        assert fake_pool.acquired == 0
        assert fake_pool.store.commands == []


class TestExpiration:
    @pytest.fixture
    def ttl_client(self, fake_pool):
        return RedisBulkCacheClient(CacheClientConfig(fake_pool, ttl_seconds=2))

    def test_put_expires(self, ttl_client, fake_pool, codecs):
        ser, de = codecs
        ttl_client.put("k", "v", ser, ser)
        fake_pool.store.advance(1)
        assert ttl_client.get("k", ser, de) == "v"
        fake_pool.store.advance(1.5)
        assert ttl_client.get("k", ser, de) is None

    def test_put_if_absent_expires(self, ttl_client, fake_pool, codecs):
        ser, de = codecs
        assert ttl_client.put_if_absent("k", "v", ser, ser) is True
        assert fake_pool.store.ttl_of(b"k") == 2
        fake_pool.store.advance(3)
        assert ttl_client.contains_key("k", ser) is False
        assert ttl_client.put_if_absent("k", "v2", ser, ser) is True

    def test_put_if_absent_two_commands(self, ttl_client, fake_pool, codecs):
        ser, _ = codecs
        ttl_client.put_if_absent("k", "v", ser, ser)
        assert fake_pool.store.commands == ["SETNX", "EXPIRE"]

    def test_atomic_put_if_absent_one_command(self, fake_pool, codecs):
        ser, _ = codecs
        client = RedisBulkCacheClient(
            CacheClientConfig(fake_pool, ttl_seconds=2, atomic_put_if_absent=True)
        )

        assert client.put_if_absent("k", "v", ser, ser) is True
        assert client.put_if_absent("k", "v", ser, ser) is False
        assert fake_pool.store.commands == ["SET", "SET"]
        assert fake_pool.store.ttl_of(b"k") == 2

    def test_zero_ttl_never_expires(self, client, fake_pool, codecs):
        ser, de = codecs
        client.put("k", "v", ser, ser)
        fake_pool.store.advance(10**6)
        assert client.get("k", ser, de) == "v"


class TestConnectionRelease:
    def test_every_operation_releases(self, client, codecs, fake_pool):
        ser, de = codecs
        client.put("a", "1", ser, ser)
        client.get("a", ser, de)
        client.contains_key("a", ser)
        client.put_if_absent("b", "2", ser, ser)
        client.get_and_put_if_absent({"c": "3"}, ser, ser, de)
        client.remove(["a", "b", "c"], ser)

        assert fake_pool.acquired == 6
        assert fake_pool.in_use == 0

    def test_release_after_failure(self, client, fake_pool):
        ser = StringSerializer()
        client.put("k", "not json", ser, ser)
        with pytest.raises(DeserializationError):
            client.get("k", ser, JsonDeserializer())
        assert fake_pool.in_use == 0
