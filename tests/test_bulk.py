"""Tests for bulkcache.bulk: batch encoding, script execution and result decoding."""

from unittest.mock import MagicMock

import pytest

from bulkcache.bulk import (
    GET_AND_PUT_IF_ABSENT_SCRIPT,
    BulkBatch,
    decode_results,
    encode_batch,
    run_get_and_put_if_absent,
)
from bulkcache.errors import DeserializationError, PermanentDataAccessError
from bulkcache.serialization import JsonDeserializer, StringDeserializer, StringSerializer


class TestEncodeBatch:
    def test_keeps_submission_order(self):
        ser = StringSerializer()
        batch = encode_batch({"b": "2", "a": "1", "c": "3"}, ser, ser)

        assert batch.originals == ["b", "a", "c"]
        assert batch.keys == [b"b", b"a", b"c"]
        assert batch.values == [b"2", b"1", b"3"]
        assert len(batch) == 3

    def test_none_value_serializes_to_empty(self):
        ser = StringSerializer()
        batch = encode_batch({"k": None}, ser, ser)
        assert batch.values == [b""]


class TestRunScript:
    def test_registers_and_calls_script(self):
        conn = MagicMock()
        script = conn.register_script.return_value
        script.return_value = [None, b"old"]
        batch = BulkBatch(originals=["a", "b"], keys=[b"a", b"b"], values=[b"1", b"2"])

        result = run_get_and_put_if_absent(conn, batch)

        conn.register_script.assert_called_once_with(GET_AND_PUT_IF_ABSENT_SCRIPT)
        script.assert_called_once_with(keys=[b"a", b"b"], args=[b"1", b"2"])
        assert result == [None, b"old"]

    def test_none_reply_is_empty_list(self):
        conn = MagicMock()
        conn.register_script.return_value.return_value = None
        batch = BulkBatch(originals=[], keys=[], values=[])
        assert run_get_and_put_if_absent(conn, batch) == []

    def test_script_inserts_only_absent_keys(self):
        # The loop must GET first and SET only on a miss
        assert 'redis.call("GET", KEYS[i])' in GET_AND_PUT_IF_ABSENT_SCRIPT
        assert 'redis.call("SET", KEYS[i], ARGV[i])' in GET_AND_PUT_IF_ABSENT_SCRIPT
        assert "if (not currentValue)" in GET_AND_PUT_IF_ABSENT_SCRIPT


class TestDecodeResults:
    def test_pairs_previous_values_with_original_keys(self):
        batch = BulkBatch(originals=["a", "b"], keys=[b"a", b"b"], values=[b"1", b"2"])
        result = decode_results(batch, [None, b"old"], StringDeserializer())
        assert result == {"a": None, "b": "old"}
        assert list(result) == ["a", "b"]

    def test_length_mismatch_is_permanent(self):
        batch = BulkBatch(originals=["a", "b"], keys=[b"a", b"b"], values=[b"1", b"2"])
        with pytest.raises(PermanentDataAccessError) as exc_info:
            decode_results(batch, [None], StringDeserializer())
        assert exc_info.value.context.key_count == 2

    def test_malformed_previous_value(self):
        batch = BulkBatch(originals=["a"], keys=[b"a"], values=[b"{}"])
        with pytest.raises(DeserializationError) as exc_info:
            decode_results(batch, [b"{oops"], JsonDeserializer())
        assert exc_info.value.context.key == "'a'"
