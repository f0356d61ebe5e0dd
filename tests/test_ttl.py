"""Tests for bulkcache.ttl: time periods and TTL canonicalization."""

from datetime import timedelta

import pytest

from bulkcache.errors import InvalidConfigError
from bulkcache.ttl import NO_EXPIRATION, TtlPolicy, parse_time_period


class TestParseTimePeriod:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("0 secs", 0),
            ("90 seconds", 90),
            ("5 mins", 300),
            ("2 hours", 7200),
            ("1 day", 86400),
            ("1 week", 604800),
            ("1500 ms", 1),
            ("10s", 10),
            ("  3 MIN ", 180),
            ("1.5 min", 90),
        ],
    )
    def test_valid(self, text, expected):
        assert parse_time_period(text) == expected

    @pytest.mark.parametrize("text", ["", "five mins", "5", "5 fortnights", "-1 secs"])
    def test_invalid(self, text):
        with pytest.raises(InvalidConfigError):
            parse_time_period(text)


class TestTtlPolicy:
    def test_zero_means_no_expiration(self):
        policy = TtlPolicy.from_value(0)
        assert policy.seconds == NO_EXPIRATION
        assert policy.expires is False

    def test_none_means_no_expiration(self):
        assert TtlPolicy.from_value(None) == TtlPolicy()

    def test_positive_seconds(self):
        policy = TtlPolicy.from_value(60)
        assert policy.seconds == 60
        assert policy.expires is True

    def test_timedelta(self):
        assert TtlPolicy.from_value(timedelta(minutes=2)).seconds == 120
        assert TtlPolicy.from_value(timedelta(0)).expires is False

    def test_strings(self):
        assert TtlPolicy.from_value("30").seconds == 30
        assert TtlPolicy.from_value("0 secs").seconds == NO_EXPIRATION
        assert TtlPolicy.from_value("5 mins").seconds == 300

    def test_fractional_seconds_truncate(self):
        assert TtlPolicy.from_value(2.9).seconds == 2

    def test_negative_rejected(self):
        with pytest.raises(InvalidConfigError):
            TtlPolicy.from_value(-1)

    def test_bool_rejected(self):
        with pytest.raises(InvalidConfigError):
            TtlPolicy.from_value(True)

    def test_str(self):
        assert str(TtlPolicy.from_value(60)) == "60s"
        assert str(TtlPolicy.from_value(0)) == "no expiration"


class TestSubSecondTtl:
    @pytest.mark.parametrize(
        "value",
        [0.5, 0.001, timedelta(milliseconds=500), timedelta(microseconds=1), "500 ms"],
    )
    def test_positive_sub_second_rounds_up_to_one(self, value):
        policy = TtlPolicy.from_value(value)
        assert policy.expires is True
        assert policy.seconds == 1

    @pytest.mark.parametrize("value", [-0.5, timedelta(milliseconds=-500), -1e-9])
    def test_negative_sub_second_rejected(self, value):
        with pytest.raises(InvalidConfigError):
            TtlPolicy.from_value(value)

    @pytest.mark.parametrize("value", [0, 0.0, timedelta(0), "0", "0 ms"])
    def test_only_exact_zero_never_expires(self, value):
        assert TtlPolicy.from_value(value).seconds == NO_EXPIRATION

    def test_period_under_one_second(self):
        assert parse_time_period("500 ms") == 1
        assert parse_time_period("1 ns") == 1
