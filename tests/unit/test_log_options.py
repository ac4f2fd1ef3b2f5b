"""Unit tests for workloadlens.logs.options."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from workloadlens.errors import InvalidInputError
from workloadlens.logs.options import LogOptions, build_log_options, parse_duration


class TestParseDuration:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("2s", timedelta(seconds=2)),
            ("1h30m", timedelta(hours=1, minutes=30)),
            ("500ms", timedelta(milliseconds=500)),
            ("1.5m", timedelta(seconds=90)),
            ("0", timedelta(0)),
            ("10m0s", timedelta(minutes=10)),
        ],
    )
    def test_valid(self, text: str, expected: timedelta) -> None:
        assert parse_duration(text) == expected

    @pytest.mark.parametrize("text", ["", "10", "-5s", "+5s", "5 s", "5d", "abc", "s"])
    def test_invalid(self, text: str) -> None:
        with pytest.raises(InvalidInputError):
            parse_duration(text)


class TestBuildLogOptions:
    def test_defaults_are_unbounded(self) -> None:
        options = build_log_options()
        assert options == LogOptions()
        assert options.is_bounded is False

    def test_full_request(self) -> None:
        options = build_log_options(container="istio-proxy", duration="2s", since_time="1700000000", tail_lines="5")
        assert options.container == "istio-proxy"
        assert options.duration == timedelta(seconds=2)
        assert options.since_time == datetime.fromtimestamp(1700000000, tz=UTC)
        assert options.tail_lines == 5
        assert options.is_bounded is True

    def test_integer_inputs_accepted(self) -> None:
        options = build_log_options(since_time=0, tail_lines=3)
        assert options.since_time == datetime(1970, 1, 1, tzinfo=UTC)
        assert options.tail_lines == 3

    @pytest.mark.parametrize("tail", ["0", "-3", 0, -1])
    def test_non_positive_tail_ignored(self, tail: str | int) -> None:
        assert build_log_options(tail_lines=tail).tail_lines is None

    def test_empty_strings_mean_absent(self) -> None:
        options = build_log_options(container="", duration="", since_time="", tail_lines="")
        assert options == LogOptions()

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"duration": "soon"},
            {"since_time": "yesterday"},
            {"since_time": "1.5"},
            {"tail_lines": "ten"},
        ],
    )
    def test_invalid_values_rejected(self, kwargs: dict[str, str]) -> None:
        with pytest.raises(InvalidInputError):
            build_log_options(**kwargs)
