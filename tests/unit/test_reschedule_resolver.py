"""Testes da resolução de pedidos de reagendamento."""

from __future__ import annotations

from datetime import UTC, date, datetime, time, timedelta

import pytest

from skiddly.application.reschedule import (
    parse_date_string,
    parse_time_string,
    resolve_reschedule_time,
    resolve_timezone,
    timezone_from_phone,
)
from skiddly.domain.analysis import StructuredCallData
from tests.helpers.factories import BASE_TIME

NY = "America/New_York"


def _resolve(phone: str | None = None, **fields: object) -> datetime | None:
    return resolve_reschedule_time(
        StructuredCallData(**fields),
        now=BASE_TIME,
        default_timezone=NY,
        customer_phone=phone,
    )


class TestParsers:
    """Testes dos parsers de hora e data."""

    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("3:00 PM", time(15, 0)),
            ("3 pm", time(15, 0)),
            ("12 am", time(0, 0)),
            ("9:30 a.m.", time(9, 30)),
            ("15:45", time(15, 45)),
        ],
    )
    def test_parse_time(self, text: str, expected: time) -> None:
        assert parse_time_string(text) == expected

    @pytest.mark.parametrize("text", ["13 pm", "25:00", "noonish", "", None])
    def test_parse_time_invalid(self, text: str | None) -> None:
        assert parse_time_string(text) is None

    def test_parse_date(self) -> None:
        today = date(2024, 1, 10)  # quarta

        assert parse_date_string("tomorrow", today) == date(2024, 1, 11)
        assert parse_date_string("Friday", today) == date(2024, 1, 12)
        assert parse_date_string("wednesday", today) == date(2024, 1, 17)
        assert parse_date_string("in 3 days", today) == date(2024, 1, 13)
        assert parse_date_string("2024-02-01", today) == date(2024, 2, 1)
        assert parse_date_string("someday", today) is None


class TestTimezones:
    def test_abbreviation(self) -> None:
        assert resolve_timezone("pst", NY) == "America/Los_Angeles"

    def test_iana_name(self) -> None:
        assert resolve_timezone("Europe/Paris", NY) == "Europe/Paris"

    def test_unknown_falls_back_to_phone_then_default(self) -> None:
        assert resolve_timezone("my time", "UTC", "+919876543210") == "Asia/Kolkata"
        assert resolve_timezone("Invalid/Zone", NY) == NY

    def test_timezone_from_phone(self) -> None:
        assert timezone_from_phone("+1 212 555 0123") == NY
        assert timezone_from_phone("+4420712345678") is None
        assert timezone_from_phone(None) is None


class TestResolveRescheduleTime:
    """Testes para resolve_reschedule_time."""

    def test_no_request_returns_none(self) -> None:
        assert _resolve() is None

    def test_relative_hours(self) -> None:
        assert _resolve(relative_time="in 2 hours") == BASE_TIME + timedelta(hours=2)

    def test_relative_half_hour(self) -> None:
        assert _resolve(relative_time="in half an hour") == BASE_TIME + timedelta(minutes=30)

    def test_later_today(self) -> None:
        assert _resolve(relative_time="later today") == BASE_TIME + timedelta(hours=2)

    def test_tomorrow_morning_in_tenant_timezone(self) -> None:
        assert _resolve(relative_time="tomorrow morning") == datetime(
            2024, 1, 11, 14, 0, tzinfo=UTC
        )

    def test_explicit_date_and_time(self) -> None:
        resolved = _resolve(
            reschedule_requested=True,
            reschedule_time="3:00 PM",
            reschedule_date="tomorrow",
            reschedule_timezone="EST",
        )
        assert resolved == datetime(2024, 1, 11, 20, 0, tzinfo=UTC)

    def test_time_only_means_today(self) -> None:
        resolved = _resolve(reschedule_time="15:00", reschedule_timezone="PST")
        assert resolved == datetime(2024, 1, 10, 23, 0, tzinfo=UTC)

    def test_date_only_means_local_midnight(self) -> None:
        resolved = _resolve(reschedule_requested=True, reschedule_date="friday")
        assert resolved == datetime(2024, 1, 12, 5, 0, tzinfo=UTC)

    def test_phone_timezone_used_without_hint(self) -> None:
        resolved = _resolve(
            phone="+919876543210",
            reschedule_requested=True,
            reschedule_time="10 am",
            reschedule_date="tomorrow",
        )
        assert resolved == datetime(2024, 1, 11, 4, 30, tzinfo=UTC)

    def test_past_time_returns_none(self) -> None:
        assert _resolve(reschedule_time="8:00 AM", reschedule_timezone="EST") is None

    def test_unparseable_returns_none(self) -> None:
        assert _resolve(reschedule_requested=True, reschedule_time="noonish") is None
