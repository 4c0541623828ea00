"""Tests for natural-language due date resolution."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from src.events import RecordingEventSink
from src.extraction.dates import isoformat_utc, resolve_date

# 2024-01-01 is a Monday.
MONDAY = datetime(2024, 1, 1, 0, 0, tzinfo=UTC)
FRIDAY = datetime(2024, 1, 5, 15, 0, tzinfo=UTC)


def _iso(phrase: str, reference: datetime = MONDAY, tz: str = "UTC") -> str | None:
    resolved = resolve_date(phrase, reference, tz, RecordingEventSink())
    return isoformat_utc(resolved) if resolved else None


class TestRelativeWeekdays:
    def test_next_friday_from_monday(self) -> None:
        assert _iso("next Friday") == "2024-01-05T00:00:00Z"

    def test_bare_weekday_resolves_forward(self) -> None:
        assert _iso("Friday") == "2024-01-05T00:00:00Z"
        assert _iso("by Wednesday") == "2024-01-03T00:00:00Z"

    def test_bare_weekday_on_same_day_is_today(self) -> None:
        assert _iso("Friday", FRIDAY) == "2024-01-05T00:00:00Z"

    def test_next_weekday_on_same_day_is_a_week_later(self) -> None:
        assert _iso("next Friday", FRIDAY) == "2024-01-12T00:00:00Z"

    def test_weekday_never_in_the_past(self) -> None:
        assert _iso("Monday", FRIDAY) == "2024-01-08T00:00:00Z"

    def test_abbreviation(self) -> None:
        assert _iso("thu") == "2024-01-04T00:00:00Z"


class TestRelativePhrases:
    @pytest.mark.parametrize(
        "phrase,expected",
        [
            ("today", "2024-01-01T00:00:00Z"),
            ("EOD", "2024-01-01T00:00:00Z"),
            ("tomorrow", "2024-01-02T00:00:00Z"),
            ("the day after tomorrow", "2024-01-03T00:00:00Z"),
            ("in 3 days", "2024-01-04T00:00:00Z"),
            ("in two weeks", "2024-01-15T00:00:00Z"),
            ("2 months from now", "2024-03-01T00:00:00Z"),
            ("next week", "2024-01-08T00:00:00Z"),
            ("end of week", "2024-01-05T00:00:00Z"),
            ("end of the month", "2024-01-31T00:00:00Z"),
            ("EOQ", "2024-03-31T00:00:00Z"),
            ("end of year", "2024-12-31T00:00:00Z"),
            ("next month", "2024-02-01T00:00:00Z"),
        ],
    )
    def test_phrases(self, phrase: str, expected: str) -> None:
        assert _iso(phrase) == expected

    def test_time_of_day(self) -> None:
        assert _iso("tomorrow at 3pm") == "2024-01-02T15:00:00Z"
        assert _iso("Friday 09:30") == "2024-01-05T09:30:00Z"


class TestAbsoluteDates:
    def test_month_day_without_year_this_year(self) -> None:
        assert _iso("Feb 10") == "2024-02-10T00:00:00Z"

    def test_month_day_already_passed_rolls_to_next_year(self) -> None:
        reference = datetime(2024, 3, 15, tzinfo=UTC)
        assert _iso("by Feb 10", reference) == "2025-02-10T00:00:00Z"

    def test_explicit_year_kept(self) -> None:
        assert _iso("March 3, 2023") == "2023-03-03T00:00:00Z"

    def test_iso_date(self) -> None:
        assert _iso("2024-06-30") == "2024-06-30T00:00:00Z"


class TestTimezones:
    def test_local_midnight_converted_to_utc(self) -> None:
        # Midnight in New York (EST, UTC-5) on Friday 5 January.
        assert _iso("Friday", MONDAY, "America/New_York") == "2024-01-05T05:00:00Z"

    def test_reference_interpreted_in_timezone(self) -> None:
        # 2024-01-01T03:00Z is still Sunday 31 December in Los Angeles.
        reference = datetime(2024, 1, 1, 3, 0, tzinfo=UTC)
        assert _iso("tomorrow", reference, "America/Los_Angeles") == "2024-01-01T08:00:00Z"

    def test_invalid_timezone_falls_back_to_utc(self) -> None:
        sink = RecordingEventSink()
        resolved = resolve_date("next Friday", MONDAY, "Mars/Olympus_Mons", sink)
        assert resolved == datetime(2024, 1, 5, tzinfo=UTC)
        assert "timezone.invalid" in sink.names()

    def test_naive_reference_treated_as_utc(self) -> None:
        assert _iso("tomorrow", datetime(2024, 1, 1)) == "2024-01-02T00:00:00Z"


class TestUnresolvable:
    @pytest.mark.parametrize("phrase", ["not a date", "", "   ", "sometime soon", "ASAP"])
    def test_returns_none_without_raising(self, phrase: str) -> None:
        sink = RecordingEventSink()
        assert resolve_date(phrase, MONDAY, "UTC", sink) is None
        assert sink.names() == ["date.unresolved"]

    def test_result_is_aware_utc(self) -> None:
        resolved = resolve_date("next Friday", MONDAY, "UTC", RecordingEventSink())
        assert resolved is not None
        assert resolved.utcoffset().total_seconds() == 0
