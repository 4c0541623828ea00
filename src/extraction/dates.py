"""Resolve natural-language due dates ("next Friday", "Feb 10") to UTC timestamps.

Relative phrases are always resolved forward from the reference instant, in
the run's timezone, at day granularity: the result is local midnight of the
resolved day unless the phrase carries an explicit time of day.
"""

from __future__ import annotations

import logging
import re
from datetime import UTC, date, datetime, time, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

from src.events import EventSink, default_sink

WEEKDAYS: dict[str, int] = {
    "monday": 0, "mon": 0,
    "tuesday": 1, "tue": 1, "tues": 1,
    "wednesday": 2, "wed": 2,
    "thursday": 3, "thu": 3, "thur": 3, "thurs": 3,
    "friday": 4, "fri": 4,
    "saturday": 5, "sat": 5,
    "sunday": 6, "sun": 6,
}

_NUMBER_WORDS: dict[str, int] = {
    "a": 1, "an": 1, "one": 1, "two": 2, "three": 3, "four": 4, "five": 5,
    "six": 6, "seven": 7, "eight": 8, "nine": 9, "ten": 10,
}

_LEADING_FILLER_RE = re.compile(
    r"^(?:by|on|before|due|until|till|no later than|not later than|for|around|at)\s+",
    re.IGNORECASE,
)
_TIME_OF_DAY_RE = re.compile(
    r"\s*(?:at\s+)?(?:(?P<h12>\d{1,2})(?::(?P<m12>\d{2}))?\s*(?P<ampm>am|pm)"
    r"|(?P<h24>\d{1,2}):(?P<m24>\d{2})|(?P<word>noon|midnight))\s*$",
    re.IGNORECASE,
)
_WEEKDAY_RE = re.compile(
    r"^(?:(?P<mod>this|next|coming|this coming)\s+)?(?P<day>" + "|".join(WEEKDAYS) + r")$"
)
_OFFSET_RE = re.compile(
    r"^(?:in\s+)?(?P<n>\d+|" + "|".join(_NUMBER_WORDS) + r")\s+"
    r"(?P<unit>day|week|month|year)s?(?:\s+from\s+(?:now|today))?$"
)
_END_OF_RE = re.compile(r"^end of (?:the )?(?P<unit>day|week|month|quarter|year)$")

_ABBREVIATIONS: dict[str, str] = {
    "eod": "end of day",
    "cob": "end of day",
    "close of business": "end of day",
    "eow": "end of week",
    "eom": "end of month",
    "eoq": "end of quarter",
    "eoy": "end of year",
}

# Two defaults that differ in year, month and day (both leap years) reveal
# which components the phrase left unspecified.
_PROBE_DEFAULTS = (datetime(2000, 1, 1), datetime(2004, 3, 2))


def isoformat_utc(value: datetime) -> str:
    """Render an aware datetime as ISO-8601 UTC with a ``Z`` suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


def load_timezone(name: str, events: EventSink | None = None) -> ZoneInfo:
    """Return the IANA zone *name*, falling back to UTC when it is unknown."""
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        (events or default_sink()).emit("timezone.invalid", level=logging.WARNING, timezone=name)
        return ZoneInfo("UTC")


def resolve_date(
    phrase: str,
    reference: datetime,
    timezone: str,
    events: EventSink | None = None,
) -> datetime | None:
    """Resolve *phrase* to an aware UTC datetime, or ``None`` when unparseable.

    Never raises: a parse failure is reported as a ``date.unresolved`` event.

    Args:
        phrase: Due date as written, e.g. ``"next Friday"`` or ``"by Feb 10"``.
        reference: Instant relative phrases are resolved from (naive = UTC).
        timezone: IANA timezone the phrase is interpreted in.
        events: Sink for non-fatal diagnostics.
    """
    sink = events or default_sink()
    try:
        tz = load_timezone(timezone, sink)
        if reference.tzinfo is None:
            reference = reference.replace(tzinfo=UTC)
        local_reference = reference.astimezone(tz)

        text = _clean_phrase(phrase)
        if not text:
            sink.emit("date.unresolved", level=logging.WARNING, phrase=phrase, reason="empty")
            return None

        resolved = _resolve_relative(text, local_reference, tz)
        if resolved is None:
            resolved = _resolve_absolute(text, local_reference, tz)
        if resolved is None:
            sink.emit("date.unresolved", level=logging.WARNING, phrase=phrase, reason="unrecognized")
            return None
        return resolved.astimezone(UTC)
    except Exception as exc:
        sink.emit("date.unresolved", level=logging.WARNING, phrase=phrase, reason=str(exc))
        return None


def _clean_phrase(phrase: str) -> str:
    text = " ".join(phrase.lower().split()).strip(" .,;:!?()")
    previous = None
    while text != previous:
        previous = text
        text = _LEADING_FILLER_RE.sub("", text).strip()
        if text.startswith("the ") and not text.startswith("the day after"):
            text = text[4:]
    return _ABBREVIATIONS.get(text, text)


def _split_time_of_day(text: str) -> tuple[str, time | None]:
    match = _TIME_OF_DAY_RE.search(text)
    if not match or match.start() == 0:
        return text, None

    if match.group("word"):
        clock = time(12) if match.group("word").lower() == "noon" else time(0)
    elif match.group("h24"):
        hour, minute = int(match.group("h24")), int(match.group("m24"))
        if hour > 23 or minute > 59:
            return text, None
        clock = time(hour, minute)
    else:
        hour = int(match.group("h12"))
        minute = int(match.group("m12") or 0)
        if not 1 <= hour <= 12 or minute > 59:
            return text, None
        if match.group("ampm").lower() == "pm" and hour != 12:
            hour += 12
        elif match.group("ampm").lower() == "am" and hour == 12:
            hour = 0
        clock = time(hour, minute)

    return text[: match.start()].strip(), clock


def _resolve_relative(text: str, reference: datetime, tz: ZoneInfo) -> datetime | None:
    body, clock = _split_time_of_day(text)
    body = _ABBREVIATIONS.get(body, body)
    day = _relative_day(body, reference.date())
    if day is None:
        return None
    return datetime.combine(day, clock or time(0), tzinfo=tz)


def _relative_day(text: str, today: date) -> date | None:
    if text in ("today", "tonight", "end of day", "end of today", "this evening"):
        return today
    if text in ("tomorrow", "tmrw", "tmr", "tomorrow morning", "tomorrow evening"):
        return today + timedelta(days=1)
    if text in ("day after tomorrow", "the day after tomorrow"):
        return today + timedelta(days=2)

    match = _WEEKDAY_RE.match(text)
    if match:
        target = WEEKDAYS[match.group("day")]
        days_ahead = (target - today.weekday()) % 7
        if match.group("mod") == "next" and days_ahead == 0:
            days_ahead = 7
        return today + timedelta(days=days_ahead)

    match = _OFFSET_RE.match(text)
    if match:
        raw = match.group("n")
        amount = int(raw) if raw.isdigit() else _NUMBER_WORDS[raw]
        unit = match.group("unit")
        return today + relativedelta(**{f"{unit}s": amount})

    if text == "next week":
        return today + timedelta(days=7 - today.weekday())
    if text == "next month":
        return today.replace(day=1) + relativedelta(months=1)
    if text == "next year":
        return date(today.year + 1, 1, 1)

    match = _END_OF_RE.match(text)
    if match:
        return _end_of(match.group("unit"), today)
    if text in ("this week", "later this week"):
        return _end_of("week", today)

    return None


def _end_of(unit: str, today: date) -> date:
    if unit == "day":
        return today
    if unit == "week":
        # Business week: Friday, or next Friday once the weekend has started.
        return today + timedelta(days=(4 - today.weekday()) % 7)
    if unit == "month":
        return today.replace(day=1) + relativedelta(months=1, days=-1)
    if unit == "quarter":
        quarter_end_month = ((today.month - 1) // 3 + 1) * 3
        return date(today.year, quarter_end_month, 1) + relativedelta(months=1, days=-1)
    return date(today.year, 12, 31)


def _resolve_absolute(text: str, reference: datetime, tz: ZoneInfo) -> datetime | None:
    try:
        first = date_parser.parse(text, default=_PROBE_DEFAULTS[0], ignoretz=True)
        second = date_parser.parse(text, default=_PROBE_DEFAULTS[1], ignoretz=True)
    except (date_parser.ParserError, ValueError, OverflowError):
        return None

    year_missing = first.year != second.year
    month_missing = first.month != second.month
    day_missing = first.day != second.day
    if year_missing and month_missing and day_missing:
        # Only a time of day; not a date.
        return None

    today = reference.date()
    year = today.year if year_missing else first.year
    month = today.month if month_missing else first.month
    if day_missing:
        day = 1 if not month_missing else today.day
    else:
        day = first.day

    resolved = _safe_date(year, month, day)
    if resolved < today:
        if not month_missing and year_missing:
            resolved = _safe_date(year + 1, month, day)
        elif month_missing and year_missing:
            resolved = _safe_date(year, month, day) + relativedelta(months=1)

    return datetime.combine(resolved, first.time(), tzinfo=tz)


def _safe_date(year: int, month: int, day: int) -> date:
    """Build a date, rolling forward past days the month does not have (Feb 29)."""
    while True:
        try:
            return date(year, month, day)
        except ValueError:
            if month == 2 and day == 29:
                year += 1
            else:
                return date(year, month, 1) + relativedelta(months=1, days=-1)
