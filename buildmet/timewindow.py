"""Resolve symbolic dashboard ranges into concrete reporting windows."""

from datetime import date, datetime, time, timedelta
from typing import Optional, Union

from dateutil.relativedelta import relativedelta

from .models import TimeWindow

DateLike = Union[date, str, None]

RANGE_DAY = "day"
RANGE_WEEK = "week"
RANGE_MONTH = "month"
RANGE_YEAR = "year"
RANGE_CUSTOM = "custom"

RANGE_TOKENS = (RANGE_DAY, RANGE_WEEK, RANGE_MONTH, RANGE_YEAR, RANGE_CUSTOM)

_LOOKBACK = {
    RANGE_WEEK: relativedelta(days=7),
    RANGE_MONTH: relativedelta(months=1),
    RANGE_YEAR: relativedelta(years=1),
}

_END_OF_DAY = time(23, 59, 59, 999000)


class InvalidRangeError(ValueError):
    """Raised when a custom range is missing a bound or is inverted."""


def resolve_time_window(
    range_token: Optional[str],
    now: datetime,
    custom_from: DateLike = None,
    custom_to: DateLike = None,
) -> TimeWindow:
    """
    Turn a range token into an inclusive ``[start, end]`` window.

    ``day`` starts at midnight of ``now``'s calendar day. ``week``, ``month``
    and ``year`` look back from ``now`` and truncate to midnight. ``custom``
    spans ``custom_from`` 00:00:00.000 to ``custom_to`` 23:59:59.999 in the
    timezone of ``now``.

    Unrecognized tokens (including ``None``) resolve like ``month``.
    """
    token = range_token or RANGE_MONTH

    if token == RANGE_CUSTOM:
        return _resolve_custom(now, custom_from, custom_to)

    if token == RANGE_DAY:
        start = _start_of_day(now)
    else:
        lookback = _LOOKBACK.get(token, _LOOKBACK[RANGE_MONTH])
        start = _start_of_day(now - lookback)

    return TimeWindow(range_token=token, start=start, end=now)


def _resolve_custom(now: datetime, custom_from: DateLike, custom_to: DateLike) -> TimeWindow:
    if custom_from is None or custom_from == "" or custom_to is None or custom_to == "":
        raise InvalidRangeError("custom range requires both 'from' and 'to' dates")

    from_date = _coerce_date(custom_from, "from")
    to_date = _coerce_date(custom_to, "to")
    if from_date > to_date:
        raise InvalidRangeError(f"custom range is inverted: {from_date} > {to_date}")

    start = datetime.combine(from_date, time.min, tzinfo=now.tzinfo)
    end = datetime.combine(to_date, _END_OF_DAY, tzinfo=now.tzinfo)
    return TimeWindow(range_token=RANGE_CUSTOM, start=start, end=end)


def _coerce_date(value: DateLike, label: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError as exc:
        raise InvalidRangeError(f"invalid '{label}' date: {value!r}") from exc


def _start_of_day(instant: datetime) -> datetime:
    return instant.replace(hour=0, minute=0, second=0, microsecond=0)


def periods_in_window(window: TimeWindow, period_days: int) -> int:
    """Number of whole periods covering the window, rounded up, never below 1."""
    span = window.end - window.start
    period = timedelta(days=period_days)
    return max(1, -(-span // period))
