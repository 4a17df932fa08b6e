"""
Time Window Resolution

Turns the three date dialects accepted by the analytics endpoints into a
concrete ``[start, end]`` range of naive local datetimes:

1. ``startDate`` (and optionally ``endDate``) as calendar dates or ISO
   datetimes; ``end`` defaults to now.
2. ``startDate`` as a positive integer: that many days before now.
3. ``period == "yesterday"``: the whole of yesterday.
4. ``period`` as an integer day count (default 30) ending now, or ending at
   ``endDate`` when one is given.

Unparseable input never raises; it falls back to the default trailing window.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
import re
from typing import Dict, Optional

import structlog

logger = structlog.get_logger(__name__)

DEFAULT_PERIOD_DAYS = 30
YESTERDAY = "yesterday"

_INTEGER = re.compile(r"^[+-]?\d+$")
_END_OF_DAY = time(23, 59, 59, 999000)


@dataclass(frozen=True)
class TimeWindow:
    """Inclusive instant range"""
    start: datetime
    end: datetime

    @property
    def days(self) -> float:
        return (self.end - self.start).total_seconds() / 86400

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end

    def to_dict(self) -> Dict[str, str]:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}

    def cache_key(self) -> str:
        return f"{self.start:%Y%m%dT%H%M%S}-{self.end:%Y%m%dT%H%M%S}"


def trailing_window(days: int, now: Optional[datetime] = None) -> TimeWindow:
    """Window of ``days`` days ending at ``now``."""
    end = now or datetime.now()
    return TimeWindow(start=end - timedelta(days=days), end=end)


def yesterday_window(now: Optional[datetime] = None) -> TimeWindow:
    day = (now or datetime.now()).date() - timedelta(days=1)
    return TimeWindow(
        start=datetime.combine(day, time.min),
        end=datetime.combine(day, _END_OF_DAY),
    )


def _as_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    text = str(value).strip()
    if not _INTEGER.match(text):
        return None
    return int(text)


def _parse_instant(value: str, end_of_day: bool) -> datetime:
    """
    Parse a calendar date or ISO datetime.

    Bare dates expand to the first or last millisecond of that day.
    Aware datetimes are converted to naive local time.

    Raises:
        ValueError: if the text is neither
    """
    text = str(value).strip()
    if len(text) == 10:
        day = date.fromisoformat(text)
        return datetime.combine(day, _END_OF_DAY if end_of_day else time.min)

    moment = datetime.fromisoformat(text)
    if moment.tzinfo is not None:
        moment = moment.astimezone().replace(tzinfo=None)
    return moment


def resolve_window(
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    period: Optional[str] = None,
    *,
    now: Optional[datetime] = None,
    default_days: int = DEFAULT_PERIOD_DAYS,
) -> TimeWindow:
    """
    Resolve request date parameters into a window.

    Args:
        start_date: Calendar date, ISO datetime, or a day count
        end_date: Calendar date or ISO datetime
        period: "yesterday" or a day count
        now: Reference instant (defaults to the current local time)
        default_days: Day count used when ``period`` is absent and on fallback

    Returns:
        TimeWindow: The resolved window; never raises on bad input
    """
    now = now or datetime.now()
    period = str(period).strip() if period not in (None, "") else str(default_days)

    try:
        if start_date:
            days_ago = _as_int(start_date)
            if days_ago is not None:
                if days_ago <= 0:
                    raise ValueError(f"day count must be positive: {start_date}")
                return trailing_window(days_ago, now)

            start = _parse_instant(start_date, end_of_day=False)
            end = _parse_instant(end_date, end_of_day=True) if end_date else now
            if start > end:
                raise ValueError(f"window start {start} is after end {end}")
            return TimeWindow(start=start, end=end)

        if period.lower() == YESTERDAY:
            return yesterday_window(now)

        days = _as_int(period)
        if days is None or days < 0:
            raise ValueError(f"period is not a day count: {period}")
        end = _parse_instant(end_date, end_of_day=True) if end_date else now
        return trailing_window(days, end)

    except (ValueError, OverflowError) as e:
        # OverflowError: a day count reaching past datetime.min
        logger.warning(
            "Unusable date parameters, falling back to trailing window",
            start_date=start_date,
            end_date=end_date,
            period=period,
            fallback_days=default_days,
            error=str(e),
        )
        return trailing_window(default_days, now)


def optional_window(
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    period: Optional[str] = None,
    **kwargs,
) -> Optional[TimeWindow]:
    """Resolve a window only when the caller supplied any date parameter."""
    if not (start_date or end_date or period):
        return None
    return resolve_window(start_date, end_date, period, **kwargs)
