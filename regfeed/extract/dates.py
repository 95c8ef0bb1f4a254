"""Lenient date parsing for the many formats agencies publish."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional

from dateutil.parser import ParserError
from dateutil.parser import parse as parse_date

# Common timezone abbreviations seen in RSS pubDate values
TZINFOS = {
    "EST": timezone(timedelta(hours=-5)),
    "EDT": timezone(timedelta(hours=-4)),
    "CST": timezone(timedelta(hours=-6)),
    "CDT": timezone(timedelta(hours=-5)),
    "MST": timezone(timedelta(hours=-7)),
    "MDT": timezone(timedelta(hours=-6)),
    "PST": timezone(timedelta(hours=-8)),
    "PDT": timezone(timedelta(hours=-7)),
    "GMT": timezone.utc,
    "UTC": timezone.utc,
}


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse ``value`` into a timezone-aware UTC datetime, or None.

    Naive values are taken to be UTC. Compact openFDA dates (``20240115``)
    and RFC 822 feed dates are both accepted.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        try:
            dt = parse_date(value.strip(), tzinfos=TZINFOS)
        except (ParserError, ValueError, OverflowError):
            return None
    else:
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_day(value: datetime, compact: bool = False) -> str:
    return value.strftime("%Y%m%d" if compact else "%Y-%m-%d")
