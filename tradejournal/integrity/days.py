"""Calendar day boundaries in the reporting timezone.

Every component that maps a timestamp to a calendar day goes through this
module. A day is the half-open interval from local midnight to the next
local midnight in the reporting timezone, expressed in UTC for queries.
"""

from datetime import date, datetime, time, timedelta, timezone, tzinfo


def trading_day(moment: datetime, tz: tzinfo) -> date:
    """Return the calendar day a timestamp falls on in the reporting timezone.

    Naive timestamps are taken to be UTC.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(tz).date()


def day_bounds(day: date, tz: tzinfo) -> tuple[datetime, datetime]:
    """Return ``(start, end)`` of a calendar day as UTC datetimes.

    ``start`` is inclusive and ``end`` exclusive. On DST transition days the
    interval is 23 or 25 hours long.
    """
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)
