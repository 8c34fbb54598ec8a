from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, Optional
from zoneinfo import ZoneInfo

from ..core.timeutil import end_of_day, start_of_day
from .models import NormalizedEvent

ALL_DAY_LABEL = "Toute la journée"


@dataclass(frozen=True)
class DaySlice:
    """The part of a multi-day event that falls on one local day."""

    day: date
    index: int  # position in the full span, not in the returned list
    start: datetime
    end: datetime
    time: str
    end_time: Optional[str]
    is_all_day: bool


def hhmm(dt: datetime) -> str:
    return dt.strftime("%H:%M")


def is_multi_day(start: datetime, end: datetime, tz: ZoneInfo) -> bool:
    return start.astimezone(tz).date() != end.astimezone(tz).date()


def split_by_day(
    start: datetime,
    end: datetime,
    tz: ZoneInfo,
    today: Optional[date] = None,
    all_day: bool = False,
) -> list[DaySlice]:
    """One slice per local day touched by ``[start, end]``.

    The first slice starts at the event start and runs to the end of that day,
    the last runs from midnight to the event end, and the days between are
    whole days. With ``all_day`` every slice is a whole day. Days before
    ``today`` are left out.
    """
    start_l, end_l = start.astimezone(tz), end.astimezone(tz)
    first, last = start_l.date(), end_l.date()
    count = (last - first).days + 1

    slices = []
    for index in range(count):
        day = first + timedelta(days=index)
        if today is not None and day < today:
            continue
        if all_day or 0 < index < count - 1:
            slices.append(DaySlice(day, index, start_of_day(day, tz), end_of_day(day, tz),
                                   ALL_DAY_LABEL, None, True))
        elif index == 0:
            slices.append(DaySlice(day, index, start_l, end_of_day(day, tz),
                                   hhmm(start_l), None, False))
        else:
            slices.append(DaySlice(day, index, start_of_day(day, tz), end_l,
                                   "00:00", hhmm(end_l), False))
    return slices


def sort_events(events: Iterable[NormalizedEvent]) -> list[NormalizedEvent]:
    return sorted(events, key=lambda e: (e.date, e.start))
