from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Any, Optional
from zoneinfo import ZoneInfo

from ..core.timeutil import end_of_day, iso_utc, parse_iso, start_of_day
from .events import ALL_DAY_LABEL, hhmm, is_multi_day, sort_events, split_by_day
from .models import NormalizedEvent

SOURCE = "google"
UNTITLED = "Sans titre"


def event_bounds(raw: dict[str, Any], tz: ZoneInfo) -> Optional[tuple[datetime, datetime, bool]]:
    """(start, end, all_day) of a Calendar v3 event.

    All-day events carry ``date`` values with an exclusive end; they are
    turned into local midnight .. 23:59:59 of the last covered day.
    """
    start, end = raw.get("start") or {}, raw.get("end") or {}
    try:
        if start.get("date"):
            first = date.fromisoformat(start["date"])
            last = date.fromisoformat(end["date"]) - timedelta(days=1) if end.get("date") else first
            last = max(first, last)
            return start_of_day(first, tz), end_of_day(last, tz), True
        if start.get("dateTime") and end.get("dateTime"):
            return parse_iso(start["dateTime"]), parse_iso(end["dateTime"]), False
    except ValueError:
        return None
    return None


def to_events(raw: dict[str, Any], tz: ZoneInfo, now: datetime) -> list[NormalizedEvent]:
    bounds = event_bounds(raw, tz)
    if bounds is None:
        return []
    start, end, all_day = bounds
    if end <= now:
        return []

    common = dict(
        title=raw.get("summary") or UNTITLED,
        location=raw.get("location") or None,
        description=raw.get("description") or None,
        source=SOURCE,
        url=raw.get("htmlLink") or None,
        organizer=(raw.get("organizer") or {}).get("displayName") or None,
    )
    event_id = raw.get("id") or ""

    if is_multi_day(start, end, tz):
        return [
            NormalizedEvent(
                id=f"{event_id}_{piece.index}",
                time=piece.time,
                end_time=piece.end_time,
                start=iso_utc(piece.start),
                end=iso_utc(piece.end),
                date=piece.day.isoformat(),
                is_all_day=piece.is_all_day,
                **common,
            )
            for piece in split_by_day(start, end, tz, all_day=all_day)
        ]

    start_l, end_l = start.astimezone(tz), end.astimezone(tz)
    return [NormalizedEvent(
        id=event_id,
        time=ALL_DAY_LABEL if all_day else hhmm(start_l),
        end_time=None if all_day else hhmm(end_l),
        start=iso_utc(start_l),
        end=iso_utc(end_l),
        date=start_l.date().isoformat(),
        is_all_day=all_day,
        **common,
    )]


def normalize_items(items: list[dict[str, Any]], tz: ZoneInfo, now: datetime) -> list[NormalizedEvent]:
    events = []
    for raw in items:
        if isinstance(raw, dict):
            events.extend(to_events(raw, tz, now))
    return sort_events(events)
