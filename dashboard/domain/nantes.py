from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterable, Optional
from zoneinfo import ZoneInfo

from ..core.timeutil import iso_utc, parse_iso, start_of_day
from .events import ALL_DAY_LABEL, hhmm, is_multi_day, sort_events, split_by_day
from .models import NormalizedEvent

logger = logging.getLogger(__name__)

SOURCE = "nantes"


@dataclass
class NantesRecord:
    """All timings and category labels seen for one agenda ``uid``."""

    uid: str
    raw: dict[str, Any]
    timings: list[tuple[str, str]] = field(default_factory=list)
    types: list[str] = field(default_factory=list)


def _record_timings(raw: dict[str, Any]) -> list[tuple[str, str]]:
    timings = raw.get("timings")
    if isinstance(timings, list) and timings:
        return [(t.get("begin"), t.get("end")) for t in timings
                if isinstance(t, dict) and t.get("begin") and t.get("end")]
    if raw.get("begin") and raw.get("end"):
        return [(raw["begin"], raw["end"])]
    return []


def group_records(raw_events: Iterable[dict[str, Any]]) -> list[NantesRecord]:
    """Merge raw records sharing a uid, keeping first-seen order."""
    grouped: dict[str, NantesRecord] = {}
    for raw in raw_events:
        if not isinstance(raw, dict):
            continue
        uid = str(raw.get("uid") or raw.get("id") or "")
        if not uid:
            continue
        record = grouped.get(uid)
        if record is None:
            record = grouped[uid] = NantesRecord(uid=uid, raw=raw)
        for timing in _record_timings(raw):
            if timing not in record.timings:
                record.timings.append(timing)
        for t in raw.get("nm-types") or []:
            label = t.get("label") if isinstance(t, dict) else None
            if label and label not in record.types:
                record.types.append(label)
    return list(grouped.values())


def format_location(location: Optional[dict[str, Any]]) -> Optional[str]:
    if not location:
        return None
    parts = []
    if location.get("name"):
        parts.append(location["name"])
    if location.get("address") and location["address"] != ".":
        parts.append(location["address"])
    if location.get("city"):
        parts.append(location["city"])
    return ", ".join(parts) or None


def image_url(image: Optional[dict[str, Any]]) -> Optional[str]:
    if not image or not image.get("base") or not image.get("filename"):
        return None
    variants = image.get("variants") or []
    full = next((v for v in variants if isinstance(v, dict) and v.get("type") == "full"), None)
    filename = full.get("filename") if full and full.get("filename") else image["filename"]
    return f"{image['base']}{filename}"


def _fr(value: Any) -> Optional[str]:
    if isinstance(value, dict):
        return value.get("fr") or None
    return None


def record_to_events(record: NantesRecord, tz: ZoneInfo, today: date) -> list[NormalizedEvent]:
    raw = record.raw
    common = dict(
        title=_fr(raw.get("title")) or "Sans titre",
        location=format_location(raw.get("location")),
        description=_fr(raw.get("description")) or _fr(raw.get("longDescription")),
        source=SOURCE,
        type=",".join(record.types) or None,
        organizer=(raw.get("originAgenda") or {}).get("title") or None,
        url=(raw.get("originAgenda") or {}).get("url") or None,
        image=image_url(raw.get("image")),
    )
    ignore_start = bool(raw.get("nm-ignorer-heure-debut"))
    ignore_end = bool(raw.get("nm-ignorer-heure-fin"))
    today_start = start_of_day(today, tz)

    events = []
    for ti, (begin, end) in enumerate(record.timings):
        try:
            start_dt, end_dt = parse_iso(begin), parse_iso(end)
        except (TypeError, ValueError):
            logger.debug("Skipping Nantes timing with bad dates uid=%s %r-%r", record.uid, begin, end)
            continue
        if end_dt < today_start:
            continue

        if is_multi_day(start_dt, end_dt, tz):
            for piece in split_by_day(start_dt, end_dt, tz, today=today):
                events.append(NormalizedEvent(
                    id=f"nantes_{record.uid}_{ti}_{piece.index}",
                    time=piece.time,
                    end_time=piece.end_time,
                    start=iso_utc(piece.start),
                    end=iso_utc(piece.end),
                    date=piece.day.isoformat(),
                    is_all_day=piece.is_all_day,
                    **common,
                ))
            continue

        start_l, end_l = start_dt.astimezone(tz), end_dt.astimezone(tz)
        all_day = ignore_start and ignore_end
        events.append(NormalizedEvent(
            id=f"nantes_{record.uid}_{ti}",
            time=ALL_DAY_LABEL if all_day else hhmm(start_l),
            end_time=None if all_day or ignore_end else hhmm(end_l),
            start=iso_utc(start_l),
            end=iso_utc(end_l),
            date=start_l.date().isoformat(),
            is_all_day=all_day,
            **common,
        ))
    return events


def normalize_events(
    raw_events: Iterable[dict[str, Any]],
    tz: ZoneInfo,
    today: date,
    date_max: Optional[date] = None,
) -> list[NormalizedEvent]:
    events = []
    for record in group_records(raw_events):
        events.extend(record_to_events(record, tz, today))
    if date_max is not None:
        limit = date_max.isoformat()
        events = [e for e in events if e.date <= limit]
    return sort_events(events)


def page_starts_after(raw_events: list[dict[str, Any]], date_max: date, tz: ZoneInfo) -> bool:
    """True when the page's first timing begins after ``date_max`` local day (pages are sorted by timing)."""
    for raw in raw_events:
        for begin, _ in _record_timings(raw):
            try:
                return parse_iso(begin).astimezone(tz).date() > date_max
            except (TypeError, ValueError):
                continue
    return False


def filter_by_categories(events: list[NormalizedEvent], categories: Optional[list[str]]) -> list[NormalizedEvent]:
    """``None`` keeps everything, an empty list keeps nothing."""
    if categories is None:
        return events
    if not categories:
        return []
    wanted = set(categories)
    return [
        e for e in events
        if e.type and any(t.strip() in wanted for t in e.type.split(","))
    ]


def parse_categories(payload: Any) -> list[str]:
    aggregations = payload.get("aggregations") if isinstance(payload, dict) else None
    buckets = (aggregations or {}).get("nm-types") or []
    labels = {b.get("label") for b in buckets if isinstance(b, dict) and b.get("label")}
    return sorted(labels)

