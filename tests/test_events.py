"""Tests for multi-day splitting and Google Calendar normalization."""

from __future__ import annotations

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

import pytest
from conftest import make_settings

from dashboard.core.errors import NotConfiguredError
from dashboard.core.timeutil import iso_utc
from dashboard.domain.calendar import normalize_items, to_events
from dashboard.domain.events import ALL_DAY_LABEL, sort_events, split_by_day
from dashboard.domain.models import NormalizedEvent
from dashboard.services.calendar import CalendarService

PARIS = ZoneInfo("Europe/Paris")
START = datetime(2025, 11, 20, 22, 0, tzinfo=timezone.utc)
END = datetime(2025, 11, 22, 2, 0, tzinfo=timezone.utc)
BEFORE = datetime(2025, 11, 19, 12, 0, tzinfo=timezone.utc)


def test_event_spanning_three_local_days() -> None:
    pieces = split_by_day(START, END, PARIS)

    assert [p.day.isoformat() for p in pieces] == ["2025-11-20", "2025-11-21", "2025-11-22"]
    first, middle, last = pieces
    assert (first.time, first.end_time, first.is_all_day) == ("23:00", None, False)
    assert iso_utc(first.end) == "2025-11-20T22:59:59.000Z"
    assert (middle.time, middle.is_all_day) == (ALL_DAY_LABEL, True)
    assert iso_utc(middle.start) == "2025-11-20T23:00:00.000Z"
    assert (last.time, last.end_time) == ("00:00", "03:00")
    assert iso_utc(last.end) == "2025-11-22T02:00:00.000Z"


def test_days_before_today_are_skipped_but_keep_their_index() -> None:
    pieces = split_by_day(START, END, PARIS, today=date(2025, 11, 21))

    assert [(p.index, p.day.isoformat()) for p in pieces] == [(1, "2025-11-21"), (2, "2025-11-22")]


def test_sort_by_date_then_start() -> None:
    def ev(id_: str, day: str, start: str) -> NormalizedEvent:
        return NormalizedEvent(id=id_, title=id_, time="", start=start, end=start, date=day,
                               is_all_day=False, source="google")

    events = [
        ev("c", "2025-11-21", "2025-11-21T08:00:00.000Z"),
        ev("b", "2025-11-20", "2025-11-20T18:00:00.000Z"),
        ev("a", "2025-11-20", "2025-11-20T07:00:00.000Z"),
    ]

    assert [e.id for e in sort_events(events)] == ["a", "b", "c"]


def test_timed_calendar_event_expands_per_day() -> None:
    raw = {
        "id": "evt",
        "summary": "Week-end",
        "start": {"dateTime": "2025-11-20T23:00:00+01:00"},
        "end": {"dateTime": "2025-11-22T03:00:00+01:00"},
    }

    events = to_events(raw, PARIS, BEFORE)

    assert [e.id for e in events] == ["evt_0", "evt_1", "evt_2"]
    assert [e.date for e in events] == ["2025-11-20", "2025-11-21", "2025-11-22"]
    assert all(e.source == "google" for e in events)


def test_all_day_end_date_is_exclusive() -> None:
    raw = {"id": "bday", "summary": "Anniversaire", "start": {"date": "2025-11-21"}, "end": {"date": "2025-11-22"}}

    (event,) = to_events(raw, PARIS, BEFORE)

    assert event.id == "bday"
    assert event.is_all_day is True
    assert event.time == ALL_DAY_LABEL
    assert event.date == "2025-11-21"
    assert event.start == "2025-11-20T23:00:00.000Z"


def test_multi_day_all_day_event() -> None:
    raw = {"id": "hol", "start": {"date": "2025-11-21"}, "end": {"date": "2025-11-24"}}

    events = to_events(raw, PARIS, BEFORE)

    assert [e.date for e in events] == ["2025-11-21", "2025-11-22", "2025-11-23"]
    assert all(e.is_all_day for e in events)
    assert events[0].title == "Sans titre"


def test_ended_events_dropped() -> None:
    items = [
        {"id": "old", "start": {"dateTime": "2025-11-18T10:00:00Z"}, "end": {"dateTime": "2025-11-18T11:00:00Z"}},
        {"id": "new", "start": {"dateTime": "2025-11-20T10:00:00Z"}, "end": {"dateTime": "2025-11-20T11:00:00Z"}},
        {"id": "broken", "start": {}},
    ]

    assert [e.id for e in normalize_items(items, PARIS, BEFORE)] == ["new"]


@pytest.mark.asyncio
async def test_calendar_service_queries_window(upstream, clock) -> None:
    cfg = make_settings(calendar_id="family", google_api_key="k", max_events=1)
    path = "/calendar/v3/calendars/family/events"
    upstream.on("GET", path, {"items": [
        {"id": "a", "start": {"dateTime": "2025-11-20T10:00:00Z"}, "end": {"dateTime": "2025-11-20T11:00:00Z"}},
        {"id": "b", "start": {"dateTime": "2025-11-21T10:00:00Z"}, "end": {"dateTime": "2025-11-21T11:00:00Z"}},
    ]})
    svc = CalendarService(cfg, transport=upstream.transport, clock=clock, now=lambda: BEFORE)

    events = await svc.get_events()

    assert [e.id for e in events] == ["a"]
    params = upstream.requests[0].url.params
    assert params["key"] == "k"
    assert params["singleEvents"] == "true"
    assert params["timeMin"] == "2025-11-18T23:00:00.000Z"


@pytest.mark.asyncio
async def test_calendar_requires_settings(clock) -> None:
    with pytest.raises(NotConfiguredError):
        await CalendarService(make_settings(), clock=clock).get_events()
