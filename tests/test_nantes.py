"""Tests for the Nantes agenda normalizer and service."""

from __future__ import annotations

from datetime import date
from zoneinfo import ZoneInfo

import httpx
import pytest
from conftest import make_settings

from dashboard.domain.events import ALL_DAY_LABEL
from dashboard.domain.nantes import (
    filter_by_categories,
    format_location,
    image_url,
    normalize_events,
    page_starts_after,
)
from dashboard.services.nantes_events import NantesEventsService

PARIS = ZoneInfo("Europe/Paris")
TODAY = date(2025, 11, 20)


def record(uid: str, begin: str, end: str, *types: str, **extra) -> dict:
    return {
        "uid": uid,
        "title": {"fr": f"Événement {uid}"},
        "timings": [{"begin": begin, "end": end}],
        "nm-types": [{"label": t} for t in types],
        **extra,
    }


RAW = [
    record("u1", "2025-11-20T22:00:00+00:00", "2025-11-22T02:00:00+00:00", "Musique"),
    record("u2", "2025-11-25T19:00:00+01:00", "2025-11-25T21:00:00+01:00", "Théâtre"),
    record("u3", "2025-11-23T10:00:00+01:00", "2025-11-23T12:00:00+01:00", "Musique"),
    record("u3", "2025-11-24T10:00:00+01:00", "2025-11-24T12:00:00+01:00", "Cirque"),
    record("u4", "2025-11-01T10:00:00+01:00", "2025-11-01T12:00:00+01:00", "Musique"),
]


def test_multi_day_timing_expands_to_three_events() -> None:
    events = normalize_events(RAW[:1], PARIS, TODAY)

    assert [e.id for e in events] == ["nantes_u1_0_0", "nantes_u1_0_1", "nantes_u1_0_2"]
    assert [e.date for e in events] == ["2025-11-20", "2025-11-21", "2025-11-22"]
    assert events[1].is_all_day is True


def test_records_sharing_uid_are_merged() -> None:
    events = [e for e in normalize_events(RAW, PARIS, TODAY) if e.id.startswith("nantes_u3")]

    assert [e.id for e in events] == ["nantes_u3_0", "nantes_u3_1"]
    assert events[0].type == "Musique,Cirque"
    assert events[0].time == "10:00"
    assert events[0].end_time == "12:00"


def test_past_and_late_events_dropped() -> None:
    events = normalize_events(RAW, PARIS, TODAY, date_max=date(2025, 11, 23))

    assert "nantes_u4_0" not in {e.id for e in events}
    assert max(e.date for e in events) == "2025-11-23"


def test_ignored_hours_make_an_all_day_event() -> None:
    raw = record("u5", "2025-11-26T00:00:00+01:00", "2025-11-26T23:00:00+01:00",
                 **{"nm-ignorer-heure-debut": True, "nm-ignorer-heure-fin": True})

    (event,) = normalize_events([raw], PARIS, TODAY)

    assert event.is_all_day is True
    assert event.time == ALL_DAY_LABEL
    assert event.end_time is None


def test_category_filter() -> None:
    events = normalize_events(RAW, PARIS, TODAY)

    assert filter_by_categories(events, None) == events
    assert filter_by_categories(events, []) == []
    assert {e.type for e in filter_by_categories(events, ["Théâtre"])} == {"Théâtre"}
    assert {e.id for e in filter_by_categories(events, ["Cirque"])} == {"nantes_u3_0", "nantes_u3_1"}


@pytest.mark.parametrize(
    "begin, expected",
    [
        ("2025-11-24T00:30:00+01:00", True),
        ("2025-11-23T23:30:00+00:00", True),
        ("2025-11-23T22:30:00+00:00", False),
    ],
)
def test_page_start_compared_on_local_day(begin, expected) -> None:
    page = [record("u9", begin, begin, "Musique")]

    assert page_starts_after(page, date(2025, 11, 23), PARIS) is expected


def test_location_and_image() -> None:
    assert format_location({"name": "Stereolux", "address": ".", "city": "Nantes"}) == "Stereolux, Nantes"
    assert format_location({}) is None
    image = {"base": "https://img/", "filename": "a.jpg", "variants": [{"type": "full", "filename": "full-a.jpg"}]}
    assert image_url(image) == "https://img/full-a.jpg"


class Agenda:
    def __init__(self, pages: list[list[dict]]) -> None:
        self.pages = pages
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        page = request.url.params.get("page")
        if page is None:
            return httpx.Response(200, json={"aggregations": {"nm-types": [
                {"label": "Musique"}, {"label": "Cirque"}, {"label": "Musique"},
            ]}})
        index = int(page)
        events = self.pages[index] if index < len(self.pages) else []
        return httpx.Response(200, json={"events": events})


def nantes(agenda: Agenda, clock) -> NantesEventsService:
    cfg = make_settings(nantes_page_size=2)
    return NantesEventsService(cfg, transport=httpx.MockTransport(agenda), clock=clock, today=lambda: TODAY)


@pytest.mark.asyncio
async def test_pages_until_short_page(clock) -> None:
    agenda = Agenda([RAW[1:3], RAW[3:4]])
    svc = nantes(agenda, clock)

    events, has_more = await svc.get_events()

    assert len(agenda.requests) == 2
    assert [e.id for e in events] == ["nantes_u3_0", "nantes_u3_1", "nantes_u2_0"]
    assert has_more is False


@pytest.mark.asyncio
async def test_limit_sets_has_more(clock) -> None:
    svc = nantes(Agenda([RAW[1:3], RAW[3:4]]), clock)

    events, has_more = await svc.get_events(limit=1)

    assert len(events) == 1
    assert has_more is True


@pytest.mark.asyncio
async def test_filters_apply_to_the_cached_list(clock) -> None:
    agenda = Agenda([RAW[1:3], RAW[3:4]])
    svc = nantes(agenda, clock)

    await svc.get_events()
    theatre, _ = await svc.get_events(categories=["Théâtre"])
    nothing, _ = await svc.get_events(categories=[])

    assert [e.id for e in theatre] == ["nantes_u2_0"]
    assert nothing == []
    assert len(agenda.requests) == 2


@pytest.mark.asyncio
async def test_paging_stops_past_date_max(clock) -> None:
    agenda = Agenda([RAW[2:4], RAW[1:2]])
    svc = nantes(agenda, clock)

    events, _ = await svc.get_events(date_max=date(2025, 11, 23))

    assert [e.id for e in events] == ["nantes_u3_0"]
    assert len(agenda.requests) == 2


@pytest.mark.asyncio
async def test_categories_deduplicated_and_sorted(clock) -> None:
    svc = nantes(Agenda([]), clock)

    assert await svc.get_categories() == ["Cirque", "Musique"]
