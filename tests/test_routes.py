"""HTTP-level tests: envelopes, validation and Hue toggle-then-read."""

from __future__ import annotations

from typing import Any, Optional

import httpx
import pytest
from conftest import make_settings
from fastapi.testclient import TestClient

import dashboard.api.routes as routes
from dashboard.core.errors import NotConfiguredError
from dashboard.domain.models import NormalizedEvent
from dashboard.main import app
from dashboard.services.hue import HueService
from dashboard.services.spotify import SpotifyService
from test_hue import FakeBridge


def event(id_: str, day: str, source: str) -> NormalizedEvent:
    start = f"{day}T18:00:00.000Z"
    return NormalizedEvent(id=id_, title=id_, time="19:00", start=start, end=start,
                           date=day, is_all_day=False, source=source)


class StaticEvents:
    source = "static"

    def __init__(self, events: list[NormalizedEvent] | None = None, error: Exception | None = None) -> None:
        self.events = events or []
        self.error = error

    async def get_events(self) -> list[NormalizedEvent]:
        if self.error is not None:
            raise self.error
        return self.events


class RecordingNantes:
    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []

    async def get_events(self, date_max=None, categories: Optional[list[str]] = None, limit=None):
        self.calls.append({"date_max": date_max, "categories": categories, "limit": limit})
        return [event("n1", "2025-11-21", "nantes")], False


@pytest.fixture
def client():
    saved = dict(app.dependency_overrides)
    yield TestClient(app)
    app.dependency_overrides.clear()
    app.dependency_overrides.update(saved)


def test_health(client) -> None:
    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_events_merge_calendar_and_pullrouge(client) -> None:
    app.dependency_overrides[routes.get_calendar] = lambda: StaticEvents([event("g1", "2025-11-22", "google")])
    app.dependency_overrides[routes.get_pullrouge] = lambda: StaticEvents([event("p1", "2025-11-21", "pullrouge")])

    body = client.get("/api/events").json()

    assert body["success"] is True
    assert [e["id"] for e in body["events"]] == ["p1", "g1"]


def test_events_without_calendar_settings(client) -> None:
    app.dependency_overrides[routes.get_calendar] = lambda: StaticEvents(error=NotConfiguredError("no calendar"))
    app.dependency_overrides[routes.get_pullrouge] = lambda: StaticEvents([event("p1", "2025-11-21", "pullrouge")])

    body = client.get("/api/events").json()

    assert [e["source"] for e in body["events"]] == ["pullrouge"]


def test_unexpected_error_envelope(client) -> None:
    app.dependency_overrides[routes.get_pullrouge] = lambda: StaticEvents(error=RuntimeError("disk full"))

    response = client.get("/api/pullrouge-events")

    assert response.status_code == 500
    assert response.json() == {
        "success": False,
        "error": "Failed to fetch PullRouge events",
        "message": "disk full",
    }


@pytest.mark.parametrize(
    "query, expected",
    [
        ("", None),
        ("?categories=[]", []),
        ('?categories=["Musique","Théâtre"]', ["Musique", "Théâtre"]),
        ("?categories=Musique,Th%C3%A9%C3%A2tre", ["Musique", "Théâtre"]),
    ],
)
def test_nantes_categories_param(client, query, expected) -> None:
    nantes = RecordingNantes()
    app.dependency_overrides[routes.get_nantes] = lambda: nantes

    body = client.get(f"/api/nantes-events{query}").json()

    assert body == {"success": True, "events": [event("n1", "2025-11-21", "nantes").to_dict()], "hasMore": False}
    assert nantes.calls[0]["categories"] == expected


def test_nantes_bad_date(client) -> None:
    app.dependency_overrides[routes.get_nantes] = lambda: RecordingNantes()

    response = client.get("/api/nantes-events?dateMax=tomorrow")

    assert response.status_code == 400
    assert response.json()["success"] is False


def test_electricity_chart_days_validated(client) -> None:
    response = client.get("/api/electricity?dailyChartDays=0")

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert "dailyChartDays" in body["message"]


@pytest.fixture
def bridge() -> FakeBridge:
    return FakeBridge()


@pytest.fixture
def hue_client(client, bridge):
    cfg = make_settings(hue_bridge_ip="192.168.1.2", hue_app_key="key")
    hue = HueService(cfg, transport=httpx.MockTransport(bridge))
    app.dependency_overrides[routes.get_hue] = lambda: hue
    return client


def test_hue_toggle_then_read(hue_client) -> None:
    assert hue_client.get("/api/hue/room?room=Salon").json()["data"]["groupedLight"]["on"] is True

    toggled = hue_client.post("/api/hue/room/toggle", json={"room": "Salon"}).json()
    after = hue_client.get("/api/hue/room?room=Salon").json()

    assert toggled == {"success": True, "turnedOn": False}
    assert after["data"]["groupedLight"]["on"] is False


def test_hue_explicit_turn_on(hue_client, bridge) -> None:
    body = hue_client.post("/api/hue/room/toggle", json={"room": "Salon", "turnOn": True}).json()

    assert body == {"success": True, "turnedOn": True}
    assert bridge.puts[-1][1] == {"on": {"on": True}}


def test_hue_unknown_room_is_404(hue_client) -> None:
    response = hue_client.get("/api/hue/room?room=Cuisine")

    assert response.status_code == 404
    assert response.json() == {
        "success": False,
        "error": "Failed to fetch Hue room status",
        "message": 'Room "Cuisine" not found',
    }


def test_hue_light_toggle_and_scene(hue_client) -> None:
    light = hue_client.post("/api/hue/light/toggle", json={"lightId": "light-2"}).json()
    scene = hue_client.post("/api/hue/scene/activate", json={"sceneId": "scene-1"}).json()

    assert light == {"success": True, "lightId": "light-2", "on": True}
    assert scene == {"success": True, "sceneId": "scene-1"}


def test_hue_brightness_out_of_range_is_clamped(hue_client, bridge) -> None:
    high = hue_client.post("/api/hue/room/brightness", json={"room": "Salon", "brightness": 150})
    low = hue_client.post("/api/hue/room/brightness", json={"room": "Salon", "brightness": -20})

    assert high.status_code == 200
    assert high.json() == {"success": True, "brightness": 100}
    assert low.json() == {"success": True, "brightness": 0}
    assert [body["dimming"] for _, body in bridge.puts] == [{"brightness": 100}, {"brightness": 0}]


@pytest.mark.parametrize("body", [{"room": "Salon"}, {"room": "Salon", "brightness": "bright"}])
def test_hue_body_validation(hue_client, body) -> None:
    response = hue_client.post("/api/hue/room/brightness", json=body)

    assert response.status_code == 400
    assert response.json()["success"] is False


def test_hue_colour(hue_client, bridge) -> None:
    body = hue_client.post("/api/hue/room/color", json={"room": "Salon", "xy": {"x": 0.3, "y": 0.4}}).json()

    assert body == {"success": True, "color": {"x": 0.3, "y": 0.4}}


@pytest.fixture
def spotify_client(client):
    cfg = make_settings(spotify_client_id="cid", spotify_client_secret="secret")
    spotify = SpotifyService(cfg, transport=httpx.MockTransport(lambda r: httpx.Response(500)))
    app.dependency_overrides[routes.get_spotify] = lambda: spotify
    return client


def test_spotify_status_unauthenticated(spotify_client) -> None:
    body = spotify_client.get("/api/spotify/status").json()

    assert body == {"success": True, "authenticated": False, "isPlaying": False, "track": None}


def test_spotify_command_requires_session(spotify_client) -> None:
    response = spotify_client.post("/api/spotify/pause")

    assert response.status_code == 401
    assert response.json()["error"] == "Failed to pause playback"


def test_spotify_auth_url(spotify_client) -> None:
    body = spotify_client.get("/api/spotify/auth?user=salon").json()

    assert body["success"] is True
    assert "state=salon" in body["authUrl"]


def test_spotify_callback_without_code(spotify_client) -> None:
    response = spotify_client.get("/api/spotify/callback")

    assert response.status_code == 400
    assert response.json()["message"] == "Authorization code is required"


def test_unknown_route_enveloped(client) -> None:
    response = client.get("/api/nope")

    assert response.status_code == 404
    assert response.json()["success"] is False


def test_event_services_are_event_sources() -> None:
    from dashboard.domain.interfaces import EventSource
    from dashboard.main import calendar, pullrouge

    assert isinstance(calendar, EventSource)
    assert isinstance(pullrouge, EventSource)
    assert (calendar.source, pullrouge.source) == ("google", "pullrouge")
