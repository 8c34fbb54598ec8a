from __future__ import annotations

import json
import logging
from datetime import date
from typing import Iterable, Optional

from fastapi import APIRouter, Depends, Query

from ..core.errors import BadRequestError, NotConfiguredError
from ..domain.events import sort_events
from ..domain.interfaces import EventSource
from ..domain.models import NormalizedEvent
from ..services.bus import BusService
from ..services.calendar import CalendarService
from ..services.electricity import ElectricityService
from ..services.hue import HueService
from ..services.nantes_events import NantesEventsService
from ..services.news import NewsService
from ..services.pullrouge import PullRougeService
from ..services.spotify import DEFAULT_USER, SpotifyService
from ..services.weather import WeatherService
from .errors import error_response
from .schemas import (
    HueBrightnessRequest,
    HueColorRequest,
    HueLightToggleRequest,
    HueRoomToggleRequest,
    SceneActivateRequest,
    SpotifyPlayRequest,
    SpotifyTransferRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# --- Dependency getters ---
# Placeholders; main.py points them at the process-wide services via app.dependency_overrides.
def get_electricity() -> ElectricityService:  # overridden in main
    raise RuntimeError("Electricity dependency not configured")

def get_hue() -> HueService:  # overridden in main
    raise RuntimeError("Hue dependency not configured")

def get_news() -> NewsService:  # overridden in main
    raise RuntimeError("News dependency not configured")

def get_nantes() -> NantesEventsService:  # overridden in main
    raise RuntimeError("Nantes events dependency not configured")

def get_bus() -> BusService:  # overridden in main
    raise RuntimeError("Bus dependency not configured")

def get_weather() -> WeatherService:  # overridden in main
    raise RuntimeError("Weather dependency not configured")

def get_calendar() -> CalendarService:  # overridden in main
    raise RuntimeError("Calendar dependency not configured")

def get_pullrouge() -> PullRougeService:  # overridden in main
    raise RuntimeError("PullRouge dependency not configured")

def get_spotify() -> SpotifyService:  # overridden in main
    raise RuntimeError("Spotify dependency not configured")


def parse_categories_param(raw: Optional[str]) -> Optional[list[str]]:
    """``None`` keeps every category; a JSON array or a comma list selects some."""
    if raw is None:
        return None
    text = raw.strip()
    if text.startswith("["):
        try:
            values = json.loads(text)
        except ValueError:
            raise BadRequestError(f"Invalid categories: {raw}")
        if not isinstance(values, list):
            raise BadRequestError(f"Invalid categories: {raw}")
        return [str(v).strip() for v in values if str(v).strip()]
    return [part.strip() for part in text.split(",") if part.strip()]


def _parse_day(raw: Optional[str]) -> Optional[date]:
    if not raw:
        return None
    try:
        return date.fromisoformat(raw[:10])
    except ValueError:
        raise BadRequestError(f"Invalid date: {raw}, expected YYYY-MM-DD")


@router.get("/health")
async def health():
    return {"status": "ok"}


# --- Events ---

async def merged_events(sources: Iterable[EventSource]) -> list[NormalizedEvent]:
    """Events of every configured source, ordered by day then start."""
    merged: list[NormalizedEvent] = []
    for src in sources:
        try:
            merged.extend(await src.get_events())
        except NotConfiguredError as exc:
            logger.debug("%s events skipped: %s", src.source, exc)
    return sort_events(merged)


@router.get("/events")
async def events(
    calendar: CalendarService = Depends(get_calendar),
    pullrouge: PullRougeService = Depends(get_pullrouge),
):
    try:
        merged = await merged_events([calendar, pullrouge])
        return {"success": True, "events": [e.to_dict() for e in merged]}
    except Exception as exc:
        return error_response("Failed to fetch calendar events", exc)


@router.get("/pullrouge-events")
async def pullrouge_events(svc: PullRougeService = Depends(get_pullrouge)):
    try:
        return {"success": True, "events": [e.to_dict() for e in await svc.get_events()]}
    except Exception as exc:
        return error_response("Failed to fetch PullRouge events", exc)


@router.get("/nantes-events")
async def nantes_events(
    dateMax: Optional[str] = None,
    categories: Optional[str] = None,
    limit: Optional[int] = Query(None, ge=0),
    svc: NantesEventsService = Depends(get_nantes),
):
    try:
        found, has_more = await svc.get_events(
            date_max=_parse_day(dateMax),
            categories=parse_categories_param(categories),
            limit=limit,
        )
        return {"success": True, "events": [e.to_dict() for e in found], "hasMore": has_more}
    except Exception as exc:
        return error_response("Failed to fetch Nantes events", exc)


@router.get("/nantes-events/categories")
async def nantes_categories(svc: NantesEventsService = Depends(get_nantes)):
    try:
        return {"success": True, "categories": await svc.get_categories()}
    except Exception as exc:
        return error_response("Failed to fetch Nantes event categories", exc)


# --- Widgets ---

@router.get("/electricity")
async def electricity(
    dailyChartDays: int = Query(7, ge=1, le=366),
    svc: ElectricityService = Depends(get_electricity),
):
    try:
        data = await svc.get_widget_data(dailyChartDays)
        return {"success": True, "data": data.to_dict()}
    except Exception as exc:
        return error_response("Failed to fetch electricity data", exc)


@router.get("/weather")
async def weather(svc: WeatherService = Depends(get_weather)):
    try:
        return {"success": True, "data": await svc.get_weather()}
    except Exception as exc:
        return error_response("Failed to fetch weather data", exc)


@router.get("/news")
async def news(type: Optional[str] = None, svc: NewsService = Depends(get_news)):
    try:
        return {"success": True, "data": await svc.get_news(type)}
    except Exception as exc:
        return error_response("Failed to fetch news data", exc)


@router.get("/bus")
async def bus(svc: BusService = Depends(get_bus)):
    try:
        return {"success": True, "data": await svc.get_departures()}
    except Exception as exc:
        return error_response("Failed to fetch bus departures", exc)


# --- Hue ---

@router.get("/hue/room")
async def hue_room(room: Optional[str] = None, svc: HueService = Depends(get_hue)):
    try:
        return {"success": True, "data": await svc.get_room_status(room)}
    except Exception as exc:
        return error_response("Failed to fetch Hue room status", exc)


@router.get("/hue/scenes")
async def hue_scenes(room: Optional[str] = None, svc: HueService = Depends(get_hue)):
    try:
        return {"success": True, "data": await svc.get_room_scenes(room)}
    except Exception as exc:
        return error_response("Failed to fetch Hue scenes", exc)


@router.post("/hue/room/toggle")
async def hue_room_toggle(req: HueRoomToggleRequest, svc: HueService = Depends(get_hue)):
    try:
        return {"success": True, **await svc.toggle_room(req.room, req.turn_on)}
    except Exception as exc:
        return error_response("Failed to toggle Hue room", exc)


@router.post("/hue/room/brightness")
async def hue_room_brightness(req: HueBrightnessRequest, svc: HueService = Depends(get_hue)):
    try:
        return {"success": True, **await svc.set_room_brightness(req.room, req.brightness)}
    except Exception as exc:
        return error_response("Failed to set Hue brightness", exc)


@router.post("/hue/room/color")
async def hue_room_color(req: HueColorRequest, svc: HueService = Depends(get_hue)):
    try:
        return {"success": True, **await svc.set_room_color(req.room, req.xy.x, req.xy.y)}
    except Exception as exc:
        return error_response("Failed to set Hue color", exc)


@router.post("/hue/light/toggle")
async def hue_light_toggle(req: HueLightToggleRequest, svc: HueService = Depends(get_hue)):
    try:
        return {"success": True, **await svc.toggle_light(req.light_id, req.turn_on)}
    except Exception as exc:
        return error_response("Failed to toggle Hue light", exc)


@router.post("/hue/scene/activate")
async def hue_scene_activate(req: SceneActivateRequest, svc: HueService = Depends(get_hue)):
    try:
        return {"success": True, **await svc.activate_scene(req.scene_id)}
    except Exception as exc:
        return error_response("Failed to activate Hue scene", exc)


# --- Spotify ---

@router.get("/spotify/status")
async def spotify_status(user: str = DEFAULT_USER, svc: SpotifyService = Depends(get_spotify)):
    try:
        return {"success": True, **await svc.status(user)}
    except Exception as exc:
        return error_response("Failed to fetch Spotify status", exc)


@router.get("/spotify/auth")
async def spotify_auth(user: str = DEFAULT_USER, svc: SpotifyService = Depends(get_spotify)):
    try:
        return {"success": True, "authUrl": svc.authorization_url(user)}
    except Exception as exc:
        return error_response("Failed to build Spotify authorization URL", exc)


@router.get("/spotify/callback")
async def spotify_callback(
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    svc: SpotifyService = Depends(get_spotify),
):
    try:
        if error:
            raise BadRequestError(f"Spotify authorization denied: {error}")
        if not code:
            raise BadRequestError("Authorization code is required")
        return {"success": True, **await svc.exchange_code(code, state or DEFAULT_USER)}
    except Exception as exc:
        return error_response("Failed to complete Spotify authorization", exc)


@router.post("/spotify/play")
async def spotify_play(
    req: Optional[SpotifyPlayRequest] = None,
    user: str = DEFAULT_USER,
    svc: SpotifyService = Depends(get_spotify),
):
    req = req or SpotifyPlayRequest()
    try:
        return {
            "success": True,
            **await svc.play(user, context_uri=req.context_uri, uris=req.uris, device_id=req.device_id),
        }
    except Exception as exc:
        return error_response("Failed to start playback", exc)


@router.post("/spotify/pause")
async def spotify_pause(user: str = DEFAULT_USER, svc: SpotifyService = Depends(get_spotify)):
    try:
        return {"success": True, **await svc.pause(user)}
    except Exception as exc:
        return error_response("Failed to pause playback", exc)


@router.post("/spotify/next")
async def spotify_next(user: str = DEFAULT_USER, svc: SpotifyService = Depends(get_spotify)):
    try:
        return {"success": True, **await svc.next_track(user)}
    except Exception as exc:
        return error_response("Failed to skip to next track", exc)


@router.post("/spotify/previous")
async def spotify_previous(user: str = DEFAULT_USER, svc: SpotifyService = Depends(get_spotify)):
    try:
        return {"success": True, **await svc.previous_track(user)}
    except Exception as exc:
        return error_response("Failed to go to previous track", exc)


@router.get("/spotify/devices")
async def spotify_devices(user: str = DEFAULT_USER, svc: SpotifyService = Depends(get_spotify)):
    try:
        return {"success": True, **await svc.devices(user)}
    except Exception as exc:
        return error_response("Failed to fetch Spotify devices", exc)


@router.post("/spotify/transfer")
async def spotify_transfer(
    req: SpotifyTransferRequest,
    user: str = DEFAULT_USER,
    svc: SpotifyService = Depends(get_spotify),
):
    try:
        return {"success": True, **await svc.transfer(req.device_id, req.play, user)}
    except Exception as exc:
        return error_response("Failed to transfer playback", exc)


@router.get("/spotify/playlists")
async def spotify_playlists(user: str = DEFAULT_USER, svc: SpotifyService = Depends(get_spotify)):
    try:
        return {"success": True, **await svc.playlists(user)}
    except Exception as exc:
        return error_response("Failed to fetch playlists", exc)


@router.get("/spotify/playlists/{playlist_id}/tracks")
async def spotify_playlist_tracks(
    playlist_id: str,
    user: str = DEFAULT_USER,
    svc: SpotifyService = Depends(get_spotify),
):
    try:
        return {"success": True, **await svc.playlist_tracks(playlist_id, user)}
    except Exception as exc:
        return error_response("Failed to fetch playlist tracks", exc)
