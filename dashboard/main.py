from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .core.config import settings
from .core.log import configure_logging

from .api.errors import install_error_handlers
from .api.routes import router as api_router
import dashboard.api.routes as routes_module

from .services.bus import BusService
from .services.calendar import CalendarService
from .services.electricity import ElectricityService
from .services.hue import HueService
from .services.nantes_events import NantesEventsService
from .services.news import NewsService
from .services.pullrouge import PullRougeService
from .services.spotify import SpotifyService
from .services.weather import WeatherService


logger = logging.getLogger(__name__)


# --- Singletons ---
electricity = ElectricityService()
hue = HueService()
news = NewsService()
nantes = NantesEventsService()
bus = BusService()
weather = WeatherService()
calendar = CalendarService()
pullrouge = PullRougeService()
spotify = SpotifyService()

SERVICES = (electricity, hue, news, nantes, bus, weather, calendar, pullrouge, spotify)


def get_electricity() -> ElectricityService:
    return electricity


def get_hue() -> HueService:
    return hue


def get_news() -> NewsService:
    return news


def get_nantes() -> NantesEventsService:
    return nantes


def get_bus() -> BusService:
    return bus


def get_weather() -> WeatherService:
    return weather


def get_calendar() -> CalendarService:
    return calendar


def get_pullrouge() -> PullRougeService:
    return pullrouge


def get_spotify() -> SpotifyService:
    return spotify


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    logger.info("Starting %s (timezone=%s)", settings.app_name, settings.timezone)
    try:
        yield
    finally:
        for svc in SERVICES:
            await svc.aclose()
        logger.info("Shutdown complete")


app = FastAPI(title=settings.app_name, lifespan=lifespan)

if settings.cors_allow_all:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

install_error_handlers(app)

# Make the dependency functions in routes resolve to the real ones
app.dependency_overrides[routes_module.get_electricity] = get_electricity
app.dependency_overrides[routes_module.get_hue] = get_hue
app.dependency_overrides[routes_module.get_news] = get_news
app.dependency_overrides[routes_module.get_nantes] = get_nantes
app.dependency_overrides[routes_module.get_bus] = get_bus
app.dependency_overrides[routes_module.get_weather] = get_weather
app.dependency_overrides[routes_module.get_calendar] = get_calendar
app.dependency_overrides[routes_module.get_pullrouge] = get_pullrouge
app.dependency_overrides[routes_module.get_spotify] = get_spotify

app.include_router(api_router, prefix="/api")


def run() -> None:
    import uvicorn

    uvicorn.run("dashboard.main:app", host="0.0.0.0", port=5000)
