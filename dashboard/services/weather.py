from __future__ import annotations

import logging
import time
from datetime import date
from typing import Any, Callable, Optional
from zoneinfo import ZoneInfo

import httpx

from ..core.cache import DEFAULT_KEY, ReadThroughCache
from ..core.config import Settings, settings
from ..core.errors import NotConfiguredError
from ..core.log import ThrottledLogger
from ..core.timeutil import today_local
from ..domain.weather import build_weather
from ..drivers.upstream import UpstreamClient

logger = logging.getLogger(__name__)


class WeatherService:
    def __init__(
        self,
        cfg: Settings = settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.monotonic,
        today: Callable[[], date] = today_local,
    ) -> None:
        self._cfg = cfg
        self._today = today
        self._log = ThrottledLogger(logger, cfg.error_log_interval_s, clock)
        self._cache: ReadThroughCache[dict[str, Any]] = ReadThroughCache(
            "weather", cfg.weather_cache_ttl_s, clock, cfg.dedupe_inflight_requests
        )
        self._client = UpstreamClient(
            "Weather",
            base_url="https://api.openweathermap.org/data/2.5",
            timeout=cfg.weather_timeout_s,
            transport=transport,
            error_log=self._log,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    def _params(self) -> dict[str, str]:
        return {
            "q": self._cfg.weather_city,
            "appid": self._cfg.weather_api_key,
            "units": self._cfg.weather_units,
            "lang": self._cfg.weather_lang,
        }

    async def get_weather(self) -> dict[str, Any]:
        if not self._cfg.weather_api_key:
            raise NotConfiguredError("WEATHER_API_KEY is not configured")
        try:
            return await self._cache.get(DEFAULT_KEY, self._load)
        except Exception as exc:
            self._log.error("Error fetching weather data: %s", exc)
            raise

    async def _load(self) -> dict[str, Any]:
        forecast = await self._client.get_json("/forecast", params=self._params())
        current = await self._client.get_json("/weather", params=self._params())
        return build_weather(forecast or {}, current, self._today(), ZoneInfo(self._cfg.timezone))
