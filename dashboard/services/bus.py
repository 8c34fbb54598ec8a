from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional

import httpx

from ..core.cache import DEFAULT_KEY, ReadThroughCache
from ..core.config import Settings, settings
from ..core.errors import NotConfiguredError
from ..core.log import ThrottledLogger
from ..core.timeutil import iso_utc, now_utc
from ..domain.bus import parse_departures
from ..drivers.upstream import UpstreamClient

logger = logging.getLogger(__name__)


class BusService:
    """Next departures at one Naolib stop (real-time waiting times)."""

    def __init__(
        self,
        cfg: Settings = settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._cfg = cfg
        self._log = ThrottledLogger(logger, cfg.error_log_interval_s, clock)
        self._cache: ReadThroughCache[dict[str, Any]] = ReadThroughCache(
            "bus", cfg.bus_cache_ttl_s, clock, cfg.dedupe_inflight_requests
        )
        self._client = UpstreamClient(
            "Naolib",
            base_url=cfg.bus_api_base_url,
            headers={"User-Agent": "Family-Dashboard/1.0", "Accept": "application/json"},
            timeout=cfg.bus_timeout_s,
            transport=transport,
            error_log=self._log,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get_departures(self) -> dict[str, Any]:
        if not self._cfg.bus_stop_id:
            raise NotConfiguredError("BUS_STOP_ID not configured")
        try:
            return await self._cache.get(DEFAULT_KEY, self._load)
        except Exception as exc:
            self._log.error("Error fetching bus departures: %s", exc)
            raise

    async def _load(self) -> dict[str, Any]:
        stop_id = self._cfg.bus_stop_id
        payload = await self._client.get_json(f"/tempsattente.json/{stop_id}")
        departures = parse_departures(payload)
        logger.debug("Bus stop %s: %d departures", stop_id, len(departures))
        return {
            "stopId": stop_id,
            "stopName": self._cfg.bus_stop_name,
            "departures": [d.to_dict() for d in departures],
            "lastUpdate": iso_utc(now_utc()),
        }
