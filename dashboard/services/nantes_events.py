from __future__ import annotations

import logging
import time
from datetime import date
from typing import Callable, Optional
from zoneinfo import ZoneInfo

import httpx

from ..core.cache import DEFAULT_KEY, ReadThroughCache
from ..core.config import Settings, settings
from ..core.log import ThrottledLogger
from ..core.timeutil import today_local
from ..domain.models import NormalizedEvent
from ..domain.nantes import (
    filter_by_categories,
    normalize_events,
    page_starts_after,
    parse_categories,
)
from ..drivers.upstream import UpstreamClient

logger = logging.getLogger(__name__)

# Facet request returning the "nm-types" category labels alongside events
AGGREGATION_PARAMS = [
    ("aggregations[0][k]", "nm-types"),
    ("aggregations[0][t]", "af"),
    ("aggregations[0][m]", ""),
    ("aggregations[0][f]", "nm-types"),
    ("aggregations[0][s]", "2000"),
]


class NantesEventsService:
    """Public events from the Nantes Métropole agenda.

    The cached list is unfiltered; category filtering and ``limit`` apply on
    every read so one upstream fetch serves all filter combinations.
    """

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
        self._events: ReadThroughCache[list[NormalizedEvent]] = ReadThroughCache(
            "nantes-events", cfg.nantes_cache_ttl_s, clock, cfg.dedupe_inflight_requests
        )
        self._categories: ReadThroughCache[list[str]] = ReadThroughCache(
            "nantes-categories", cfg.nantes_cache_ttl_s, clock, cfg.dedupe_inflight_requests
        )
        self._client = UpstreamClient(
            "Nantes agenda",
            headers={"Accept": "application/json", "User-Agent": "Mozilla/5.0"},
            timeout=cfg.nantes_timeout_s,
            transport=transport,
            error_log=self._log,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    def invalidate(self) -> None:
        self._events.invalidate()
        self._categories.invalidate()

    async def get_events(
        self,
        date_max: Optional[date] = None,
        categories: Optional[list[str]] = None,
        limit: Optional[int] = None,
    ) -> tuple[list[NormalizedEvent], bool]:
        """Events from today on, plus whether ``limit`` cut the list short."""
        key = date_max.isoformat() if date_max else "all"
        try:
            events = await self._events.get(key, lambda: self._load(date_max))
        except Exception as exc:
            self._log.error("Error fetching Nantes events: %s", exc)
            raise

        selected = filter_by_categories(events, categories)
        if limit is not None and len(selected) > limit:
            return selected[:limit], True
        return selected, False

    async def _load(self, date_max: Optional[date]) -> list[NormalizedEvent]:
        size = self._cfg.nantes_page_size
        raw_events = []
        for page in range(self._cfg.nantes_max_pages):
            params = [
                ("page", str(page)),
                ("size", str(size)),
                ("sort", "timingsWithFeatured.asc"),
                *AGGREGATION_PARAMS,
            ]
            payload = await self._client.get_json(self._cfg.nantes_api_url, params=params)
            items = payload.get("events") if isinstance(payload, dict) else None
            if not items:
                break
            if date_max is not None and page_starts_after(items, date_max, ZoneInfo(self._cfg.timezone)):
                break
            raw_events.extend(items)
            if len(items) < size:
                break

        events = normalize_events(raw_events, ZoneInfo(self._cfg.timezone), self._today(), date_max)
        logger.info("Nantes agenda: %d raw records -> %d events", len(raw_events), len(events))
        return events

    async def get_categories(self) -> list[str]:
        try:
            return await self._categories.get(DEFAULT_KEY, self._load_categories)
        except Exception as exc:
            self._log.error("Error fetching Nantes categories: %s", exc)
            raise

    async def _load_categories(self) -> list[str]:
        payload = await self._client.get_json(self._cfg.nantes_api_url, params=AGGREGATION_PARAMS)
        return parse_categories(payload)
