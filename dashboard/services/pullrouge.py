from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Callable, Optional
from zoneinfo import ZoneInfo

import httpx

from ..core.cache import DEFAULT_KEY, ReadThroughCache
from ..core.config import Settings, settings
from ..core.errors import UpstreamError
from ..core.log import ThrottledLogger
from ..core.timeutil import iso_utc, now_utc
from ..domain.models import NormalizedEvent
from ..domain.pullrouge import SOURCE, body_text, parse_agenda, upcoming
from ..drivers.upstream import UpstreamClient
from ..storage.event_file import EventFileStore

logger = logging.getLogger(__name__)

BROWSER_UA = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"


class PullRougeService:
    """Concerts scraped from pullrouge.fr.

    A cold cache is filled from the JSON dump of the last scrape when it still
    holds upcoming concerts, so a restart does not hit the site. Unlike the
    other integrations a failed scrape is not an error: the last scraped list
    (cache, then the JSON file on disk) is served instead, or an empty list
    when neither exists.
    """

    source = SOURCE

    def __init__(
        self,
        cfg: Settings = settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = now_utc,
        store: Optional[EventFileStore] = None,
    ) -> None:
        self._cfg = cfg
        self._now = now
        self._store = store or EventFileStore(cfg.pullrouge_events_file)
        self._log = ThrottledLogger(logger, cfg.error_log_interval_s, clock)
        self._cache: ReadThroughCache[list[NormalizedEvent]] = ReadThroughCache(
            "pullrouge", cfg.pullrouge_cache_ttl_s, clock, cfg.dedupe_inflight_requests
        )
        self._client = UpstreamClient(
            "PullRouge",
            headers={"User-Agent": BROWSER_UA},
            timeout=cfg.pullrouge_timeout_s,
            transport=transport,
            error_log=self._log,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get_events(self) -> list[NormalizedEvent]:
        try:
            return await self._cache.get(DEFAULT_KEY, self._refresh)
        except UpstreamError as exc:
            self._log.error("PullRouge scrape failed, serving last known events: %s", exc)

        cell = self._cache.peek(DEFAULT_KEY)
        if cell is not None and cell.value is not None:
            return cell.value
        return upcoming(await self._store.load(), iso_utc(self._now()))

    async def _refresh(self) -> list[NormalizedEvent]:
        # Cold cache: the last dump on disk seeds the cell; expiries after that scrape.
        if self._cache.peek(DEFAULT_KEY) is None:
            saved = upcoming(await self._store.load(), iso_utc(self._now()))
            if saved:
                logger.info("PullRouge loaded %d events from %s", len(saved), self._store.path)
                return saved
        return await self._scrape()

    async def _scrape(self) -> list[NormalizedEvent]:
        response = await self._client.request("GET", self._cfg.pullrouge_url)
        parsed = parse_agenda(body_text(response.text), ZoneInfo(self._cfg.timezone))
        now_iso = iso_utc(self._now())
        events = upcoming(parsed, now_iso)
        await self._store.save(events, now_iso)
        logger.info("PullRouge refresh complete: %d events (%d parsed)", len(events), len(parsed))
        return events
