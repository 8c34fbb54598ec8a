from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional

import httpx

from ..core.cache import ReadThroughCache
from ..core.config import Settings, settings
from ..core.errors import NotConfiguredError
from ..core.log import ThrottledLogger
from ..core.timeutil import iso_utc, now_utc
from ..domain.news import NEWS_TYPES, parse_latest, resolve_type
from ..drivers.upstream import UpstreamClient

logger = logging.getLogger(__name__)

NEWSDATA_URL = "https://newsdata.io/api/1/latest"


class NewsService:
    def __init__(
        self,
        cfg: Settings = settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._cfg = cfg
        self._log = ThrottledLogger(logger, cfg.error_log_interval_s, clock)
        self._cache: ReadThroughCache[dict[str, Any]] = ReadThroughCache(
            "news", cfg.news_cache_ttl_s, clock, cfg.dedupe_inflight_requests
        )
        self._client = UpstreamClient(
            "NewsData",
            headers={"User-Agent": "Family-Dashboard/1.0", "Accept": "application/json"},
            timeout=cfg.news_timeout_s,
            transport=transport,
            error_log=self._log,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get_news(self, news_type: Optional[str] = None) -> dict[str, Any]:
        if not self._cfg.newsdata_api_key:
            raise NotConfiguredError("NEWSDATA_API_KEY is not configured")
        resolved = resolve_type(news_type)
        try:
            return await self._cache.get(resolved, lambda: self._load(resolved))
        except Exception as exc:
            self._log.error("Error fetching news data (%s): %s", resolved, exc)
            raise

    async def _load(self, news_type: str) -> dict[str, Any]:
        params = dict(NEWS_TYPES[news_type], apikey=self._cfg.newsdata_api_key)
        payload = await self._client.get_json(NEWSDATA_URL, params=params)
        result = parse_latest(payload, iso_utc(now_utc()))
        logger.info("News refreshed type=%s articles=%d", news_type, len(result["articles"]))
        return result
