from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta
from typing import Callable, Optional
from urllib.parse import quote
from zoneinfo import ZoneInfo

import httpx

from ..core.config import Settings, settings
from ..core.errors import NotConfiguredError
from ..core.log import ThrottledLogger
from ..core.timeutil import iso_utc, now_utc, start_of_day
from ..domain.calendar import SOURCE, normalize_items
from ..domain.models import NormalizedEvent
from ..drivers.upstream import UpstreamClient

logger = logging.getLogger(__name__)

CALENDAR_API = "https://www.googleapis.com/calendar/v3"


class CalendarService:
    """Upcoming events of one Google calendar (Calendar v3 ``events.list``).

    Not cached: the family calendar is read on every request.
    """

    source = SOURCE

    def __init__(
        self,
        cfg: Settings = settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = now_utc,
    ) -> None:
        self._cfg = cfg
        self._now = now
        self._log = ThrottledLogger(logger, cfg.error_log_interval_s, clock)
        self._client = UpstreamClient(
            "Google Calendar",
            base_url=CALENDAR_API,
            timeout=cfg.calendar_timeout_s,
            transport=transport,
            error_log=self._log,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get_events(self) -> list[NormalizedEvent]:
        if not self._cfg.calendar_id or not self._cfg.google_api_key:
            raise NotConfiguredError("CALENDAR_ID and GOOGLE_API_KEY must be configured")

        tz = ZoneInfo(self._cfg.timezone)
        now = self._now()
        window_start = start_of_day(now.astimezone(tz).date(), tz)
        window_end = window_start + timedelta(days=self._cfg.calendar_days_ahead)
        params = {
            "key": self._cfg.google_api_key,
            "timeMin": iso_utc(window_start),
            "timeMax": iso_utc(window_end),
            "singleEvents": "true",
            "orderBy": "startTime",
            "maxResults": "250",
        }
        try:
            payload = await self._client.get_json(
                f"/calendars/{quote(self._cfg.calendar_id, safe='')}/events", params=params
            )
        except Exception as exc:
            self._log.error("Error fetching calendar events: %s", exc)
            raise

        events = normalize_items((payload or {}).get("items") or [], tz, now)
        if self._cfg.max_events:
            events = events[: self._cfg.max_events]
        return events
