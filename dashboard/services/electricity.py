from __future__ import annotations

import asyncio
import logging
import time
from datetime import date, timedelta
from typing import Any, Callable, Optional

import httpx

from ..core.cache import ReadThroughCache
from ..core.config import Settings, settings
from ..core.errors import NotConfiguredError, UpstreamError
from ..core.log import ThrottledLogger
from ..core.timeutil import iso_utc, now_utc, today_local
from ..domain.electricity import add_months, build_widget_data, parse_contract
from ..domain.models import ContractInfo, ElectricityWidgetData
from ..domain.readings import ReadingBatch
from ..drivers.upstream import RetryPolicy, Sleep, UpstreamClient

logger = logging.getLogger(__name__)


class ElectricityService:
    """Daily/weekly/monthly consumption from MyElectricalData (Enedis Linky)."""

    def __init__(
        self,
        cfg: Settings = settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Sleep = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        today: Callable[[], date] = today_local,
    ) -> None:
        self._cfg = cfg
        self._sleep = sleep
        self._today = today
        self._log = ThrottledLogger(logger, cfg.error_log_interval_s, clock)
        self._cache: ReadThroughCache[ElectricityWidgetData] = ReadThroughCache(
            "electricity", cfg.electricity_cache_ttl_s, clock, cfg.dedupe_inflight_requests
        )
        self._client = UpstreamClient(
            "MyElectricalData",
            base_url=cfg.myelectricaldata_base_url,
            headers={"Authorization": cfg.myelectricaldata_token},
            timeout=cfg.electricity_timeout_s,
            retry=RetryPolicy(retries=cfg.electricity_retries),
            transport=transport,
            sleep=sleep,
            error_log=self._log,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    def invalidate(self) -> None:
        self._cache.invalidate()

    def _suffix(self) -> str:
        return "/cache/" if self._cfg.myelectricaldata_use_cache else ""

    async def daily_consumption(self, start: date, end: date) -> Any:
        pdl = self._cfg.myelectricaldata_pdl
        return await self._client.get_json(
            f"/daily_consumption/{pdl}/start/{start.isoformat()}/end/{end.isoformat()}{self._suffix()}"
        )

    async def contract(self) -> Any:
        pdl = self._cfg.myelectricaldata_pdl
        suffix = "/cache/" if self._cfg.myelectricaldata_use_cache else "/"
        return await self._client.get_json(f"/contracts/{pdl}{suffix}")

    async def get_widget_data(self, daily_chart_days: int = 7) -> ElectricityWidgetData:
        if not self._cfg.myelectricaldata_pdl or not self._cfg.myelectricaldata_token:
            raise NotConfiguredError("MYELECTRICALDATA_PDL and MYELECTRICALDATA_TOKEN must be configured")
        try:
            return await self._cache.get(str(daily_chart_days), lambda: self._load(daily_chart_days))
        except Exception as exc:
            self._log.error("Error getting electricity widget data: %s", exc)
            raise

    async def _load(self, daily_chart_days: int) -> ElectricityWidgetData:
        today = self._today()
        spacing = self._cfg.electricity_call_spacing_s

        days_to_fetch = max(7, daily_chart_days)
        main = ReadingBatch.from_payload(
            await self.daily_consumption(today - timedelta(days=days_to_fetch), today)
        )

        await self._sleep(spacing)
        previous: Optional[ReadingBatch] = None
        try:
            previous = ReadingBatch.from_payload(
                await self.daily_consumption(today - timedelta(days=14), today - timedelta(days=7))
            )
        except UpstreamError as exc:
            self._log.warning("Could not fetch previous week data: %s", exc)

        await self._sleep(spacing)
        contract: Optional[ContractInfo] = None
        try:
            contract = parse_contract(await self.contract())
        except UpstreamError as exc:
            self._log.warning("Could not fetch contract info: %s", exc)

        monthly: Optional[ReadingBatch] = None
        monthly_failed = False
        try:
            await self._sleep(spacing)
            start = add_months(today, -self._cfg.electricity_monthly_fetch_months)
            monthly = ReadingBatch.from_payload(await self.daily_consumption(start, today))
        except UpstreamError as exc:
            self._log.warning("Could not fetch monthly consumption data: %s", exc)
            monthly_failed = True

        logger.info(
            "Electricity refreshed: %d readings, %d chart days", len(main.readings), daily_chart_days
        )
        return build_widget_data(
            main,
            today,
            daily_chart_days,
            iso_utc(now_utc()),
            previous_week=previous,
            monthly=monthly,
            monthly_failed=monthly_failed,
            contract=contract,
        )
