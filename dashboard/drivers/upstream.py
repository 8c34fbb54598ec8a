from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, Optional

import httpx

from ..core.errors import UpstreamAuthError, UpstreamError
from ..core.log import ThrottledLogger

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """How rate-limited responses are retried.

    409 (MyElectricalData "try later") waits a fixed delay, 429 honours
    ``Retry-After``. Every other non-2xx status fails on the first attempt.
    """

    retries: int = 0
    conflict_delay_s: float = 3.0
    default_retry_after_s: float = 5.0

    def delay_for(self, response: httpx.Response) -> Optional[float]:
        if response.status_code == 409:
            return self.conflict_delay_s
        if response.status_code == 429:
            header = response.headers.get("retry-after")
            try:
                return float(header) if header else self.default_retry_after_s
            except ValueError:
                return self.default_retry_after_s
        return None


NO_RETRY = RetryPolicy()


def _error_detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(payload, dict):
        errors = payload.get("errors")
        if isinstance(errors, list) and errors:
            return ", ".join(
                str(e.get("description") or e.get("message") or e) if isinstance(e, dict) else str(e)
                for e in errors
            )
        for key in ("message", "error_description", "error"):
            value = payload.get(key)
            if isinstance(value, str) and value:
                return value
            if isinstance(value, dict) and value.get("message"):
                return str(value["message"])
    return response.text[:200]


def error_for_response(name: str, response: httpx.Response) -> UpstreamError:
    detail = _error_detail(response)
    message = f"{name} API returned status {response.status_code}"
    if detail:
        message += f": {detail}"
    cls = UpstreamAuthError if response.status_code in (401, 403) else UpstreamError
    return cls(message, status=response.status_code, body=response.text[:500])


class UpstreamClient:
    """Thin JSON client around one ``httpx.AsyncClient`` for a single upstream."""

    def __init__(
        self,
        name: str,
        base_url: str = "",
        headers: Optional[Mapping[str, str]] = None,
        timeout: float = 30.0,
        retry: RetryPolicy = NO_RETRY,
        verify: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Sleep = asyncio.sleep,
        error_log: Optional[ThrottledLogger] = None,
    ) -> None:
        self.name = name
        self.retry = retry
        self._sleep = sleep
        self._log = error_log or ThrottledLogger(logger)
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=dict(headers or {}),
            timeout=timeout,
            verify=verify,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def request(
        self,
        method: str,
        url: str,
        *,
        retries: Optional[int] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        remaining = self.retry.retries if retries is None else retries
        attempt = 0
        while True:
            attempt += 1
            try:
                response = await self._client.request(method, url, **kwargs)
            except httpx.TimeoutException as exc:
                raise UpstreamError(f"{self.name} API timed out") from exc
            except httpx.HTTPError as exc:
                raise UpstreamError(f"{self.name} API request failed: {exc}") from exc

            if response.is_success:
                return response

            delay = self.retry.delay_for(response)
            if delay is None or remaining <= 0:
                raise error_for_response(self.name, response)

            self._log.warning(
                "%s rate limited (%s) on attempt %d, retrying in %.1fs (%d retries left)",
                self.name, response.status_code, attempt, delay, remaining,
            )
            await self._sleep(delay)
            remaining -= 1

    async def get_json(self, url: str, **kwargs: Any) -> Any:
        response = await self.request("GET", url, **kwargs)
        return decode_json(self.name, response)

    async def send_json(self, method: str, url: str, body: Any = None, **kwargs: Any) -> Any:
        response = await self.request(method, url, json=body, **kwargs)
        return decode_json(self.name, response)


def decode_json(name: str, response: httpx.Response) -> Any:
    """Parsed body, or None for 204 / empty bodies."""
    if response.status_code == 204 or not response.content:
        return None
    try:
        return response.json()
    except ValueError as exc:
        raise UpstreamError(
            f"Failed to parse {name} API response", status=response.status_code, body=response.text[:500]
        ) from exc
