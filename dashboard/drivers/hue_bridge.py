from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from ..core.log import ThrottledLogger
from .upstream import UpstreamClient

logger = logging.getLogger(__name__)


class HueBridge:
    """Driver for a Philips Hue bridge over the CLIP v2 REST API.

    The bridge serves HTTPS with a self-signed certificate, so TLS
    verification is off. Every call sends the ``hue-application-key`` header.
    """

    def __init__(
        self,
        ip: str,
        app_key: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        error_log: Optional[ThrottledLogger] = None,
    ) -> None:
        self._app_key = app_key
        self._client = UpstreamClient(
            "Hue",
            base_url=f"https://{ip}",
            headers={
                "hue-application-key": app_key,
                "Accept": "application/json",
            },
            timeout=timeout,
            verify=False,
            transport=transport,
            error_log=error_log,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def list_resources(self, kind: str) -> list[dict[str, Any]]:
        payload = await self._client.get_json(f"/clip/v2/resource/{kind}")
        return _data(payload)

    async def get_resource(self, kind: str, resource_id: str) -> Optional[dict[str, Any]]:
        items = _data(await self._client.get_json(f"/clip/v2/resource/{kind}/{resource_id}"))
        return items[0] if items else None

    async def all_resources(self) -> list[dict[str, Any]]:
        return _data(await self._client.get_json("/clip/v2/resource"))

    async def put_resource(self, kind: str, resource_id: str, body: dict[str, Any]) -> Any:
        logger.info("Hue PUT %s/%s %s", kind, resource_id, body)
        return await self._client.send_json("PUT", f"/clip/v2/resource/{kind}/{resource_id}", body)

    async def v1_group(self, group_id: str) -> dict[str, Any]:
        payload = await self._client.get_json(f"/api/{self._app_key}/groups/{group_id}")
        return payload if isinstance(payload, dict) else {}


def _data(payload: Any) -> list[dict[str, Any]]:
    if isinstance(payload, dict) and isinstance(payload.get("data"), list):
        return payload["data"]
    return []
