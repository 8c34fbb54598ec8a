from __future__ import annotations

import logging
import math
import time
from typing import Any, Callable, Optional

import httpx

from ..core.cache import ReadThroughCache
from ..core.config import Settings, settings
from ..core.errors import BadRequestError, NotConfiguredError, NotFoundError, UpstreamError
from ..core.log import ThrottledLogger
from ..core.timeutil import iso_utc, now_utc
from ..domain.hue import (
    BridgeSnapshot,
    Resource,
    by_v1_membership,
    find_room,
    grouped_light_rid,
    is_on,
    resolve_lights,
    room_payload,
    room_scenes,
    v1_group_id,
)
from ..drivers.hue_bridge import HueBridge

logger = logging.getLogger(__name__)


class HueService:
    """Room status and light control through the Hue bridge.

    Room status is cached per room name for a couple of seconds. Every
    mutation drops the whole cache, whether or not the bridge accepted it, so
    the next read always reflects the bridge.
    """

    def __init__(
        self,
        cfg: Settings = settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._cfg = cfg
        self._transport = transport
        self._log = ThrottledLogger(logger, cfg.error_log_interval_s, clock)
        self._cache: ReadThroughCache[dict[str, Any]] = ReadThroughCache(
            "hue", cfg.hue_cache_ttl_s, clock, cfg.dedupe_inflight_requests
        )
        self._bridge: Optional[HueBridge] = None

    def bridge(self) -> HueBridge:
        if not self._cfg.hue_app_key or not self._cfg.hue_bridge_ip:
            raise NotConfiguredError("HUE_APP_KEY not configured")
        if self._bridge is None:
            self._bridge = HueBridge(
                self._cfg.hue_bridge_ip,
                self._cfg.hue_app_key,
                timeout=self._cfg.hue_timeout_s,
                transport=self._transport,
                error_log=self._log,
            )
        return self._bridge

    async def aclose(self) -> None:
        if self._bridge is not None:
            await self._bridge.aclose()

    def _room_name(self, room_name: Optional[str]) -> str:
        return room_name or self._cfg.hue_default_room

    async def _find_room(self, name: str) -> tuple[Resource, str]:
        room = find_room(await self.bridge().list_resources("room"), name)
        if room is None:
            raise NotFoundError(f'Room "{name}" not found')
        rid = grouped_light_rid(room)
        if not rid:
            raise NotFoundError(f'No grouped_light service found for room "{name}"')
        return room, rid

    async def _grouped_light(self, rid: str) -> Resource:
        group = await self.bridge().get_resource("grouped_light", rid)
        if group is None:
            raise NotFoundError(f"Grouped light {rid} not found")
        return group

    # --- reads ---

    async def get_room_status(self, room_name: Optional[str] = None) -> dict[str, Any]:
        name = self._room_name(room_name)
        try:
            return await self._cache.get(name.lower(), lambda: self._load_room(name))
        except Exception as exc:
            self._log.error("Error fetching Hue room %s: %s", name, exc)
            raise

    async def _load_room(self, name: str) -> dict[str, Any]:
        bridge = self.bridge()
        room, rid = await self._find_room(name)
        group = await self._grouped_light(rid)

        try:
            everything = await bridge.all_resources()
        except UpstreamError as exc:
            logger.debug("Hue resource dump unavailable: %s", exc)
            everything = []

        snap = BridgeSnapshot(
            room=room,
            grouped_light=group,
            devices=await bridge.list_resources("device"),
            lights=await bridge.list_resources("light"),
            all_resources=everything,
        )
        lights = resolve_lights(snap)
        if not lights:
            lights = await self._lights_from_v1_group(snap)

        return room_payload(snap, lights, name, iso_utc(now_utc()))

    async def _lights_from_v1_group(self, snap: BridgeSnapshot) -> list[Resource]:
        group_id = v1_group_id(snap.grouped_light)
        if group_id is None:
            return []
        try:
            group = await self.bridge().v1_group(group_id)
        except UpstreamError as exc:
            logger.debug("Hue v1 group %s lookup failed: %s", group_id, exc)
            return []
        member_ids = group.get("lights")
        if not isinstance(member_ids, list):
            return []
        return by_v1_membership(snap.lights, member_ids)

    async def get_room_scenes(self, room_name: Optional[str] = None) -> dict[str, Any]:
        room, _ = await self._find_room(self._room_name(room_name))
        scenes = await self.bridge().list_resources("scene")
        return {"scenes": room_scenes(scenes, room.get("id"))}

    # --- mutations ---

    async def toggle_room(self, room_name: Optional[str] = None, turn_on: Optional[bool] = None) -> dict[str, Any]:
        name = self._room_name(room_name)
        try:
            _, rid = await self._find_room(name)
            if turn_on is None:
                turn_on = not is_on(await self._grouped_light(rid))
            await self.bridge().put_resource("grouped_light", rid, {"on": {"on": turn_on}})
        finally:
            self._cache.invalidate()
        logger.info("Hue room %s turned %s", name, "on" if turn_on else "off")
        return {"turnedOn": turn_on}

    async def set_room_brightness(self, room_name: Optional[str], brightness: float) -> dict[str, Any]:
        level = max(0, min(100, int(math.floor(brightness + 0.5))))
        try:
            _, rid = await self._find_room(self._room_name(room_name))
            await self.bridge().put_resource(
                "grouped_light", rid, {"on": {"on": level > 0}, "dimming": {"brightness": level}}
            )
        finally:
            self._cache.invalidate()
        return {"brightness": level}

    async def set_room_color(self, room_name: Optional[str], x: float, y: float) -> dict[str, Any]:
        try:
            _, rid = await self._find_room(self._room_name(room_name))
            await self.bridge().put_resource("grouped_light", rid, {"color": {"xy": {"x": x, "y": y}}})
        finally:
            self._cache.invalidate()
        return {"color": {"x": x, "y": y}}

    async def toggle_light(self, light_id: str, turn_on: Optional[bool] = None) -> dict[str, Any]:
        if not light_id:
            raise BadRequestError("Light ID is required")
        try:
            if turn_on is None:
                try:
                    light = await self.bridge().get_resource("light", light_id)
                except UpstreamError as exc:
                    if exc.status == 404:
                        raise NotFoundError(f"Light {light_id} not found") from exc
                    raise
                if light is None:
                    raise NotFoundError(f"Light {light_id} not found")
                turn_on = not is_on(light)
            await self.bridge().put_resource("light", light_id, {"on": {"on": bool(turn_on)}})
        finally:
            self._cache.invalidate()
        return {"lightId": light_id, "on": bool(turn_on)}

    async def activate_scene(self, scene_id: str) -> dict[str, Any]:
        if not scene_id:
            raise BadRequestError("Scene ID is required")
        try:
            await self.bridge().put_resource("scene", scene_id, {"recall": {"action": "active"}})
        finally:
            self._cache.invalidate()
        return {"sceneId": scene_id}
