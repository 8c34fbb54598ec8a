from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from .color import mirek_to_xy, parse_xy, xy_to_hex
from .models import ColorXY, RoomLightStatus

Resource = dict[str, Any]

_V1_GROUP_RE = re.compile(r"/groups/(\d+)")
_V1_LIGHT_RE = re.compile(r"/lights/(\d+)")


@dataclass
class BridgeSnapshot:
    """Everything read from the bridge for one room status."""

    room: Resource
    grouped_light: Resource
    devices: list[Resource] = field(default_factory=list)
    lights: list[Resource] = field(default_factory=list)
    all_resources: list[Resource] = field(default_factory=list)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def is_on(resource: Resource) -> bool:
    return (resource.get("on") or {}).get("on") is True


def _services(resource: Resource) -> list[Resource]:
    services = resource.get("services")
    return services if isinstance(services, list) else []


def _refs(resource: Resource, rtype: str, rid: str) -> bool:
    return any(s.get("rtype") == rtype and s.get("rid") == rid for s in _services(resource))


def find_room(rooms: list[Resource], name: str) -> Optional[Resource]:
    wanted = name.lower()
    for room in rooms:
        if ((room.get("metadata") or {}).get("name") or "").lower() == wanted:
            return room
    return None


def grouped_light_rid(room: Resource) -> Optional[str]:
    for service in _services(room):
        if service.get("rtype") == "grouped_light":
            return service.get("rid")
    return None


# --- light resolvers, tried in order; the first non-empty result wins ---

def _owned_by(lights: list[Resource], device_ids: set[str]) -> list[Resource]:
    if not device_ids:
        return []
    return [l for l in lights if (l.get("owner") or {}).get("rid") in device_ids]


def by_room_devices(snap: BridgeSnapshot) -> list[Resource]:
    children = snap.room.get("children")
    refs = _services(snap.room) + (children if isinstance(children, list) else [])
    device_ids = {s.get("rid") for s in refs if s.get("rtype") == "device"}
    return _owned_by(snap.lights, device_ids)


def by_device_backref(snap: BridgeSnapshot) -> list[Resource]:
    room_id = snap.room.get("id")
    device_ids = {d.get("id") for d in snap.devices if _refs(d, "room", room_id)}
    return _owned_by(snap.lights, device_ids)


def by_service_id(snap: BridgeSnapshot) -> list[Resource]:
    group_id = snap.grouped_light.get("id")
    return [l for l in snap.lights if l.get("service_id") == group_id]


def _references_room(light: Resource, snap: BridgeSnapshot) -> bool:
    return (_refs(light, "room", snap.room.get("id"))
            or _refs(light, "grouped_light", snap.grouped_light.get("id")))


def by_light_services(snap: BridgeSnapshot) -> list[Resource]:
    return [l for l in snap.lights if _references_room(l, snap)]


def by_resource_dump(snap: BridgeSnapshot) -> list[Resource]:
    group_id = snap.grouped_light.get("id")
    return [
        r for r in snap.all_resources
        if r.get("type") == "light"
        and (r.get("service_id") == group_id or _references_room(r, snap))
    ]


LIGHT_RESOLVERS: list[Callable[[BridgeSnapshot], list[Resource]]] = [
    by_room_devices,
    by_device_backref,
    by_service_id,
    by_light_services,
    by_resource_dump,
]


def resolve_lights(snap: BridgeSnapshot) -> list[Resource]:
    for resolver in LIGHT_RESOLVERS:
        found = resolver(snap)
        if found:
            return found
    return []


def v1_group_id(grouped_light: Resource) -> Optional[str]:
    match = _V1_GROUP_RE.search(grouped_light.get("id_v1") or "")
    return match.group(1) if match else None


def by_v1_membership(lights: list[Resource], v1_light_ids: list[str]) -> list[Resource]:
    """Last resort: match lights against a legacy ``groups/{n}`` member list."""
    wanted = {str(i) for i in v1_light_ids}
    out = []
    for light in lights:
        match = _V1_LIGHT_RE.search(light.get("id_v1") or "")
        if match and match.group(1) in wanted:
            out.append(light)
    return out


# --- status ---

def _light_xy(light: Resource) -> Optional[ColorXY]:
    if not is_on(light):
        return None
    return parse_xy((light.get("color") or {}).get("xy"))


def room_color(grouped_light: Resource, lights: list[Resource]) -> Optional[ColorXY]:
    """Grouped-light colour if it has one, else the brightness-weighted mean of lit lights."""
    grouped = parse_xy((grouped_light.get("color") or {}).get("xy"))
    if grouped is not None:
        return grouped

    total = sx = sy = 0.0
    for light in lights:
        xy = _light_xy(light)
        if xy is None:
            continue
        weight = ((light.get("dimming") or {}).get("brightness") or 100) / 100
        sx += xy.x * weight
        sy += xy.y * weight
        total += weight
    if total <= 0:
        return None
    return ColorXY(x=sx / total, y=sy / total)


def room_status(grouped_light: Resource, lights: list[Resource]) -> RoomLightStatus:
    group_on = is_on(grouped_light)
    group_brightness = (grouped_light.get("dimming") or {}).get("brightness") or 0

    lit = [l for l in lights if is_on(l)]
    levels = [(l.get("dimming") or {}).get("brightness") or 0 for l in lit if l.get("dimming")]
    if levels:
        brightness = _round_half_up(sum(levels) / len(levels))
    else:
        brightness = _round_half_up(group_brightness) if group_brightness else 0

    xy = room_color(grouped_light, lights)
    color = xy_to_hex(xy.x, xy.y) if xy else None

    if lights:
        return RoomLightStatus(
            all_on=len(lit) == len(lights),
            any_on=bool(lit),
            all_off=not lit,
            brightness=brightness,
            lights_count=len(lights),
            lights_on=len(lit),
            color=color,
            color_xy=xy,
        )

    count = sum(1 for s in _services(grouped_light) if s.get("rtype") == "light")
    return RoomLightStatus(
        all_on=group_on,
        any_on=group_on,
        all_off=not group_on,
        brightness=brightness,
        lights_count=count,
        lights_on=count if group_on else 0,
        color=color,
        color_xy=xy,
    )


def light_summary(light: Resource) -> dict[str, Any]:
    color = light.get("color")
    return {
        "id": light.get("id"),
        "name": (light.get("metadata") or {}).get("name") or "Unknown",
        "on": is_on(light),
        "brightness": (light.get("dimming") or {}).get("brightness") or 0,
        "color": {"xy": color.get("xy"), "gamut": color.get("gamut")} if color else None,
    }


def room_payload(snap: BridgeSnapshot, lights: list[Resource], fallback_name: str, last_update: str) -> dict[str, Any]:
    room, group = snap.room, snap.grouped_light
    return {
        "room": {
            "id": room.get("id"),
            "name": (room.get("metadata") or {}).get("name") or fallback_name,
            "type": room.get("type"),
        },
        "status": room_status(group, lights).to_dict(),
        "lights": [light_summary(l) for l in lights],
        "groupedLight": {
            "id": group.get("id"),
            "on": is_on(group),
            "brightness": (group.get("dimming") or {}).get("brightness") or 0,
        },
        "lastUpdate": last_update,
    }


# --- scenes ---

def _scene_look(scene: Resource) -> tuple[Optional[ColorXY], list[ColorXY], float]:
    colors: list[ColorXY] = []
    brightness = 100
    primary: Optional[ColorXY] = None
    palette = scene.get("palette") or {}

    palette_colors = palette.get("color") or []
    if palette_colors:
        colors = [xy for xy in (parse_xy((c.get("color") or {}).get("xy")) for c in palette_colors) if xy]
        if colors:
            primary = colors[0]
            dimming = palette_colors[0].get("dimming") or {}
            if dimming.get("brightness") is not None:
                brightness = dimming["brightness"]

    temps = palette.get("color_temperature") or []
    if not colors and temps:
        first = temps[0]
        mirek = (first.get("color_temperature") or {}).get("mirek")
        if mirek is not None:
            primary = mirek_to_xy(mirek)
            colors = [primary]
            dimming = first.get("dimming") or {}
            if dimming.get("brightness") is not None:
                brightness = dimming["brightness"]

    actions = scene.get("actions") or []
    if primary is None and actions:
        action = actions[0].get("action") or {}
        if (action.get("color") or {}).get("xy") is not None:
            primary = parse_xy(action["color"]["xy"])
            if primary:
                colors = [primary]
        elif (action.get("color_temperature") or {}).get("mirek") is not None:
            primary = mirek_to_xy(action["color_temperature"]["mirek"])
            colors = [primary]
        dimming = action.get("dimming") or {}
        if dimming.get("brightness") is not None:
            brightness = dimming["brightness"]

    return primary, colors, brightness


def room_scenes(scenes: list[Resource], room_id: str) -> list[dict[str, Any]]:
    out = []
    for scene in scenes:
        if (scene.get("group") or {}).get("rid") != room_id:
            continue
        primary, colors, brightness = _scene_look(scene)
        metadata = scene.get("metadata") or {}
        out.append({
            "id": scene.get("id"),
            "name": metadata.get("name") or scene.get("id"),
            "color": primary.to_dict() if primary else None,
            "colors": [c.to_dict() for c in colors],
            "brightness": brightness,
            "active": (scene.get("status") or {}).get("active") == "active",
            "imageRid": (metadata.get("image") or {}).get("rid"),
        })
    return out
