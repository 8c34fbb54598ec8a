from __future__ import annotations

import re
from typing import Any, Optional

from .models import BusDeparture

DEPARTING_SOON = "Départ proche"
NO_TIME = "Horaire non disponible"

_MINUTES = re.compile(r"(\d+)\s*mn")
_UNKNOWN_MINUTES = 999


def wait_label(temps: str, horaire: Optional[str] = None) -> str:
    if not temps:
        return horaire or NO_TIME
    lowered = temps.lower()
    if "approche" in lowered or "arrivée" in lowered:
        return DEPARTING_SOON
    return f"Dans {temps}"


def to_departure(raw: dict[str, Any]) -> Optional[BusDeparture]:
    temps = raw.get("temps")
    if temps is None or temps == "":
        return None
    return BusDeparture(
        line=str((raw.get("ligne") or {}).get("numLigne") or "N/A"),
        direction=raw.get("terminus") or "N/A",
        time=wait_label(str(temps), raw.get("horaire")),
        is_real_time=raw.get("tempsReel") in ("true", True),
        platform=(raw.get("arret") or {}).get("codeArret") or None,
    )


def sort_key(departure: BusDeparture) -> tuple[int, int]:
    if departure.time == DEPARTING_SOON:
        return (0, 0)
    match = _MINUTES.search(departure.time)
    return (1, int(match.group(1)) if match else _UNKNOWN_MINUTES)


def parse_departures(payload: Any) -> list[BusDeparture]:
    rows = payload if isinstance(payload, list) else []
    departures = [d for d in (to_departure(r) for r in rows if isinstance(r, dict)) if d]
    return sorted(departures, key=sort_key)
