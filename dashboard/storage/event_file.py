from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import List

from ..domain.models import NormalizedEvent

logger = logging.getLogger(__name__)


class EventFileStore:
    """Best-effort JSON dump of the last scraped event list.

    File layout: ``{"events": [...], "lastUpdate": iso, "count": n}``.
    Read and write errors are logged, never raised.
    """

    def __init__(self, path: str) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _write(self, events: List[NormalizedEvent], last_update: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "events": [e.to_dict() for e in events],
            "lastUpdate": last_update,
            "count": len(events),
        }
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
        tmp.replace(self._path)

    def _read(self) -> List[NormalizedEvent]:
        if not self._path.exists():
            return []
        data = json.loads(self._path.read_text(encoding="utf-8"))
        return [NormalizedEvent.from_dict(e) for e in data.get("events") or []]

    async def save(self, events: List[NormalizedEvent], last_update: str) -> None:
        try:
            await asyncio.to_thread(self._write, events, last_update)
            logger.info("Saved %d events to %s", len(events), self._path)
        except (OSError, TypeError, ValueError):
            logger.exception("Failed to save events to %s", self._path)

    async def load(self) -> List[NormalizedEvent]:
        try:
            return await asyncio.to_thread(self._read)
        except (OSError, ValueError, KeyError, TypeError):
            logger.exception("Failed to load events from %s", self._path)
            return []
