from __future__ import annotations
from typing import Protocol, runtime_checkable
from .models import NormalizedEvent


@runtime_checkable
class EventSource(Protocol):
    source: str

    async def get_events(self) -> list[NormalizedEvent]:
        ...
