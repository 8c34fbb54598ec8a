"""Line parser for the PullRouge concert agenda.

The page is a loosely formatted text listing::

    vendredi 21 novembre 2025
    20h00 ARTISTE _présente_ INVITÉ @ Lune Froide / 5€

Dates and times open an event, the detail lines that follow are joined, and a
blank line (or the next date/time) closes it. Anything that does not look
like an event is skipped rather than failing the page.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Iterable, Optional
from zoneinfo import ZoneInfo

from bs4 import BeautifulSoup

from ..core.timeutil import iso_utc
from .models import NormalizedEvent

logger = logging.getLogger(__name__)

SOURCE = "pullrouge"

FR_MONTHS = {
    "janvier": 1, "février": 2, "mars": 3, "avril": 4, "mai": 5, "juin": 6,
    "juillet": 7, "août": 8, "septembre": 9, "octobre": 10, "novembre": 11, "décembre": 12,
}

DATE_RE = re.compile(
    r"(lundi|mardi|mercredi|jeudi|vendredi|samedi|dimanche)\s+(\d{1,2})\s+"
    r"(" + "|".join(FR_MONTHS) + r")\s+(\d{4})",
    re.IGNORECASE,
)
TIME_RE = re.compile(r"(\d{1,2})h(\d{2})")
TIME_LINE_RE = re.compile(r"^(\d{1,2}h\d{2})\s+(.+)$")
STAMP_RE = re.compile(r"^\d{4}\s+\d{2}h\d{2}")
PRICE_LIKE_RE = re.compile(r"^\d+€|prix|free|COMPLET|ANNULÉ", re.IGNORECASE)
VENUE_RE = re.compile(r"^([^/]+?)(?:\s*/\s*(.+))?$")
PRICE_AFTER_VENUE_RE = re.compile(r"^[^/]+\s*/\s*(.+)$")

NOISE_MARKERS = ("▼", "▲", "bouloches du jour", "détails", "tricots copains", "©", "https://", "http://")

MIN_TEXT_LEN = 5


def body_text(html: str) -> str:
    soup = BeautifulSoup(html, "html.parser")
    return (soup.body or soup).get_text()


def parse_french_date(match: re.Match) -> Optional[date]:
    try:
        return date(int(match.group(4)), FR_MONTHS[match.group(3).lower()], int(match.group(2)))
    except (KeyError, ValueError):
        return None


def parse_time(text: str) -> Optional[time]:
    match = TIME_RE.search(text)
    if not match:
        return None
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        return None
    return time(hours, minutes)


def extract_venue(text: str) -> Optional[str]:
    at = text.find("@")
    if at == -1:
        return None
    after = text[at + 1:].strip()
    match = VENUE_RE.match(after)
    venue = match.group(1).strip() if match else after
    return re.sub(r"\s*/\s*$", "", venue) or None


def extract_price(text: str) -> Optional[str]:
    at = text.find("@")
    if at == -1:
        _, slash, rest = text.partition("/")
        if not slash:
            return None
        return rest.strip() or None
    match = PRICE_AFTER_VENUE_RE.match(text[at + 1:].strip())
    return match.group(1).strip() if match else None


def clean_artist(text: str) -> str:
    text = re.sub(r"\s*_présente_\s*", " ", text, flags=re.IGNORECASE)
    text = re.sub(r"\s*>>\s*", " / ", text)
    text = re.sub(r"\s*>\s*", " / ", text)
    return text.strip()


def is_noise(text: str) -> bool:
    if any(marker in text for marker in NOISE_MARKERS):
        return True
    if text.strip().startswith("*") or STAMP_RE.match(text):
        return True
    if ("VERNISSAGE" in text or "FINISSAGE" in text) and "@" not in text:
        return True
    return False


def build_event(text: str, day: date, at: time, tz: ZoneInfo) -> Optional[NormalizedEvent]:
    if is_noise(text) or len(text.strip()) < MIN_TEXT_LEN:
        return None

    venue = extract_venue(text)
    price = extract_price(text)

    at_index = text.find("@")
    if at_index != -1:
        artist = text[:at_index].strip()
    else:
        artist = text
        slash = text.find("/")
        if slash != -1 and not price and not PRICE_LIKE_RE.search(text[slash + 1:].strip()):
            artist = text[:slash].strip()
    artist = clean_artist(artist)
    if len(artist) < 2:
        return None

    starts = datetime.combine(day, at, tzinfo=tz)
    slug = re.sub(r"\s+", "_", artist[:20])
    instant = iso_utc(starts)
    return NormalizedEvent(
        id=f"pullrouge_{day:%Y%m%d}_{at:%H%M}_{slug}",
        title=artist,
        time=f"{at:%H:%M}",
        start=instant,
        end=instant,
        date=day.isoformat(),
        is_all_day=False,
        source=SOURCE,
        location=venue,
        description=price,
        extra={"venue": venue, "priceInfo": price},
    )


@dataclass
class _State:
    day: Optional[date] = None
    at: Optional[time] = None


class AgendaParser:
    def __init__(self, tz: ZoneInfo) -> None:
        self._tz = tz
        self._state = _State()
        self._lines: list[str] = []
        self.events: list[NormalizedEvent] = []

    def _flush(self) -> None:
        if self._lines and self._state.day and self._state.at:
            text = " ".join(self._lines).strip()
            if len(text) > MIN_TEXT_LEN:
                event = build_event(text, self._state.day, self._state.at, self._tz)
                if event is not None:
                    self.events.append(event)
        self._lines = []

    def _push_after(self, text: str) -> None:
        if text and len(text) > MIN_TEXT_LEN:
            self._lines.append(text)

    def feed(self, line: str) -> None:
        stripped = line.strip()
        state = self._state

        if not stripped:
            if self._lines and state.day and state.at:
                self._flush()
                state.at = None
            return

        date_match = DATE_RE.search(stripped)
        if date_match:
            self._flush()
            state.day = parse_french_date(date_match)
            rest = stripped[date_match.end():].strip()
            time_match = re.search(r"\d{1,2}h\d{2}", rest)
            state.at = parse_time(time_match.group(0)) if time_match else None
            if time_match and state.at:
                self._push_after(rest[time_match.end():].strip())
            return

        time_line = TIME_LINE_RE.match(stripped)
        if time_line and state.day:
            if state.at:
                self._flush()
            self._lines = []
            parsed = parse_time(time_line.group(1))
            if parsed:
                state.at = parsed
                self._push_after(time_line.group(2).strip())
            return

        if state.day and state.at:
            if ("@" in stripped
                    or (line.startswith(" ") and len(stripped) > 2)
                    or (re.search(r"[A-Za-z]", stripped) and len(stripped) > 3 and not STAMP_RE.match(stripped))):
                self._lines.append(stripped)
            return

        if state.day and not state.at:
            time_match = re.search(r"\d{1,2}h\d{2}", stripped)
            if time_match:
                parsed = parse_time(time_match.group(0))
                if parsed:
                    state.at = parsed
                    self._push_after(stripped[time_match.end():].strip())

    def close(self) -> list[NormalizedEvent]:
        self._flush()
        return self.events


def parse_agenda(text: str, tz: ZoneInfo) -> list[NormalizedEvent]:
    parser = AgendaParser(tz)
    for line in text.split("\n"):
        parser.feed(line)
    return parser.close()


def upcoming(events: Iterable[NormalizedEvent], now_iso: str) -> list[NormalizedEvent]:
    return sorted((e for e in events if e.start >= now_iso), key=lambda e: e.start)
