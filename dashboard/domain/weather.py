from __future__ import annotations

import math
from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional
from zoneinfo import ZoneInfo

from .models import WeatherDay

FORECAST_DAYS = 7  # today + the next 6


def _round(value: Any) -> int:
    return int(math.floor(float(value or 0) + 0.5))


def to_weather_day(day: date, item: dict[str, Any]) -> WeatherDay:
    main = item.get("main") or {}
    weather = (item.get("weather") or [{}])[0]
    return WeatherDay(
        date=day.isoformat(),
        temp=_round(main.get("temp")),
        temp_min=_round(main.get("temp_min")),
        temp_max=_round(main.get("temp_max")),
        description=weather.get("description") or "",
        icon=weather.get("icon") or "",
        humidity=main.get("humidity"),
        wind_speed=(item.get("wind") or {}).get("speed") or 0,
    )


def first_entry_per_day(entries: list[dict[str, Any]], tz: ZoneInfo) -> dict[date, dict[str, Any]]:
    days: dict[date, dict[str, Any]] = {}
    for item in entries:
        if not isinstance(item, dict) or item.get("dt") is None:
            continue
        day = datetime.fromtimestamp(item["dt"], tz=timezone.utc).astimezone(tz).date()
        days.setdefault(day, item)
    return days


def build_weather(forecast: dict[str, Any], current: Optional[dict[str, Any]], today: date, tz: ZoneInfo) -> dict[str, Any]:
    entries = forecast.get("list") or []
    by_day = first_entry_per_day(entries, tz)

    days: list[WeatherDay] = []
    for offset in range(FORECAST_DAYS):
        day = today + timedelta(days=offset)
        if offset == 0 and current:
            days.append(to_weather_day(day, current))
        elif day in by_day:
            days.append(to_weather_day(day, by_day[day]))

    city = forecast.get("city") or {}
    return {
        "city": city.get("name"),
        "country": city.get("country"),
        "current": days[0].to_dict() if days else None,
        "forecast": [d.to_dict() for d in days[1:FORECAST_DAYS]],
        "hourlyForecast": entries,
    }
