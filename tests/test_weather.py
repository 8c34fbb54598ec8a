"""Tests for the weather forecast shaping."""

from __future__ import annotations

from datetime import date, datetime, timezone

import pytest
from conftest import make_settings

from dashboard.services.weather import WeatherService

TODAY = date(2025, 11, 20)


def entry(year: int, month: int, day: int, hour: int, temp: float) -> dict:
    return {
        "dt": int(datetime(year, month, day, hour, tzinfo=timezone.utc).timestamp()),
        "main": {"temp": temp, "temp_min": temp - 2, "temp_max": temp + 2, "humidity": 80},
        "weather": [{"description": "pluie légère", "icon": "10d"}],
        "wind": {"speed": 4.1},
    }


FORECAST = {
    "city": {"name": "Rezé", "country": "FR"},
    "list": [
        entry(2025, 11, 20, 15, 11.0),
        entry(2025, 11, 21, 9, 8.5),
        entry(2025, 11, 21, 12, 14.0),
        entry(2025, 11, 22, 9, 6.4),
    ],
}

CURRENT = {
    "main": {"temp": 12.5, "temp_min": 10.2, "temp_max": 13.7, "humidity": 71},
    "weather": [{"description": "nuageux", "icon": "04d"}],
    "wind": {"speed": 3.2},
}


@pytest.mark.asyncio
async def test_current_and_daily_forecast(upstream, clock) -> None:
    upstream.on("GET", "/data/2.5/forecast", FORECAST)
    upstream.on("GET", "/data/2.5/weather", CURRENT)
    cfg = make_settings(weather_api_key="k")
    svc = WeatherService(cfg, transport=upstream.transport, clock=clock, today=lambda: TODAY)

    data = await svc.get_weather()

    assert data["city"] == "Rezé"
    assert data["current"]["date"] == "2025-11-20"
    assert data["current"]["temp"] == 13
    assert data["current"]["description"] == "nuageux"
    assert [d["date"] for d in data["forecast"]] == ["2025-11-21", "2025-11-22"]
    assert data["forecast"][0]["temp"] == 9
    assert data["forecast"][1]["tempMax"] == 8
    assert len(data["hourlyForecast"]) == 4
    assert upstream.requests[0].url.params["units"] == "metric"
    assert upstream.requests[0].url.params["lang"] == "fr"
