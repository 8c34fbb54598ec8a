from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass(frozen=True)
class NormalizedEvent:
    id: str
    title: str
    time: str
    start: str  # UTC ISO instant
    end: str
    date: str  # ISO day in the local zone
    is_all_day: bool
    source: str  # "google" | "nantes" | "pullrouge"
    end_time: Optional[str] = None
    location: Optional[str] = None
    description: Optional[str] = None
    type: Optional[str] = None
    organizer: Optional[str] = None
    url: Optional[str] = None
    image: Optional[str] = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        out = {
            "id": self.id,
            "title": self.title,
            "time": self.time,
            "endTime": self.end_time,
            "location": self.location,
            "description": self.description,
            "start": self.start,
            "end": self.end,
            "date": self.date,
            "isAllDay": self.is_all_day,
            "source": self.source,
            "type": self.type,
            "organizer": self.organizer,
            "url": self.url,
            "image": self.image,
        }
        out.update(self.extra)
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "NormalizedEvent":
        known = {
            "id", "title", "time", "endTime", "location", "description", "start", "end",
            "date", "isAllDay", "source", "type", "organizer", "url", "image",
        }
        return cls(
            id=str(data["id"]),
            title=data.get("title") or "",
            time=data.get("time") or "",
            start=data["start"],
            end=data.get("end") or data["start"],
            date=data.get("date") or data["start"][:10],
            is_all_day=bool(data.get("isAllDay")),
            source=data.get("source") or "",
            end_time=data.get("endTime"),
            location=data.get("location"),
            description=data.get("description"),
            type=data.get("type"),
            organizer=data.get("organizer"),
            url=data.get("url"),
            image=data.get("image"),
            extra={k: v for k, v in data.items() if k not in known},
        )


@dataclass(frozen=True)
class ColorXY:
    x: float
    y: float

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y}


@dataclass(frozen=True)
class RoomLightStatus:
    all_on: bool
    any_on: bool
    all_off: bool
    brightness: int
    lights_count: int
    lights_on: int
    color: Optional[str]
    color_xy: Optional[ColorXY]

    def to_dict(self) -> dict[str, Any]:
        return {
            "allOn": self.all_on,
            "anyOn": self.any_on,
            "allOff": self.all_off,
            "brightness": self.brightness,
            "lightsCount": self.lights_count,
            "lightsOn": self.lights_on,
            "color": self.color,
            "colorXY": self.color_xy.to_dict() if self.color_xy else None,
        }


@dataclass(frozen=True)
class DailyPoint:
    date: str
    date_label: str
    value: float

    def to_dict(self) -> dict[str, Any]:
        return {"date": self.date, "dateLabel": self.date_label, "value": self.value}


@dataclass(frozen=True)
class MonthlyPoint:
    month: str
    month_label: str
    value: float

    def to_dict(self) -> dict[str, Any]:
        return {"month": self.month, "monthLabel": self.month_label, "value": self.value}


@dataclass(frozen=True)
class ContractInfo:
    subscribed_power: Optional[Any]
    contract_type: Optional[Any]

    def to_dict(self) -> dict[str, Any]:
        return {"subscribedPower": self.subscribed_power, "contractType": self.contract_type}


@dataclass(frozen=True)
class ElectricityWidgetData:
    today: float
    yesterday: float
    day_before_yesterday: float
    week_total: float
    week_average: float
    previous_week_total: float
    daily_chart_data: list[DailyPoint]
    monthly_chart_data: list[MonthlyPoint]
    contract_info: Optional[ContractInfo]
    last_update: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "today": self.today,
            "yesterday": self.yesterday,
            "dayBeforeYesterday": self.day_before_yesterday,
            "weekTotal": self.week_total,
            "weekAverage": self.week_average,
            "previousWeekTotal": self.previous_week_total,
            "dailyChartData": [p.to_dict() for p in self.daily_chart_data],
            "monthlyChartData": [p.to_dict() for p in self.monthly_chart_data],
            "contractInfo": self.contract_info.to_dict() if self.contract_info else None,
            "lastUpdate": self.last_update,
        }


@dataclass(frozen=True)
class NewsArticle:
    title: str
    clean_title: str
    description: str
    source: str
    url: str
    published_at: str
    url_to_image: Optional[str] = None
    author: Optional[str] = None
    content: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "cleanTitle": self.clean_title,
            "description": self.description,
            "source": self.source,
            "url": self.url,
            "urlToImage": self.url_to_image,
            "author": self.author,
            "content": self.content,
            "publishedAt": self.published_at,
        }


@dataclass(frozen=True)
class BusDeparture:
    line: str
    direction: str
    time: str
    is_real_time: bool
    platform: Optional[str]

    def to_dict(self) -> dict[str, Any]:
        return {
            "line": self.line,
            "direction": self.direction,
            "time": self.time,
            "isRealTime": self.is_real_time,
            "platform": self.platform,
        }


@dataclass(frozen=True)
class WeatherDay:
    date: str
    temp: int
    temp_min: int
    temp_max: int
    description: str
    icon: str
    humidity: Optional[int]
    wind_speed: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date,
            "temp": self.temp,
            "tempMin": self.temp_min,
            "tempMax": self.temp_max,
            "description": self.description,
            "icon": self.icon,
            "humidity": self.humidity,
            "windSpeed": self.wind_speed,
        }
