from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_name: str = "Family Dashboard"
    timezone: str = "Europe/Paris"

    # Logging
    log_level: str = "INFO"
    log_file: str = "dashboard.log"
    error_log_interval_s: float = 5 * 60  # same failure logged at most once per window

    # Caching
    dedupe_inflight_requests: bool = True
    cors_allow_all: bool = True

    # MyElectricalData
    myelectricaldata_base_url: str = "https://www.myelectricaldata.fr"
    myelectricaldata_pdl: str = ""
    myelectricaldata_token: str = ""
    myelectricaldata_use_cache: bool = True  # /cache/ endpoints reduce upstream load
    electricity_cache_ttl_s: float = 10 * 60
    electricity_timeout_s: float = 30.0
    electricity_retries: int = 2
    electricity_call_spacing_s: float = 1.0
    electricity_monthly_fetch_months: int = 3

    # Philips Hue bridge (CLIP v2)
    hue_bridge_ip: str = ""
    hue_app_key: str = ""
    hue_cache_ttl_s: float = 2.0
    hue_timeout_s: float = 10.0
    hue_default_room: str = "Salon"

    # newsdata.io
    newsdata_api_key: str = ""
    news_cache_ttl_s: float = 15 * 60
    news_timeout_s: float = 15.0

    # Nantes Métropole agenda
    nantes_api_url: str = "https://metropole.nantes.fr/node/9543/filters"
    nantes_page_size: int = 100
    nantes_max_pages: int = 5
    nantes_cache_ttl_s: float = 10 * 60
    nantes_timeout_s: float = 30.0

    # Naolib real-time departures
    bus_api_base_url: str = "https://open.tan.fr/ewp"
    bus_stop_id: str = ""
    bus_stop_name: str = ""
    bus_cache_ttl_s: float = Field(default=60.0, ge=2, le=60)
    bus_timeout_s: float = 10.0

    # OpenWeatherMap
    weather_api_key: str = ""
    weather_city: str = "Rezé"
    weather_units: str = "metric"
    weather_lang: str = "fr"
    weather_cache_ttl_s: float = 10 * 60
    weather_timeout_s: float = 15.0

    # Google Calendar (public calendar read through an API key)
    calendar_id: str = ""
    google_api_key: str = ""
    calendar_days_ahead: int = 30
    max_events: Optional[int] = None  # None = every upcoming event
    calendar_timeout_s: float = 15.0

    # PullRouge scrape
    pullrouge_url: str = "https://pullrouge.fr/"
    pullrouge_events_file: str = Field(default="data/pullrouge-events.json")
    pullrouge_cache_ttl_s: float = 30 * 60
    pullrouge_timeout_s: float = 30.0

    # Spotify Web API
    spotify_client_id: str = ""
    spotify_client_secret: str = ""
    spotify_redirect_uri: str = "http://localhost:5000/api/spotify/callback"
    spotify_timeout_s: float = 10.0


settings = Settings()
