import json
from collections.abc import Callable
from functools import lru_cache
from typing import Annotated, Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _parse_list(value: object, normalize: Callable[[str], str]) -> list[str]:
    """Accept a JSON array, a comma-separated string or a list; drop blanks."""
    if isinstance(value, str):
        raw = value.strip()
        if not raw:
            return []
        items: list[object] = raw.split(",")
        if raw.startswith("["):
            try:
                parsed = json.loads(raw)
            except json.JSONDecodeError:
                parsed = None
            if isinstance(parsed, list):
                items = parsed
    elif isinstance(value, list):
        items = value
    else:
        return []
    return [normalize(text) for text in (str(item).strip() for item in items) if text and normalize(text)]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False)

    env: Literal["dev", "prod"] = "dev"
    project_name: str = "Ride Estimator"
    api_v1_prefix: str = "/api/v1"
    log_level: str = "INFO"
    frontend_origins: Annotated[list[str], NoDecode] = Field(default_factory=list)

    redis_url: str = "redis://redis:6379/0"

    nominatim_base_url: str = "https://nominatim.openstreetmap.org"
    photon_base_url: str = "https://photon.komoot.io"
    bigdatacloud_base_url: str = "https://api.bigdatacloud.net"
    osrm_base_url: str = "https://router.project-osrm.org"
    graphhopper_base_url: str = "https://graphhopper.com"
    graphhopper_api_key: str = ""
    user_agent: str = "RideEstimator/1.0"
    nominatim_country_codes: Annotated[list[str], NoDecode] = Field(default_factory=lambda: ["in"])
    geocode_language: str = "en"
    geocode_result_limit: int = 5

    provider_timeout_sec: float = 8.0
    geocode_cache_ttl_sec: int = 1800

    backend_base_url: str = "http://localhost:8000/api"
    backend_api_token: str = ""
    backend_timeout_sec: float = 10.0
    health_timeout_sec: float = 3.0
    health_cache_ttl_sec: int = 5

    search_debounce_ms: int = 800
    search_min_query_length: int = 3
    suggestion_limit: int = 8
    recent_search_limit: int = 5
    recent_searches_storage_key: str = "recentLocationSearches"
    popular_places_city: str = "Delhi"

    route_interpolation_steps: int = 10

    default_latitude: float = 28.6139
    default_longitude: float = 77.2090
    default_address: str = "New Delhi, India"
    geolocation_timeout_sec: float = 10.0
    geolocation_maximum_age_sec: float = 60.0
    watch_timeout_sec: float = 5.0
    watch_maximum_age_sec: float = 30.0

    drivers_radius_km: float = 5.0

    @field_validator("nominatim_country_codes", mode="before")
    @classmethod
    def parse_country_codes(cls, value: object) -> list[str]:
        return _parse_list(value, lambda item: item.lower())

    @field_validator("frontend_origins", mode="before")
    @classmethod
    def parse_origins(cls, value: object) -> list[str]:
        # Browser `Origin` header never includes a trailing slash.
        return _parse_list(value, lambda item: item.rstrip("/"))

    @model_validator(mode="after")
    def apply_frontend_origin_defaults(self) -> "Settings":
        if self.frontend_origins:
            self.frontend_origins = list(dict.fromkeys(self.frontend_origins))
        elif self.env == "dev":
            self.frontend_origins = ["http://localhost:3000", "http://127.0.0.1:3000"]
        return self

    @field_validator("route_interpolation_steps")
    @classmethod
    def validate_interpolation_steps(cls, value: int) -> int:
        # a path needs at least both endpoints
        return max(1, value)

    @property
    def search_debounce_sec(self) -> float:
        return self.search_debounce_ms / 1000


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
