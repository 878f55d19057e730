from __future__ import annotations

import pytest

from ride_estimator.core.config import Settings
from ride_estimator.services.locations import Location


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        _env_file=None,
        backend_base_url="http://backend.test/api",
        nominatim_base_url="http://nominatim.test",
        photon_base_url="http://photon.test",
        bigdatacloud_base_url="http://bigdatacloud.test",
        osrm_base_url="http://osrm.test",
        graphhopper_base_url="http://graphhopper.test",
        provider_timeout_sec=0.5,
        search_debounce_ms=20,
        health_cache_ttl_sec=0,
    )


@pytest.fixture()
def pickup() -> Location:
    return Location(latitude=28.6139, longitude=77.2090, address="Connaught Place, New Delhi, India")


@pytest.fixture()
def dropoff() -> Location:
    return Location(latitude=28.6239, longitude=77.2190, address="Red Fort, Old Delhi, New Delhi, India")
