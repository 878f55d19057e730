from __future__ import annotations

from pydantic import BaseModel, Field

from ride_estimator.services.locations import Location


class LocationSchema(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    address: str = ""

    @classmethod
    def from_location(cls, location: Location) -> LocationSchema:
        return cls(latitude=location.latitude, longitude=location.longitude, address=location.address)

    def to_location(self) -> Location:
        return Location(latitude=self.latitude, longitude=self.longitude, address=self.address)


class LocationSuggestResponse(BaseModel):
    locations: list[LocationSchema]
    source: str
    used_fallback: bool
