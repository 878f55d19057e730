from __future__ import annotations

from pydantic import BaseModel


class RoutePreviewResponse(BaseModel):
    points: list[tuple[float, float]]
    source: str
    distance_km: float
