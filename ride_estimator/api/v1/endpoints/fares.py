from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from ride_estimator.api.deps import get_fare_orchestrator
from ride_estimator.core.exceptions import ConflictError
from ride_estimator.core.responses import success_response
from ride_estimator.schemas.fare import FareBatchResponse, FareEstimateRequest
from ride_estimator.services.fares import FareEstimationOrchestrator

router = APIRouter(prefix="/fares", tags=["Fares"])


@router.post("/estimate")
async def estimate_fares(
    request: Request,
    payload: FareEstimateRequest,
    orchestrator: FareEstimationOrchestrator = Depends(get_fare_orchestrator),
):
    batch = await orchestrator.estimate(payload.pickup.to_location(), payload.dropoff.to_location())
    if batch is None:
        raise ConflictError("Fare estimate was superseded by a newer request")

    notice = batch.notice.as_dict() if batch.notice is not None else None
    data = FareBatchResponse(
        estimates=batch.estimates,
        used_fallback=batch.used_fallback,
        selected=batch.selected,
        failures=batch.failures,
        notice=notice,
    )
    return success_response(data=data.model_dump(mode="json", by_alias=True), request=request, notice=notice)
