from fastapi import APIRouter

from ride_estimator.api.v1.endpoints import drivers, fares, locations, routes

api_router = APIRouter()
api_router.include_router(locations.router)
api_router.include_router(routes.router)
api_router.include_router(fares.router)
api_router.include_router(drivers.router)
