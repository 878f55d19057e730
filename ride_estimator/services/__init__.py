from ride_estimator.services.backend_client import RideBackendClient
from ride_estimator.services.booking import BookingSession
from ride_estimator.services.drivers import DriverLocator
from ride_estimator.services.fares import FareEstimationOrchestrator, LocalFareModel
from ride_estimator.services.geocoding import GeocodingResolver
from ride_estimator.services.recent_searches import RecentSearchCache
from ride_estimator.services.routing import RouteResolver
from ride_estimator.services.search import SearchSessionController

__all__ = [
    "BookingSession",
    "DriverLocator",
    "FareEstimationOrchestrator",
    "GeocodingResolver",
    "LocalFareModel",
    "RecentSearchCache",
    "RideBackendClient",
    "RouteResolver",
    "SearchSessionController",
]
