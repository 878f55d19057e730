from enum import Enum


class VehicleType(str, Enum):
    AUTO = "auto"
    BIKE = "bike"
    CYCLE = "cycle"
    CAR = "car"


class SearchState(str, Enum):
    IDLE = "idle"
    DEBOUNCING = "debouncing"
    SEARCHING = "searching"
    SHOWING_SUGGESTIONS = "showing_suggestions"
    SHOWING_FALLBACK = "showing_fallback"


class RideStatus(str, Enum):
    SEARCHING = "searching"
    DRIVER_ASSIGNED = "driver_assigned"
    DRIVER_ARRIVING = "driver_arriving"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"
