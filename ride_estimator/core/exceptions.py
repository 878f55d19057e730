from __future__ import annotations


class AppError(Exception):
    def __init__(self, code: str, message: str, status_code: int = 400, details: dict | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}

    def as_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "details": self.details or None}


class ConflictError(AppError):
    def __init__(self, message: str = "Conflict", details: dict | None = None) -> None:
        super().__init__(code="conflict", message=message, status_code=409, details=details)


class ValidationAppError(AppError):
    def __init__(self, message: str = "Validation failed", details: dict | None = None) -> None:
        super().__init__(code="validation_error", message=message, status_code=422, details=details)


class ProviderUnavailable(AppError):
    """A single provider failed: network error, bad status or malformed payload."""

    def __init__(self, provider: str, reason: str) -> None:
        super().__init__(
            code="provider_unavailable",
            message=f"{provider} unavailable: {reason}",
            status_code=502,
            details={"provider": provider, "reason": reason},
        )
        self.provider = provider
        self.reason = reason


class AllProvidersExhausted(AppError):
    def __init__(self, chain: str, failures: dict[str, str]) -> None:
        super().__init__(
            code="all_providers_exhausted",
            message=f"All {chain} providers failed",
            status_code=502,
            details={"chain": chain, "failures": dict(failures)},
        )
        self.chain = chain
        self.failures = dict(failures)


class BackendRequestError(AppError):
    def __init__(self, message: str, details: dict | None = None) -> None:
        super().__init__(code="backend_request_failed", message=message, status_code=502, details=details)


class BackendUnreachable(AppError):
    def __init__(self, message: str = "Ride backend is unreachable, showing estimated prices", details: dict | None = None) -> None:
        super().__init__(code="backend_unreachable", message=message, status_code=503, details=details)


class PartialBatchFailure(AppError):
    def __init__(self, failed: list[str], details: dict | None = None) -> None:
        super().__init__(
            code="partial_batch_failure",
            message=f"Fare estimate unavailable for: {', '.join(failed)}",
            status_code=200,
            details={"failed": list(failed), **(details or {})},
        )
        self.failed = list(failed)


class PermissionDenied(AppError):
    def __init__(self, message: str = "Location permission denied") -> None:
        super().__init__(code="geolocation_permission_denied", message=message, status_code=403)


class GeolocationTimeout(AppError):
    def __init__(self, message: str = "Timed out waiting for device position") -> None:
        super().__init__(code="geolocation_timeout", message=message, status_code=504)
