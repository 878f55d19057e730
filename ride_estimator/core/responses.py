from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from fastapi import Request
from pydantic import BaseModel, Field


class ErrorBody(BaseModel):
    code: str
    message: str
    details: dict[str, Any] | None = None


class ResponseEnvelope(BaseModel):
    data: Any | None = None
    meta: dict[str, Any] = Field(default_factory=dict)
    error: ErrorBody | None = None


def build_meta(request: Request | None = None, notice: dict[str, Any] | None = None) -> dict[str, Any]:
    meta: dict[str, Any] = {
        "server_time": datetime.now(timezone.utc).isoformat(),
    }
    if request is not None:
        request_id = request.headers.get("x-request-id")
        if request_id:
            meta["request_id"] = request_id
    if notice:
        meta["notice"] = notice
    return meta


def success_response(data: Any, request: Request | None = None, notice: dict[str, Any] | None = None) -> dict[str, Any]:
    return ResponseEnvelope(data=data, meta=build_meta(request, notice), error=None).model_dump(mode="json")


def error_response(
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
    request: Request | None = None,
) -> dict[str, Any]:
    return ResponseEnvelope(
        data=None,
        meta=build_meta(request),
        error=ErrorBody(code=code, message=message, details=details),
    ).model_dump(mode="json")
