"""Map domain errors onto HTTP responses.

Every error body has the shape ``{"message": str, "data": ...}``.  A
conflict carries the ride the client should reconcile against.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ride_service.api.schemas import RideResponse
from ride_service.domain.errors import (
    ConflictError,
    DownstreamError,
    NotFoundError,
    RideServiceError,
    ValidationError,
)

logger = logging.getLogger(__name__)

STATUS_CODES: dict[type[RideServiceError], int] = {
    ValidationError: 400,
    NotFoundError: 404,
    ConflictError: 400,
    DownstreamError: 500,
}


def _status_for(exc: RideServiceError) -> int:
    for error_type, status_code in STATUS_CODES.items():
        if isinstance(exc, error_type):
            return status_code
    return 500


async def ride_service_error_handler(
    request: Request, exc: RideServiceError
) -> JSONResponse:
    status_code = _status_for(exc)
    data = None
    if isinstance(exc, ConflictError) and exc.conflict is not None:
        data = RideResponse.model_validate(exc.conflict).model_dump(
            mode="json", by_alias=True
        )
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=status_code, content={"message": exc.message, "data": data}
    )


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={
            "message": "Invalid request",
            "data": None,
            "errors": jsonable_encoder(exc.errors()),
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RideServiceError, ride_service_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
