from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from django.db import IntegrityError
from django.db.models import ProtectedError, RestrictedError
from rest_framework import status
from rest_framework.exceptions import (
    APIException,
    MethodNotAllowed,
    NotFound,
    NotAcceptable,
    ParseError,
    Throttled,
    UnsupportedMediaType,
    ValidationError,
)
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger(__name__)

GENERIC_SERVER_ERROR_MESSAGE = "An unexpected error occurred."


class ConflictError(APIException):
    """Duplicate names, master data still in use and similar state clashes."""

    status_code = status.HTTP_409_CONFLICT
    default_detail = "The request conflicts with the current state of the resource."
    default_code = "conflict"


class InsufficientStockError(ConflictError):
    """A stock row would drop below zero.

    ``shortages`` holds one entry per offending line with the item name, size
    label, location, requested quantity and the quantity that was available.
    The first shortage drives the human-readable message.
    """

    default_code = "insufficient_stock"

    def __init__(self, shortages: list[dict[str, Any]]):
        self.shortages = shortages
        first = shortages[0]
        super().__init__(
            f"Insufficient stock for {first['item_name']} ({first['size_label']}). "
            f"Requested: {first['requested']}, Available: {first['available']}"
        )


EXCEPTION_CODE_MAP: dict[type[Exception], str] = {
    InsufficientStockError: "insufficient_stock",
    ConflictError: "conflict",
    ValidationError: "validation_error",
    NotFound: "not_found",
    MethodNotAllowed: "method_not_allowed",
    NotAcceptable: "not_acceptable",
    UnsupportedMediaType: "unsupported_media_type",
    ParseError: "parse_error",
    Throttled: "throttled",
}


def build_error_envelope(
    *,
    code: str,
    message: str,
    errors: Any,
    status_code: int,
) -> dict[str, Any]:
    return {
        "code": code,
        "message": message,
        "errors": errors,
        "status": status_code,
    }


def error_response(
    *,
    code: str,
    message: str,
    errors: Any = None,
    status_code: int = status.HTTP_400_BAD_REQUEST,
) -> Response:
    return Response(
        build_error_envelope(
            code=code,
            message=message,
            errors=errors,
            status_code=status_code,
        ),
        status=status_code,
    )


def custom_exception_handler(exc: Exception, context: dict[str, Any]) -> Response:
    if isinstance(exc, (ProtectedError, RestrictedError)):
        return _protected_response(exc)
    if isinstance(exc, IntegrityError):
        return _integrity_response(exc)

    response = drf_exception_handler(exc, context)

    if response is None:
        view_name = context.get("view").__class__.__name__ if context.get("view") else "unknown"
        logger.exception("Unhandled API exception in %s", view_name)
        return error_response(
            code="internal_server_error",
            message=GENERIC_SERVER_ERROR_MESSAGE,
            errors=None,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    status_code = response.status_code
    if isinstance(exc, InsufficientStockError):
        errors = {"shortages": exc.shortages}
    else:
        errors = _normalize_errors(response.data)
    message = _build_message(exc, response.data)
    code = _build_code(exc)

    response.data = build_error_envelope(
        code=code,
        message=message,
        errors=errors,
        status_code=status_code,
    )
    return response


def _protected_response(exc: ProtectedError | RestrictedError) -> Response:
    objects = exc.protected_objects if isinstance(exc, ProtectedError) else exc.restricted_objects
    referenced_by = sorted({obj._meta.verbose_name for obj in objects})
    return error_response(
        code="conflict",
        message="Record is still in use and cannot be deleted.",
        errors={"referenced_by": referenced_by},
        status_code=status.HTTP_409_CONFLICT,
    )


def _integrity_response(exc: IntegrityError) -> Response:
    # sqlite and postgres both spell these out in the driver message.
    text = str(exc).lower()
    if "unique" in text or "duplicate key" in text:
        return error_response(
            code="conflict",
            message="A record with the same unique value already exists.",
            status_code=status.HTTP_409_CONFLICT,
        )

    logger.warning("Integrity error: %s", exc)
    if "foreign key" in text:
        message = "Referenced record does not exist."
    elif "not null" in text:
        message = "A required field is missing."
    elif "check constraint" in text or "violates check" in text:
        message = "A value is outside its allowed range."
    else:
        message = "The request violates a data integrity rule."
    return error_response(
        code="integrity_error",
        message=message,
        status_code=status.HTTP_400_BAD_REQUEST,
    )


def _build_code(exc: Exception) -> str:
    for exception_type, stable_code in EXCEPTION_CODE_MAP.items():
        if isinstance(exc, exception_type):
            return stable_code

    if isinstance(exc, APIException):
        return str(getattr(exc, "default_code", "api_error"))

    return "internal_server_error"


def _build_message(exc: Exception, data: Any) -> str:
    if isinstance(exc, ValidationError):
        return _first_validation_message(data) or "Validation failed."

    detail = None
    if isinstance(data, Mapping):
        detail = data.get("detail")
    elif isinstance(data, str):
        detail = data

    if detail:
        return str(detail)

    if isinstance(exc, Throttled):
        return "Request was throttled."

    if isinstance(exc, APIException):
        return str(getattr(exc, "detail", "Request failed."))

    return GENERIC_SERVER_ERROR_MESSAGE


def _first_validation_message(data: Any) -> str | None:
    if isinstance(data, str):
        return data
    if isinstance(data, Mapping):
        for value in data.values():
            message = _first_validation_message(value)
            if message:
                return message
        return None
    if isinstance(data, Sequence):
        for value in data:
            message = _first_validation_message(value)
            if message:
                return message
    return None


def _normalize_errors(data: Any) -> Any:
    if isinstance(data, Mapping):
        if set(data.keys()) == {"detail"}:
            return None
        return data

    if isinstance(data, Sequence) and not isinstance(data, str):
        return data

    return None
