# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Standardized REST error responses for the Spark API.

All REST endpoints should use these helpers for consistent error format:
{
    "success": false,
    "error": {
        "code": "ERROR_CODE",
        "message": "Human readable message"
    }
}

Error codes follow the pattern: DOMAIN_SPECIFIC_ERROR
Examples: VALIDATION_MISSING_FIELD, FORBIDDEN_SELF_VOTE, NOT_FOUND_ITEM
"""

from __future__ import annotations

import logging
import os
import sys
import traceback
import uuid

from starlette.responses import JSONResponse

from ..core.exceptions import (
    AdmissionError,
    AgentNotFound,
    AlreadyFinalized,
    ConfigException,
    DuplicateVote,
    IdentityResolutionError,
    ItemNotFound,
    LedgerUnavailable,
    LedgerWriteFailed,
    SecondaryLedgerSyncFailed,
    SelfVoteForbidden,
    SparkException,
    ValidationException,
)

logger = logging.getLogger(__name__)

# Debug mode: include exception details in 500 responses.
_DEBUG = os.environ.get("SPARK_DEBUG", "0") == "1"

# =============================================================================
# STANDARD ERROR CODES
# =============================================================================

# Validation errors (400)
VALIDATION_MISSING_FIELD = "VALIDATION_MISSING_FIELD"
VALIDATION_INVALID_FORMAT = "VALIDATION_INVALID_FORMAT"
VALIDATION_INVALID_VALUE = "VALIDATION_INVALID_VALUE"
VALIDATION_INVALID_JSON = "VALIDATION_INVALID_JSON"

# Server errors (500)
INTERNAL_ERROR = "INTERNAL_ERROR"

# Service unavailable (503)
SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"

# Exception class -> HTTP status. Checked in order, so subclasses first.
EXCEPTION_STATUS: tuple[tuple[type[SparkException], int], ...] = (
    (ItemNotFound, 404),
    (AgentNotFound, 404),
    (SelfVoteForbidden, 403),
    (DuplicateVote, 409),
    (AlreadyFinalized, 409),
    (AdmissionError, 400),
    (ValidationException, 400),
    (IdentityResolutionError, 401),
    (LedgerUnavailable, 503),
    (LedgerWriteFailed, 502),
    (SecondaryLedgerSyncFailed, 502),
    (ConfigException, 503),
)


# =============================================================================
# ERROR RESPONSE HELPERS
# =============================================================================


def error_response(
    code: str,
    message: str,
    status_code: int = 400,
) -> JSONResponse:
    """Create a standardized error response.

    Args:
        code: Error code (e.g., VALIDATION_MISSING_FIELD)
        message: Human-readable error message
        status_code: HTTP status code (default 400)

    Returns:
        JSONResponse with standardized error format
    """
    return JSONResponse(
        {
            "success": False,
            "error": {
                "code": code,
                "message": message,
            },
        },
        status_code=status_code,
    )


def status_for(exc: SparkException) -> int:
    for exc_type, status_code in EXCEPTION_STATUS:
        if isinstance(exc, exc_type):
            return status_code
    return 500


def exception_response(exc: SparkException) -> JSONResponse:
    """Map a Spark exception to its standardized error response."""
    status_code = status_for(exc)
    if status_code >= 500:
        logger.warning(f"{type(exc).__name__}: {exc.message}")
    return error_response(exc.code, exc.message, status_code=status_code)


def validation_error(message: str, code: str = VALIDATION_INVALID_VALUE) -> JSONResponse:
    """Create a 400 validation error response."""
    return error_response(code, message, status_code=400)


def missing_field_error(field_name: str) -> JSONResponse:
    """Create a 400 error for missing required field."""
    return error_response(
        VALIDATION_MISSING_FIELD,
        f"{field_name} is required",
        status_code=400,
    )


def invalid_json_error() -> JSONResponse:
    """Create a 400 error for invalid JSON body."""
    return error_response(VALIDATION_INVALID_JSON, "Invalid JSON body", status_code=400)


def internal_error(
    message: str = "Internal server error",
    exc: BaseException | None = None,
) -> JSONResponse:
    """Create a 500 internal error response.

    Always includes a request_id for log correlation. With SPARK_DEBUG=1 the
    exception type and message are included too.

    Args:
        message: Base error message.
        exc: Optional exception to extract detail from. If None, the
             exception currently being handled is used.
    """
    request_id = uuid.uuid4().hex[:12]

    error_body: dict = {
        "code": INTERNAL_ERROR,
        "message": message,
        "request_id": request_id,
    }

    if exc is None:
        exc = sys.exc_info()[1]

    if exc is not None:
        logger.error("request_id=%s %s: %s", request_id, type(exc).__name__, exc)
        if _DEBUG:
            error_body["exception"] = type(exc).__name__
            error_body["detail"] = str(exc)
            error_body["traceback"] = traceback.format_exception_only(type(exc), exc)[0].strip()

    return JSONResponse(
        {"success": False, "error": error_body},
        status_code=500,
    )


def service_unavailable_error(service: str) -> JSONResponse:
    """Create a 503 service unavailable error response."""
    return error_response(SERVICE_UNAVAILABLE, f"{service} not initialized", status_code=503)
