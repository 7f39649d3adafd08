"""Tests for standardized error responses."""

from __future__ import annotations

import json

import pytest

from sparkledger.core.exceptions import (
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
from sparkledger.server.errors import (
    VALIDATION_MISSING_FIELD,
    error_response,
    exception_response,
    internal_error,
    missing_field_error,
    service_unavailable_error,
    status_for,
)


def _body(response) -> dict:
    return json.loads(response.body)


class TestErrorResponse:
    def test_format(self):
        response = error_response("SOME_CODE", "Something happened", status_code=418)
        assert response.status_code == 418
        assert _body(response) == {
            "success": False,
            "error": {"code": "SOME_CODE", "message": "Something happened"},
        }

    def test_missing_field(self):
        body = _body(missing_field_error("vote"))
        assert body["error"] == {"code": VALIDATION_MISSING_FIELD, "message": "vote is required"}

    def test_service_unavailable(self):
        response = service_unavailable_error("Knowledge engine")
        assert response.status_code == 503
        assert _body(response)["error"]["message"] == "Knowledge engine not initialized"


class TestStatusMapping:
    """Each exception maps to its HTTP status."""

    @pytest.mark.parametrize(
        "exc, expected",
        [
            (ItemNotFound("X"), 404),
            (AgentNotFound("0.0.1"), 404),
            (SelfVoteForbidden("X", "0.0.1"), 403),
            (DuplicateVote("X", "0.0.1"), 409),
            (AlreadyFinalized("X"), 409),
            (AdmissionError("bad", "X"), 400),
            (ValidationException("bad vote", field="vote"), 400),
            (IdentityResolutionError("no account"), 401),
            (LedgerUnavailable("down"), 503),
            (LedgerWriteFailed("nack"), 502),
            (SecondaryLedgerSyncFailed("registry down"), 502),
            (ConfigException("no topology"), 503),
            (SparkException("unknown"), 500),
        ],
    )
    def test_status_for(self, exc, expected):
        assert status_for(exc) == expected

    def test_exception_response_uses_code_and_message(self):
        response = exception_response(DuplicateVote("X", "0.0.2"))
        assert response.status_code == 409
        assert _body(response)["error"] == {
            "code": "CONFLICT_DUPLICATE_VOTE",
            "message": "You have already voted on this knowledge item",
        }


class TestInternalError:
    def test_request_id_without_detail(self):
        body = _body(internal_error(exc=RuntimeError("secret detail")))
        assert body["error"]["code"] == "INTERNAL_ERROR"
        assert len(body["error"]["request_id"]) == 12
        assert "detail" not in body["error"]

    def test_debug_mode_includes_detail(self, monkeypatch):
        monkeypatch.setattr("sparkledger.server.errors._DEBUG", True)
        body = _body(internal_error(exc=RuntimeError("boom")))
        assert body["error"]["exception"] == "RuntimeError"
        assert body["error"]["detail"] == "boom"
