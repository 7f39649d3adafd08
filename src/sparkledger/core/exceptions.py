# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Custom exception hierarchy for Spark.

Admission errors are permanent and user-facing; ledger errors are transient
or commit-phase failures; secondary sync errors are non-fatal and reported
alongside an otherwise successful response.
"""

from __future__ import annotations

from typing import Any


class SparkException(Exception):  # noqa: N818 - matches the error names used on the wire
    """Base exception for all Spark errors.

    All Spark-specific exceptions should inherit from this class.
    """

    code = "SPARK_ERROR"

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ConfigException(SparkException):
    """Exception for configuration errors.

    Raised when:
    - The topology file is missing or malformed
    - Required gateway URLs are not configured
    """

    code = "CONFIG_INVALID"

    def __init__(self, message: str, missing_vars: list[str] | None = None):
        details = {}
        if missing_vars:
            details["missing_vars"] = missing_vars
        super().__init__(message, details)
        self.missing_vars = missing_vars or []


class ValidationException(SparkException):
    """Exception for request validation errors."""

    code = "VALIDATION_INVALID_VALUE"

    def __init__(self, message: str, field: str | None = None, value: Any = None):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)
        super().__init__(message, details)
        self.field = field
        self.value = value


# =============================================================================
# LEDGER ERRORS
# =============================================================================


class LedgerUnavailable(SparkException):
    """A read against the primary ledger failed.

    Transient: callers may retry the whole request.
    """

    code = "LEDGER_UNAVAILABLE"

    def __init__(self, message: str, topic_id: str | None = None):
        details = {}
        if topic_id:
            details["topic_id"] = topic_id
        super().__init__(message, details)
        self.topic_id = topic_id


class LedgerWriteFailed(SparkException):
    """An append to the primary ledger was not acknowledged.

    Raised during the commit phase. Nothing was written for the failing
    append, so the caller sees the request as failed.
    """

    code = "LEDGER_WRITE_FAILED"

    def __init__(self, message: str, topic_id: str | None = None):
        details = {}
        if topic_id:
            details["topic_id"] = topic_id
        super().__init__(message, details)
        self.topic_id = topic_id


class SecondaryLedgerSyncFailed(SparkException):
    """Mirroring reputation or content to the secondary ledger failed.

    Never rolls back primary events. Surfaced as a warning.
    """

    code = "SECONDARY_SYNC_FAILED"

    def __init__(self, message: str, account_id: str | None = None, step: str | None = None):
        details = {}
        if account_id:
            details["account_id"] = account_id
        if step:
            details["step"] = step
        super().__init__(message, details)
        self.account_id = account_id
        self.step = step


# =============================================================================
# IDENTITY ERRORS
# =============================================================================


class IdentityResolutionError(SparkException):
    """A credential could not be mapped to a ledger account."""

    code = "AUTH_INVALID_CREDENTIAL"


class AgentNotFound(SparkException):
    """No registration exists for the account in the discovery log."""

    code = "NOT_FOUND_AGENT"

    def __init__(self, account_id: str):
        super().__init__(f"Agent {account_id} not found in directory", {"account_id": account_id})
        self.account_id = account_id


# =============================================================================
# ADMISSION ERRORS
# =============================================================================


class AdmissionError(SparkException):
    """Base class for vote admission failures.

    Detected against folded state before any append.
    """

    code = "ADMISSION_REJECTED"

    def __init__(self, message: str, item_id: str, voter: str | None = None):
        details = {"item_id": item_id}
        if voter:
            details["voter"] = voter
        super().__init__(message, details)
        self.item_id = item_id
        self.voter = voter


class ItemNotFound(AdmissionError):
    code = "NOT_FOUND_ITEM"

    def __init__(self, item_id: str):
        super().__init__(f"Knowledge item {item_id} not found in any category topic", item_id)


class SelfVoteForbidden(AdmissionError):
    code = "FORBIDDEN_SELF_VOTE"

    def __init__(self, item_id: str, voter: str, message: str = "Cannot vote on your own submission"):
        super().__init__(message, item_id, voter)


class DuplicateVote(AdmissionError):
    code = "CONFLICT_DUPLICATE_VOTE"

    def __init__(self, item_id: str, voter: str, message: str = "You have already voted on this knowledge item"):
        super().__init__(message, item_id, voter)


class AlreadyFinalized(AdmissionError):
    code = "CONFLICT_ALREADY_FINALIZED"

    def __init__(self, item_id: str, outcome: str | None = None):
        super().__init__(
            "This knowledge item has already been finalized (approved or rejected)",
            item_id,
        )
        if outcome:
            self.details["outcome"] = outcome
        self.outcome = outcome
