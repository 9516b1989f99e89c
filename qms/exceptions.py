"""
Custom exception hierarchy for the QMS inspection core.

Structured error handling with clear categories:
- Validation errors (bad input at creation, illegal status changes)
- Corrupt persisted records (malformed blobs read back from a backend)
- Lookup failures (operation on an unknown record id)
- Consistency violations (duplicate ids detected at write time)
- Persistence failures (backend read/write did not happen)

Usage:
    from qms.exceptions import ValidationError, PersistenceError

    try:
        record = store.create(payload)
    except ValidationError as e:
        for problem in e.errors:
            print(problem["field"], problem["message"])
    except PersistenceError as e:
        keep_for_retry(e.record)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from qms.inspection.models import InspectionRecord


class QMSError(Exception):
    """
    Base exception for all QMS core errors.

    All custom exceptions inherit from this, so callers can catch
    `QMSError` to handle any inspection-store error.
    """

    def __init__(self, message: str, *, details: Optional[dict] = None):
        super().__init__(message)
        self.details = details or {}


# ── Input Errors ──────────────────────────────────────────────────


class ValidationError(QMSError):
    """
    Raised when inspection input fails shape or range checks.

    `errors` lists every failing field, not just the first one, so the
    caller can report all problems at once:

        [{"field": "vendor", "message": "must not be empty"},
         {"field": "scores.fit", "message": "must be between 0 and 10"}]
    """

    def __init__(
        self,
        message: str,
        *,
        errors: Optional[list[dict[str, str]]] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message, details=details)
        self.errors = errors or []

    @property
    def fields(self) -> list[str]:
        """Names of the failing fields, in report order."""
        return [e["field"] for e in self.errors]


class InvalidTransitionError(ValidationError):
    """
    Raised when a manager status change is not allowed by the
    approval workflow (e.g. moving a decided record back to Pending).
    """

    def __init__(
        self,
        message: str,
        *,
        record_id: Optional[str] = None,
        old_status: Optional[str] = None,
        new_status: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(
            message,
            errors=[{"field": "managerStatus", "message": message}],
            details=details,
        )
        self.record_id = record_id
        self.old_status = old_status
        self.new_status = new_status


# ── Stored Data Errors ────────────────────────────────────────────


class CorruptRecordError(QMSError):
    """
    Raised when a persisted blob cannot be turned back into a record.

    Examples:
    - Missing required keys
    - Wrong value types
    - Unknown manager status
    """

    def __init__(
        self,
        message: str,
        *,
        index: Optional[int] = None,
        record_id: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message, details=details)
        self.index = index
        self.record_id = record_id


class NotFoundError(QMSError):
    """Raised when an operation targets a record id that does not exist."""

    def __init__(
        self,
        message: str,
        *,
        record_id: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message, details=details)
        self.record_id = record_id


class ConsistencyError(QMSError):
    """
    Raised when a write would persist a record set with duplicate ids.

    Should not happen under single-writer use; it guards against a
    corrupted backend.
    """

    def __init__(
        self,
        message: str,
        *,
        duplicate_ids: Optional[list[str]] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message, details=details)
        self.duplicate_ids = duplicate_ids or []


# ── Backend Errors ────────────────────────────────────────────────


class PersistenceError(QMSError):
    """
    Raised when the backend could not read or write the record set.

    For a failed create, `record` holds the fully built record that was
    not saved, so the caller can warn without losing the entered data.
    """

    def __init__(
        self,
        message: str,
        *,
        operation: Optional[str] = None,
        record: Optional["InspectionRecord"] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message, details=details)
        self.operation = operation
        self.record = record
        self.persisted = False


# ── Configuration Errors ──────────────────────────────────────────


class ConfigurationError(QMSError):
    """Raised when settings.yaml is missing, empty, or invalid."""

    def __init__(
        self,
        message: str,
        *,
        config_path: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, details=details)
        self.config_path = config_path
