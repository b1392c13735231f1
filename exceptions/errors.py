"""
Custom exception classes for the ingestion engine.

Run-level failures carry a stable error code that surfaces in ParseFailure.
Row-level problems are counted and logged by the stream parser, not raised.
"""

from typing import Optional, Any
from datetime import datetime, timezone


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "SHEET_NOT_FOUND")
        message: Human-readable message
        status_code: HTTP status code a request layer should use
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        code: Optional[str] = None,
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code or f"{resource.upper()}_NOT_FOUND",
            message=f"{resource} not found: {identifier}",
            status_code=404,
            details={"id": identifier, **(details or {})}
        )


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


# ===================
# WORKBOOK ERRORS
# ===================

class WorkbookReadError(ValidationError):
    """Workbook buffer is empty, corrupt, or in an unsupported format."""

    def __init__(
        self,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="PARSE_ERROR",
            message=message,
            details=details
        )


class SheetNotFoundError(NotFoundError):
    """Requested sheet does not exist in the workbook."""

    def __init__(self, sheet: Any, available: list[str]):
        super().__init__(
            resource="Sheet",
            identifier=str(sheet),
            code="SHEET_NOT_FOUND",
            details={"available": available}
        )


# ===================
# MAPPING ERRORS
# ===================

class InvalidColumnMappingError(ValidationError):
    """Manual column mapping targets fields outside the canonical schema."""

    def __init__(self, schema_kind: str, invalid: dict[str, str], valid: list[str]):
        super().__init__(
            code="INVALID_COLUMN_MAPPING",
            message=(
                f"Column mapping targets unknown {schema_kind} fields: "
                f"{', '.join(sorted(set(invalid.values())))}"
            ),
            details={"invalid": invalid, "valid": valid}
        )


# ===================
# ROW ERRORS
# ===================

class InvalidNumericValueError(ValidationError):
    """A numeric canonical field holds a value that is not a number."""

    def __init__(
        self,
        field: str,
        value: Any,
        row: Optional[int] = None,
        column: Optional[str] = None
    ):
        self.field = field
        self.value = value
        self.row = row
        self.column = column
        super().__init__(
            code="INVALID_NUMBER",
            message=f"Invalid numeric value for {field}: {value!r}",
            details={"field": field, "value": str(value), "row": row, "column": column}
        )


# ===================
# RUN CONTROL
# ===================

class ParseAbortedError(AppError):
    """Raised by a chunk or progress callback to stop a streaming run."""

    def __init__(self, message: str = "Parse aborted by caller", details: Optional[dict] = None):
        super().__init__(
            code="PARSE_ABORTED",
            message=message,
            status_code=499,
            details=details
        )

