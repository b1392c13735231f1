"""
Custom exceptions module.

Every run-level error exposes a stable ``code`` that the stream parser
copies into ParseFailure.error_code.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,

    # Workbook
    WorkbookReadError,
    SheetNotFoundError,

    # Mapping
    InvalidColumnMappingError,

    # Rows
    InvalidNumericValueError,

    # Run control
    ParseAbortedError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",

    # Workbook
    "WorkbookReadError",
    "SheetNotFoundError",

    # Mapping
    "InvalidColumnMappingError",

    # Rows
    "InvalidNumericValueError",

    # Run control
    "ParseAbortedError",
]
