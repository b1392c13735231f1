"""
Pydantic models for run configuration.
"""

from models.parsing import (
    SchemaKind,
    NumericPolicy,
    ExportFormat,
    ParseOptions,
    ExportOptions,
)

__all__ = [
    "SchemaKind",
    "NumericPolicy",
    "ExportFormat",
    "ParseOptions",
    "ExportOptions",
]
