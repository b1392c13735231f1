"""
Business logic services.

Each service handles one domain area.
"""

from services.export_service import ExportService, ExportResult, get_export_service

__all__ = [
    "ExportService",
    "ExportResult",
    "get_export_service",
]
