"""
Workbook ingestion: reader, column mapper, row parser and stream parser.
"""

from parsers.workbook_reader import (
    Workbook,
    WorkbookMetadata,
    get_workbook_metadata,
)
from parsers.column_mapper import (
    DetectedMapping,
    DetectionResult,
    detect_mappings,
    detect_pick_mappings,
    detect_location_mappings,
    auto_detect_mappings,
    to_column_mapping,
    detect_schema_kind,
    resolve_column_mapping,
)
from parsers.row_parser import (
    CellKind,
    ExtraDimension,
    ParsedPickRow,
    ParsedLocationRow,
    parse_row,
    parse_pick_row,
    parse_location_row,
)
from parsers.stream_parser import (
    ParsedChunk,
    ParseProgress,
    ParseMetadata,
    ParseResult,
    ParseFailure,
    parse_excel_stream,
    parse_excel_stream_async,
    parse_excel,
    parse_pick_sheet,
    parse_location_sheet,
)

__all__ = [
    # Reader
    "Workbook",
    "WorkbookMetadata",
    "get_workbook_metadata",

    # Column mapper
    "DetectedMapping",
    "DetectionResult",
    "detect_mappings",
    "detect_pick_mappings",
    "detect_location_mappings",
    "auto_detect_mappings",
    "to_column_mapping",
    "detect_schema_kind",
    "resolve_column_mapping",

    # Row parser
    "CellKind",
    "ExtraDimension",
    "ParsedPickRow",
    "ParsedLocationRow",
    "parse_row",
    "parse_pick_row",
    "parse_location_row",

    # Stream parser
    "ParsedChunk",
    "ParseProgress",
    "ParseMetadata",
    "ParseResult",
    "ParseFailure",
    "parse_excel_stream",
    "parse_excel_stream_async",
    "parse_excel",
    "parse_pick_sheet",
    "parse_location_sheet",
]
