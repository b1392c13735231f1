"""
Parse a client warehouse workbook from the command line.

Usage:
    # Auto-detect schema and columns, print the run summary
    python scripts/parse_workbook.py data/uploads/picks_2025.xlsx

    # Force LOCATION, override one mapping, export the parsed rows
    python scripts/parse_workbook.py locaties.xlsx \
        --schema LOCATION \
        --mapping "Positie=location" \
        --export output/locations.xlsx
"""

import argparse
import os
import sys

# Allow imports from the project root when running as a script
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config.logging import configure_logging
from models.parsing import ExportFormat, ExportOptions, NumericPolicy, ParseOptions, SchemaKind
from parsers.stream_parser import ParsedChunk, ParseProgress, parse_excel_stream
from parsers.workbook_reader import get_workbook_metadata
from exceptions import AppError
from services.export_service import get_export_service

separator = "=" * 60


def parse_mapping_args(pairs: list[str]) -> dict[str, str]:
    """Turn ["Client Col=templateField", ...] into a mapping dict."""
    mapping = {}
    for pair in pairs:
        if "=" not in pair:
            raise ValueError(f"Invalid mapping '{pair}'. Use CLIENT_COLUMN=templateField.")
        column, target = pair.rsplit("=", 1)
        mapping[column.strip()] = target.strip()
    return mapping


def print_metadata(buffer: bytes, sheet) -> None:
    metadata = get_workbook_metadata(buffer, sheet)
    print(f"Format: {metadata.file_format} ({metadata.file_size:,} bytes)")
    print(f"Sheets: {', '.join(metadata.sheet_names)}")
    print(f"Sheet: {metadata.sheet_name} (~{metadata.estimated_rows:,} rows)")
    print(f"Columns: {len(metadata.headers)}")


def print_progress(progress: ParseProgress) -> None:
    print(
        f"  chunk {progress.current_chunk}/{progress.total_chunks} "
        f"{progress.percent_complete:5.1f}% "
        f"({progress.processed_rows:,} parsed, {progress.skipped_rows:,} skipped, "
        f"~{progress.estimated_remaining_ms / 1000:.1f}s left)"
    )


def run(args) -> bool:
    with open(args.file, "rb") as f:
        buffer = f.read()

    print(separator)
    print(f"PARSE {os.path.basename(args.file)}")
    print(separator)

    sheet = int(args.sheet) if args.sheet is not None and args.sheet.isdigit() else args.sheet

    try:
        print_metadata(buffer, sheet)
    except AppError as e:
        print(f"ERROR [{e.code}]: {e.message}")
        return False

    option_values = {
        "sheet": sheet,
        "schema_kind": SchemaKind(args.schema) if args.schema else None,
        "column_mapping": parse_mapping_args(args.mapping),
        "max_rows": args.max_rows,
        "auto_detect": not args.no_auto_detect,
        "debug": args.debug,
    }
    if args.start_row is not None:
        option_values["start_row"] = args.start_row
    if args.chunk_size is not None:
        option_values["chunk_size"] = args.chunk_size
    if args.numeric_policy:
        option_values["numeric_policy"] = NumericPolicy(args.numeric_policy)

    options = ParseOptions(**option_values)

    def on_chunk(chunk: ParsedChunk) -> None:
        if args.verbose:
            print(f"  rows {chunk.start_row}-{chunk.end_row - 1}: {len(chunk.rows)} parsed")

    print("\nParsing...")
    result = parse_excel_stream(buffer, options, on_chunk=on_chunk, on_progress=print_progress)

    if not result.success:
        print(f"\nFAILED [{result.error_code}]: {result.error}")
        if result.row_number is not None:
            print(f"  Row: {result.row_number}  Column: {result.column_name}")
        return False

    metadata = result.metadata
    print(f"\nSchema: {metadata.schema_kind.value}")
    if metadata.detection:
        print(f"Detection confidence: {metadata.detection.confidence:.0%}")
        for mapping in metadata.detection.mappings:
            print(f"  {mapping.client_column} -> {mapping.template_field} ({mapping.reason})")
        if metadata.detection.missing_columns:
            print(f"  Missing: {', '.join(metadata.detection.missing_columns)}")
    print(f"Column mapping: {len(metadata.column_mapping)} columns")
    if metadata.extra_columns:
        print(f"Extra columns: {', '.join(metadata.extra_columns)}")

    print(f"\nTotal rows: {result.total_rows:,}")
    print(f"  Processed: {result.processed_rows:,}")
    print(f"  Skipped: {result.skipped_rows:,}")
    print(f"  Elapsed: {result.elapsed_ms:,} ms")

    if args.export:
        export_format = ExportFormat.CSV if args.export.lower().endswith(".csv") else ExportFormat.XLSX
        export = get_export_service().export_parsed_rows(
            result.data,
            metadata.schema_kind,
            ExportOptions(
                format=export_format,
                file_name=os.path.basename(args.export),
                include_extra_dimensions=not args.no_extras,
            ),
        )
        if not export.success:
            print(f"\nEXPORT FAILED: {export.error}")
            return False
        with open(args.export, "wb") as f:
            f.write(export.content)
        print(f"\nExported {export.file_size:,} bytes to {args.export}")

    print(separator)
    return True


def main():
    parser = argparse.ArgumentParser(
        description="Parse a PICK or LOCATION workbook and report the run."
    )
    parser.add_argument("file", help="Path to .xlsx, .xls or .csv file")
    parser.add_argument(
        "--sheet",
        default=None,
        help="Sheet name or zero-based index (default: first sheet)",
    )
    parser.add_argument(
        "--schema",
        choices=[kind.value for kind in SchemaKind],
        default=None,
        help="Target schema (default: auto-detect)",
    )
    parser.add_argument(
        "--mapping",
        action="append",
        default=[],
        help="Manual mapping CLIENT_COLUMN=templateField (repeatable)",
    )
    parser.add_argument(
        "--no-auto-detect",
        action="store_true",
        help="Use only --mapping entries",
    )
    parser.add_argument("--chunk-size", type=int, default=None, help="Rows per window")
    parser.add_argument("--start-row", type=int, default=None, help="First sheet row to parse (header is row 0)")
    parser.add_argument("--max-rows", type=int, default=0, help="Cap on sheet rows, header included (0 = all)")
    parser.add_argument(
        "--numeric-policy",
        choices=[policy.value for policy in NumericPolicy],
        default=None,
        help="Handling of unparseable numeric cells",
    )
    parser.add_argument("--export", default="", help="Write parsed rows to this .xlsx or .csv path")
    parser.add_argument("--no-extras", action="store_true", help="Leave extra dimensions out of the export")
    parser.add_argument("--debug", action="store_true", help="Log skipped rows as warnings")
    parser.add_argument("--verbose", action="store_true", help="Print every chunk")

    args = parser.parse_args()

    configure_logging("DEBUG" if args.debug else None)

    if not os.path.isfile(args.file):
        print(f"ERROR: File not found: {args.file}")
        sys.exit(1)

    try:
        success = run(args)
    except ValueError as e:  # includes pydantic validation errors
        print(f"ERROR: {e}")
        sys.exit(1)

    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
