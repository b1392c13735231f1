"""
Export service: write parsed rows back out as Excel or CSV.

Template fields come first, in template order. With extra dimensions
included, each distinct dimension name gets its own column (first-seen
order) and rows without that dimension leave the cell blank.
"""

from dataclasses import dataclass
from io import BytesIO, StringIO
from typing import Optional

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill
import structlog

from config.templates import LOCATION_TEMPLATE_COLUMNS, PICK_TEMPLATE_COLUMNS
from models.parsing import ExportFormat, ExportOptions, SchemaKind
from parsers.row_parser import ParsedLocationRow, ParsedPickRow, ParsedRow

logger = structlog.get_logger(__name__)

ROW_TYPES = {
    SchemaKind.PICK: ParsedPickRow,
    SchemaKind.LOCATION: ParsedLocationRow,
}

TEMPLATE_COLUMNS = {
    SchemaKind.PICK: PICK_TEMPLATE_COLUMNS,
    SchemaKind.LOCATION: LOCATION_TEMPLATE_COLUMNS,
}


@dataclass
class ExportResult:
    """Outcome of an export."""
    success: bool
    file_name: str
    file_size: int = 0
    content: Optional[bytes] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for API response (content omitted)."""
        return {
            "success": self.success,
            "fileName": self.file_name,
            "fileSize": self.file_size,
            "error": self.error,
        }


class ExportService:
    """Service for exporting parsed rows."""

    def export_parsed_rows(
        self,
        rows: list[ParsedRow],
        schema_kind: SchemaKind,
        options: Optional[ExportOptions] = None,
    ) -> ExportResult:
        """
        Export parsed rows to xlsx or csv.

        Args:
            rows: Parsed rows of a single schema
            schema_kind: Schema the rows belong to
            options: Export options (defaults: xlsx with extra dimensions)

        Returns:
            ExportResult with the file bytes, or success=False and an error
        """
        options = options or ExportOptions()
        schema_kind = SchemaKind(schema_kind)
        file_name = options.file_name or f"{schema_kind.value.lower()}_export.{options.format.value}"

        logger.info(
            "exporting_parsed_rows",
            schema_kind=schema_kind.value,
            row_count=len(rows),
            format=options.format.value,
            include_extra_dimensions=options.include_extra_dimensions
        )

        row_type = ROW_TYPES[schema_kind]
        mismatched = sum(1 for row in rows if not isinstance(row, row_type))
        if mismatched:
            logger.warning("export_row_type_mismatch", schema_kind=schema_kind.value, mismatched=mismatched)
            return ExportResult(
                success=False,
                file_name=file_name,
                error=f"{mismatched} rows are not {schema_kind.value} rows",
            )

        columns, records = self._flatten(rows, schema_kind, options.include_extra_dimensions)

        try:
            if options.format == ExportFormat.CSV:
                content = self._write_csv(columns, records)
            else:
                content = self._write_xlsx(columns, records, options.sheet_name)
        except Exception as e:
            logger.error("export_failed", file_name=file_name, error=str(e))
            return ExportResult(success=False, file_name=file_name, error=str(e))

        logger.info("export_complete", file_name=file_name, file_size=len(content))
        return ExportResult(
            success=True,
            file_name=file_name,
            file_size=len(content),
            content=content,
        )

    def _flatten(
        self,
        rows: list[ParsedRow],
        schema_kind: SchemaKind,
        include_extra_dimensions: bool,
    ) -> tuple[list[str], list[dict]]:
        """Turn rows into column names and flat records."""
        columns = list(TEMPLATE_COLUMNS[schema_kind])
        extra_names: list[str] = []
        seen: set[str] = set(columns)
        records = []

        for row in rows:
            record = row.to_dict()
            extras = record.pop("extraDimensions")
            if include_extra_dimensions:
                for dim in extras:
                    if dim["name"] not in seen:
                        seen.add(dim["name"])
                        extra_names.append(dim["name"])
                    record[dim["name"]] = dim["value"]
            records.append(record)

        return columns + extra_names, records

    def _write_csv(self, columns: list[str], records: list[dict]) -> bytes:
        df = pd.DataFrame.from_records(records, columns=columns)
        output = StringIO()
        df.to_csv(output, index=False)
        return output.getvalue().encode("utf-8")

    def _write_xlsx(self, columns: list[str], records: list[dict], sheet_name: str) -> bytes:
        wb = Workbook()
        ws = wb.active
        ws.title = sheet_name

        # Styles
        header_font = Font(bold=True)
        header_fill = PatternFill(start_color="DDDDDD", end_color="DDDDDD", fill_type="solid")

        # Row 1: Column headers
        ws.append(columns)
        for cell in ws[1]:
            cell.font = header_font
            cell.fill = header_fill
        ws.freeze_panes = "A2"

        for record in records:
            ws.append([record.get(name) for name in columns])

        # Save to BytesIO
        output = BytesIO()
        wb.save(output)
        return output.getvalue()


# Singleton instance
_export_service: Optional[ExportService] = None


def get_export_service() -> ExportService:
    """Get or create ExportService instance."""
    global _export_service
    if _export_service is None:
        _export_service = ExportService()
    return _export_service
