"""
Workbook reader for client warehouse spreadsheets.

Opens an in-memory workbook buffer (XLSX, legacy XLS or CSV), lists sheets,
reads header/row-count metadata and exposes a row-at-a-time cursor so the
stream parser never holds more than one window of raw rows.

Sheet rows are zero-based; row 0 is the header row.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from io import BytesIO
import math
from typing import Iterator, Optional, Union

import pandas as pd
import structlog
import xlrd
from openpyxl import load_workbook

from exceptions import AppError, SheetNotFoundError, WorkbookReadError

logger = structlog.get_logger(__name__)

CellValue = Union[str, int, float, bool, datetime, date, None]

XLSX = "xlsx"
XLS = "xls"
CSV = "csv"

MIME_TYPES = {
    XLSX: "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    XLS: "application/vnd.ms-excel",
    CSV: "text/csv",
}

CSV_SHEET_NAME = "Sheet1"

_ZIP_MAGIC = b"PK\x03\x04"
_OLE2_MAGIC = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"
_CSV_READ_CHUNK = 5000


@dataclass
class WorkbookMetadata:
    """Workbook facts gathered without loading every row."""
    file_size: int
    file_format: str
    mime_type: str
    sheet_names: list[str]
    sheet_name: str
    headers: list[str] = field(default_factory=list)
    estimated_rows: int = 0

    def to_dict(self) -> dict:
        """Convert to dictionary for API response."""
        return {
            "fileSize": self.file_size,
            "fileFormat": self.file_format,
            "mimeType": self.mime_type,
            "sheetNames": list(self.sheet_names),
            "sheetName": self.sheet_name,
            "headers": list(self.headers),
            "estimatedRows": self.estimated_rows,
        }


# ===================
# CELL NORMALIZATION
# ===================

def normalize_cell(value) -> CellValue:
    """
    Collapse a backend cell value into the closed CellValue union.

    Blank strings and NaN become None; times, durations and anything
    unrecognised become strings.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        if isinstance(value, float) and math.isnan(value):
            return None
        return value
    if isinstance(value, str):
        return value if value.strip() else None
    if isinstance(value, (datetime, date)):
        return value
    if isinstance(value, time):
        return value.isoformat()
    if isinstance(value, timedelta):
        return str(value)
    return str(value)


def build_headers(cells) -> list[str]:
    """
    Turn the header row into unique column names.

    Blank headers become "__EMPTY", "__EMPTY_1", ...; repeats of a name get
    "_1", "_2", ... suffixes.
    """
    headers: list[str] = []
    seen: set[str] = set()
    empty_count = 0

    for cell in cells:
        value = normalize_cell(cell)
        if value is None:
            name = "__EMPTY" if empty_count == 0 else f"__EMPTY_{empty_count}"
            empty_count += 1
        elif isinstance(value, (datetime, date)):
            name = value.isoformat()
        else:
            name = str(value).strip()

        candidate = name
        suffix = 1
        while candidate in seen:
            candidate = f"{name}_{suffix}"
            suffix += 1
        seen.add(candidate)
        headers.append(candidate)

    return headers


def _sniff_format(buffer: bytes) -> str:
    """Detect the workbook format from its leading bytes."""
    if buffer.startswith(_ZIP_MAGIC):
        return XLSX
    if buffer.startswith(_OLE2_MAGIC):
        return XLS
    if b"\x00" in buffer[:4096]:
        raise WorkbookReadError(
            message="Unsupported workbook format",
            details={"leading_bytes": buffer[:8].hex()}
        )
    return CSV


# ===================
# FORMAT BACKENDS
# ===================

class _XlsxSource:
    """openpyxl read-only backend: rows are parsed lazily from the sheet XML."""

    def __init__(self, buffer: bytes):
        self._book = load_workbook(BytesIO(buffer), read_only=True, data_only=True)
        self._declared: dict[str, Optional[int]] = {}

    @property
    def sheet_names(self) -> list[str]:
        return list(self._book.sheetnames)

    def _sheet(self, sheet: str):
        ws = self._book[sheet]
        if sheet not in self._declared:
            self._declared[sheet] = ws.max_row
            # Writers can misstate <dimension>; the cursor reads what is there
            ws.reset_dimensions()
        return ws

    def row_count(self, sheet: str) -> int:
        self._sheet(sheet)
        if self._declared[sheet]:
            return self._declared[sheet]
        return sum(1 for _ in self.iter_rows(sheet, None))

    def iter_rows(self, sheet: str, stop: Optional[int]) -> Iterator[tuple]:
        ws = self._sheet(sheet)
        if stop is not None and stop <= 0:
            return iter(())
        return ws.iter_rows(min_row=1, max_row=stop, values_only=True)

    def close(self) -> None:
        self._book.close()


class _XlsSource:
    """xlrd backend for legacy .xls exports."""

    def __init__(self, buffer: bytes):
        self._book = xlrd.open_workbook(file_contents=buffer, on_demand=True)

    @property
    def sheet_names(self) -> list[str]:
        return list(self._book.sheet_names())

    def row_count(self, sheet: str) -> int:
        return self._book.sheet_by_name(sheet).nrows

    def iter_rows(self, sheet: str, stop: Optional[int]) -> Iterator[list]:
        # nrows is computed from the records read, not a declared range
        ws = self._book.sheet_by_name(sheet)
        end = ws.nrows if stop is None else min(stop, ws.nrows)
        for idx in range(end):
            yield [self._cell_value(cell) for cell in ws.row(idx)]

    def _cell_value(self, cell):
        if cell.ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK, xlrd.XL_CELL_ERROR):
            return None
        if cell.ctype == xlrd.XL_CELL_DATE:
            return xlrd.xldate.xldate_as_datetime(cell.value, self._book.datemode)
        if cell.ctype == xlrd.XL_CELL_BOOLEAN:
            return bool(cell.value)
        if cell.ctype == xlrd.XL_CELL_NUMBER and float(cell.value).is_integer():
            return int(cell.value)
        return cell.value

    def close(self) -> None:
        self._book.release_resources()


class _CsvSource:
    """pandas backend for delimited text; a single sheet read in chunks."""

    def __init__(self, buffer: bytes):
        self._buffer = buffer
        try:
            buffer.decode("utf-8")
            self._encoding = "utf-8-sig"
        except UnicodeDecodeError:
            self._encoding = "latin-1"

    @property
    def sheet_names(self) -> list[str]:
        return [CSV_SHEET_NAME]

    def row_count(self, sheet: str) -> int:
        """
        Line count of the buffer.

        Quoted fields spanning several lines and bare "\\r" line endings make
        this an estimate; the cursor is the exact count.
        """
        lines = self._buffer.count(b"\n")
        if self._buffer and not self._buffer.endswith(b"\n"):
            lines += 1
        return lines

    def iter_rows(self, sheet: str, stop: Optional[int]) -> Iterator[list]:
        if stop is not None and stop <= 0:
            return
        reader = pd.read_csv(
            BytesIO(self._buffer),
            header=None,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=False,
            encoding=self._encoding,
            engine="python",
            on_bad_lines=self._blank_bad_line,
            chunksize=_CSV_READ_CHUNK,
        )
        emitted = 0
        with reader:
            for frame in reader:
                for values in frame.itertuples(index=False, name=None):
                    yield list(values)
                    emitted += 1
                    if stop is not None and emitted >= stop:
                        return

    def _blank_bad_line(self, fields: list[str]) -> list[str]:
        # Line wider than the first one: keep its place as a blank, skipped row
        logger.debug("csv_bad_line", fields=len(fields))
        return []

    def close(self) -> None:
        self._buffer = b""


_SOURCES = {
    XLSX: _XlsxSource,
    XLS: _XlsSource,
    CSV: _CsvSource,
}


# ===================
# WORKBOOK
# ===================

class Workbook:
    """
    Read-only view over an in-memory workbook buffer.

    Usage:
        with Workbook(buffer) as wb:
            sheet = wb.resolve_sheet(None)
            headers = wb.read_headers(sheet)
            for row in wb.iter_rows(sheet, stop=1000):
                ...

    Raises:
        WorkbookReadError: If the buffer is empty, corrupt or unsupported
    """

    def __init__(self, buffer: bytes):
        if not buffer:
            raise WorkbookReadError(message="Workbook buffer is empty")

        self.file_size = len(buffer)
        self.file_format = _sniff_format(buffer)

        try:
            self._source = _SOURCES[self.file_format](buffer)
        except Exception as e:
            logger.error(
                "workbook_read_failed",
                file_format=self.file_format,
                error=str(e)
            )
            raise WorkbookReadError(
                message="Failed to read workbook",
                details={"file_format": self.file_format, "original_error": str(e)}
            )

        logger.debug(
            "workbook_opened",
            file_format=self.file_format,
            file_size=self.file_size,
            sheets=len(self.sheet_names)
        )

    def __enter__(self) -> "Workbook":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def mime_type(self) -> str:
        return MIME_TYPES[self.file_format]

    @property
    def sheet_names(self) -> list[str]:
        return self._source.sheet_names

    def resolve_sheet(self, identifier: Optional[Union[str, int]] = None) -> str:
        """
        Resolve a sheet name or zero-based index to a sheet name.

        Raises:
            SheetNotFoundError: If the identifier does not match a sheet
        """
        names = self.sheet_names

        if identifier is None:
            identifier = 0

        if isinstance(identifier, int) and not isinstance(identifier, bool):
            if 0 <= identifier < len(names):
                return names[identifier]
        elif identifier in names:
            return identifier

        logger.warning("sheet_not_found", sheet=identifier, available=names)
        raise SheetNotFoundError(identifier, names)

    def read_headers(self, sheet: str) -> list[str]:
        """Header names from the sheet's first row (unique, stripped)."""
        first_row = next(iter(self._source.iter_rows(sheet, 1)), None)
        if first_row is None:
            return []
        return build_headers(first_row)

    def estimate_rows(self, sheet: str) -> int:
        """Row count from the sheet's declared data range, header included."""
        return self._source.row_count(sheet)

    def count_rows(self, sheet: str, stop: Optional[int] = None) -> int:
        """
        Rows the cursor actually yields, header included, up to stop.

        Walks the sheet once without keeping rows. Unlike estimate_rows this
        does not trust the declared range.
        """
        return sum(1 for _ in self._source.iter_rows(sheet, stop))

    def iter_rows(self, sheet: str, stop: Optional[int] = None) -> Iterator[list[CellValue]]:
        """
        Yield normalized rows from sheet row 0 up to (not including) stop.

        The cursor ignores the declared range and ends at the sheet's last row.
        """
        for row in self._source.iter_rows(sheet, stop):
            yield [normalize_cell(value) for value in row]

    def close(self) -> None:
        self._source.close()


def get_workbook_metadata(
    buffer: bytes,
    sheet: Optional[Union[str, int]] = None,
) -> WorkbookMetadata:
    """
    Read workbook metadata without loading every row.

    Args:
        buffer: Raw workbook bytes
        sheet: Sheet name or zero-based index (default: first sheet)

    Returns:
        WorkbookMetadata with headers and the estimated row count

    Raises:
        WorkbookReadError: If the buffer cannot be read
        SheetNotFoundError: If the sheet does not exist
    """
    with Workbook(buffer) as wb:
        sheet_name = wb.resolve_sheet(sheet)
        try:
            headers = wb.read_headers(sheet_name)
            estimated_rows = wb.estimate_rows(sheet_name)
        except AppError:
            raise
        except Exception as e:
            logger.error("workbook_metadata_failed", sheet=sheet_name, error=str(e))
            raise WorkbookReadError(
                message=f"Failed to read sheet: {sheet_name}",
                details={"original_error": str(e)}
            )

        metadata = WorkbookMetadata(
            file_size=wb.file_size,
            file_format=wb.file_format,
            mime_type=wb.mime_type,
            sheet_names=wb.sheet_names,
            sheet_name=sheet_name,
            headers=headers,
            estimated_rows=estimated_rows,
        )

    logger.info(
        "workbook_metadata_read",
        sheet=metadata.sheet_name,
        columns=len(metadata.headers),
        estimated_rows=metadata.estimated_rows
    )
    return metadata
