"""
Streaming Excel parser.

Drives the row parser over a sheet in fixed-size windows so that large
warehouse files (10K-1M rows) never hold more than one window of raw rows.
After every window the chunk callback and then the progress callback run,
strictly in order; the next window starts only once they return (or, in the
async variant, once they have been awaited).

Row indices are sheet rows with the header at row 0. Rows before start_row
count as skipped, so total_rows == processed_rows + skipped_rows always holds.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
import inspect
from itertools import islice
import math
import time
from typing import Awaitable, Callable, Generator, Iterator, Optional, Union

import structlog

from config.templates import LOCATION_TEMPLATE_COLUMNS, PICK_TEMPLATE_COLUMNS
from exceptions import AppError, InvalidNumericValueError
from models.parsing import NumericPolicy, ParseOptions, SchemaKind
from parsers.column_mapper import DetectionResult, auto_detect_mappings, resolve_column_mapping
from parsers.row_parser import ParsedRow, parse_row, row_from_cells
from parsers.workbook_reader import Workbook

logger = structlog.get_logger(__name__)


@dataclass
class ParsedChunk:
    """One window of parsed rows, reported to the chunk callback."""
    rows: list[ParsedRow]
    chunk_index: int
    total_chunks: int
    start_row: int
    end_row: int  # exclusive


@dataclass
class ParseProgress:
    """Cumulative counters after a window."""
    total_rows: int
    processed_rows: int
    skipped_rows: int
    current_chunk: int
    total_chunks: int
    percent_complete: float
    elapsed_ms: int
    estimated_remaining_ms: int

    def to_dict(self) -> dict:
        return {
            "totalRows": self.total_rows,
            "processedRows": self.processed_rows,
            "skippedRows": self.skipped_rows,
            "currentChunk": self.current_chunk,
            "totalChunks": self.total_chunks,
            "percentComplete": self.percent_complete,
            "elapsedMs": self.elapsed_ms,
            "estimatedRemainingMs": self.estimated_remaining_ms,
        }


@dataclass
class ParseMetadata:
    """Facts about a completed run."""
    file_size: int
    sheet_name: str
    schema_kind: SchemaKind
    column_mapping: dict[str, str]
    detected_columns: list[str]
    extra_columns: list[str]
    started_at: datetime
    completed_at: datetime
    detection: Optional[DetectionResult] = None

    def to_dict(self) -> dict:
        return {
            "fileSize": self.file_size,
            "sheetName": self.sheet_name,
            "schemaKind": self.schema_kind.value,
            "columnMapping": dict(self.column_mapping),
            "detectedColumns": list(self.detected_columns),
            "extraColumns": list(self.extra_columns),
            "startedAt": self.started_at.isoformat(),
            "completedAt": self.completed_at.isoformat(),
            "detection": self.detection.to_dict() if self.detection else None,
        }


@dataclass
class ParseResult:
    """Successful run."""
    data: list[ParsedRow]
    total_rows: int
    processed_rows: int
    skipped_rows: int
    elapsed_ms: int
    metadata: ParseMetadata
    success: bool = field(default=True, init=False)

    def to_dict(self) -> dict:
        """Convert to dictionary for API response."""
        return {
            "success": True,
            "data": [row.to_dict() for row in self.data],
            "totalRows": self.total_rows,
            "processedRows": self.processed_rows,
            "skippedRows": self.skipped_rows,
            "elapsedMs": self.elapsed_ms,
            "metadata": self.metadata.to_dict(),
        }


@dataclass
class ParseFailure:
    """Failed run, tagged with a stable error code."""
    error: str
    error_code: str
    elapsed_ms: int
    row_number: Optional[int] = None
    column_name: Optional[str] = None
    success: bool = field(default=False, init=False)

    def to_dict(self) -> dict:
        """Convert to dictionary for API response."""
        result = {
            "success": False,
            "error": self.error,
            "errorCode": self.error_code,
            "elapsedMs": self.elapsed_ms,
        }
        if self.row_number is not None:
            result["rowNumber"] = self.row_number
        if self.column_name is not None:
            result["columnName"] = self.column_name
        return result


ChunkCallback = Callable[[ParsedChunk], Union[None, Awaitable[None]]]
ProgressCallback = Callable[[ParseProgress], Union[None, Awaitable[None]]]


class _StreamRun:
    """State for one streaming run. Not shared between runs."""

    def __init__(self, buffer: bytes, options: ParseOptions):
        self.buffer = buffer
        self.options = options
        self.log = logger.bind(file_size=len(buffer))

        self.started_at = datetime.now(timezone.utc)
        self._start = time.perf_counter()

        self.workbook: Optional[Workbook] = None
        self.sheet_name = ""
        self.headers: list[str] = []
        self.schema_kind: Optional[SchemaKind] = options.schema_kind
        self.column_mapping: dict[str, str] = {}
        self.detection: Optional[DetectionResult] = None
        self._windows: Optional[Generator[ParsedChunk, None, None]] = None

        self.total_rows = 0
        self.total_chunks = 0
        self.processed_rows = 0
        self.skipped_rows = 0
        self.data: list[ParsedRow] = []

    # ===================
    # SETUP
    # ===================

    def prepare(self) -> None:
        """Open the workbook, resolve the sheet, schema and column mapping."""
        options = self.options
        self.log.info(
            "parsing_excel_stream",
            sheet=options.sheet,
            schema_kind=options.schema_kind.value if options.schema_kind else None,
            chunk_size=options.chunk_size,
            start_row=options.start_row,
            max_rows=options.max_rows
        )
        self.log.debug("memory_limit_advisory", memory_limit_mb=options.memory_limit_mb)

        self.workbook = Workbook(self.buffer)
        self.sheet_name = self.workbook.resolve_sheet(options.sheet)
        self.headers = self.workbook.read_headers(self.sheet_name)
        self.log = self.log.bind(sheet=self.sheet_name)

        if self.schema_kind is None:
            self.schema_kind = auto_detect_mappings(
                self.headers, options.similarity_threshold
            ).schema_kind
            self.log.info("schema_kind_detected", schema_kind=self.schema_kind.value)

        self.column_mapping, self.detection = resolve_column_mapping(
            self.headers,
            self.schema_kind,
            manual=options.column_mapping,
            auto_detect=options.auto_detect,
            threshold=options.similarity_threshold,
        )

        # Count what the cursor yields; declared ranges can be wrong
        stop = options.max_rows if options.max_rows > 0 else None
        self.total_rows = self.workbook.count_rows(self.sheet_name, stop=stop)
        if stop is None:
            declared_rows = self.workbook.estimate_rows(self.sheet_name)
            if declared_rows != self.total_rows:
                self.log.info(
                    "declared_range_mismatch",
                    declared_rows=declared_rows,
                    counted_rows=self.total_rows
                )

        span = self.total_rows - options.start_row
        self.total_chunks = math.ceil(span / options.chunk_size) if span > 0 else 0

        self.log.info(
            "stream_prepared",
            schema_kind=self.schema_kind.value,
            columns=len(self.headers),
            mapped_columns=len(self.column_mapping),
            total_rows=self.total_rows,
            total_chunks=self.total_chunks
        )

    # ===================
    # WINDOWS
    # ===================

    def windows(self) -> Iterator[ParsedChunk]:
        """Parse the sheet one window at a time. close() closes the generator."""
        self._windows = self._parse_windows()
        return self._windows

    def _parse_windows(self) -> Iterator[ParsedChunk]:
        cursor = self.workbook.iter_rows(self.sheet_name, stop=self.total_rows)
        try:
            yield from self._walk(cursor)
        finally:
            cursor.close()

    def _walk(self, cursor: Generator) -> Iterator[ParsedChunk]:
        options = self.options
        start_row = min(options.start_row, self.total_rows)

        # Header row and anything before start_row
        for _ in islice(cursor, start_row):
            self.skipped_rows += 1

        for chunk_index, window_start in enumerate(range(start_row, self.total_rows, options.chunk_size)):
            window_end = min(window_start + options.chunk_size, self.total_rows)
            raw_window = list(islice(cursor, window_end - window_start))
            chunk_rows: list[ParsedRow] = []

            for row_index, cells in enumerate(raw_window, start=window_start):
                parsed = self._parse_one(row_index, cells)
                if parsed is None:
                    self.skipped_rows += 1
                else:
                    chunk_rows.append(parsed)
                    self.processed_rows += 1

            self.data.extend(chunk_rows)
            self.log.debug(
                "chunk_parsed",
                chunk=chunk_index + 1,
                total_chunks=self.total_chunks,
                start_row=window_start,
                end_row=window_end,
                rows=len(chunk_rows)
            )

            yield ParsedChunk(
                rows=chunk_rows,
                chunk_index=chunk_index,
                total_chunks=self.total_chunks,
                start_row=window_start,
                end_row=window_end,
            )

    def _parse_one(self, row_index: int, cells: list) -> Optional[ParsedRow]:
        """Parse one sheet row; None means the row is skipped."""
        raw_row = row_from_cells(self.headers, cells)
        if raw_row is None:
            return None

        try:
            return parse_row(
                raw_row,
                self.column_mapping,
                self.schema_kind,
                self.options.numeric_policy,
            )
        except InvalidNumericValueError as e:
            if self.options.numeric_policy == NumericPolicy.ERROR:
                e.row = row_index + 1  # Excel row number (1-indexed)
                e.details["row"] = e.row
                raise
            self._log_skip(row_index, e)
            return None
        except Exception as e:
            self._log_skip(row_index, e)
            return None

    def _log_skip(self, row_index: int, error: Exception) -> None:
        log = self.log.warning if self.options.debug else self.log.debug
        log("row_skipped", row=row_index + 1, error=str(error))

    # ===================
    # REPORTING
    # ===================

    def elapsed_ms(self) -> int:
        return int((time.perf_counter() - self._start) * 1000)

    def progress(self, chunk: ParsedChunk) -> ParseProgress:
        """Cumulative progress after a window."""
        elapsed = self.elapsed_ms()
        handled = self.processed_rows + self.skipped_rows

        if self.processed_rows > 0:
            remaining = elapsed * (self.total_rows - self.processed_rows) / self.processed_rows
        else:
            remaining = 0

        return ParseProgress(
            total_rows=self.total_rows,
            processed_rows=self.processed_rows,
            skipped_rows=self.skipped_rows,
            current_chunk=chunk.chunk_index + 1,
            total_chunks=self.total_chunks,
            percent_complete=(handled / self.total_rows * 100) if self.total_rows else 0.0,
            elapsed_ms=elapsed,
            estimated_remaining_ms=int(remaining),
        )

    def result(self) -> ParseResult:
        template_columns = (
            PICK_TEMPLATE_COLUMNS if self.schema_kind == SchemaKind.PICK else LOCATION_TEMPLATE_COLUMNS
        )
        extra_columns = [
            col for col in self.headers
            if col not in self.column_mapping and col not in template_columns
        ]

        result = ParseResult(
            data=self.data,
            total_rows=self.total_rows,
            processed_rows=self.processed_rows,
            skipped_rows=self.skipped_rows,
            elapsed_ms=self.elapsed_ms(),
            metadata=ParseMetadata(
                file_size=len(self.buffer),
                sheet_name=self.sheet_name,
                schema_kind=self.schema_kind,
                column_mapping=dict(self.column_mapping),
                detected_columns=list(self.headers),
                extra_columns=extra_columns,
                started_at=self.started_at,
                completed_at=datetime.now(timezone.utc),
                detection=self.detection,
            ),
        )

        self.log.info(
            "excel_stream_parsed",
            total_rows=result.total_rows,
            processed_rows=result.processed_rows,
            skipped_rows=result.skipped_rows,
            elapsed_ms=result.elapsed_ms
        )
        return result

    def failure(self, error: Exception) -> ParseFailure:
        if isinstance(error, AppError):
            code = error.code
            message = error.message
        else:
            code = "PARSE_ERROR"
            message = str(error) or type(error).__name__

        failure = ParseFailure(
            error=message,
            error_code=code,
            elapsed_ms=self.elapsed_ms(),
        )
        if isinstance(error, InvalidNumericValueError):
            failure.row_number = error.row
            failure.column_name = error.column

        self.log.error(
            "excel_stream_failed",
            error_code=failure.error_code,
            error=failure.error,
            processed_rows=self.processed_rows
        )
        return failure

    def close(self) -> None:
        if self._windows is not None:
            self._windows.close()
        if self.workbook is not None:
            self.workbook.close()


def _call_sync(callback, payload) -> None:
    outcome = callback(payload)
    if inspect.isawaitable(outcome):
        if inspect.iscoroutine(outcome):
            outcome.close()
        raise TypeError("Async callbacks require parse_excel_stream_async")


async def _call_async(callback, payload) -> None:
    outcome = callback(payload)
    if inspect.isawaitable(outcome):
        await outcome


# ===================
# PUBLIC API
# ===================

def parse_excel_stream(
    buffer: bytes,
    options: Optional[ParseOptions] = None,
    on_chunk: Optional[ChunkCallback] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> Union[ParseResult, ParseFailure]:
    """
    Parse a workbook sheet in windows of options.chunk_size rows.

    Args:
        buffer: Raw workbook bytes (read-only)
        options: Parse options (defaults from settings)
        on_chunk: Called with each ParsedChunk, in row order
        on_progress: Called with cumulative ParseProgress after on_chunk

    Returns:
        ParseResult, or ParseFailure with a stable error_code. An exception
        raised by a callback stops the run and is reported as a failure.
    """
    run = _StreamRun(buffer, options or ParseOptions())
    try:
        run.prepare()
        for chunk in run.windows():
            if on_chunk:
                _call_sync(on_chunk, chunk)
            if on_progress:
                _call_sync(on_progress, run.progress(chunk))
        return run.result()
    except Exception as e:
        return run.failure(e)
    finally:
        run.close()


async def parse_excel_stream_async(
    buffer: bytes,
    options: Optional[ParseOptions] = None,
    on_chunk: Optional[ChunkCallback] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> Union[ParseResult, ParseFailure]:
    """
    Async variant of parse_excel_stream.

    Callbacks may be plain functions or coroutines; each is awaited before
    the next window is parsed.
    """
    run = _StreamRun(buffer, options or ParseOptions())
    try:
        run.prepare()
        for chunk in run.windows():
            if on_chunk:
                await _call_async(on_chunk, chunk)
            if on_progress:
                await _call_async(on_progress, run.progress(chunk))
        return run.result()
    except Exception as e:
        return run.failure(e)
    finally:
        run.close()


def parse_excel(
    buffer: bytes,
    options: Optional[ParseOptions] = None,
) -> Union[ParseResult, ParseFailure]:
    """Parse a workbook sheet without callbacks."""
    return parse_excel_stream(buffer, options)


def parse_pick_sheet(buffer: bytes, **options) -> Union[ParseResult, ParseFailure]:
    """Parse a sheet as PICK rows. Keyword arguments are ParseOptions fields."""
    return parse_excel(buffer, ParseOptions(schema_kind=SchemaKind.PICK, **options))


def parse_location_sheet(buffer: bytes, **options) -> Union[ParseResult, ParseFailure]:
    """Parse a sheet as LOCATION rows. Keyword arguments are ParseOptions fields."""
    return parse_excel(buffer, ParseOptions(schema_kind=SchemaKind.LOCATION, **options))
