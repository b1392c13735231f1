"""
Unit tests for the streaming parser.

Row numbers in these tests are sheet rows with the header at row 0.
"""

import asyncio
import inspect

import pytest

from exceptions import ParseAbortedError
from models.parsing import NumericPolicy, ParseOptions, SchemaKind
from parsers.row_parser import ParsedLocationRow, ParsedPickRow
from parsers.stream_parser import (
    ParseFailure,
    ParseResult,
    parse_excel,
    parse_excel_stream,
    parse_excel_stream_async,
    parse_location_sheet,
    _StreamRun,
    parse_pick_sheet,
)
from tests.factories import PICK_HEADERS, WorkbookFactory


def options(**overrides) -> ParseOptions:
    values = {"chunk_size": 10, "start_row": 1}
    values.update(overrides)
    return ParseOptions(**values)


def collect(buffer: bytes, opts: ParseOptions):
    """Run a streaming parse and record every callback payload."""
    chunks, progress = [], []
    result = parse_excel_stream(buffer, opts, on_chunk=chunks.append, on_progress=progress.append)
    return result, chunks, progress


# ===================
# WINDOWING
# ===================

class TestChunking:
    """Tests for window layout and row accounting."""

    def test_max_rows_caps_large_sheet(self):
        """50-row cap on a 10,000-row sheet gives five windows of ten."""
        buffer = WorkbookFactory.pick(9999)

        result, chunks, _ = collect(buffer, options(max_rows=50, chunk_size=10))

        assert isinstance(result, ParseResult)
        assert result.total_rows == 50
        assert len(chunks) == 5
        assert [c.total_chunks for c in chunks] == [5] * 5
        assert result.processed_rows == 49
        assert result.skipped_rows == 1

    def test_windows_partition_range(self, fifty_row_workbook):
        _, chunks, _ = collect(fifty_row_workbook, options(chunk_size=10))

        assert [(c.start_row, c.end_row) for c in chunks] == [
            (1, 11), (11, 21), (21, 31), (31, 41), (41, 50),
        ]
        assert [c.chunk_index for c in chunks] == [0, 1, 2, 3, 4]
        assert [len(c.rows) for c in chunks] == [10, 10, 10, 10, 9]

    def test_chunks_concatenate_to_data(self, fifty_row_workbook):
        result, chunks, _ = collect(fifty_row_workbook, options(chunk_size=7))

        streamed = [row for chunk in chunks for row in chunk.rows]
        assert streamed == result.data
        assert [row.article for row in result.data[:2]] == ["ART-00001", "ART-00002"]

    def test_single_window_when_chunk_exceeds_rows(self, pick_workbook):
        _, chunks, _ = collect(pick_workbook, options(chunk_size=1000))

        assert len(chunks) == 1
        assert len(chunks[0].rows) == 5

    def test_start_row_skips_leading_rows(self, fifty_row_workbook):
        result = parse_excel(fifty_row_workbook, options(start_row=10))

        assert result.processed_rows == 40
        assert result.skipped_rows == 10
        assert result.data[0].article == "ART-00010"

    def test_start_row_past_end(self, pick_workbook):
        result, chunks, _ = collect(pick_workbook, options(start_row=100))

        assert chunks == []
        assert result.total_rows == 6
        assert result.processed_rows == 0
        assert result.skipped_rows == 6

    def test_header_only_sheet(self):
        buffer = WorkbookFactory.sheet(PICK_HEADERS, [])

        result = parse_excel(buffer, options())

        assert result.success is True
        assert result.data == []
        assert result.total_rows == 1
        assert result.skipped_rows == 1


class TestRowAccounting:
    """total_rows == processed_rows + skipped_rows for every run."""

    def test_blank_rows_counted_as_skipped(self):
        rows = WorkbookFactory.pick_rows(4)
        rows.insert(2, [None] * len(PICK_HEADERS))
        buffer = WorkbookFactory.sheet(PICK_HEADERS, rows)

        result = parse_excel(buffer, options())

        assert result.total_rows == 6
        assert result.processed_rows == 4
        assert result.skipped_rows == 2

    @pytest.mark.parametrize("chunk_size,max_rows,start_row", [
        (1, 0, 1),
        (3, 0, 0),
        (10, 20, 1),
        (25, 0, 5),
        (100, 7, 2),
    ])
    def test_counts_add_up(self, fifty_row_workbook, chunk_size, max_rows, start_row):
        result = parse_excel(
            fifty_row_workbook,
            options(chunk_size=chunk_size, max_rows=max_rows, start_row=start_row),
        )

        assert result.total_rows == result.processed_rows + result.skipped_rows

    def test_deterministic(self, pick_workbook):
        first = parse_excel(pick_workbook, options())
        second = parse_excel(pick_workbook, options())

        assert [r.to_dict() for r in first.data] == [r.to_dict() for r in second.data]
        assert first.metadata.column_mapping == second.metadata.column_mapping




class TestDeclaredRange:
    """Row counts come from the rows present, not the sheet's declared dimension."""

    def test_understated_dimension_reads_every_row(self):
        buffer = WorkbookFactory.with_dimension(WorkbookFactory.pick(20), "A1")

        result = parse_excel(buffer, options())

        assert result.success is True
        assert result.total_rows == 21
        assert result.processed_rows == 20
        assert result.skipped_rows == 1
        assert result.data[-1].article == "ART-00020"
        assert result.data[0].unique_articles == 1

    def test_overstated_dimension(self):
        buffer = WorkbookFactory.with_dimension(WorkbookFactory.pick(10), "A1:G40")

        result, chunks, progress = collect(buffer, options(chunk_size=4))

        assert result.total_rows == 11
        assert result.processed_rows == 10
        assert result.skipped_rows == 1
        assert result.total_rows == result.processed_rows + result.skipped_rows
        assert len(chunks) == 3
        assert chunks[-1].end_row == 11
        assert progress[-1].percent_complete == pytest.approx(100.0)

    def test_max_rows_with_understated_dimension(self):
        buffer = WorkbookFactory.with_dimension(WorkbookFactory.pick(20), "A1")

        result = parse_excel(buffer, options(max_rows=8))

        assert result.total_rows == 8
        assert result.processed_rows == 7


class TestCsvInput:
    """Delimited text runs through the same pipeline."""

    def test_csv_pick_rows(self):
        buffer = WorkbookFactory.csv(PICK_HEADERS, WorkbookFactory.pick_rows(3))

        result = parse_excel(buffer, options())

        assert result.success is True
        assert result.processed_rows == 3
        assert result.data[2].pick_frequency == 30

    def test_line_with_extra_fields_is_skipped(self):
        buffer = (
            "Artikelnummer,Omschrijving,Aantal\n"
            "A1,desc,3\n"
            "A2,desc,4,EXTRA\n"
            "A3,desc,5\n"
        ).encode("utf-8")

        result = parse_pick_sheet(buffer, start_row=1, chunk_size=10)

        assert result.success is True
        assert result.total_rows == 4
        assert result.processed_rows == 2
        assert result.skipped_rows == 2
        assert [row.article for row in result.data] == ["A1", "A3"]
        assert [row.quantity for row in result.data] == [3, 5]

    def test_quoted_newline_counts_one_row(self):
        buffer = (
            "Artikelnummer,Omschrijving,Aantal\n"
            'A1,"two\nlines",3\n'
            "A2,desc,4\n"
        ).encode("utf-8")

        result = parse_pick_sheet(buffer, start_row=1, chunk_size=10)

        assert result.total_rows == 3
        assert result.processed_rows == 2
        assert result.data[0].article_description == "two\nlines"


# ===================
# PROGRESS
# ===================

class TestProgress:
    """Tests for progress reporting."""

    def test_progress_after_each_chunk(self, fifty_row_workbook):
        _, chunks, progress = collect(fifty_row_workbook, options(chunk_size=10))

        assert len(progress) == len(chunks)
        assert [p.current_chunk for p in progress] == [1, 2, 3, 4, 5]
        assert [p.processed_rows for p in progress] == [10, 20, 30, 40, 49]

    def test_percent_includes_skipped(self, fifty_row_workbook):
        _, _, progress = collect(fifty_row_workbook, options(chunk_size=10))

        assert progress[0].percent_complete == pytest.approx(22.0)
        assert progress[-1].percent_complete == pytest.approx(100.0)

    def test_progress_dict(self, pick_workbook):
        _, _, progress = collect(pick_workbook, options())
        data = progress[0].to_dict()

        assert data["totalRows"] == 6
        assert data["estimatedRemainingMs"] >= 0

    def test_callback_order(self, fifty_row_workbook):
        calls = []

        parse_excel_stream(
            fifty_row_workbook,
            options(chunk_size=25),
            on_chunk=lambda c: calls.append(("chunk", c.chunk_index)),
            on_progress=lambda p: calls.append(("progress", p.current_chunk)),
        )

        assert calls == [("chunk", 0), ("progress", 1), ("chunk", 1), ("progress", 2)]


# ===================
# MAPPING AND METADATA
# ===================

class TestMappingAndMetadata:

    def test_auto_detects_pick(self, pick_workbook):
        result = parse_excel(pick_workbook, options())

        assert result.metadata.schema_kind == SchemaKind.PICK
        assert isinstance(result.data[0], ParsedPickRow)
        assert result.metadata.detection.is_complete is True

    def test_auto_detects_location(self, location_workbook):
        result = parse_excel(location_workbook, options())

        assert result.metadata.schema_kind == SchemaKind.LOCATION
        row = result.data[0]
        assert isinstance(row, ParsedLocationRow)
        assert row.capacity_layout == "0.25-0.25-0.25-0.25"
        assert row.location_height == 150

    def test_extra_columns_kept(self, pick_workbook):
        result = parse_excel(pick_workbook, options())

        assert result.metadata.extra_columns == ["Zone"]
        assert result.data[0].extra_dimensions[0].to_dict() == {
            "name": "Zone", "value": "Z1", "dataType": "string",
        }

    def test_manual_mapping_only(self, pick_workbook):
        result = parse_excel(
            pick_workbook,
            options(
                schema_kind=SchemaKind.PICK,
                auto_detect=False,
                column_mapping={"Locatie": "location"},
            ),
        )

        assert result.metadata.detection is None
        assert result.metadata.column_mapping == {"Locatie": "location"}
        assert result.data[0].location == "A-001-01"
        assert result.data[0].article == ""
        assert "Artikelnummer" in result.metadata.extra_columns

    def test_result_dict(self, pick_workbook):
        data = parse_excel(pick_workbook, options()).to_dict()

        assert data["success"] is True
        assert data["metadata"]["sheetName"] == "Sheet1"
        assert data["metadata"]["schemaKind"] == "PICK"
        assert len(data["data"]) == 5

    def test_schema_shortcuts(self, pick_workbook, location_workbook):
        assert parse_pick_sheet(pick_workbook).metadata.schema_kind == SchemaKind.PICK
        assert parse_location_sheet(location_workbook, chunk_size=1).processed_rows == 3


# ===================
# FAILURES
# ===================

class TestFailures:
    """Run-level failures come back as ParseFailure with a stable code."""

    def test_missing_sheet(self, pick_workbook):
        result = parse_excel(pick_workbook, options(sheet="Nonexistent"))

        assert isinstance(result, ParseFailure)
        assert result.success is False
        assert result.error_code == "SHEET_NOT_FOUND"
        assert "Nonexistent" in result.error

    def test_empty_buffer(self):
        result = parse_excel(b"", options())

        assert result.error_code == "PARSE_ERROR"

    def test_invalid_manual_mapping(self, pick_workbook):
        result = parse_excel(
            pick_workbook,
            options(schema_kind=SchemaKind.PICK, column_mapping={"Locatie": "bay"}),
        )

        assert result.error_code == "INVALID_COLUMN_MAPPING"

    def test_error_policy_reports_row_and_column(self):
        rows = WorkbookFactory.pick_rows(3)
        rows[1][5] = "twelve"
        buffer = WorkbookFactory.sheet(PICK_HEADERS, rows)

        result = parse_excel(buffer, options(numeric_policy=NumericPolicy.ERROR))

        assert result.error_code == "INVALID_NUMBER"
        assert result.row_number == 3
        assert result.column_name == "Hoeveelheid"
        assert result.to_dict()["rowNumber"] == 3

    def test_skip_row_policy(self):
        rows = WorkbookFactory.pick_rows(3)
        rows[1][5] = "twelve"
        buffer = WorkbookFactory.sheet(PICK_HEADERS, rows)

        result = parse_excel(buffer, options(numeric_policy=NumericPolicy.SKIP_ROW))

        assert result.processed_rows == 2
        assert result.skipped_rows == 2
        assert [r.article for r in result.data] == ["ART-00001", "ART-00003"]

    def test_default_zero_policy(self):
        rows = WorkbookFactory.pick_rows(3)
        rows[1][5] = "twelve"
        buffer = WorkbookFactory.sheet(PICK_HEADERS, rows)

        result = parse_excel(buffer, options(numeric_policy=NumericPolicy.DEFAULT_ZERO))

        assert result.processed_rows == 3
        assert result.data[1].quantity == 0

    def test_abort_from_chunk_callback(self, fifty_row_workbook):
        seen = []

        def on_chunk(chunk):
            seen.append(chunk.chunk_index)
            if chunk.chunk_index == 1:
                raise ParseAbortedError()

        result = parse_excel_stream(fifty_row_workbook, options(), on_chunk=on_chunk)

        assert result.error_code == "PARSE_ABORTED"
        assert seen == [0, 1]

    def test_callback_exception_is_parse_error(self, pick_workbook):
        def on_progress(progress):
            raise RuntimeError("disk full")

        result = parse_excel_stream(pick_workbook, options(), on_progress=on_progress)

        assert result.error_code == "PARSE_ERROR"
        assert result.error == "disk full"

    def test_async_callback_rejected_by_sync_api(self, pick_workbook):
        async def on_chunk(chunk):
            return None

        result = parse_excel_stream(pick_workbook, options(), on_chunk=on_chunk)

        assert result.error_code == "PARSE_ERROR"

    @pytest.mark.parametrize("buffer", [
        WorkbookFactory.pick(30),
        WorkbookFactory.csv(PICK_HEADERS, WorkbookFactory.pick_rows(30)),
    ], ids=["xlsx", "csv"])
    def test_close_stops_suspended_windows(self, buffer):
        """Closing a run part-way closes the window generator and its cursor."""
        run = _StreamRun(buffer, options())
        run.prepare()
        windows = run.windows()
        next(windows)

        run.close()

        assert inspect.getgeneratorstate(windows) == inspect.GEN_CLOSED
        assert run.processed_rows == 10


# ===================
# ASYNC
# ===================

class TestAsync:
    """Tests for the async variant."""

    def test_awaits_callbacks_in_order(self, fifty_row_workbook):
        calls = []

        async def on_chunk(chunk):
            await asyncio.sleep(0)
            calls.append(("chunk", chunk.chunk_index))

        async def on_progress(progress):
            calls.append(("progress", progress.current_chunk))

        result = asyncio.run(parse_excel_stream_async(
            fifty_row_workbook,
            options(chunk_size=25),
            on_chunk=on_chunk,
            on_progress=on_progress,
        ))

        assert result.success is True
        assert result.processed_rows == 49
        assert calls == [("chunk", 0), ("progress", 1), ("chunk", 1), ("progress", 2)]

    def test_accepts_sync_callbacks(self, pick_workbook):
        chunks = []

        result = asyncio.run(parse_excel_stream_async(pick_workbook, options(), on_chunk=chunks.append))

        assert result.success is True
        assert len(chunks) == 1

    def test_abort(self, pick_workbook):
        async def on_chunk(chunk):
            raise ParseAbortedError("stop")

        result = asyncio.run(parse_excel_stream_async(pick_workbook, options(), on_chunk=on_chunk))

        assert result.error_code == "PARSE_ABORTED"
        assert result.error == "stop"
