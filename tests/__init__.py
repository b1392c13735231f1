"""
Test suite for the workbook ingestion engine.

Run all tests: pytest
Run unit tests only: pytest tests/unit/
Run specific file: pytest tests/unit/test_stream_parser.py -v
"""
