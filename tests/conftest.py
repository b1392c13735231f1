"""
Shared test fixtures.

Workbooks are built in memory by tests/factories.py.
"""

import sys
from pathlib import Path

# Add project root to Python path
project_dir = Path(__file__).parent.parent
sys.path.insert(0, str(project_dir))

import pytest

from tests.factories import WorkbookFactory


# ===================
# WORKBOOK FIXTURES
# ===================

@pytest.fixture
def pick_workbook() -> bytes:
    """PICK workbook with Dutch headers, 5 data rows and one extra column."""
    return WorkbookFactory.pick(5, extra_columns={"Zone": ["Z1", "Z2", "Z1", "Z3", "Z2"]})


@pytest.fixture
def location_workbook() -> bytes:
    """LOCATION workbook with 3 data rows."""
    return WorkbookFactory.location([
        ["A-001-01", "Pallet", 120, 80, 150, "0.25-0.25-0.25-0.25", "Fast", "A"],
        ["A-001-02", "Shelf", 100, 60, 40, "0.5-0.5", "Slow", "A"],
        ["B-002-01", "Pallet", 120, 80, 180, "1", "Fast", "B"],
    ])


@pytest.fixture
def fifty_row_workbook() -> bytes:
    """Header plus 49 data rows (50 sheet rows)."""
    return WorkbookFactory.pick(49)
