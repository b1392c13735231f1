"""
Test data factories.

Builds client workbooks in memory with pandas + openpyxl.
"""

from io import BytesIO
import re
import zipfile
from typing import Optional

import pandas as pd


PICK_HEADERS = [
    "Artikelnummer",
    "Omschrijving",
    "Productgroep",
    "Aantal Picks",
    "Locatie",
    "Hoeveelheid",
    "Aantal Artikelen",
]

LOCATION_HEADERS = [
    "Location",
    "Storage Type",
    "Length",
    "Width",
    "Height",
    "Capacity Layout",
    "Location Category",
    "Bay",
]


class WorkbookFactory:
    """
    Factory for creating test workbook buffers.

    Usage:
        # Single sheet
        buffer = WorkbookFactory.sheet(["A", "B"], [[1, 2], [3, 4]])

        # PICK sheet with 100 data rows and an extra column
        buffer = WorkbookFactory.pick(100, extra_columns={"Zone": ["Z1"] * 100})

        # Several sheets
        buffer = WorkbookFactory.create({"Picks": (headers, rows), "Info": (["x"], [])})
    """

    @classmethod
    def create(cls, sheets: dict[str, tuple[list[str], list[list]]]) -> bytes:
        """Create an .xlsx buffer from sheet name -> (headers, rows)."""
        output = BytesIO()
        with pd.ExcelWriter(output, engine="openpyxl") as writer:
            for name, (headers, rows) in sheets.items():
                df = pd.DataFrame(rows, columns=headers) if rows else pd.DataFrame(columns=headers)
                df.to_excel(writer, sheet_name=name, index=False)
        return output.getvalue()

    @classmethod
    def sheet(cls, headers: list[str], rows: list[list], sheet_name: str = "Sheet1") -> bytes:
        """Create a single-sheet .xlsx buffer."""
        return cls.create({sheet_name: (headers, rows)})

    @classmethod
    def pick_rows(cls, count: int, start: int = 1) -> list[list]:
        """Deterministic PICK data rows."""
        return [
            [
                f"ART-{i:05d}",
                f"Article {i}",
                f"FAM-{i % 5}",
                i * 10,
                f"A-{i:03d}-01",
                i % 7 + 1,
                1,
            ]
            for i in range(start, start + count)
        ]

    @classmethod
    def pick(cls, count: int, extra_columns: Optional[dict[str, list]] = None) -> bytes:
        """PICK sheet with `count` data rows under the header row."""
        headers = list(PICK_HEADERS)
        rows = cls.pick_rows(count)
        for name, values in (extra_columns or {}).items():
            headers.append(name)
            for row, value in zip(rows, values):
                row.append(value)
        return cls.sheet(headers, rows)

    @classmethod
    def location(cls, rows: list[list]) -> bytes:
        """LOCATION sheet with the given data rows."""
        return cls.sheet(LOCATION_HEADERS, rows)

    @classmethod
    def csv(cls, headers: list[str], rows: list[list], encoding: str = "utf-8") -> bytes:
        """Create a CSV buffer."""
        df = pd.DataFrame(rows, columns=headers)
        return df.to_csv(index=False).encode(encoding)

    @classmethod
    def with_dimension(cls, buffer: bytes, ref: str) -> bytes:
        """Rewrite the declared <dimension> of every sheet in an .xlsx buffer."""
        output = BytesIO()
        with zipfile.ZipFile(BytesIO(buffer)) as source, \
                zipfile.ZipFile(output, "w", zipfile.ZIP_DEFLATED) as target:
            for item in source.infolist():
                data = source.read(item.filename)
                if item.filename.startswith("xl/worksheets/sheet"):
                    text = data.decode("utf-8")
                    text = re.sub(r'<dimension ref="[^"]*"\s*/>', f'<dimension ref="{ref}"/>', text)
                    data = text.encode("utf-8")
                target.writestr(item, data)
        return output.getvalue()
