"""
Row parser for PICK and LOCATION sheets.

Turns one raw row (client column -> cell value) into a typed template record.
Mapped columns are coerced to the template field types; every other non-empty
column is kept as a typed extra dimension so no client data is lost.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
import math
import re
from typing import Optional, Union

from config.templates import (
    LOCATION_FIELD_TYPES,
    LOCATION_TEMPLATE_COLUMNS,
    NUMBER,
    PICK_FIELD_TYPES,
    PICK_TEMPLATE_COLUMNS,
)
from exceptions import InvalidNumericValueError
from models.parsing import NumericPolicy, SchemaKind
from parsers.workbook_reader import CellValue

RawRow = dict[str, CellValue]

_NUMERIC_TEXT = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")

# Date layouts recognised in free text (ISO is tried first)
_DATE_FORMATS = ["%Y-%m-%d", "%d/%m/%Y", "%m/%d/%Y", "%Y/%m/%d", "%d-%m-%Y", "%d.%m.%Y"]


class CellKind(str, Enum):
    """Closed set of raw cell value kinds."""
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    NULL = "null"


@dataclass
class ExtraDimension:
    """Client column kept alongside the template fields."""
    name: str
    value: str
    data_type: str  # string | number | date | boolean

    def to_dict(self) -> dict:
        return {"name": self.name, "value": self.value, "dataType": self.data_type}


@dataclass
class ParsedPickRow:
    """PICK template record."""
    article: str
    article_description: str
    family: str
    pick_frequency: float
    location: str
    quantity: float
    unique_articles: float
    extra_dimensions: list[ExtraDimension] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Template field names plus extraDimensions."""
        return {
            "article": self.article,
            "articleDescription": self.article_description,
            "family": self.family,
            "pickFrequency": self.pick_frequency,
            "location": self.location,
            "quantity": self.quantity,
            "uniqueArticles": self.unique_articles,
            "extraDimensions": [d.to_dict() for d in self.extra_dimensions],
        }


@dataclass
class ParsedLocationRow:
    """LOCATION template record."""
    location: str
    storage_type: str
    location_length: float
    location_width: float
    location_height: float
    capacity_layout: str  # verbatim, e.g. "0.25-0.25-0.25-0.25"
    location_category: str
    bay: str
    extra_dimensions: list[ExtraDimension] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Template field names plus extraDimensions."""
        return {
            "location": self.location,
            "storageType": self.storage_type,
            "locationLength": self.location_length,
            "locationWidth": self.location_width,
            "locationHeight": self.location_height,
            "capacityLayout": self.capacity_layout,
            "locationCategory": self.location_category,
            "bay": self.bay,
            "extraDimensions": [d.to_dict() for d in self.extra_dimensions],
        }


ParsedRow = Union[ParsedPickRow, ParsedLocationRow]


# ===================
# CELL HELPERS
# ===================

def classify_cell(value: CellValue) -> CellKind:
    """Tag a raw cell value. Booleans are checked before numbers."""
    if value is None:
        return CellKind.NULL
    if isinstance(value, bool):
        return CellKind.BOOLEAN
    if isinstance(value, (int, float)):
        return CellKind.NUMBER
    if isinstance(value, (datetime, date)):
        return CellKind.DATE
    return CellKind.STRING


def is_empty(value: CellValue) -> bool:
    """True for None and blank strings."""
    kind = classify_cell(value)
    if kind == CellKind.NULL:
        return True
    if kind == CellKind.STRING:
        return not str(value).strip()
    return False


def _is_numeric_text(text: str) -> bool:
    return bool(_NUMERIC_TEXT.match(text.strip().replace(",", "")))


def _is_date_text(text: str) -> bool:
    """Check if text parses as a date (ISO-8601 or a common layout)."""
    text = text.strip()
    try:
        datetime.fromisoformat(text)
        return True
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            datetime.strptime(text, fmt)
            return True
        except ValueError:
            continue
    return False


def infer_data_type(value: CellValue) -> str:
    """
    Infer the extra dimension type of a non-empty value.

    Priority: boolean > number > date-parseable string > string.
    Numeric-looking strings count as numbers.
    """
    kind = classify_cell(value)
    if kind == CellKind.BOOLEAN:
        return "boolean"
    if kind == CellKind.NUMBER:
        return "number"
    if kind == CellKind.DATE:
        return "date"
    text = str(value)
    if _is_numeric_text(text):
        return "number"
    if _is_date_text(text):
        return "date"
    return "string"


def to_string(value: CellValue) -> str:
    """
    Coerce a cell to a template string.

    None → "", dates → ISO-8601, integral floats drop their ".0".
    """
    kind = classify_cell(value)
    if kind == CellKind.NULL:
        return ""
    if kind == CellKind.DATE:
        return value.isoformat()
    if kind == CellKind.BOOLEAN:
        return "true" if value else "false"
    if kind == CellKind.NUMBER:
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        return str(value)
    return str(value)


def to_number(
    value: CellValue,
    field_name: str,
    policy: NumericPolicy = NumericPolicy.DEFAULT_ZERO,
) -> float:
    """
    Coerce a cell to a template number.

    Numbers pass through; numeric strings lose thousands separators and are
    parsed as float; empty cells are 0. Anything else follows policy:
    DEFAULT_ZERO returns 0, other policies raise InvalidNumericValueError.
    """
    kind = classify_cell(value)
    if kind == CellKind.NUMBER:
        return value
    if kind == CellKind.NULL:
        return 0.0
    if kind == CellKind.BOOLEAN:
        return 1.0 if value else 0.0
    if kind == CellKind.STRING:
        text = str(value).strip().replace(",", "")
        if not text:
            return 0.0
        if _NUMERIC_TEXT.match(text):
            number = float(text)
            if math.isfinite(number):
                return number

    if policy == NumericPolicy.DEFAULT_ZERO:
        return 0.0
    raise InvalidNumericValueError(field_name, value)


def extract_extra_dimensions(
    raw_row: RawRow,
    template_columns: tuple[str, ...],
    column_mapping: dict[str, str],
) -> list[ExtraDimension]:
    """Keep every non-empty column that is neither mapped nor a template field."""
    extra_dimensions = []

    for key, value in raw_row.items():
        # Consumed by the mapping
        if key in column_mapping:
            continue
        if key in template_columns:
            continue
        if is_empty(value):
            continue

        extra_dimensions.append(ExtraDimension(
            name=key,
            value=to_string(value),
            data_type=infer_data_type(value),
        ))

    return extra_dimensions


def _map_row(
    raw_row: RawRow,
    column_mapping: dict[str, str],
    field_types: dict[str, str],
    policy: NumericPolicy,
) -> dict[str, Union[str, float]]:
    """Copy mapped columns under their template keys and coerce them."""
    mapped: dict[str, CellValue] = {}
    sources: dict[str, str] = {}

    for client_column, template_field in column_mapping.items():
        if client_column in raw_row:
            mapped[template_field] = raw_row[client_column]
            sources[template_field] = client_column

    values = {}
    for template_field, field_type in field_types.items():
        value = mapped.get(template_field)
        if field_type == NUMBER:
            try:
                values[template_field] = to_number(value, template_field, policy)
            except InvalidNumericValueError as e:
                e.column = sources.get(template_field)
                e.details["column"] = e.column
                raise
        else:
            values[template_field] = to_string(value)
    return values


# ===================
# PICK ROW PARSER
# ===================

def parse_pick_row(
    raw_row: RawRow,
    column_mapping: dict[str, str],
    numeric_policy: NumericPolicy = NumericPolicy.DEFAULT_ZERO,
) -> ParsedPickRow:
    """Parse a raw row into a PICK record."""
    values = _map_row(raw_row, column_mapping, PICK_FIELD_TYPES, numeric_policy)

    return ParsedPickRow(
        article=values["article"],
        article_description=values["articleDescription"],
        family=values["family"],
        pick_frequency=values["pickFrequency"],
        location=values["location"],
        quantity=values["quantity"],
        unique_articles=values["uniqueArticles"],
        extra_dimensions=extract_extra_dimensions(raw_row, PICK_TEMPLATE_COLUMNS, column_mapping),
    )


# ===================
# LOCATION ROW PARSER
# ===================

def parse_location_row(
    raw_row: RawRow,
    column_mapping: dict[str, str],
    numeric_policy: NumericPolicy = NumericPolicy.DEFAULT_ZERO,
) -> ParsedLocationRow:
    """Parse a raw row into a LOCATION record."""
    values = _map_row(raw_row, column_mapping, LOCATION_FIELD_TYPES, numeric_policy)

    return ParsedLocationRow(
        location=values["location"],
        storage_type=values["storageType"],
        location_length=values["locationLength"],
        location_width=values["locationWidth"],
        location_height=values["locationHeight"],
        capacity_layout=values["capacityLayout"],
        location_category=values["locationCategory"],
        bay=values["bay"],
        extra_dimensions=extract_extra_dimensions(raw_row, LOCATION_TEMPLATE_COLUMNS, column_mapping),
    )


def parse_row(
    raw_row: RawRow,
    column_mapping: dict[str, str],
    schema_kind: SchemaKind,
    numeric_policy: NumericPolicy = NumericPolicy.DEFAULT_ZERO,
) -> ParsedRow:
    """
    Parse a raw row for the given schema.

    Raises:
        InvalidNumericValueError: Only when numeric_policy is not DEFAULT_ZERO
    """
    if SchemaKind(schema_kind) == SchemaKind.PICK:
        return parse_pick_row(raw_row, column_mapping, numeric_policy)
    return parse_location_row(raw_row, column_mapping, numeric_policy)


def row_from_cells(headers: list[str], cells: list[CellValue]) -> Optional[RawRow]:
    """
    Zip a sheet row with the headers.

    Short rows are padded with None, cells past the last header are dropped.
    Returns None for a row with no non-empty cell under a header.
    """
    row = {}
    for idx, header in enumerate(headers):
        row[header] = cells[idx] if idx < len(cells) else None
    if all(is_empty(value) for value in row.values()):
        return None
    return row
