"""
Parsing option models.

ParseOptions is the validated per-run configuration accepted by the stream
parser. Defaults come from config.settings so deployments can tune them via
INGEST_* environment variables.
"""

from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from config.settings import get_settings


class SchemaKind(str, Enum):
    """Canonical record layouts."""
    PICK = "PICK"
    LOCATION = "LOCATION"


class NumericPolicy(str, Enum):
    """What the row parser does with an unparseable numeric cell."""
    DEFAULT_ZERO = "default_zero"  # coerce to 0
    SKIP_ROW = "skip_row"          # count the row as skipped
    ERROR = "error"                # abort the run


class ExportFormat(str, Enum):
    """Output formats for parsed rows."""
    XLSX = "xlsx"
    CSV = "csv"


class ParseOptions(BaseModel):
    """
    Options for one parsing run.

    Row indices refer to sheet rows, with the header at row 0.
    """
    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    sheet: Optional[Union[str, int]] = Field(
        None,
        description="Sheet name or zero-based index (default: first sheet)"
    )
    schema_kind: Optional[SchemaKind] = Field(
        None,
        description="Target schema; auto-detected from headers when omitted"
    )
    column_mapping: dict[str, str] = Field(
        default_factory=dict,
        description="Manual overrides: client column -> canonical field"
    )
    max_rows: int = Field(
        default=0,
        ge=0,
        description="Cap on sheet rows considered, header included (0 = unlimited)"
    )
    start_row: int = Field(
        default_factory=lambda: get_settings().default_start_row,
        ge=0,
        description="First sheet row to parse"
    )
    chunk_size: int = Field(
        default_factory=lambda: get_settings().default_chunk_size,
        ge=1,
        description="Rows per streaming window"
    )
    debug: bool = Field(
        default_factory=lambda: get_settings().debug,
        description="Log every skipped row at warning level"
    )
    auto_detect: bool = Field(
        default=True,
        description="Auto-detect mappings for columns not covered by column_mapping"
    )
    similarity_threshold: float = Field(
        default_factory=lambda: get_settings().similarity_threshold,
        ge=0,
        le=1,
        description="Minimum fuzzy similarity for auto-detected mappings"
    )
    numeric_policy: NumericPolicy = Field(
        default_factory=lambda: NumericPolicy(get_settings().numeric_policy),
        description="Handling of unparseable numeric cells"
    )
    memory_limit_mb: int = Field(
        default_factory=lambda: get_settings().memory_limit_mb,
        ge=1,
        description="Advisory memory budget (not enforced)"
    )

    @field_validator("sheet")
    @classmethod
    def sheet_index_not_negative(cls, v):
        if isinstance(v, int) and v < 0:
            raise ValueError("sheet index must be >= 0")
        return v


class ExportOptions(BaseModel):
    """Options for exporting parsed rows."""
    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    include_extra_dimensions: bool = True
    sheet_name: str = Field(default="Data", min_length=1, max_length=31)
    format: ExportFormat = ExportFormat.XLSX
    file_name: Optional[str] = Field(
        None,
        description="Output file name (default: <schema>_export.<format>)"
    )
