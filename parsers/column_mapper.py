"""
Column mapping auto-detection.

Maps client column headers onto the PICK or LOCATION template using synonym
dictionaries and normalized edit-distance similarity. Detection is advisory:
weak or incomplete matches come back as data (low confidence, non-empty
missing_columns) and the caller decides what to do with them.

Headers are claimed first-come in template field order. Once a header is
claimed by a field, later fields cannot take it even if they match it better.
"""

from dataclasses import dataclass, field
from typing import Optional

import structlog

from config.settings import get_settings
from config.templates import (
    LOCATION_COLUMN_SYNONYMS,
    LOCATION_TEMPLATE_COLUMNS,
    PICK_COLUMN_SYNONYMS,
    PICK_TEMPLATE_COLUMNS,
)
from exceptions import InvalidColumnMappingError
from models.parsing import SchemaKind
from utils.text_utils import normalize_column_name, similarity

logger = structlog.get_logger(__name__)

TEMPLATE_COLUMNS = {
    SchemaKind.PICK: PICK_TEMPLATE_COLUMNS,
    SchemaKind.LOCATION: LOCATION_TEMPLATE_COLUMNS,
}

COLUMN_SYNONYMS = {
    SchemaKind.PICK: PICK_COLUMN_SYNONYMS,
    SchemaKind.LOCATION: LOCATION_COLUMN_SYNONYMS,
}


@dataclass
class DetectedMapping:
    """Proposed mapping of one client column to a template field."""
    client_column: str
    template_field: str
    confidence: float
    reason: str

    def to_dict(self) -> dict:
        return {
            "clientColumn": self.client_column,
            "templateField": self.template_field,
            "confidence": self.confidence,
            "reason": self.reason,
        }


@dataclass
class DetectionResult:
    """Auto-detection outcome for one schema."""
    schema_kind: SchemaKind
    mappings: list[DetectedMapping] = field(default_factory=list)
    unmapped_columns: list[str] = field(default_factory=list)
    missing_columns: list[str] = field(default_factory=list)
    confidence: float = 0.0

    @property
    def is_complete(self) -> bool:
        """True if every template field found a column."""
        return len(self.missing_columns) == 0

    def to_dict(self) -> dict:
        """Convert to dictionary for API response."""
        return {
            "schemaKind": self.schema_kind.value,
            "mappings": [m.to_dict() for m in self.mappings],
            "unmappedColumns": list(self.unmapped_columns),
            "missingColumns": list(self.missing_columns),
            "confidence": self.confidence,
        }


def _find_best_match(
    template_field: str,
    candidates: list[tuple[str, str]],
    synonyms: list[str],
    threshold: float,
) -> Optional[DetectedMapping]:
    """
    Pick the best unclaimed header for a template field.

    Args:
        template_field: Canonical field name
        candidates: (header, normalized header) pairs still unclaimed, in input order
        synonyms: Raw synonyms for the field
        threshold: Minimum similarity for a fuzzy match

    Returns:
        DetectedMapping or None if nothing clears the threshold
    """
    normalized_synonyms = [normalize_column_name(s) for s in synonyms]
    normalized_synonyms = [s for s in normalized_synonyms if s]
    synonym_set = set(normalized_synonyms)

    # Exact match wins outright
    for header, normalized in candidates:
        if normalized and normalized in synonym_set:
            return DetectedMapping(
                client_column=header,
                template_field=template_field,
                confidence=1.0,
                reason="Exact match",
            )

    best: Optional[DetectedMapping] = None
    best_score = 0.0

    for header, normalized in candidates:
        if not normalized:
            continue
        score = max((similarity(normalized, s) for s in normalized_synonyms), default=0.0)
        if score >= threshold and score > best_score:
            best_score = score
            best = DetectedMapping(
                client_column=header,
                template_field=template_field,
                confidence=score,
                reason=f"Fuzzy match ({score * 100:.0f}% similarity)",
            )

    return best


def detect_mappings(
    columns: list[str],
    schema_kind: SchemaKind,
    threshold: Optional[float] = None,
) -> DetectionResult:
    """
    Auto-detect column mappings for one schema.

    Args:
        columns: Client header names in sheet order
        schema_kind: Template to map onto
        threshold: Minimum similarity (default: settings.similarity_threshold)

    Returns:
        DetectionResult with mappings, unmapped/missing columns and confidence
    """
    schema_kind = SchemaKind(schema_kind)
    if threshold is None:
        threshold = get_settings().similarity_threshold

    template_columns = TEMPLATE_COLUMNS[schema_kind]
    synonyms_by_field = COLUMN_SYNONYMS[schema_kind]

    result = DetectionResult(schema_kind=schema_kind)
    claimed: set[str] = set()
    normalized_columns = [(col, normalize_column_name(col)) for col in columns]

    for template_field in template_columns:
        synonyms = synonyms_by_field.get(template_field) or [template_field]
        candidates = [(col, norm) for col, norm in normalized_columns if col not in claimed]
        match = _find_best_match(template_field, candidates, synonyms, threshold)

        if match:
            result.mappings.append(match)
            claimed.add(match.client_column)
        else:
            result.missing_columns.append(template_field)

    result.unmapped_columns = [col for col in columns if col not in claimed]

    # Overall confidence: mean match quality blended with completeness
    if result.mappings:
        avg_confidence = sum(m.confidence for m in result.mappings) / len(result.mappings)
    else:
        avg_confidence = 0.0
    completeness = len(result.mappings) / len(template_columns)
    result.confidence = (avg_confidence + completeness) / 2

    logger.debug(
        "column_mapping_detected",
        schema_kind=schema_kind.value,
        mapped=len(result.mappings),
        missing=len(result.missing_columns),
        confidence=round(result.confidence, 4)
    )

    return result


def detect_pick_mappings(columns: list[str], threshold: Optional[float] = None) -> DetectionResult:
    """Auto-detect column mappings for a PICK sheet."""
    return detect_mappings(columns, SchemaKind.PICK, threshold)


def detect_location_mappings(columns: list[str], threshold: Optional[float] = None) -> DetectionResult:
    """Auto-detect column mappings for a LOCATION sheet."""
    return detect_mappings(columns, SchemaKind.LOCATION, threshold)


def auto_detect_mappings(columns: list[str], threshold: Optional[float] = None) -> DetectionResult:
    """
    Detect the schema and its mappings.

    Runs both templates and returns the higher-confidence result.
    Ties go to PICK.
    """
    pick_result = detect_pick_mappings(columns, threshold)
    location_result = detect_location_mappings(columns, threshold)

    if pick_result.confidence >= location_result.confidence:
        return pick_result
    return location_result


def to_column_mapping(result: DetectionResult) -> dict[str, str]:
    """Convert a detection result to a client column -> template field mapping."""
    return {m.client_column: m.template_field for m in result.mappings}


def detect_schema_kind(sample_rows: list[dict], threshold: Optional[float] = None) -> SchemaKind:
    """
    Guess the schema from sample rows.

    Uses the keys of the first row as headers; no rows means PICK.
    """
    if not sample_rows:
        return SchemaKind.PICK
    columns = list(sample_rows[0].keys())
    return auto_detect_mappings(columns, threshold).schema_kind


def resolve_column_mapping(
    headers: list[str],
    schema_kind: SchemaKind,
    manual: Optional[dict[str, str]] = None,
    auto_detect: bool = True,
    threshold: Optional[float] = None,
) -> tuple[dict[str, str], Optional[DetectionResult]]:
    """
    Build the mapping the row parser will use.

    Auto-detected entries are overlaid with the caller's manual entries.
    A manual entry takes its template field away from any auto-detected
    column that claimed it.

    Args:
        headers: Client header names
        schema_kind: Target template
        manual: Caller overrides (client column -> template field)
        auto_detect: Whether to run auto-detection at all
        threshold: Minimum similarity for auto-detection

    Returns:
        (column mapping, detection result or None when auto_detect is off)

    Raises:
        InvalidColumnMappingError: If a manual entry targets an unknown field
    """
    schema_kind = SchemaKind(schema_kind)
    manual = dict(manual or {})
    template_columns = TEMPLATE_COLUMNS[schema_kind]

    invalid = {col: target for col, target in manual.items() if target not in template_columns}
    if invalid:
        raise InvalidColumnMappingError(schema_kind.value, invalid, list(template_columns))

    detection = None
    mapping: dict[str, str] = {}

    if auto_detect:
        detection = detect_mappings(headers, schema_kind, threshold)
        manual_targets = set(manual.values())
        mapping = {
            col: target
            for col, target in to_column_mapping(detection).items()
            if target not in manual_targets and col not in manual
        }

    mapping.update(manual)

    logger.info(
        "column_mapping_resolved",
        schema_kind=schema_kind.value,
        auto_detected=len(mapping) - len(manual),
        manual=len(manual),
        confidence=round(detection.confidence, 4) if detection else None
    )

    return mapping, detection
