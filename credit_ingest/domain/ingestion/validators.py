"""
Schema validation for transformed credit records.

Validation is a pure function of (records, schema): callers recompute it
from scratch after every mapping or data change instead of patching a
previous result.
"""

import logging
import math
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, List, Mapping, Optional

from credit_ingest.api.schemas.shared import FieldMapping, FieldType
from .schema import CANONICAL_FIELD_SCHEMA, CanonicalFieldSchema, FieldSpec

logger = logging.getLogger(__name__)

# Declared types with no value check; only required-ness applies to them.
UNCHECKED_TYPES = frozenset({FieldType.BOOLEAN, FieldType.OBJECT, FieldType.DATE})


@dataclass(frozen=True)
class ValidationIssue:
    """A single schema violation in one transformed record."""
    row_index: int
    field: str
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {"rowIndex": self.row_index, "field": self.field, "message": self.message}


def _is_missing(value: Any) -> bool:
    return value is None or value == ""


def is_finite_number(value: Any) -> bool:
    """
    True when ``value`` is, or is a string that parses as, a finite number.

    Booleans and the empty string are not numbers.
    """
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return math.isfinite(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return False
        try:
            return math.isfinite(float(text))
        except ValueError:
            return False
    return False


def validate(records: Iterable[Mapping[str, Any]], schema: Optional[CanonicalFieldSchema] = None) -> List[ValidationIssue]:
    """
    Check transformed records against a field schema.

    For every record (1-based row) and every schema field:
    - a required field that is absent, None or "" is reported once as missing
    - a present ``number`` field must be coercible to a finite number
    - a present ``string`` field must be a string
    - fields of ``UNCHECKED_TYPES`` get no value check

    Returns:
        All violations, in row order then schema order
    """
    schema = CANONICAL_FIELD_SCHEMA if schema is None else schema
    issues: List[ValidationIssue] = []

    for row_number, record in enumerate(records, start=1):
        for field_name, spec in schema.items():
            value = record.get(field_name)

            if spec.required and _is_missing(value):
                issues.append(ValidationIssue(
                    row_index=row_number,
                    field=field_name,
                    message=f"Row {row_number}: Missing required field '{field_name}'",
                ))
                continue
            if value is None or spec.type in UNCHECKED_TYPES:
                continue

            if spec.type == FieldType.NUMBER:
                if not is_finite_number(value):
                    issues.append(ValidationIssue(
                        row_index=row_number,
                        field=field_name,
                        message=f"Row {row_number}: Field '{field_name}' should be a number",
                    ))
            elif spec.type == FieldType.STRING:
                if not isinstance(value, str):
                    issues.append(ValidationIssue(
                        row_index=row_number,
                        field=field_name,
                        message=f"Row {row_number}: Field '{field_name}' should be a string",
                    ))

    if issues:
        logger.debug("Validation produced %d issue(s)", len(issues))
    return issues


def effective_schema(
    mappings: Mapping[str, FieldMapping],
    base: Optional[CanonicalFieldSchema] = None,
) -> Dict[str, FieldSpec]:
    """
    Schema used to validate a session's records.

    Starts from ``base`` and marks every mapped target whose mapping is
    flagged ``is_required`` as required. Mapped targets unknown to the base
    schema are added as required entries of an unchecked type. The base
    schema is never mutated.
    """
    base = CANONICAL_FIELD_SCHEMA if base is None else base
    schema: Dict[str, FieldSpec] = dict(base)
    for target, mapping in mappings.items():
        if not mapping.is_required:
            continue
        spec = schema.get(target)
        if spec is None:
            schema[target] = FieldSpec(type=FieldType.OBJECT, required=True)
        elif not spec.required:
            schema[target] = replace(spec, required=True)
    return schema
