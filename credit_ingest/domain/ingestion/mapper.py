from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional
import logging
import re
from decimal import Decimal

from credit_ingest.api.schemas.shared import DetectedField, FieldMapping, MappingProfile, TransformationKind
from credit_ingest.utils.date import format_date
from credit_ingest.utils.phone import format_phone
from .schema import CANONICAL_FIELD_SCHEMA, CanonicalFieldSchema, find_target_for_source

logger = logging.getLogger(__name__)

MappingTable = Dict[str, FieldMapping]

_NON_NUMERIC = re.compile(r"[^\d.\-]")


def _identity(value: Any) -> Any:
    return value


def _string_only(operation: Callable[[str], str]) -> Callable[[Any], Any]:
    """Wrap a string operation so every non-string value passes through untouched."""
    def apply(value: Any) -> Any:
        if isinstance(value, str):
            return operation(value)
        return value
    return apply


def _null_safe(operation: Callable[[Any], Any]) -> Callable[[Any], Any]:
    def apply(value: Any) -> Any:
        if value is None:
            return None
        return operation(value)
    return apply


def _parse_number(value: Any) -> Optional[float]:
    """Numeric value of ``value``; strings are stripped of currency symbols and separators first."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        return float(value)
    if isinstance(value, str):
        cleaned = _NON_NUMERIC.sub("", value)
        # Leading numeric portion only: "12.5.3" -> 12.5
        match = re.match(r"^-?\d*\.?\d+", cleaned)
        if not match:
            return None
        return float(match.group(0))
    return None


def format_number(value: Any) -> Any:
    """Round a numeric value to two decimals; non-numeric values are returned unchanged."""
    number = _parse_number(value)
    if number is None:
        return value
    rounded = round(number, 2)
    if rounded.is_integer() and not isinstance(value, float):
        return int(rounded)
    return rounded


TRANSFORMATIONS: Dict[TransformationKind, Callable[[Any], Any]] = {
    TransformationKind.NONE: _identity,
    TransformationKind.UPPERCASE: _string_only(str.upper),
    TransformationKind.LOWERCASE: _string_only(str.lower),
    TransformationKind.TRIM: _string_only(str.strip),
    TransformationKind.PHONE_FORMAT: _null_safe(format_phone),
    TransformationKind.DATE_FORMAT: _null_safe(format_date),
    TransformationKind.NUMBER_FORMAT: _null_safe(format_number),
}


def apply_transformation(value: Any, transformation: TransformationKind) -> Any:
    """Dispatch ``value`` through the registered transformation."""
    operation = TRANSFORMATIONS.get(TransformationKind(transformation), _identity)
    return operation(value)


def transform(records: Iterable[Mapping[str, Any]], mappings: Mapping[str, FieldMapping]) -> List[Dict[str, Any]]:
    """
    Apply a mapping table to raw records.

    Each output record holds target-field keys only. A target whose source key
    is missing from the raw record is left out of the output unless its
    mapping declares a default value. Inputs are never mutated.

    Returns:
        One transformed record per input record, in order
    """
    mapping_items = tuple(mappings.values())
    transformed: List[Dict[str, Any]] = []

    for record in records:
        if not isinstance(record, Mapping):
            record = {}
        output: Dict[str, Any] = {}
        for mapping in mapping_items:
            if mapping.source_field in record:
                output[mapping.target_field] = apply_transformation(
                    record[mapping.source_field], mapping.transformation
                )
            elif mapping.default_value is not None:
                output[mapping.target_field] = mapping.default_value
        transformed.append(output)

    return transformed


class MappingEngine:
    """
    Mutable ``target_field -> FieldMapping`` table for one upload session.

    A target field holds at most one mapping. Adding a mapping for a target
    that is already mapped replaces the earlier one (last write wins).
    """

    def __init__(self, mappings: Optional[Mapping[str, FieldMapping]] = None):
        self._mappings: MappingTable = {}
        if mappings:
            for mapping in mappings.values():
                self._mappings[mapping.target_field] = mapping

    @property
    def mappings(self) -> MappingTable:
        """A copy of the current table."""
        return dict(self._mappings)

    def __len__(self) -> int:
        return len(self._mappings)

    def __contains__(self, target_field: str) -> bool:
        return target_field in self._mappings

    def get(self, target_field: str) -> Optional[FieldMapping]:
        return self._mappings.get(target_field)

    def add_mapping(
        self,
        source_field: str,
        target_field: str,
        transformation: TransformationKind = TransformationKind.NONE,
        is_required: bool = False,
        default_value: Any = None,
    ) -> FieldMapping:
        mapping = FieldMapping(
            source_field=source_field,
            target_field=target_field,
            transformation=transformation,
            is_required=is_required,
            default_value=default_value,
        )
        previous = self._mappings.get(mapping.target_field)
        if previous is not None and previous.source_field != mapping.source_field:
            logger.info(
                "Mapping for '%s' replaced: '%s' -> '%s'",
                mapping.target_field,
                previous.source_field,
                mapping.source_field,
            )
        self._mappings[mapping.target_field] = mapping
        return mapping

    def remove_mapping(self, target_field: str) -> Optional[FieldMapping]:
        return self._mappings.pop(target_field, None)

    def update_mapping(self, target_field: str, **updates: Any) -> FieldMapping:
        """
        Partially update a mapping.

        A ``target_field`` update re-keys the entry, replacing any mapping the
        new target already had.

        Raises:
            KeyError: if ``target_field`` is not mapped
        """
        current = self._mappings[target_field]
        merged = current.model_dump()
        merged.update(updates)
        updated = FieldMapping(**merged)

        if updated.target_field != target_field:
            del self._mappings[target_field]
        self._mappings[updated.target_field] = updated
        return updated

    def clear(self) -> None:
        self._mappings.clear()

    def apply_profile(self, profile: MappingProfile) -> None:
        """Replace the whole table with a profile's mappings, discarding unsaved edits."""
        self._mappings = {
            mapping.target_field: mapping for mapping in profile.field_mappings.values()
        }
        logger.info("Loaded %d mappings from profile '%s'", len(self._mappings), profile.name)

    def snapshot(self) -> MappingTable:
        return dict(self._mappings)

    def add_suggestions(self, detected_fields: Iterable[DetectedField], schema: Optional[CanonicalFieldSchema] = None) -> int:
        """Map every detected field with a known canonical counterpart that is not mapped yet."""
        added = 0
        for source, target in suggest_targets(detected_fields, schema).items():
            if target in self._mappings:
                continue
            self.add_mapping(source, target)
            added += 1
        return added

    def transform(self, records: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
        return transform(records, self._mappings)


def suggest_targets(
    detected_fields: Iterable[DetectedField],
    schema: Optional[CanonicalFieldSchema] = None,
) -> Dict[str, str]:
    """
    Suggest canonical targets for detected source fields by name.

    Returns:
        ``source_field -> target_field`` for every source whose name matches a
        canonical field or one of its known aliases. Each target is suggested
        at most once (first source wins).
    """
    schema = CANONICAL_FIELD_SCHEMA if schema is None else schema
    suggestions: Dict[str, str] = {}
    claimed = set()
    for detected in detected_fields:
        target = find_target_for_source(detected.source_field, schema)
        if target is None or target in claimed:
            continue
        suggestions[detected.source_field] = target
        claimed.add(target)
    return suggestions
