"""
Upload session aggregate.

One ``UploadSession`` owns everything about a single ingestion attempt: the
selected file, its preview and detected fields, the mapping table, the current
validation errors, the cumulative result and the retry counter. All lifecycle
changes go through ``UploadSession.transition`` and the ``TRANSITIONS`` table,
so illegal combinations (e.g. uploading with no file) cannot be reached.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from credit_ingest.api.schemas.shared import (
    DetectedField,
    FailedRecord,
    FieldMapping,
    MappingProfile,
    ScoringEngine,
    TransformationKind,
    UploadResult,
)
from credit_ingest.core.config import settings
from credit_ingest.integrations.partners import get_partner
from .detector import detect
from .errors import (
    FileValidationError,
    IngestionError,
    InvalidTransitionError,
    PreviewParseError,
    UploadInProgressError,
)
from .mapper import MappingEngine
from .preview import FileHandle, Preview, ingest
from .retry import RetryState
from .validators import ValidationIssue, effective_schema, validate

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    FILE_SELECTED = "file_selected"
    PREVIEWING = "previewing"
    MAPPING_IN_PROGRESS = "mapping_in_progress"
    READY_TO_SUBMIT = "ready_to_submit"
    UPLOADING = "uploading"
    COMPLETED = "completed"
    FAILED = "failed"


_S = SessionState

TRANSITIONS: Dict[SessionState, FrozenSet[SessionState]] = {
    _S.IDLE: frozenset({_S.FILE_SELECTED}),
    _S.FILE_SELECTED: frozenset({_S.PREVIEWING, _S.IDLE}),
    _S.PREVIEWING: frozenset({_S.MAPPING_IN_PROGRESS, _S.FILE_SELECTED, _S.IDLE}),
    _S.MAPPING_IN_PROGRESS: frozenset({_S.READY_TO_SUBMIT, _S.IDLE}),
    _S.READY_TO_SUBMIT: frozenset({_S.MAPPING_IN_PROGRESS, _S.UPLOADING, _S.IDLE}),
    _S.UPLOADING: frozenset({_S.COMPLETED, _S.FAILED}),
    # COMPLETED -> UPLOADING is a user-approved retry of failed records
    _S.COMPLETED: frozenset({_S.UPLOADING, _S.IDLE}),
    _S.FAILED: frozenset({_S.MAPPING_IN_PROGRESS, _S.READY_TO_SUBMIT, _S.IDLE}),
}

# States in which mapping edits are allowed and readiness is re-derived.
EDITABLE_STATES = frozenset({_S.MAPPING_IN_PROGRESS, _S.READY_TO_SUBMIT, _S.FAILED})

BLOCK_NO_FILE = ("file", "Please select a file first")
BLOCK_NO_PARTNER = ("partner", "Please select a partner first")
BLOCK_NO_MAPPING = ("mapping", "Please select a mapping first")
BLOCK_INVALID = ("validation", "Please fix validation errors before uploading")


@dataclass(frozen=True)
class ProfileNameRequest:
    """
    Request for the user to name a mapping profile before it is saved.

    Answered with ``UploadOrchestrator.save_profile(request, name)``.
    """
    partner_id: str
    partner_name: Optional[str]
    file_type: Optional[str]
    engine: ScoringEngine
    field_mappings: Dict[str, FieldMapping]
    prompt: str = "Enter a name for this mapping profile"


@dataclass
class UploadSession:
    state: SessionState = SessionState.IDLE
    file: Optional[FileHandle] = None
    file_type: Optional[str] = None
    preview: Optional[Preview] = None
    detected_fields: List[DetectedField] = field(default_factory=list)
    mapping: MappingEngine = field(default_factory=MappingEngine)
    partner_id: Optional[str] = None
    partner_name: Optional[str] = None
    mapping_id: Optional[str] = None
    engine: ScoringEngine = field(default_factory=lambda: ScoringEngine(settings.default_scoring_engine))
    validation_errors: List[ValidationIssue] = field(default_factory=list)
    result: Optional[UploadResult] = None
    failed_records: List[FailedRecord] = field(default_factory=list)
    retry: RetryState = field(default_factory=RetryState)
    busy: bool = False
    last_error: Optional[str] = None
    file_errors: List[str] = field(default_factory=list)

    # --- lifecycle ---------------------------------------------------------

    def transition(self, target: SessionState) -> None:
        """
        Move to ``target``.

        Raises:
            InvalidTransitionError: if the move is not in ``TRANSITIONS``
        """
        target = SessionState(target)
        if target not in TRANSITIONS[self.state]:
            raise InvalidTransitionError(self.state.value, target.value)
        logger.info("Upload session: %s -> %s", self.state.value, target.value)
        self.state = target

    def _ensure_idle(self) -> None:
        if self.busy:
            raise UploadInProgressError()
        if self.state is not SessionState.IDLE:
            self.transition(SessionState.IDLE)

    def _clear_file_state(self) -> None:
        self.file = None
        self.file_type = None
        self.preview = None
        self.detected_fields = []
        self.mapping.clear()
        self.mapping_id = None
        self.validation_errors = []
        self.result = None
        self.failed_records = []
        self.retry = RetryState()
        self.last_error = None
        self.file_errors = []

    def select_file(self, file: FileHandle) -> Preview:
        """
        Select a file, preview it and detect its fields.

        Partner and engine selections survive a new file; everything derived
        from the previous file is discarded.

        Raises:
            FileValidationError: the file is rejected and the session is idle
            PreviewParseError: the file stays selected but mapping stays locked
        """
        self._ensure_idle()
        self._clear_file_state()

        self.file = file
        self.transition(SessionState.FILE_SELECTED)
        self.transition(SessionState.PREVIEWING)
        try:
            preview = ingest(file)
        except FileValidationError as exc:
            self.file_errors = list(exc.errors)
            self.file = None
            self.transition(SessionState.IDLE)
            raise
        except PreviewParseError as exc:
            self.last_error = exc.message
            self.transition(SessionState.FILE_SELECTED)
            raise

        self.preview = preview
        self.file_type = preview.file_type
        self.detected_fields = detect(preview)
        self.transition(SessionState.MAPPING_IN_PROGRESS)
        self.refresh()
        return preview

    def remove_file(self) -> None:
        """Drop the file and everything derived from it."""
        self._ensure_idle()
        self._clear_file_state()

    # --- selections --------------------------------------------------------

    def select_partner(self, partner_id: str, partner_name: Optional[str] = None) -> None:
        partner = get_partner(partner_id)
        self.partner_id = partner.id if partner else partner_id
        self.partner_name = partner_name or (partner.name if partner else None)
        self.refresh()

    def select_engine(self, engine: Any) -> None:
        self.engine = ScoringEngine(engine)

    def select_mapping(self, mapping_id: Optional[str]) -> None:
        self.mapping_id = mapping_id or None
        self.refresh()

    def load_profile(self, profile: MappingProfile) -> None:
        """Replace the mapping table with a stored profile and select it."""
        self._require_editable()
        self.mapping.apply_profile(profile)
        self.mapping_id = profile.id
        self.engine = profile.engine_type
        self.refresh()

    # --- mapping edits -----------------------------------------------------

    def _require_editable(self) -> None:
        if self.busy:
            raise UploadInProgressError()
        if self.state not in EDITABLE_STATES:
            raise InvalidTransitionError(self.state.value, SessionState.MAPPING_IN_PROGRESS.value)

    def add_mapping(
        self,
        source_field: str,
        target_field: str,
        transformation: TransformationKind = TransformationKind.NONE,
        is_required: bool = False,
        default_value: Any = None,
    ) -> FieldMapping:
        self._require_editable()
        mapping = self.mapping.add_mapping(source_field, target_field, transformation, is_required, default_value)
        self.refresh()
        return mapping

    def remove_mapping(self, target_field: str) -> Optional[FieldMapping]:
        self._require_editable()
        removed = self.mapping.remove_mapping(target_field)
        self.refresh()
        return removed

    def update_mapping(self, target_field: str, **updates: Any) -> FieldMapping:
        self._require_editable()
        updated = self.mapping.update_mapping(target_field, **updates)
        self.refresh()
        return updated

    def suggest_mappings(self) -> int:
        """Map detected fields whose names match canonical fields."""
        self._require_editable()
        added = self.mapping.add_suggestions(self.detected_fields)
        self.refresh()
        return added

    # --- validation and readiness ------------------------------------------

    @property
    def raw_records(self) -> List[Dict[str, Any]]:
        if self.preview is None:
            return []
        return [record for record in self.preview.records if isinstance(record, dict)]

    def transformed_records(self) -> List[Dict[str, Any]]:
        return self.mapping.transform(self.raw_records)

    def refresh(self) -> List[ValidationIssue]:
        """
        Recompute validation from scratch and re-derive readiness.

        Moves between MAPPING_IN_PROGRESS and READY_TO_SUBMIT (or out of
        FAILED) as the guards start or stop passing.
        """
        schema = effective_schema(self.mapping.mappings)
        self.validation_errors = validate(self.transformed_records(), schema)

        if self.state in EDITABLE_STATES and not self.busy:
            target = SessionState.READY_TO_SUBMIT if self.blocking_reason() is None else SessionState.MAPPING_IN_PROGRESS
            if target is not self.state:
                self.transition(target)
        return self.validation_errors

    def blocking_reason(self) -> Optional[Tuple[str, str]]:
        """First failing submit guard as ``(reason, message)``, or None."""
        if self.file is None:
            return BLOCK_NO_FILE
        if not self.partner_id:
            return BLOCK_NO_PARTNER
        if not self.mapping_id:
            return BLOCK_NO_MAPPING
        if self.validation_errors:
            return BLOCK_INVALID
        return None

    # --- profiles ----------------------------------------------------------

    def request_profile_name(self) -> ProfileNameRequest:
        """Ask for a name for the current mapping table."""
        if not self.partner_id:
            raise IngestionError(BLOCK_NO_PARTNER[1])
        return ProfileNameRequest(
            partner_id=self.partner_id,
            partner_name=self.partner_name,
            file_type=self.file_type,
            engine=self.engine,
            field_mappings=self.mapping.snapshot(),
        )
