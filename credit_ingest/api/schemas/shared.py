import logging
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


logger = logging.getLogger(__name__)

ACCEPTED_EXTENSIONS = ("json", "csv", "xlsx", "xls", "xml", "txt", "pdf")


class TransformationKind(str, Enum):
    NONE = "none"
    UPPERCASE = "uppercase"
    LOWERCASE = "lowercase"
    TRIM = "trim"
    PHONE_FORMAT = "phone_format"
    DATE_FORMAT = "date_format"
    NUMBER_FORMAT = "number_format"


class FieldType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    OBJECT = "object"
    DATE = "date"


class ScoringEngine(str, Enum):
    DEFAULT = "default"
    AI = "ai"
    CREDITWORTHINESS = "creditworthiness"


class _CamelModel(BaseModel):
    """Wire models accept and emit the camelCase keys used by the scoring API."""
    model_config = ConfigDict(populate_by_name=True)


class FieldMapping(_CamelModel):
    """One source -> target field mapping; keyed by ``target_field`` in a mapping table."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    source_field: str = Field(alias="sourceField")
    target_field: str = Field(alias="targetField")
    transformation: TransformationKind = TransformationKind.NONE
    is_required: bool = Field(default=False, alias="isRequired")
    default_value: Optional[Any] = Field(default=None, alias="defaultValue")

    @field_validator("source_field", "target_field")
    def validate_field_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("field name cannot be blank")
        return normalized


class DetectedField(_CamelModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    source_field: str = Field(alias="sourceField")
    confidence: float = Field(ge=0.0, le=1.0)


class MappingProfile(_CamelModel):
    """A named, partner-scoped, persisted snapshot of field mappings."""
    id: Optional[str] = Field(default=None, validation_alias=AliasChoices("id", "_id"))
    name: str
    description: Optional[str] = None
    partner_id: str = Field(alias="partnerId")
    partner_name: Optional[str] = Field(default=None, alias="partnerName")
    file_type: Optional[str] = Field(default=None, alias="fileType")
    field_mappings: Dict[str, FieldMapping] = Field(default_factory=dict, alias="fieldMappings")
    engine_type: ScoringEngine = Field(default=ScoringEngine.DEFAULT, alias="engineType")
    version: int = 1

    @field_validator("field_mappings", mode="before")
    def key_mappings_by_target(cls, value: Any) -> Any:
        """Profiles may arrive as a list; normalize to a target-keyed table."""
        if isinstance(value, list):
            keyed: Dict[str, Any] = {}
            for item in value:
                if isinstance(item, FieldMapping):
                    keyed[item.target_field] = item
                    continue
                if not isinstance(item, dict):
                    raise ValueError(f"field mapping must be an object, got {type(item).__name__}")
                target = item.get("targetField") or item.get("target_field")
                if target:
                    keyed[target] = item
            return keyed
        return value


class UploadSummary(_CamelModel):
    total_records: int = Field(alias="totalRecords")
    mapped_records: int = Field(alias="mappedRecords")
    scored_records: int = Field(default=0, alias="scoredRecords")
    average_score: float = Field(default=0.0, alias="averageScore")


class UploadResult(_CamelModel):
    """Cumulative outcome of an upload session, including any retries."""
    total: int = 0
    success: int = 0
    errors: int = 0
    scored_records: int = Field(default=0, alias="scoredRecords")
    average_score: float = Field(default=0.0, alias="averageScore")
    upload_time_seconds: float = Field(default=0.0, alias="uploadTimeSeconds")
    upload_id: Optional[str] = Field(default=None, alias="uploadId")

    @property
    def success_rate(self) -> float:
        """Percentage of records accepted by the server."""
        if not self.total:
            return 0.0
        return round(self.success * 100.0 / self.total, 2)


class FailedRecord(_CamelModel):
    record: Dict[str, Any] = Field(default_factory=dict)
    message: str = "Unknown error"
    row_number: Optional[int] = Field(default=None, alias="rowNumber")


class Partner(_CamelModel):
    id: str
    name: str


# --- HTTP surface ---------------------------------------------------------


class ValidationIssueModel(_CamelModel):
    row_index: int = Field(alias="rowIndex")
    field: str
    message: str


class PreviewResponse(_CamelModel):
    success: bool
    file_name: str = Field(alias="fileName")
    file_type: str = Field(alias="fileType")
    preview: Dict[str, Any]
    detected_fields: List[DetectedField] = Field(default_factory=list, alias="detectedFields")
    suggested_mappings: Dict[str, FieldMapping] = Field(default_factory=dict, alias="suggestedMappings")


class ValidateMappingRequest(_CamelModel):
    records: List[Dict[str, Any]]
    field_mappings: Dict[str, FieldMapping] = Field(alias="fieldMappings")


class ValidateMappingResponse(_CamelModel):
    success: bool
    records: List[Dict[str, Any]]
    errors: List[ValidationIssueModel] = Field(default_factory=list)


class PartnerListResponse(_CamelModel):
    success: bool
    partners: List[Partner]


class SchemaFieldModel(_CamelModel):
    name: str
    type: FieldType
    required: bool
    description: str


class SchemaFieldsResponse(_CamelModel):
    success: bool
    fields: List[SchemaFieldModel]
    engines: Dict[str, str]
