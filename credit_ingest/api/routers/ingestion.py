"""
Ingestion endpoints: file preview, field detection and mapping validation.
"""
import logging

from fastapi import APIRouter, File, HTTPException, UploadFile

from credit_ingest.api.schemas.shared import (
    FieldMapping,
    PartnerListResponse,
    PreviewResponse,
    SchemaFieldModel,
    SchemaFieldsResponse,
    ValidateMappingRequest,
    ValidateMappingResponse,
    ValidationIssueModel,
)
from credit_ingest.domain.ingestion.detector import detect
from credit_ingest.domain.ingestion.errors import FileValidationError, PreviewParseError
from credit_ingest.domain.ingestion.mapper import suggest_targets, transform
from credit_ingest.domain.ingestion.preview import FileHandle, ingest
from credit_ingest.domain.ingestion.schema import CANONICAL_FIELD_SCHEMA, ENGINE_LABELS
from credit_ingest.domain.ingestion.validators import effective_schema, validate
from credit_ingest.integrations.partners import PARTNER_BANKS

logger = logging.getLogger(__name__)

router = APIRouter(tags=["ingestion"])


@router.get("/partners", response_model=PartnerListResponse)
async def list_partners():
    """List the partner banks that can submit credit data."""
    return PartnerListResponse(success=True, partners=PARTNER_BANKS)


@router.get("/schema/fields", response_model=SchemaFieldsResponse)
async def list_schema_fields():
    """Canonical credit fields and the available scoring engines."""
    fields = [
        SchemaFieldModel(name=name, type=spec.type, required=spec.required, description=spec.description)
        for name, spec in CANONICAL_FIELD_SCHEMA.items()
    ]
    engines = {engine.value: label for engine, label in ENGINE_LABELS.items()}
    return SchemaFieldsResponse(success=True, fields=fields, engines=engines)


@router.post("/ingest/preview", response_model=PreviewResponse)
async def preview_file(file: UploadFile = File(...)):
    """
    Preview an uploaded file and detect its source fields.

    Returns:
    - The bounded preview (records, text lines or PDF metadata)
    - Detected source fields
    - Suggested mappings onto canonical fields, keyed by target field

    Rejected files (type or size) return 422 with every violated constraint;
    unparseable content returns 400.
    """
    content = await file.read()
    handle = FileHandle.from_bytes(file.filename or "", content, file.content_type or "")

    try:
        preview = ingest(handle)
    except FileValidationError as exc:
        raise HTTPException(status_code=422, detail=exc.errors)
    except PreviewParseError as exc:
        raise HTTPException(status_code=400, detail=exc.message)

    detected = detect(preview)
    suggestions = {
        target: FieldMapping(source_field=source, target_field=target)
        for source, target in suggest_targets(detected).items()
    }

    return PreviewResponse(
        success=True,
        file_name=handle.name,
        file_type=preview.file_type,
        preview=preview.to_dict(),
        detected_fields=detected,
        suggested_mappings=suggestions,
    )


@router.post("/ingest/validate", response_model=ValidateMappingResponse)
async def validate_mapping(request: ValidateMappingRequest):
    """Apply field mappings to records and validate the result against the canonical schema."""
    transformed = transform(request.records, request.field_mappings)
    issues = validate(transformed, effective_schema(request.field_mappings))
    if issues:
        logger.info("Mapping validation found %d issue(s) in %d records", len(issues), len(transformed))

    return ValidateMappingResponse(
        success=not issues,
        records=transformed,
        errors=[ValidationIssueModel.model_validate(issue.to_dict()) for issue in issues],
    )
