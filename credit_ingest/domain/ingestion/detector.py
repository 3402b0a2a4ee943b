"""
Source field detection from a file preview.
"""
import logging
from typing import List

from credit_ingest.api.schemas.shared import DetectedField
from .preview import PREVIEW_PDF, PREVIEW_TEXT, Preview

logger = logging.getLogger(__name__)

# Detection does not infer a confidence signal from the data; every detected
# field reports this constant so displayed percentages stay reproducible.
PLACEHOLDER_CONFIDENCE = 1.0

PDF_TEXT_FIELD = "pdfText"


def detect(preview: Preview) -> List[DetectedField]:
    """
    Derive candidate source fields from a preview.

    - PDF previews yield the single synthetic ``pdfText`` field.
    - Delimited text previews yield one field per trimmed header token.
    - Record previews yield one field per key of the first record.
    """
    if preview.kind == PREVIEW_PDF:
        return [DetectedField(source_field=PDF_TEXT_FIELD, confidence=PLACEHOLDER_CONFIDENCE)]

    if preview.kind == PREVIEW_TEXT:
        names = [token for token in preview.header if token]
    else:
        first = preview.records[0] if preview.records else None
        if not isinstance(first, dict):
            logger.info("No object records in %s preview; nothing to detect", preview.file_type)
            return []
        names = [str(key) for key in first.keys()]

    fields = [DetectedField(source_field=name, confidence=PLACEHOLDER_CONFIDENCE) for name in names]

    logger.info("Detected %d source fields in %s preview", len(fields), preview.file_type)
    return fields
