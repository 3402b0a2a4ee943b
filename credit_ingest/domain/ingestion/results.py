"""
Result aggregation for scoring endpoint responses.

A successful apply response looks like::

    {"success": true,
     "data": {"summary": {"totalRecords": 10, "mappedRecords": 8,
                          "scoredRecords": 8, "averageScore": 612.5},
              "errors": [{"row": 4, "errors": ["..."], "originalData": {...}}]}}

Counts always come from the summary so that ``success + errors == total``.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from credit_ingest.api.schemas.shared import FailedRecord, UploadResult, UploadSummary
from .errors import ServerError

logger = logging.getLogger(__name__)

GENERIC_UPLOAD_FAILURE = "Upload failed. Please try again."


def backend_message(payload: Any, fallback: str = GENERIC_UPLOAD_FAILURE) -> str:
    """The backend's ``message`` or ``error`` text, else ``fallback``."""
    if isinstance(payload, dict):
        for key in ("message", "error"):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return fallback


def _response_data(payload: Any) -> Dict[str, Any]:
    if isinstance(payload, dict) and isinstance(payload.get("data"), dict):
        return payload["data"]
    return {}


def parse_summary(payload: Any) -> UploadSummary:
    """
    Extract the upload summary from a response.

    Raises:
        ServerError: when the summary is missing or malformed; carries the
            backend message when there is one
    """
    summary = _response_data(payload).get("summary")
    if not isinstance(summary, dict):
        raise ServerError(backend_message(payload), payload=payload if isinstance(payload, dict) else None)
    try:
        return UploadSummary.model_validate(summary)
    except ValidationError as exc:
        logger.warning("Malformed upload summary %s: %s", summary, exc)
        raise ServerError(backend_message(payload), payload=payload) from exc


def extract_failed_records(payload: Any) -> List[FailedRecord]:
    """Per-row failures reported under ``data.errors``."""
    failed: List[FailedRecord] = []
    for item in _response_data(payload).get("errors") or []:
        if not isinstance(item, dict):
            continue
        messages = item.get("errors")
        if isinstance(messages, list):
            message = "; ".join(str(m) for m in messages if m) or "Unknown error"
        else:
            message = str(item.get("error") or messages or "Unknown error")
        original = item.get("originalData")
        row = item.get("row")
        failed.append(FailedRecord(
            record=original if isinstance(original, dict) else {},
            message=message,
            row_number=row if isinstance(row, int) else None,
        ))
    return failed


def summarize_upload(
    payload: Any,
    *,
    upload_id: Optional[str] = None,
    elapsed_seconds: float = 0.0,
) -> Tuple[UploadResult, List[FailedRecord]]:
    """
    Build the session result for a first upload.

    ``success`` is ``mappedRecords`` and ``errors`` is the remainder of
    ``totalRecords``.
    """
    summary = parse_summary(payload)
    success = min(summary.mapped_records, summary.total_records)
    result = UploadResult(
        total=summary.total_records,
        success=success,
        errors=summary.total_records - success,
        scored_records=summary.scored_records,
        average_score=summary.average_score,
        upload_time_seconds=round(elapsed_seconds, 2),
        upload_id=upload_id,
    )
    return result, extract_failed_records(payload)


def retry_success_count(payload: Any) -> int:
    """Records accepted by a retry: ``summary.mappedRecords``, else ``data.successCount``."""
    summary = _response_data(payload).get("summary")
    if isinstance(summary, dict) and isinstance(summary.get("mappedRecords"), int):
        return summary["mappedRecords"]
    count = _response_data(payload).get("successCount")
    if isinstance(count, int):
        return count
    raise ServerError(backend_message(payload), payload=payload if isinstance(payload, dict) else None)


def merge_retry(
    result: UploadResult,
    previous_failed: List[FailedRecord],
    payload: Any,
) -> Tuple[UploadResult, List[FailedRecord]]:
    """
    Fold a retry response into the cumulative result.

    ``success`` grows by the retry's accepted count and ``errors`` becomes the
    server's new error count for the retried records. The still-failed set
    replaces the previous one and is never larger than it.
    """
    retried = len(previous_failed)
    retry_success = max(0, min(retry_success_count(payload), retried))
    still_failed = extract_failed_records(payload)[:retried]
    if len(still_failed) < retried - retry_success:
        # Server reported fewer rows than it rejected; keep the unmatched originals.
        still_failed = previous_failed[retry_success:]

    merged = result.model_copy(update={
        "success": result.success + retry_success,
        "errors": _retry_error_count(payload, retried - retry_success, retried),
    })
    return merged, still_failed


def _retry_error_count(payload: Any, fallback: int, retried: int) -> int:
    data = _response_data(payload)
    summary = data.get("summary")
    if isinstance(summary, dict):
        total, mapped = summary.get("totalRecords"), summary.get("mappedRecords")
        if isinstance(total, int) and isinstance(mapped, int):
            return max(0, min(total - mapped, retried))
    count = data.get("errorCount")
    if isinstance(count, int):
        return max(0, min(count, retried))
    return fallback
