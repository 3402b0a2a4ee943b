"""
Error taxonomy for the ingestion pipeline.

File- and mapping-level errors are resolved locally and never reach the
network layer. Network and server errors carry the single user-facing message
that should be shown for the failed upload.
"""
from typing import Any, Dict, List, Optional


class IngestionError(Exception):
    """Base exception for ingestion pipeline failures."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class FileValidationError(IngestionError):
    """Raised when a selected file violates type or size constraints."""

    def __init__(self, errors: List[str], file_name: Optional[str] = None):
        self.errors = list(errors)
        self.file_name = file_name
        super().__init__("; ".join(self.errors) or "Invalid file")


class PreviewParseError(IngestionError):
    """Raised when a file's content cannot be parsed into a preview."""

    def __init__(self, file_name: str, file_type: str, detail: str):
        self.file_name = file_name
        self.file_type = file_type
        self.detail = detail
        super().__init__(f"Failed to preview {file_type.upper()} file '{file_name}': {detail}")


class MappingValidationError(IngestionError):
    """Raised when transformed records violate the canonical schema."""

    def __init__(self, errors: List[Any]):
        self.errors = list(errors)
        super().__init__(f"{len(self.errors)} validation error(s) in mapped data")


class InvalidTransitionError(IngestionError):
    """Raised when a session is asked to make an illegal state transition."""

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move upload session from '{current}' to '{target}'")


class SubmissionBlockedError(IngestionError):
    """Raised when a submit guard fails; no network call has been made."""

    def __init__(self, reason: str, message: str, errors: Optional[List[Any]] = None):
        self.reason = reason
        self.errors = list(errors or [])
        super().__init__(message)


class UploadInProgressError(IngestionError):
    """Raised when a second submit arrives while an upload is running."""

    def __init__(self, message: str = "An upload is already in progress"):
        super().__init__(message)


class NetworkError(IngestionError):
    """No response was received from the scoring endpoint."""


class ServerError(IngestionError):
    """The scoring endpoint responded with an error status or payload."""

    def __init__(self, message: str, status_code: Optional[int] = None, payload: Optional[Dict[str, Any]] = None):
        self.status_code = status_code
        self.payload = payload or {}
        super().__init__(message)


class UploadTimeoutError(IngestionError):
    """The upload exceeded the hard wall-clock timeout."""


class PartialFailure(IngestionError):
    """The server accepted the upload but rejected a subset of records."""

    def __init__(self, failed_count: int, total: int):
        self.failed_count = failed_count
        self.total = total
        super().__init__(f"Processed {total - failed_count} records successfully, but {failed_count} failed")


class RetryExhausted(IngestionError):
    """All retry attempts have been used; remaining failures need manual handling."""

    def __init__(self, attempts: int, max_attempts: int, remaining: int):
        self.attempts = attempts
        self.max_attempts = max_attempts
        self.remaining = remaining
        super().__init__(
            f"Retry limit reached ({attempts}/{max_attempts}); "
            f"{remaining} record(s) still failed. Export them for manual review."
        )


class ProfileStoreError(IngestionError):
    """Raised when the mapping profile store rejects or cannot serve a request."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)
