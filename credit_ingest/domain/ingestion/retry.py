"""
User-gated retry of records the scoring endpoint rejected.

A retry re-sends only the failed records (as ``retry-records.json``) to the
same apply endpoint. Every attempt needs an explicit confirmation, and the
number of attempts per session is bounded.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

from credit_ingest.api.schemas.shared import FailedRecord, UploadResult
from credit_ingest.core.config import settings
from credit_ingest.utils.serialization import records_to_json_bytes
from .errors import IngestionError, RetryExhausted
from .results import merge_retry

logger = logging.getLogger(__name__)

RETRY_FILE_NAME = "retry-records.json"
RETRY_CONTENT_TYPE = "application/json"

# (file_name, content, content_type) -> decoded response payload
RetrySender = Callable[[str, bytes, str], Dict[str, Any]]


@dataclass
class RetryState:
    """Attempt counter and pending confirmation; replaced whenever the session resets."""
    attempts: int = 0
    max_attempts: int = field(default_factory=lambda: settings.retry_max_attempts)
    pending: Optional["RetryConfirmation"] = None

    @property
    def exhausted(self) -> bool:
        return self.attempts >= self.max_attempts

    @property
    def remaining(self) -> int:
        return max(0, self.max_attempts - self.attempts)


@dataclass(frozen=True)
class RetryConfirmation:
    """Pending approve/decline decision for the next retry attempt."""
    failed_count: int
    attempt: int
    max_attempts: int

    @property
    def message(self) -> str:
        return (
            f"{self.failed_count} records failed to process. "
            f"Retry attempt {self.attempt} of {self.max_attempts}."
        )


def export_failed_records(failed_records: Iterable[FailedRecord], *, indent: Optional[int] = 2) -> bytes:
    """JSON export of failed records for manual review."""
    return records_to_json_bytes(
        [record.model_dump(by_alias=True) for record in failed_records],
        indent=indent,
    )


class RetryController:
    """
    Drives retries for one upload session.

    ``request_retry`` never touches the network; only ``confirm(True)`` does,
    through the ``send`` callable supplied by the orchestrator.
    """

    def __init__(self, session, send: RetrySender):
        self.session = session
        self._send = send

    @property
    def state(self) -> RetryState:
        return self.session.retry

    @property
    def pending(self) -> Optional[RetryConfirmation]:
        return self.state.pending

    def request_retry(self) -> Optional[RetryConfirmation]:
        """
        Ask for confirmation of the next retry attempt.

        Returns:
            The confirmation to present, or None when there is nothing to retry
            or the attempts are exhausted (failed records are left untouched)
        """
        state = self.state
        failed = self.session.failed_records
        state.pending = None
        if not failed:
            return None
        if state.exhausted:
            logger.info(
                "Retry limit reached (%d/%d); %d records left for manual handling",
                state.attempts,
                state.max_attempts,
                len(failed),
            )
            return None

        state.pending = RetryConfirmation(
            failed_count=len(failed),
            attempt=state.attempts + 1,
            max_attempts=state.max_attempts,
        )
        return state.pending

    def check_ready(self) -> None:
        """
        Raise unless the pending confirmation can still be answered.

        Raises:
            RetryExhausted: no attempts left
            IngestionError: nothing is pending, or no failed records remain
        """
        state = self.state
        if state.exhausted:
            state.pending = None
            raise RetryExhausted(state.attempts, state.max_attempts, len(self.session.failed_records))
        if state.pending is None:
            raise IngestionError("No retry is awaiting confirmation")
        if not self.session.failed_records:
            state.pending = None
            raise IngestionError("There are no failed records to retry")

    def confirm(self, approved: bool) -> Optional[UploadResult]:
        """
        Answer the pending confirmation.

        Declining keeps the failed records as they are and consumes no attempt.
        Approving consumes one attempt and re-sends the failed records.

        Raises:
            RetryExhausted: no attempts left; nothing is sent
            IngestionError: there is no pending confirmation, nothing is left
                to retry, or the retry request itself failed
        """
        self.check_ready()
        self.state.pending = None
        if not approved:
            logger.info("Retry declined; %d failed records kept", len(self.session.failed_records))
            return None

        return self._run()

    def _run(self) -> UploadResult:
        session = self.session
        previous_failed: List[FailedRecord] = list(session.failed_records)
        self.state.attempts += 1
        logger.info(
            "Retrying %d failed records (attempt %d of %d)",
            len(previous_failed),
            self.state.attempts,
            self.state.max_attempts,
        )

        content = records_to_json_bytes([failed.record for failed in previous_failed])
        payload = self._send(RETRY_FILE_NAME, content, RETRY_CONTENT_TYPE)

        result, still_failed = merge_retry(session.result or UploadResult(), previous_failed, payload)
        session.result = result
        session.failed_records = still_failed

        if still_failed:
            logger.warning("%d records still failed after retry", len(still_failed))
        else:
            logger.info("All records processed successfully after retry")
        return result
