"""
Upload orchestration for a single ingestion session.

The orchestrator checks the submit guards, sends the selected file to the
scoring endpoint with a hard wall-clock timeout, folds the response into the
session result and hands partial failures to the retry controller.

Submission flow::

    READY_TO_SUBMIT -> UPLOADING -> COMPLETED  (summary received)
                                 -> FAILED     (timeout, transport or server error)
"""
import logging
import time
import uuid
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeoutError
from typing import Any, Callable, Dict, List, Optional

from credit_ingest.api.schemas.shared import MappingProfile, UploadResult
from credit_ingest.core.config import settings
from credit_ingest.integrations.scoring_api import ScoringApiClient
from .errors import (
    IngestionError,
    InvalidTransitionError,
    MappingValidationError,
    PartialFailure,
    ProfileStoreError,
    SubmissionBlockedError,
    UploadInProgressError,
    UploadTimeoutError,
)
from .preview import sanitize_file_name
from .results import summarize_upload
from .retry import RetryConfirmation, RetryController
from .schema import ENGINE_REQUIRED_FIELDS
from .session import BLOCK_INVALID, ProfileNameRequest, SessionState, UploadSession

logger = logging.getLogger(__name__)

ProgressListener = Callable[[int], None]
Clock = Callable[[], float]


class ProgressThrottle:
    """
    Rate-limit upload progress reports.

    Percentages are forwarded at most once per ``interval_ms``; the final 100%
    report is always forwarded, and never more than once.
    """

    def __init__(self, listener: ProgressListener, interval_ms: Optional[int] = None, clock: Clock = time.monotonic):
        self._listener = listener
        self._interval = (settings.upload_progress_interval_ms if interval_ms is None else interval_ms) / 1000.0
        self._clock = clock
        self._last_report: Optional[float] = None
        self._completed = False

    def __call__(self, loaded: int, total: int) -> None:
        if total <= 0 or self._completed:
            return
        complete = loaded >= total
        now = self._clock()
        if not complete and self._last_report is not None and now - self._last_report < self._interval:
            return
        self._last_report = now
        self._completed = complete
        self._listener(min(100, round(loaded * 100 / total)))


def new_upload_id() -> str:
    return f"upload-{uuid.uuid4()}"


class UploadOrchestrator:
    """Submits one session's file and retries its failed records."""

    def __init__(
        self,
        session: Optional[UploadSession] = None,
        client: Optional[ScoringApiClient] = None,
        *,
        timeout_seconds: Optional[float] = None,
        on_progress: Optional[ProgressListener] = None,
        clock: Clock = time.monotonic,
    ):
        self.session = session or UploadSession()
        self.client = client or ScoringApiClient()
        self.timeout_seconds = timeout_seconds or settings.upload_timeout_seconds
        self.on_progress = on_progress
        self.clock = clock
        self.retries = RetryController(self.session, self._send_retry)
        self.partial_failure: Optional[PartialFailure] = None

    # --- guards ------------------------------------------------------------

    def check_submission(self) -> None:
        """
        Run the submit guards in order.

        Raises:
            UploadInProgressError: an upload is already running
            SubmissionBlockedError: a guard failed; nothing has been sent
        """
        session = self.session
        if session.busy:
            raise UploadInProgressError()
        session.refresh()
        blocked = session.blocking_reason()
        if blocked is None:
            return
        reason, message = blocked
        errors = list(session.validation_errors) if blocked == BLOCK_INVALID else None
        logger.info("Submission blocked (%s): %s", reason, message)
        raise SubmissionBlockedError(reason, message, errors=errors)

    # --- transport ---------------------------------------------------------

    def _dispatch(self, file_name: str, content: bytes, content_type: str, upload_id: str) -> Dict[str, Any]:
        """
        Send one request to the apply endpoint and wait at most ``timeout_seconds``.

        Raises:
            UploadTimeoutError: the request did not finish in time
            IngestionError: the client reported a transport or server failure
        """
        session = self.session
        progress = ProgressThrottle(self.on_progress, clock=self.clock) if self.on_progress else None

        # No cancellation primitive: a timed-out worker is abandoned, not joined.
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="credit-upload")
        try:
            future = executor.submit(
                self.client.apply_mapping,
                session.mapping_id,
                partner_id=session.partner_id,
                engine=session.engine.value,
                file_name=file_name,
                content=content,
                content_type=content_type,
                upload_id=upload_id,
                on_progress=progress,
                timeout_seconds=self.timeout_seconds,
            )
            try:
                return future.result(timeout=self.timeout_seconds)
            except FuturesTimeoutError as exc:
                # The worker keeps running until the request's own read timeout ends it.
                logger.error("Upload %s timed out after %s seconds", upload_id, self.timeout_seconds)
                raise UploadTimeoutError(
                    f"Upload timed out after {self.timeout_seconds:g} seconds. "
                    "Please try again with a smaller file."
                ) from exc
        finally:
            executor.shutdown(wait=False)

    def _send_retry(self, file_name: str, content: bytes, content_type: str) -> Dict[str, Any]:
        return self._dispatch(file_name, content, content_type, new_upload_id())

    # --- submit ------------------------------------------------------------

    def submit(self) -> UploadResult:
        """
        Upload the selected file and record the outcome on the session.

        Returns:
            The session's cumulative result

        Raises:
            UploadInProgressError, SubmissionBlockedError: before any request
            IngestionError: the upload failed; the session is FAILED and
                ``session.last_error`` holds the user-facing message
        """
        self.check_submission()
        session = self.session
        if session.state is not SessionState.READY_TO_SUBMIT:
            raise InvalidTransitionError(session.state.value, SessionState.UPLOADING.value)
        file = session.file
        upload_id = new_upload_id()

        session.busy = True
        session.last_error = None
        self.partial_failure = None
        session.transition(SessionState.UPLOADING)
        started = self.clock()
        try:
            payload = self._dispatch(
                sanitize_file_name(file.name) or "upload",
                file.content,
                file.mime_type or "application/octet-stream",
                upload_id,
            )
            result, failed = summarize_upload(
                payload,
                upload_id=upload_id,
                elapsed_seconds=self.clock() - started,
            )
        except Exception as exc:
            session.busy = False
            session.last_error = exc.message if isinstance(exc, IngestionError) else f"Upload error: {exc}"
            session.transition(SessionState.FAILED)
            logger.error("Upload %s failed: %s", upload_id, session.last_error)
            raise

        session.result = result
        session.failed_records = failed
        session.busy = False
        session.transition(SessionState.COMPLETED)

        if result.errors:
            self.partial_failure = PartialFailure(result.errors, result.total)
            logger.warning("Upload %s: %s", upload_id, self.partial_failure.message)
        else:
            logger.info(
                "Upload %s: processed %d records in %.2fs",
                upload_id,
                result.success,
                result.upload_time_seconds,
            )
        return result

    # --- retry -------------------------------------------------------------

    def request_retry(self) -> Optional[RetryConfirmation]:
        if self.session.busy:
            raise UploadInProgressError()
        return self.retries.request_retry()

    def confirm_retry(self, approved: bool) -> Optional[UploadResult]:
        """
        Answer a pending retry confirmation.

        An approved retry runs through the same endpoint and timeout as the
        first upload; the session returns to COMPLETED either way.

        Raises:
            InvalidTransitionError: the session is no longer COMPLETED
            RetryExhausted, IngestionError: see ``RetryController.confirm``
        """
        session = self.session
        if session.busy:
            raise UploadInProgressError()
        if not approved:
            return self.retries.confirm(False)

        self.retries.check_ready()
        if session.state is not SessionState.COMPLETED:
            raise InvalidTransitionError(session.state.value, SessionState.UPLOADING.value)
        session.transition(SessionState.UPLOADING)
        session.busy = True
        try:
            return self.retries.confirm(True)
        except IngestionError as exc:
            session.last_error = f"Retry failed: {exc.message}"
            logger.error(session.last_error)
            raise
        finally:
            session.busy = False
            session.transition(SessionState.COMPLETED)

    # --- profiles ----------------------------------------------------------

    def list_profiles(self) -> List[MappingProfile]:
        if not self.session.partner_id:
            return []
        return self.client.list_profiles(self.session.partner_id)

    def request_profile_name(self) -> ProfileNameRequest:
        return self.session.request_profile_name()

    def save_profile(self, request: ProfileNameRequest, name: str, description: Optional[str] = None) -> MappingProfile:
        """
        Answer a naming request by storing the mappings as a new profile.

        The new profile's version is one more than the number of stored
        profiles for the partner with the same name. The stored profile
        becomes the session's selected mapping.

        Raises:
            ProfileStoreError: empty name, or the store rejected the request
            MappingValidationError: the mappings miss fields the engine needs
        """
        name = (name or "").strip()
        if not name:
            raise ProfileStoreError("Mapping profile name is required")

        mapped_targets = set(request.field_mappings)
        missing = [f for f in ENGINE_REQUIRED_FIELDS.get(request.engine, ()) if f not in mapped_targets]
        if missing:
            raise MappingValidationError([f"Missing required field mapping: {f}" for f in missing])

        existing = self.client.list_profiles(request.partner_id)
        version = sum(1 for profile in existing if profile.name == name) + 1

        profile = MappingProfile(
            name=name,
            description=description,
            partner_id=request.partner_id,
            partner_name=request.partner_name,
            file_type=request.file_type,
            field_mappings=request.field_mappings,
            engine_type=request.engine,
            version=version,
        )
        stored = self.client.create_profile(profile)
        logger.info("Saved mapping profile '%s' v%d for partner %s", stored.name, stored.version, stored.partner_id)

        if stored.id:
            self.session.select_mapping(stored.id)
        return stored
