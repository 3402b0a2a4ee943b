"""
Tests for upload submission: guards, request shape, results and failures.
"""
import threading
import time

import pytest

from conftest import make_file, summary_payload
from credit_ingest.api.schemas.shared import MappingProfile
from credit_ingest.domain.ingestion.errors import (
    IngestionError,
    MappingValidationError,
    NetworkError,
    ProfileStoreError,
    ServerError,
    SubmissionBlockedError,
    UploadInProgressError,
    UploadTimeoutError,
)
from credit_ingest.domain.ingestion.orchestrator import ProgressThrottle, UploadOrchestrator
from credit_ingest.domain.ingestion.schema import ENGINE_REQUIRED_FIELDS
from credit_ingest.domain.ingestion.session import SessionState, UploadSession


def _orchestrator(client, records=None, **kwargs):
    session = UploadSession()
    session.select_file(make_file("partner export.json", records or [{"phone": "0911123456"}], "application/json"))
    session.select_partner("CBE")
    session.select_mapping("map-1")
    return UploadOrchestrator(session, client, **kwargs)


class TestSubmitGuards:

    def test_csv_without_mapping_is_blocked(self, fake_client):
        session = UploadSession()
        session.select_file(make_file("people.csv", "name,income\nAbebe,100\nSara,200\n"))
        session.select_partner("CBE")
        orchestrator = UploadOrchestrator(session, fake_client)

        with pytest.raises(SubmissionBlockedError) as exc_info:
            orchestrator.submit()

        assert exc_info.value.reason == "mapping"
        assert exc_info.value.message == "Please select a mapping first"
        assert fake_client.calls == []
        assert session.state is SessionState.MAPPING_IN_PROGRESS

    def test_missing_file_is_checked_first(self, fake_client):
        session = UploadSession()
        session.select_partner("CBE")
        session.select_mapping("map-1")

        with pytest.raises(SubmissionBlockedError, match="Please select a file first"):
            UploadOrchestrator(session, fake_client).submit()
        assert fake_client.calls == []

    def test_missing_partner(self, fake_client):
        session = UploadSession()
        session.select_file(make_file("records.json", [{"a": 1}]))
        session.select_mapping("map-1")

        with pytest.raises(SubmissionBlockedError, match="Please select a partner first"):
            UploadOrchestrator(session, fake_client).submit()
        assert fake_client.calls == []

    def test_validation_errors_block_submission(self, fake_client):
        orchestrator = _orchestrator(fake_client, [{"income": "100"}, {"income": "abc"}])
        orchestrator.session.add_mapping("income", "monthlyIncome")

        with pytest.raises(SubmissionBlockedError) as exc_info:
            orchestrator.submit()

        assert exc_info.value.message == "Please fix validation errors before uploading"
        assert [issue.row_index for issue in exc_info.value.errors] == [2]
        assert fake_client.calls == []

    def test_busy_session_rejects_second_submit(self, fake_client):
        orchestrator = _orchestrator(fake_client)
        orchestrator.session.busy = True

        with pytest.raises(UploadInProgressError):
            orchestrator.submit()
        assert fake_client.calls == []

    def test_submit_while_upload_is_running(self, fake_client):
        fake_client.block_seconds = 5
        fake_client.responses = [summary_payload(1, 1)]
        orchestrator = _orchestrator(fake_client)
        worker = threading.Thread(target=orchestrator.submit)
        worker.start()
        try:
            deadline = time.monotonic() + 5
            while not fake_client.calls and time.monotonic() < deadline:
                time.sleep(0.01)

            assert orchestrator.session.state is SessionState.UPLOADING
            with pytest.raises(UploadInProgressError):
                orchestrator.submit()
        finally:
            fake_client.release.set()
            worker.join(5)

        assert len(fake_client.calls) == 1
        assert orchestrator.session.state is SessionState.COMPLETED


class TestSubmit:

    def test_summary_becomes_session_result(self, fake_client):
        fake_client.responses = [summary_payload(10, 8, scored=8, average=640.5)]
        orchestrator = _orchestrator(fake_client)

        result = orchestrator.submit()

        assert (result.total, result.success, result.errors) == (10, 8, 2)
        assert result.success_rate == 80.0
        assert result.scored_records == 8
        assert result.average_score == 640.5
        assert orchestrator.session.result is result
        assert orchestrator.session.state is SessionState.COMPLETED
        assert orchestrator.partial_failure.failed_count == 2
        assert orchestrator.partial_failure.message == "Processed 8 records successfully, but 2 failed"

    def test_success_plus_errors_equals_total(self, fake_client):
        for total, mapped in [(0, 0), (5, 5), (7, 0), (3, 9)]:
            fake_client.responses = [summary_payload(total, mapped)]
            result = _orchestrator(fake_client).submit()
            assert result.success + result.errors == result.total

    def test_request_carries_session_selection(self, fake_client):
        orchestrator = _orchestrator(fake_client)
        orchestrator.session.select_engine("ai")

        orchestrator.submit()

        call = fake_client.calls[0]
        assert call["mapping_id"] == "map-1"
        assert call["partner_id"] == "CBE"
        assert call["engine"] == "ai"
        assert call["file_name"] == "partnerexport.json"
        assert call["content_type"] == "application/json"
        assert call["upload_id"].startswith("upload-")
        assert orchestrator.session.result.upload_id == call["upload_id"]

    def test_failed_rows_are_kept_for_retry(self, fake_client):
        fake_client.responses = [summary_payload(3, 1, failed=[{"phone": "x"}, {"phone": "y"}])]
        orchestrator = _orchestrator(fake_client)

        orchestrator.submit()

        failed = orchestrator.session.failed_records
        assert [record.record for record in failed] == [{"phone": "x"}, {"phone": "y"}]
        assert failed[0].message == "Invalid record 1"
        assert failed[0].row_number == 1

    def test_progress_reports_are_throttled(self, fake_client):
        reports = []
        orchestrator = _orchestrator(fake_client, on_progress=reports.append, clock=lambda: 100.0)

        orchestrator.submit()

        assert reports == [25, 100]


class TestSubmitFailures:

    @pytest.mark.parametrize("error,message", [
        (NetworkError("No response from server. Please check your connection."),
         "No response from server. Please check your connection."),
        (ServerError("Mapping not found", status_code=404), "Mapping not found"),
        (IngestionError("Upload error: Invalid URL"), "Upload error: Invalid URL"),
    ])
    def test_transport_errors_fail_the_session(self, fake_client, error, message):
        fake_client.responses = [error]
        orchestrator = _orchestrator(fake_client)

        with pytest.raises(type(error)):
            orchestrator.submit()

        assert orchestrator.session.state is SessionState.FAILED
        assert orchestrator.session.last_error == message
        assert orchestrator.session.busy is False
        assert len(fake_client.calls) == 1

    def test_unexpected_error_is_reported_as_upload_error(self, fake_client):
        fake_client.responses = [RuntimeError("socket closed")]
        orchestrator = _orchestrator(fake_client)

        with pytest.raises(RuntimeError):
            orchestrator.submit()

        assert orchestrator.session.last_error == "Upload error: socket closed"
        assert orchestrator.session.state is SessionState.FAILED

    @pytest.mark.parametrize("payload,message", [
        ({"success": False, "message": "Mapping is inactive"}, "Mapping is inactive"),
        ({"success": False, "error": "Partner suspended"}, "Partner suspended"),
        ({"success": True, "data": {}}, "Upload failed. Please try again."),
    ])
    def test_missing_summary_fails_with_backend_message(self, fake_client, payload, message):
        fake_client.responses = [payload]
        orchestrator = _orchestrator(fake_client)

        with pytest.raises(ServerError):
            orchestrator.submit()

        assert orchestrator.session.last_error == message
        assert orchestrator.session.result is None
        assert orchestrator.session.state is SessionState.FAILED

    def test_timeout_fails_the_session(self, fake_client):
        fake_client.block_seconds = 5
        orchestrator = _orchestrator(fake_client, timeout_seconds=0.05)

        with pytest.raises(UploadTimeoutError):
            orchestrator.submit()

        assert orchestrator.session.state is SessionState.FAILED
        assert orchestrator.session.last_error.startswith("Upload timed out after 0.05 seconds")
        assert orchestrator.session.busy is False

    def test_failed_session_can_be_resubmitted(self, fake_client):
        fake_client.responses = [NetworkError("No response from server. Please check your connection."),
                                 summary_payload(2, 2)]
        orchestrator = _orchestrator(fake_client)

        with pytest.raises(NetworkError):
            orchestrator.submit()
        result = orchestrator.submit()

        assert result.success == 2
        assert orchestrator.session.state is SessionState.COMPLETED
        assert orchestrator.session.last_error is None
        assert fake_client.calls[0]["upload_id"] != fake_client.calls[1]["upload_id"]


class TestProgressThrottle:

    def test_reports_at_most_once_per_interval_and_always_completion(self):
        reports = []
        times = iter([0.0, 0.1, 0.25, 0.3, 0.3, 0.9])
        throttle = ProgressThrottle(reports.append, interval_ms=200, clock=lambda: next(times))

        for loaded in (10, 20, 30, 40, 100, 100):
            throttle(loaded, 100)

        assert reports == [10, 30, 100]

    def test_zero_total_is_ignored(self):
        reports = []
        ProgressThrottle(reports.append, clock=lambda: 0.0)(0, 0)
        assert reports == []


class TestProfiles:

    def _map_required_fields(self, session):
        for target in ENGINE_REQUIRED_FIELDS[session.engine]:
            session.add_mapping(target, target)

    def test_engine_required_fields_are_enforced(self, fake_client):
        orchestrator = _orchestrator(fake_client)
        orchestrator.session.add_mapping("creditAge", "creditAge")
        request = orchestrator.request_profile_name()

        with pytest.raises(MappingValidationError) as exc_info:
            orchestrator.save_profile(request, "CBE monthly")

        assert "Missing required field mapping: creditUtilization" in exc_info.value.errors
        assert fake_client.created == []

    def test_blank_name_is_rejected(self, fake_client):
        orchestrator = _orchestrator(fake_client)
        self._map_required_fields(orchestrator.session)

        with pytest.raises(ProfileStoreError):
            orchestrator.save_profile(orchestrator.request_profile_name(), "   ")

    def test_saved_profile_is_versioned_and_selected(self, fake_client):
        orchestrator = _orchestrator(fake_client)
        self._map_required_fields(orchestrator.session)
        fake_client.profiles.append(MappingProfile(id="other", name="Other", partner_id="CBE"))

        first = orchestrator.save_profile(orchestrator.request_profile_name(), "CBE monthly", "Monthly export")
        second = orchestrator.save_profile(orchestrator.request_profile_name(), "CBE monthly")

        assert (first.version, second.version) == (1, 2)
        assert first.partner_name == "Commercial Bank of Ethiopia"
        assert first.description == "Monthly export"
        assert orchestrator.session.mapping_id == second.id

    def test_saved_profile_restores_identical_table(self, fake_client):
        orchestrator = _orchestrator(fake_client)
        self._map_required_fields(orchestrator.session)
        orchestrator.session.add_mapping("phone", "phoneNumber", "phone_format", is_required=True)
        table = orchestrator.session.mapping.snapshot()

        stored = orchestrator.save_profile(orchestrator.request_profile_name(), "CBE full")
        orchestrator.session.mapping.clear()
        orchestrator.session.load_profile(stored)

        assert orchestrator.session.mapping.mappings == table

    def test_list_profiles_without_partner_is_empty(self, fake_client):
        assert UploadOrchestrator(UploadSession(), fake_client).list_profiles() == []
