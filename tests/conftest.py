"""
Pytest configuration and fixtures for Credit Ingest tests.

The scoring service is never contacted: orchestrator tests use
``FakeScoringClient`` which records every call and replays queued responses.
"""
import json
import threading
from typing import Any, Dict, List, Optional

import pytest

from credit_ingest.api.schemas.shared import MappingProfile
from credit_ingest.domain.ingestion.preview import FileHandle


class FakeScoringClient:
    """In-memory stand-in for ``ScoringApiClient``."""

    def __init__(self, responses: Optional[List[Any]] = None):
        self.responses = list(responses or [])
        self.calls: List[Dict[str, Any]] = []
        self.profiles: List[MappingProfile] = []
        self.created: List[MappingProfile] = []
        self.release = threading.Event()
        self.block_seconds: Optional[float] = None

    def apply_mapping(self, mapping_id, *, partner_id, engine, file_name, content,
                      content_type="application/octet-stream", upload_id, on_progress=None,
                      timeout_seconds=None):
        self.calls.append({
            "mapping_id": mapping_id,
            "partner_id": partner_id,
            "engine": engine,
            "file_name": file_name,
            "content": content,
            "content_type": content_type,
            "upload_id": upload_id,
        })
        if self.block_seconds is not None:
            self.release.wait(self.block_seconds)
        if on_progress is not None:
            for sent in (100, 200, 400):
                on_progress(sent, 400)
        response = self.responses.pop(0) if self.responses else summary_payload(0, 0)
        if isinstance(response, Exception):
            raise response
        return response

    def list_profiles(self, partner_id):
        return [profile for profile in self.profiles if profile.partner_id == partner_id]

    def create_profile(self, profile):
        stored = profile.model_copy(update={"id": f"profile-{len(self.created) + 1}"})
        self.created.append(stored)
        self.profiles.append(stored)
        return stored


def summary_payload(total: int, mapped: int, failed: Optional[List[Dict[str, Any]]] = None,
                    scored: Optional[int] = None, average: float = 0.0) -> Dict[str, Any]:
    """Apply-endpoint response with a summary and optional per-row failures."""
    errors = [
        {"row": index + 1, "errors": [f"Invalid record {index + 1}"], "originalData": record}
        for index, record in enumerate(failed or [])
    ]
    return {
        "success": True,
        "data": {
            "summary": {
                "totalRecords": total,
                "mappedRecords": mapped,
                "scoredRecords": mapped if scored is None else scored,
                "averageScore": average,
            },
            "errors": errors,
        },
    }


def make_file(name: str, payload: Any, mime_type: str = "") -> FileHandle:
    if isinstance(payload, (list, dict)):
        content = json.dumps(payload).encode("utf-8")
    elif isinstance(payload, str):
        content = payload.encode("utf-8")
    else:
        content = payload
    return FileHandle.from_bytes(name, content, mime_type)


@pytest.fixture
def fake_client():
    client = FakeScoringClient()
    yield client
    # Unblock any worker left behind by a timeout test.
    client.release.set()


@pytest.fixture
def json_records():
    return [
        {"phone": "0911 123 456", "name": "Abebe", "income": "12000"},
        {"phone": "0911 654 321", "name": "Sara", "income": "15,500.75"},
        {"phone": "0922 000 111", "name": "Kebede", "income": "9800"},
    ]
