"""
HTTP client for the remote scoring service.

Covers the schema-mapping endpoints used by an upload session:
- ``POST /schema-mapping/apply/{mappingId}`` (multipart upload + scoring)
- ``GET /schema-mapping/partner/{partnerId}`` (mapping profiles by partner)
- ``POST /schema-mapping/create`` (save a mapping profile)

Transport failures are translated into the ingestion error taxonomy so callers
only ever see one user-facing message per failure.
"""
import logging
from typing import Any, Callable, Dict, Iterator, List, Optional

import requests
from pydantic import ValidationError
from urllib3.filepost import encode_multipart_formdata

from credit_ingest.api.schemas.shared import MappingProfile
from credit_ingest.core.config import settings
from credit_ingest.domain.ingestion.errors import IngestionError, NetworkError, ProfileStoreError, ServerError

logger = logging.getLogger(__name__)

NO_RESPONSE_MESSAGE = "No response from server. Please check your connection."
SERVER_ERROR_MESSAGE = "Server error occurred during upload."
UPLOAD_CHUNK_SIZE = 64 * 1024

ProgressCallback = Callable[[int, int], None]


class ProgressReader:
    """
    File-like view over a prepared request body that reports bytes sent.

    ``requests`` streams any object with ``read`` and ``__iter__`` and takes the
    Content-Length from ``__len__``.
    """

    def __init__(self, body: bytes, callback: Optional[ProgressCallback] = None, chunk_size: int = UPLOAD_CHUNK_SIZE):
        self._body = body
        self._callback = callback
        self._chunk_size = chunk_size
        self._offset = 0

    def __len__(self) -> int:
        return len(self._body)

    def read(self, size: int = -1) -> bytes:
        if size is None or size < 0:
            size = len(self._body) - self._offset
        chunk = self._body[self._offset:self._offset + size]
        if chunk:
            self._offset += len(chunk)
            if self._callback is not None:
                self._callback(self._offset, len(self._body))
        return chunk

    def __iter__(self) -> Iterator[bytes]:
        while True:
            chunk = self.read(self._chunk_size)
            if not chunk:
                break
            yield chunk


def _json_or_none(response: requests.Response) -> Optional[Dict[str, Any]]:
    try:
        payload = response.json()
    except ValueError:
        return None
    return payload if isinstance(payload, dict) else None


def _server_error(response: requests.Response) -> ServerError:
    """Most specific message available: backend text, then status, then generic."""
    payload = _json_or_none(response) or {}
    message = None
    for key in ("message", "error"):
        value = payload.get(key)
        if isinstance(value, str) and value.strip():
            message = value.strip()
            break
    if message is None and response.status_code:
        reason = f" {response.reason}" if response.reason else ""
        message = f"Request failed with status {response.status_code}{reason}"
    return ServerError(message or SERVER_ERROR_MESSAGE, status_code=response.status_code, payload=payload)


class ScoringApiClient:
    """Thin ``requests`` wrapper around the scoring service endpoints."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self.token = settings.api_token if token is None else token
        self.session = session or requests.Session()
        self.timeout_seconds = timeout_seconds or settings.request_timeout_seconds

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def _headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        if extra:
            headers.update(extra)
        return headers

    def _send(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        """
        Issue a request and return its JSON body.

        Raises:
            NetworkError: no response was received
            ServerError: non-2xx status or a non-JSON body
            IngestionError: any other client-side request failure
        """
        url = self._url(path)
        try:
            response = self.session.request(method, url, **kwargs)
        except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as exc:
            logger.error("No response from %s %s: %s", method, url, exc)
            raise NetworkError(NO_RESPONSE_MESSAGE) from exc
        except requests.exceptions.RequestException as exc:
            logger.error("Request to %s %s failed: %s", method, url, exc)
            raise IngestionError(f"Upload error: {exc}") from exc

        if response.status_code >= 400:
            error = _server_error(response)
            logger.error("%s %s returned %s: %s", method, url, response.status_code, error.message)
            raise error

        payload = _json_or_none(response)
        if payload is None:
            raise ServerError(SERVER_ERROR_MESSAGE, status_code=response.status_code)
        return payload

    def apply_mapping(
        self,
        mapping_id: str,
        *,
        partner_id: str,
        engine: str,
        file_name: str,
        content: bytes,
        content_type: str = "application/octet-stream",
        upload_id: str,
        on_progress: Optional[ProgressCallback] = None,
        timeout_seconds: Optional[float] = None,
    ) -> Dict[str, Any]:
        """
        Upload a file for mapping and scoring.

        Args:
            mapping_id: Stored mapping profile to apply server-side
            partner_id: Partner the records belong to (sent as form field and query)
            engine: Scoring engine identifier
            file_name: File name for the multipart ``file`` part
            content: Raw file bytes
            content_type: MIME type of the ``file`` part
            upload_id: Unique id for this attempt, sent as ``X-Upload-Id``
            on_progress: Called with ``(bytes_sent, total_bytes)`` while streaming
            timeout_seconds: Read timeout for the request

        Returns:
            The decoded JSON response
        """
        body, multipart_type = encode_multipart_formdata({
            "file": (file_name, content, content_type or "application/octet-stream"),
            "partnerId": partner_id,
        })
        headers = self._headers({"Content-Type": multipart_type, "X-Upload-Id": upload_id})

        logger.info(
            "Uploading '%s' (%d bytes) with mapping %s for partner %s [%s]",
            file_name,
            len(content),
            mapping_id,
            partner_id,
            upload_id,
        )
        return self._send(
            "POST",
            f"schema-mapping/apply/{mapping_id}",
            params={"autoScore": "true", "partnerId": partner_id, "engine": engine},
            data=ProgressReader(body, on_progress),
            headers=headers,
            timeout=timeout_seconds or settings.upload_timeout_seconds,
        )

    def list_profiles(self, partner_id: str) -> List[MappingProfile]:
        """Mapping profiles stored for a partner."""
        try:
            payload = self._send(
                "GET",
                f"schema-mapping/partner/{partner_id}",
                headers=self._headers(),
                timeout=self.timeout_seconds,
            )
        except IngestionError as exc:
            raise ProfileStoreError(exc.message, status_code=getattr(exc, "status_code", None)) from exc

        profiles: List[MappingProfile] = []
        for item in payload.get("data") or []:
            try:
                profiles.append(MappingProfile.model_validate(item))
            except ValidationError as exc:
                logger.warning("Skipping malformed mapping profile from store: %s", exc)
        return profiles

    def create_profile(self, profile: MappingProfile) -> MappingProfile:
        """Persist a mapping profile and return the stored copy."""
        body = profile.model_dump(mode="json", by_alias=True, exclude={"id"})
        try:
            payload = self._send(
                "POST",
                "schema-mapping/create",
                json=body,
                headers=self._headers(),
                timeout=self.timeout_seconds,
            )
        except IngestionError as exc:
            raise ProfileStoreError(exc.message, status_code=getattr(exc, "status_code", None)) from exc

        stored = payload.get("data")
        if not isinstance(stored, dict):
            return profile
        try:
            return MappingProfile.model_validate(stored)
        except ValidationError as exc:
            raise ProfileStoreError(f"Mapping profile store returned an invalid profile: {exc}") from exc
