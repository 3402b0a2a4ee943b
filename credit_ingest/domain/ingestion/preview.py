"""
File intake: constraint checks and bounded content previews.

A file is checked against the accepted formats and the size ceiling before
any byte of it is parsed. Every violated constraint is reported together so
the user can fix them in one pass.
"""
import csv
import logging
import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from lxml import etree

from credit_ingest.api.schemas.shared import ACCEPTED_EXTENSIONS
from credit_ingest.core.config import settings
from .errors import FileValidationError, PreviewParseError
from .processors.csv_processor import decode_text, extract_preview_lines, parse_header, parse_preview_records
from .processors.excel_processor import process_excel
from .processors.json_processor import preview_json
from .processors.xml_processor import process_xml

logger = logging.getLogger(__name__)

MIME_TYPES = {
    "application/json": "json",
    "text/json": "json",
    "text/csv": "csv",
    "application/csv": "csv",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": "xlsx",
    "application/vnd.ms-excel": "xls",
    "application/xml": "xml",
    "text/xml": "xml",
    "text/plain": "txt",
    "application/pdf": "pdf",
}

PREVIEW_RECORDS = "records"
PREVIEW_TEXT = "text"
PREVIEW_PDF = "pdf"

_UNSAFE_NAME_CHARS = re.compile(r"[^a-z0-9_.-]", re.IGNORECASE)


def max_file_size_bytes() -> int:
    return settings.upload_max_file_size_mb * 1024 * 1024


@dataclass(frozen=True)
class FileHandle:
    """A selected file: declared metadata plus its raw bytes."""
    name: str
    size: int
    mime_type: str
    content: bytes = field(repr=False, default=b"")

    @classmethod
    def from_bytes(cls, name: str, content: bytes, mime_type: str = "") -> "FileHandle":
        return cls(name=name, size=len(content), mime_type=mime_type or "", content=content)

    @property
    def extension(self) -> str:
        return os.path.splitext(self.name)[1].lstrip(".").lower()


@dataclass
class Preview:
    """Bounded view of a file's content, shaped by its format."""
    kind: str
    file_type: str
    records: List[Any] = field(default_factory=list)
    lines: List[str] = field(default_factory=list)
    header: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        if self.kind == PREVIEW_PDF:
            return dict(self.metadata)
        if self.kind == PREVIEW_TEXT:
            return {"type": self.file_type, "lines": list(self.lines), "header": list(self.header)}
        return {"type": self.file_type, "records": list(self.records)}


def sanitize_file_name(name: str) -> str:
    """Strip characters outside ``[a-z0-9_.-]`` from a file name."""
    return _UNSAFE_NAME_CHARS.sub("", name)


def resolve_file_type(file: FileHandle) -> Optional[str]:
    """Accepted format of a file by extension, falling back to its declared MIME type."""
    if file.extension in ACCEPTED_EXTENSIONS:
        return file.extension
    mime = (file.mime_type or "").split(";")[0].strip().lower()
    return MIME_TYPES.get(mime)


def validate_file(file: FileHandle) -> List[str]:
    """
    Check a file against the intake constraints.

    Returns:
        Every violated constraint as a user-facing message (empty when valid).
    """
    errors: List[str] = []

    if resolve_file_type(file) is None:
        accepted = ", ".join(f".{ext}" for ext in ACCEPTED_EXTENSIONS)
        errors.append(f"Unsupported file type for '{file.name}'. Accepted formats: {accepted}")

    limit = max_file_size_bytes()
    if file.size > limit:
        errors.append(f"File size exceeds {settings.upload_max_file_size_mb}MB limit")

    return errors


def build_preview(file: FileHandle, file_type: str) -> Preview:
    """
    Produce the bounded preview for an already-validated file.

    Raises:
        PreviewParseError: when the content cannot be parsed
    """
    if file_type == "pdf":
        return Preview(
            kind=PREVIEW_PDF,
            file_type="pdf",
            metadata={"type": "pdf", "name": file.name, "size": file.size},
        )

    try:
        if file_type == "json":
            return Preview(
                kind=PREVIEW_RECORDS,
                file_type=file_type,
                records=preview_json(file.content, settings.preview_json_records),
            )
        if file_type in ("csv", "txt"):
            text = decode_text(file.content)
            lines = extract_preview_lines(text, settings.preview_text_lines)
            header = parse_header(lines[0]) if lines else []
            records = parse_preview_records(
                text,
                header,
                max(0, settings.preview_text_lines - 1),
                ragged=file_type == "txt",
            )
            return Preview(
                kind=PREVIEW_TEXT,
                file_type=file_type,
                lines=lines,
                header=header,
                records=records,
            )
        if file_type in ("xlsx", "xls"):
            return Preview(
                kind=PREVIEW_RECORDS,
                file_type=file_type,
                records=process_excel(file.content, settings.preview_json_records),
            )
        if file_type == "xml":
            return Preview(
                kind=PREVIEW_RECORDS,
                file_type=file_type,
                records=process_xml(file.content, settings.preview_json_records),
            )
    except (csv.Error, UnicodeDecodeError, ValueError, etree.XMLSyntaxError) as exc:
        # json.JSONDecodeError is a ValueError
        logger.warning("Preview of '%s' failed: %s", file.name, exc)
        raise PreviewParseError(file.name, file_type, str(exc)) from exc

    raise PreviewParseError(file.name, file_type, "no preview reader for this format")


def ingest(file: FileHandle) -> Preview:
    """
    Validate a file and build its preview.

    Raises:
        FileValidationError: with the full list of violated constraints; the
            file is not parsed at all in that case
        PreviewParseError: when a valid file's content is malformed
    """
    errors = validate_file(file)
    if errors:
        logger.info("Rejected file '%s': %s", file.name, "; ".join(errors))
        raise FileValidationError(errors, file_name=file.name)

    file_type = resolve_file_type(file)
    preview = build_preview(file, file_type)
    logger.info(
        "Previewed '%s' as %s (%d records, %d lines)",
        file.name,
        file_type,
        len(preview.records),
        len(preview.lines),
    )
    return preview
