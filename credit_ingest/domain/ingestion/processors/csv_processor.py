import csv
import logging
from io import StringIO
from itertools import islice
from typing import Any, Dict, List

logger = logging.getLogger(__name__)


def decode_text(file_content: bytes) -> str:
    """Decode a delimited text file, dropping a UTF-8 byte order mark."""
    return file_content.decode('utf-8-sig')


def extract_preview_lines(text: str, num_lines: int = 6) -> List[str]:
    """
    Return the first ``num_lines`` lines of a delimited text file, verbatim.

    Line terminators are removed but the content of each line is untouched so
    the preview shows exactly what the file holds.

    Args:
        text: Decoded file content
        num_lines: Number of lines to keep (default 6)

    Returns:
        List of raw lines
    """
    lines = text.splitlines()[:num_lines]
    logger.debug("Extracted %d preview lines", len(lines))
    return lines


def parse_header(line: str) -> List[str]:
    """Split a header line on commas and trim every token."""
    return [token.strip() for token in line.split(',')]


def parse_preview_records(
    text: str,
    header: List[str],
    max_records: int,
    *,
    ragged: bool = False,
) -> List[Dict[str, Any]]:
    """
    Parse the first ``max_records`` data records of a delimited text file.

    The reader runs over the whole text, so a quoted value spanning several
    lines is read in full even when it crosses the preview line cut. Values
    stay strings; short rows are padded with "" so every record carries every
    header key.

    Args:
        text: Decoded file content, header line included
        header: Trimmed header tokens
        max_records: Number of data records to return
        ragged: Plain-text mode; quoting is lenient and cells beyond the
            header are dropped instead of rejected

    Raises:
        csv.Error: on unbalanced quoting (CSV mode)
        ValueError: when a row holds more fields than the header (CSV mode)
    """
    if not header:
        return []

    reader = csv.reader(StringIO(text), strict=not ragged, skipinitialspace=True)
    next(reader, None)

    records: List[Dict[str, Any]] = []
    for row in islice(reader, max_records):
        if not row or not any(cell.strip() for cell in row):
            continue
        if len(row) > len(header):
            if not ragged:
                raise ValueError(
                    f"Line {reader.line_num} has {len(row)} fields but the header defines {len(header)}"
                )
            row = row[:len(header)]
        padded = row + [""] * (len(header) - len(row))
        records.append(dict(zip(header, padded)))

    logger.info(f"Parsed {len(records)} preview rows with {len(header)} columns")
    return records
