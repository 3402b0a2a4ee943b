"""
Date parsing utilities for flexible date format handling.

Partner exports mix ISO timestamps, day-first and month-first dates. This
module parses them with pandas and renders the calendar date as
``YYYY-MM-DD`` for the canonical ``date_format`` transformation.
"""

import pandas as pd
from typing import Any, Optional
import re
from datetime import date, datetime
import logging

from credit_ingest.core.config import settings

logger = logging.getLogger(__name__)

FAILED_SAMPLE_LIMIT = 5
SUPPRESSION_NOTICE_EVERY = 100

_failure_stats: dict = {}


def _record_parse_failure(value: Any, context: Optional[str], error: Exception) -> None:
    """
    Collect failure stats and emit limited logs (sampled warnings + periodic summaries).
    """
    key = context or "default"
    stats = _failure_stats.setdefault(key, {"count": 0, "samples": []})
    stats["count"] += 1
    count = stats["count"]

    if len(stats["samples"]) < FAILED_SAMPLE_LIMIT:
        stats["samples"].append(value)
        logger.warning("Failed to parse date%s value '%s': %s", f" ({key})" if context else "", value, error)
        return

    if count == FAILED_SAMPLE_LIMIT + 1 or count % SUPPRESSION_NOTICE_EVERY == 0:
        logger.info(
            "Suppressed additional date parse warnings after %d failures%s; sample values=%s",
            count,
            f" ({key})" if context else "",
            stats["samples"],
        )


def parse_flexible_date(value: Any, *, log_context: Optional[str] = None, log_failures: bool = True) -> Optional[pd.Timestamp]:
    """
    Parse a date value from various formats.

    Supports formats:
    - ISO 8601: "2024-09-04T23:09:18Z"
    - DD/MM/YYYY: "20/10/2025"
    - MM/DD/YYYY: "10/20/2025"
    - YYYY-MM-DD: "2025-10-20"
    - epoch milliseconds (ints/floats)
    - And many others via pandas inference

    Returns:
        A pandas Timestamp, or None if parsing fails
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float) and pd.isna(value):
        return None
    if isinstance(value, (datetime, date)):
        return pd.Timestamp(value)
    if isinstance(value, (int, float)):
        try:
            return pd.to_datetime(value, unit='ms', utc=True)
        except (ValueError, OverflowError) as exc:
            if log_failures:
                _record_parse_failure(value, log_context, exc)
            return None

    if not isinstance(value, str):
        return None
    value = value.strip()
    if value == "":
        return None

    parse_attempts = []
    numeric_match = re.match(r'^\d{1,2}[/-]\d{1,2}[/-]\d{2,4}', value)
    if numeric_match:
        parts = re.split(r'[/-]', numeric_match.group(0))
        first, second = int(parts[0]), int(parts[1])

        # Decide whether day-first is more plausible
        if first > 12 and second <= 31:
            dayfirst_preferred = True
        elif second > 12 and first <= 12:
            dayfirst_preferred = False
        else:
            dayfirst_preferred = settings.date_default_dayfirst

        parse_attempts.append(lambda v, df=dayfirst_preferred: pd.to_datetime(v, dayfirst=df, errors='raise'))
        parse_attempts.append(lambda v, df=not dayfirst_preferred: pd.to_datetime(v, dayfirst=df, errors='raise'))

    parse_attempts.append(lambda v: pd.to_datetime(v, errors='raise'))

    last_error: Optional[Exception] = None
    for attempt in parse_attempts:
        try:
            parsed = attempt(value)
        except (ValueError, TypeError, OverflowError) as exc:
            last_error = exc
            continue
        if pd.isna(parsed):
            continue
        return parsed

    if log_failures:
        _record_parse_failure(value, log_context, last_error or ValueError("Unable to determine format"))
    return None


def format_date(value: Any, *, log_context: Optional[str] = None) -> Any:
    """Render a parseable date as ``YYYY-MM-DD``; unparseable values are returned unchanged."""
    parsed = parse_flexible_date(value, log_context=log_context)
    if parsed is None:
        return value
    return parsed.strftime('%Y-%m-%d')
