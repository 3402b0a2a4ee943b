"""
Phone number normalization for mapped credit records.

Partner files carry phone numbers in many layouts ("+251 91 123 4567",
"0911-123-456", "(091) 112 3456"). The scoring engine keys borrowers by the
bare digit string, so formatting keeps digits only when the result has a
plausible length and otherwise leaves the value untouched for validation to
report.
"""

import re
from typing import Any, Optional
import logging

logger = logging.getLogger(__name__)

PHONE_MIN_DIGITS = 9
PHONE_MAX_DIGITS = 15


def extract_phone_digits(
    value: Any,
    *,
    min_digits: int = PHONE_MIN_DIGITS,
    max_digits: int = PHONE_MAX_DIGITS,
) -> Optional[str]:
    """
    Reduce a phone number to its digits.

    Args:
        value: Phone number in any format (strings or numbers)
        min_digits: Minimum number of digits to consider valid (default 9)
        max_digits: Maximum number of digits to consider valid (default 15)

    Returns:
        The digit string, or None if the value is empty or the digit count is
        outside ``[min_digits, max_digits]``
    """
    if value is None or isinstance(value, bool):
        return None

    text = str(value).strip()
    if not text:
        return None

    digits = re.sub(r'\D', '', text)
    if len(digits) < min_digits or len(digits) > max_digits:
        logger.debug(
            f"Phone number '{value}' has {len(digits)} digits, "
            f"expected between {min_digits} and {max_digits}"
        )
        return None

    return digits


def format_phone(value: Any) -> Any:
    """Digits-only phone number, or the original value when it cannot be normalized."""
    digits = extract_phone_digits(value)
    return digits if digits is not None else value
