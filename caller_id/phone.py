"""Phone number helpers."""
import re
from typing import Optional

_NON_DIGITS = re.compile(r"\D")


def extract_area_code(phone_number: str) -> Optional[str]:
    """Return the 3-digit area code of a phone number, or None.

    NANP numbers are handled exactly (10 digits, or 11 with a leading 1).
    Longer numbers take the three digits that start ten from the end, which
    is only an approximation for international formats.
    """
    digits = _NON_DIGITS.sub("", phone_number or "")

    if len(digits) == 11 and digits.startswith("1"):
        return digits[1:4]
    if len(digits) == 10:
        return digits[:3]
    if len(digits) > 10:
        return digits[-10:-7]
    return None
