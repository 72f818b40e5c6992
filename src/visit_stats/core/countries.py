"""Country code validation and normalization."""

import re
from typing import Any

from .errors import InvalidCountryCode

COUNTRY_CODE_PATTERN = re.compile(r"[A-Za-z]{2}")


def normalize_country_code(value: Any) -> str:
    """Trim and lowercase a 2-letter country code.

    Raises InvalidCountryCode for anything that is not exactly two ASCII
    letters once surrounding whitespace is removed.
    """
    if not isinstance(value, str):
        raise InvalidCountryCode("Country code must be a string")
    candidate = value.strip()
    if not COUNTRY_CODE_PATTERN.fullmatch(candidate):
        raise InvalidCountryCode()
    return candidate.lower()


def is_country_code(value: Any) -> bool:
    try:
        normalize_country_code(value)
    except InvalidCountryCode:
        return False
    return True
