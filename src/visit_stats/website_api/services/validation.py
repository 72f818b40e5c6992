"""Visit payload validation."""

from typing import Any, Optional

from ...core.countries import normalize_country_code

ALLOWED_FIELDS = {"country"}


def validate_visit_payload(payload: Any) -> Optional[str]:
    """Validate a record-visit body and return the normalized country, if any.

    The body may be empty (None) or a JSON object whose only allowed field is
    ``country``. A null or missing country means "detect from IP".

    Raises ValueError for a malformed body and InvalidCountryCode for a
    country that is not a 2-letter code.
    """
    if payload is None:
        return None
    if not isinstance(payload, dict):
        raise ValueError("Request body must be a JSON object")

    unexpected = sorted(set(payload) - ALLOWED_FIELDS)
    if unexpected:
        raise ValueError(f"Unexpected field(s): {', '.join(unexpected)}")

    country = payload.get("country")
    if country is None:
        return None
    return normalize_country_code(country)
