"""Failure kinds returned to the HTTP boundary."""


class VisitTrackingError(Exception):
    """Base class for expected visit tracking failures."""

    error_code = "visit_error"
    default_message = "Visit tracking error"

    def __init__(self, message: str = ""):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidCountryCode(VisitTrackingError):
    """Caller-supplied country code is not two letters."""

    error_code = "invalid_country_code"
    default_message = "Country code must be a 2-letter ISO 3166-1 alpha-2 code (e.g., us, ru, it)"


class CountryUndetectable(VisitTrackingError):
    """No explicit code was given and the address did not resolve."""

    error_code = "country_undetectable"
    default_message = "Unable to detect country from IP address"


class StoreUnavailable(VisitTrackingError):
    """Any failure talking to the counter store."""

    error_code = "store_unavailable"
    default_message = "Visit statistics store is unavailable"
