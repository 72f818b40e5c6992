"""Country attribution and validation core."""

from .errors import VisitTrackingError, InvalidCountryCode, CountryUndetectable, StoreUnavailable
from .countries import normalize_country_code, is_country_code
from .attribution import AttributionResolver, extract_client_ip, is_local_or_private_ip
from .geoip import GeoIpDatabase

__all__ = [
    "VisitTrackingError",
    "InvalidCountryCode",
    "CountryUndetectable",
    "StoreUnavailable",
    "normalize_country_code",
    "is_country_code",
    "AttributionResolver",
    "extract_client_ip",
    "is_local_or_private_ip",
    "GeoIpDatabase",
]
