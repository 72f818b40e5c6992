"""Country attribution for visit records."""

import logging
from ipaddress import ip_address, ip_network
from typing import Mapping, Optional, Protocol, Sequence, Union

from .countries import normalize_country_code
from .errors import CountryUndetectable

logger = logging.getLogger(__name__)

HeaderValue = Union[str, Sequence[str]]

DEFAULT_LOCAL_COUNTRY = "us"

LOOPBACK_ADDRESSES = frozenset({"127.0.0.1", "::1", "localhost"})

PRIVATE_NETWORKS = tuple(
    ip_network(network)
    for network in (
        "10.0.0.0/8",
        "172.16.0.0/12",
        "192.168.0.0/16",
        "fe80::/10",  # IPv6 link-local
        "fc00::/7",  # IPv6 unique-local
    )
)


class CountryLookup(Protocol):
    def lookup(self, ip: str) -> Optional[str]:
        ...


def _first_value(value: Optional[HeaderValue]) -> str:
    if not value:
        return ""
    if isinstance(value, str):
        return value
    return value[0] or ""


def extract_client_ip(headers: Mapping[str, HeaderValue], direct_address: str) -> str:
    """Pick the client address from proxy headers or the socket address.

    Precedence is X-Forwarded-For (left-most entry), then X-Real-IP, then the
    direct socket address. The headers are not authenticated: any client can
    send them, so the result is a hint for attribution and nothing more.
    """
    forwarded_for = _first_value(headers.get("x-forwarded-for"))
    if forwarded_for:
        first_ip = forwarded_for.split(",")[0].strip()
        if first_ip:
            logger.debug(f"Extracted IP from X-Forwarded-For: {first_ip}")
            return first_ip

    real_ip = _first_value(headers.get("x-real-ip"))
    if real_ip:
        logger.debug(f"Extracted IP from X-Real-IP: {real_ip}")
        return real_ip

    logger.debug(f"Using direct request IP: {direct_address}")
    return direct_address or ""


def is_local_or_private_ip(ip: str) -> bool:
    """True for empty, loopback and private-range addresses."""
    if not ip:
        return True
    candidate = ip.strip()
    if candidate in LOOPBACK_ADDRESSES:
        return True

    try:
        address = ip_address(candidate)
    except ValueError:
        return False

    # ::ffff:10.0.0.1 and friends
    mapped = getattr(address, "ipv4_mapped", None)
    if mapped is not None:
        address = mapped
    if str(address) in LOOPBACK_ADDRESSES:
        return True
    return any(address in network for network in PRIVATE_NETWORKS)


class AttributionResolver:
    """Decide which country a visit is counted against.

    ``local_country`` is returned for loopback and private addresses so that
    local development produces data. Pass ``None`` to turn that off, in which
    case such requests fail with ``CountryUndetectable`` like any other miss.
    """

    def __init__(self, geo_lookup: CountryLookup, local_country: Optional[str] = DEFAULT_LOCAL_COUNTRY):
        self.geo_lookup = geo_lookup
        self.local_country = normalize_country_code(local_country) if local_country else None

    def resolve(
        self,
        explicit_code: Optional[str],
        headers: Mapping[str, HeaderValue],
        direct_address: str,
    ) -> str:
        """Return the normalized country code for a visit.

        Raises InvalidCountryCode for a malformed explicit code and
        CountryUndetectable when no code was given and the address does not
        resolve to a country.
        """
        if explicit_code is not None:
            return normalize_country_code(explicit_code)

        ip = extract_client_ip(headers, direct_address)
        country = self.country_for_ip(ip)
        if not country:
            raise CountryUndetectable()
        return country

    def country_for_ip(self, ip: str) -> Optional[str]:
        """Resolve an address to a country code; lookup errors count as a miss."""
        if is_local_or_private_ip(ip):
            if self.local_country:
                logger.debug(f"Local/private IP detected: {ip!r}, using default country '{self.local_country}'")
            else:
                logger.debug(f"Local/private IP detected: {ip!r}, no local default configured")
            return self.local_country

        try:
            country = self.geo_lookup.lookup(ip)
        except Exception as e:
            logger.error(f"Error looking up IP {ip}: {e}")
            return None

        if not country:
            return None
        return country.lower()
