"""GeoLite2 country lookups."""

import logging
import os
from typing import Optional

import geoip2.database
import geoip2.errors

logger = logging.getLogger(__name__)


class GeoIpDatabase:
    """In-process IP to country lookup backed by a MaxMind ``.mmdb`` file.

    Without a database file every lookup is a miss, which makes address-based
    attribution fail with ``CountryUndetectable`` for public addresses.
    """

    def __init__(self, reader=None):
        self._reader = reader

    @classmethod
    def open(cls, mmdb_path: Optional[str]) -> "GeoIpDatabase":
        """Open the database at ``mmdb_path``, or an empty one if it is missing."""
        if not mmdb_path:
            logger.warning("GEOIP_DB_PATH not set, IP attribution will only cover local addresses")
            return cls()
        if not os.path.exists(mmdb_path):
            logger.warning(f"GeoIP database not found at {mmdb_path}")
            return cls()
        reader = geoip2.database.Reader(mmdb_path)
        logger.info(f"Loaded GeoIP database {mmdb_path}")
        return cls(reader)

    @property
    def available(self) -> bool:
        return self._reader is not None

    def lookup(self, ip: str) -> Optional[str]:
        """Return the lowercase ISO 3166-1 alpha-2 code for ``ip``, or None.

        Unknown addresses are a miss. Malformed addresses raise ``ValueError``
        from the reader; callers treat that the same as a miss.
        """
        if self._reader is None:
            return None
        try:
            response = self._reader.country(ip)
        except geoip2.errors.AddressNotFoundError:
            logger.warning(f"No country found for IP: {ip}")
            return None

        iso_code = response.country.iso_code
        if not iso_code:
            logger.warning(f"No country found for IP: {ip}")
            return None
        country = iso_code.lower()
        logger.debug(f"IP {ip} resolved to country: {country}")
        return country

    def close(self):
        if self._reader is not None:
            self._reader.close()
            self._reader = None
