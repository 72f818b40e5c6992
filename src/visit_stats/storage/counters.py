"""Per-country visit counters stored in a Redis hash."""

import logging
from typing import Dict

from ..core.countries import normalize_country_code
from ..core.errors import StoreUnavailable
from .connection import RedisConnection

logger = logging.getLogger(__name__)

VISITS_KEY = "visits:by_country"


class VisitCounterStore:
    """Atomic visit counters keyed by country code.

    All counts live in one hash (``VISITS_KEY``); each field is a country
    code. Increments go through HINCRBY so concurrent writers never lose
    updates, and ``reset`` deletes the whole hash in one command.
    """

    def __init__(self, connection: RedisConnection, key: str = VISITS_KEY):
        self.connection = connection
        self.key = key

    async def increment(self, country_code: str) -> int:
        """Add one visit for ``country_code`` and return the new count.

        A retry after an unconfirmed failure may count the visit twice.
        """
        country = normalize_country_code(country_code)
        try:
            return int(await self.connection.execute(lambda client: client.hincrby(self.key, country, 1)))
        except StoreUnavailable as e:
            logger.error(f"Error incrementing visit for {country}: {e}")
            raise StoreUnavailable("Failed to update visit statistics") from e

    async def read_all(self) -> Dict[str, int]:
        """Return every tracked country with its count."""
        try:
            raw = await self.connection.execute(lambda client: client.hgetall(self.key))
        except StoreUnavailable as e:
            logger.error(f"Error fetching visit statistics: {e}")
            raise StoreUnavailable("Failed to retrieve visit statistics") from e

        stats = {}
        for country, count in (raw or {}).items():
            if isinstance(country, bytes):
                country = country.decode()
            stats[country] = int(count)
        return stats

    async def read_one(self, country_code: str) -> int:
        """Return the count for one country, 0 if it has no visits."""
        country = normalize_country_code(country_code)
        try:
            count = await self.connection.execute(lambda client: client.hget(self.key, country))
        except StoreUnavailable as e:
            logger.error(f"Error fetching stats for {country}: {e}")
            raise StoreUnavailable("Failed to retrieve country statistics") from e
        return int(count) if count else 0

    async def reset(self) -> bool:
        """Delete all counters."""
        try:
            await self.connection.execute(lambda client: client.delete(self.key))
        except StoreUnavailable as e:
            logger.error(f"Error resetting statistics: {e}")
            raise StoreUnavailable("Failed to reset statistics") from e
        logger.info(f"Visit statistics reset ({self.key})")
        return True
