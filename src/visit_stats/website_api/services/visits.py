"""Visit service used by the API routes."""

from dataclasses import dataclass
from typing import Dict, Mapping, Optional

from ...core.attribution import AttributionResolver, HeaderValue
from ...core.countries import normalize_country_code
from ...storage.counters import VisitCounterStore


@dataclass
class VisitRecord:
    """A country and its visit count."""
    country: str
    count: int


class VisitService:
    """Ties country attribution to the counter store."""

    def __init__(self, resolver: AttributionResolver, store: VisitCounterStore):
        self.resolver = resolver
        self.store = store

    async def record_visit(
        self,
        country: Optional[str],
        headers: Mapping[str, HeaderValue],
        direct_address: str,
    ) -> VisitRecord:
        resolved = self.resolver.resolve(country, headers, direct_address)
        count = await self.store.increment(resolved)
        return VisitRecord(country=resolved, count=count)

    async def get_all_stats(self) -> Dict[str, int]:
        return await self.store.read_all()

    async def get_country_stats(self, country: str) -> VisitRecord:
        code = normalize_country_code(country)
        count = await self.store.read_one(code)
        return VisitRecord(country=code, count=count)

    async def reset_stats(self) -> bool:
        return await self.store.reset()
