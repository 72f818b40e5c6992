"""Redis-backed counter storage."""

from .connection import ConnectionConfig, ConnectionState, RedisConnection, backoff_delay
from .counters import VISITS_KEY, VisitCounterStore

__all__ = [
    "ConnectionConfig",
    "ConnectionState",
    "RedisConnection",
    "backoff_delay",
    "VISITS_KEY",
    "VisitCounterStore",
]
