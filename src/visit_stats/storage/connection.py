"""Process-wide Redis connection with bounded reconnection.

The connection moves through an explicit state machine::

    DISCONNECTED -> CONNECTING -> READY -> RECONNECTING -> READY
                                                       \\-> FAILED

Every command is bounded by ``command_timeout`` and counted against
``max_pending``. Commands issued while the connection is (re)connecting wait
for the attempt to settle within their timeout. Once reconnection attempts
are exhausted the connection is FAILED: waiting and new commands fail
immediately and start a new reconnection cycle in the background.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, TypeVar

import redis.asyncio as redis
from redis.asyncio.retry import Retry
from redis.backoff import NoBackoff
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from ..core.errors import StoreUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Errors that mean the link is gone rather than the command being rejected.
CONNECTION_ERRORS = (RedisConnectionError, RedisTimeoutError, OSError)


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    READY = "ready"
    RECONNECTING = "reconnecting"
    FAILED = "failed"


@dataclass
class ConnectionConfig:
    """Redis location, timeouts (seconds) and reconnection policy."""
    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None
    connect_timeout: float = 10.0
    command_timeout: float = 5.0
    max_retries: int = 3
    max_pending: int = 1000
    backoff_base: float = 0.05
    backoff_max: float = 3.0


def backoff_delay(attempt: int, base: float, cap: float) -> float:
    """Delay before reconnection ``attempt`` (1-based): doubles up to ``cap``."""
    if attempt < 1:
        return 0.0
    return min(base * (2 ** (attempt - 1)), cap)


def create_redis_client(config: ConnectionConfig) -> redis.Redis:
    # Retries are owned by RedisConnection, not by the client.
    return redis.Redis(
        host=config.host,
        port=config.port,
        db=config.db,
        password=config.password,
        socket_connect_timeout=config.connect_timeout,
        socket_timeout=config.command_timeout,
        decode_responses=True,
        retry=Retry(NoBackoff(), 0),
    )


class RedisConnection:
    """Owns the Redis client and runs commands against it."""

    def __init__(
        self,
        config: Optional[ConnectionConfig] = None,
        client_factory: Optional[Callable[[ConnectionConfig], Any]] = None,
    ):
        self.config = config or ConnectionConfig()
        self._client_factory = client_factory or create_redis_client
        self._client = None
        self._state = ConnectionState.DISCONNECTED
        # Set while the state is READY, FAILED or DISCONNECTED.
        self._settled = asyncio.Event()
        self._pending = 0
        self._reconnect_task: Optional[asyncio.Task] = None

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def pending(self) -> int:
        return self._pending

    def is_connected(self) -> bool:
        return self._state is ConnectionState.READY

    def _set_state(self, state: ConnectionState):
        if state is not self._state:
            logger.info(f"Redis connection {self._state.value} -> {state.value}")
        self._state = state
        if state in (ConnectionState.CONNECTING, ConnectionState.RECONNECTING):
            self._settled.clear()
        else:
            self._settled.set()

    async def connect(self) -> bool:
        """Open the connection, retrying with backoff.

        Returns False when every attempt failed; the connection is then in the
        FAILED state and commands raise StoreUnavailable until a later
        reconnection succeeds.
        """
        if self._client is None:
            self._client = self._client_factory(self.config)
        self._set_state(ConnectionState.CONNECTING)
        return await self._establish()

    async def _establish(self) -> bool:
        max_retries = self.config.max_retries
        for attempt in range(max_retries + 1):
            if attempt:
                delay = backoff_delay(attempt, self.config.backoff_base, self.config.backoff_max)
                logger.info(f"Redis reconnection attempt {attempt}/{max_retries}, waiting {delay * 1000:.0f}ms")
                await asyncio.sleep(delay)
            try:
                await asyncio.wait_for(self._client.ping(), timeout=self.config.connect_timeout)
            except (RedisError, OSError, asyncio.TimeoutError) as e:
                logger.warning(f"Redis connection attempt failed: {e!r}")
                continue
            self._set_state(ConnectionState.READY)
            return True

        logger.error(f"Redis max reconnection attempts ({max_retries}) exceeded")
        self._set_state(ConnectionState.FAILED)
        return False

    def _schedule_reconnect(self):
        if self._state is ConnectionState.DISCONNECTED:
            return
        if self._reconnect_task is not None and not self._reconnect_task.done():
            return
        self._set_state(ConnectionState.RECONNECTING)
        self._reconnect_task = asyncio.get_running_loop().create_task(self._establish())

    async def execute(self, command: Callable[[Any], Awaitable[T]]) -> T:
        """Run ``command(client)`` within the timeout and queue limits.

        Every failure is raised as StoreUnavailable with the underlying error
        chained as its cause.
        """
        if self._state is ConnectionState.DISCONNECTED:
            raise StoreUnavailable("Redis client is not connected")
        if self._state is ConnectionState.FAILED:
            self._schedule_reconnect()
            raise StoreUnavailable("Redis connection failed, reconnecting")
        if self._pending >= self.config.max_pending:
            raise StoreUnavailable(f"Redis command queue is full ({self.config.max_pending} pending)")

        self._pending += 1
        try:
            return await asyncio.wait_for(self._run(command), timeout=self.config.command_timeout)
        except asyncio.TimeoutError as e:
            raise StoreUnavailable("Redis command timed out") from e
        finally:
            self._pending -= 1

    async def _run(self, command: Callable[[Any], Awaitable[T]]) -> T:
        await self._settled.wait()
        if self._state is ConnectionState.DISCONNECTED:
            raise StoreUnavailable("Redis client is not connected")
        if self._state is not ConnectionState.READY:
            # FAILED, or already reconnecting after an earlier waiter saw FAILED
            self._schedule_reconnect()
            raise StoreUnavailable("Redis connection failed, reconnecting")
        try:
            return await command(self._client)
        except CONNECTION_ERRORS as e:
            logger.error(f"Redis connection lost: {e!r}")
            self._schedule_reconnect()
            raise StoreUnavailable("Lost connection to Redis") from e
        except RedisError as e:
            raise StoreUnavailable("Redis rejected the command") from e

    async def close(self):
        """Stop reconnecting and close the client."""
        task = self._reconnect_task
        self._reconnect_task = None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        self._set_state(ConnectionState.DISCONNECTED)
        if self._client is not None:
            client = self._client
            self._client = None
            await client.aclose()
            logger.info("Redis disconnected")

    async def __aenter__(self) -> "RedisConnection":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()
