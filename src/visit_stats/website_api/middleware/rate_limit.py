"""Per-client request rate limiting."""

import logging
from datetime import datetime, timedelta
from typing import Dict, List

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..request_info import client_ip

logger = logging.getLogger(__name__)


class RateLimiter:
    """Simple in-memory sliding-window rate limiter."""

    def __init__(self, window_seconds: int = 60):
        self.requests: Dict[str, List[datetime]] = {}
        self.window_seconds = window_seconds

    def _recent(self, key: str, now: datetime) -> List[datetime]:
        window_start = now - timedelta(seconds=self.window_seconds)
        return [t for t in self.requests.get(key, []) if t > window_start]

    def is_allowed(self, key: str, limit: int) -> bool:
        """Check if request is allowed under rate limit, recording it if so."""
        now = datetime.now()
        recent = self._recent(key, now)

        if len(recent) >= limit:
            self.requests[key] = recent
            return False

        recent.append(now)
        self.requests[key] = recent
        return True

    def get_remaining(self, key: str, limit: int) -> int:
        """Get remaining requests in window."""
        return max(0, limit - len(self._recent(key, datetime.now())))

    def prune(self):
        """Forget clients with no requests in the current window."""
        now = datetime.now()
        for key in list(self.requests):
            recent = self._recent(key, now)
            if recent:
                self.requests[key] = recent
            else:
                del self.requests[key]


def install_rate_limit(app: FastAPI, limit: int, window_seconds: int = 60) -> RateLimiter:
    """Reject clients exceeding ``limit`` requests per window with 429."""
    limiter = RateLimiter(window_seconds)
    prune_every = max(limit, 100)
    seen = 0

    @app.middleware("http")
    async def rate_limit(request: Request, call_next):
        nonlocal seen
        seen += 1
        if seen % prune_every == 0:
            limiter.prune()

        key = client_ip(request) or "anonymous"
        if not limiter.is_allowed(key, limit):
            logger.warning(f"Rate limit exceeded for {key}")
            return JSONResponse(
                status_code=429,
                content={
                    "detail": {
                        "success": False,
                        "error": "rate_limited",
                        "detail": f"Too many requests. Limit: {limit}/minute",
                    }
                },
            )
        return await call_next(request)

    return limiter
