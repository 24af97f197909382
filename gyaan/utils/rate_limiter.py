"""
Rate limiting for API endpoints
"""
import re
import time
from collections import defaultdict, deque
from fastapi import Request, HTTPException
from typing import Callable, Deque, Dict, List, Optional, Tuple
import logging

from gyaan.config import settings

logger = logging.getLogger(__name__)

# Paths that carry the acting user's id
USER_PATH = re.compile(
    r"^/api/(?:users|study-time|quiz-stats)/(?P<user_id>[0-9a-fA-F-]{32,36})(?:/|$)"
)

EXEMPT_PATHS = {"/health", "/docs", "/redoc", "/openapi.json"}

SWEEP_INTERVAL = 60


class RateLimiter:
    """
    In-memory sliding-window rate limiter

    Requests naming a user id in the path count against that user's budget,
    so tabs behind one NAT do not share it. Every request also counts against
    its IP address, whose budget is users_per_ip times larger; cycling user
    ids does not escape it.
    """

    def __init__(
        self,
        requests_per_minute: int = 60,
        requests_per_hour: int = 1000,
        users_per_ip: int = 10,
        clock: Callable[[], float] = time.time
    ):
        self.requests_per_minute = requests_per_minute
        self.requests_per_hour = requests_per_hour
        self.users_per_ip = users_per_ip
        self.clock = clock

        # {client_id: timestamps of requests within the last hour}
        self.history: Dict[str, Deque[float]] = defaultdict(deque)
        self._last_sweep = 0.0

    def _get_client_ids(self, request: Request) -> List[Tuple[str, int]]:
        """Client identifiers for the request with their budget multiplier"""
        client_ip = request.client.host if request.client else "unknown"

        match = USER_PATH.match(request.url.path)
        if match:
            return [
                (f"user:{match.group('user_id').lower()}", 1),
                (f"ip:{client_ip}", self.users_per_ip),
            ]
        return [(f"ip:{client_ip}", 1)]

    def _retry_after(self, window: Deque[float], now: float, factor: int) -> Optional[int]:
        """Seconds until the client may send again, or None if within limits"""
        minute_ago = now - 60
        in_last_minute = sum(1 for ts in window if ts > minute_ago)

        if in_last_minute >= self.requests_per_minute * factor:
            return 60
        if len(window) >= self.requests_per_hour * factor:
            return 3600
        return None

    def _sweep(self, now: float) -> None:
        """Drop clients with no requests in the last hour"""
        hour_ago = now - 3600
        stale = [cid for cid, window in self.history.items() if not window or window[-1] <= hour_ago]
        for client_id in stale:
            del self.history[client_id]
        self._last_sweep = now
        if stale:
            logger.debug(f"Rate limiter dropped {len(stale)} idle clients")

    async def check_rate_limit(self, request: Request) -> None:
        """
        Check if request exceeds rate limits

        Raises:
            HTTPException: 429 if rate limit exceeded
        """
        if request.url.path in EXEMPT_PATHS:
            return

        now = self.clock()
        if now - self._last_sweep >= SWEEP_INTERVAL:
            self._sweep(now)

        client_ids = self._get_client_ids(request)
        windows = []
        for client_id, factor in client_ids:
            window = self.history[client_id]
            while window and window[0] <= now - 3600:
                window.popleft()

            retry_after = self._retry_after(window, now, factor)
            if retry_after is not None:
                limit = (
                    f"{self.requests_per_minute * factor} requests per minute"
                    if retry_after == 60
                    else f"{self.requests_per_hour * factor} requests per hour"
                )
                logger.warning(f"Rate limit exceeded: {client_id} ({limit})")
                raise HTTPException(
                    status_code=429,
                    detail={
                        "error": "rate_limit_exceeded",
                        "message": f"Too many requests. Limit: {limit}",
                        "retry_after": retry_after
                    }
                )
            windows.append(window)

        for window in windows:
            window.append(now)
        logger.debug(f"Rate limit check passed: {client_ids[0][0]}")

    @property
    def client_count(self) -> int:
        return len(self.history)


# Global instance
rate_limiter = RateLimiter(
    requests_per_minute=settings.RATE_LIMIT_PER_MINUTE,
    requests_per_hour=settings.RATE_LIMIT_PER_HOUR,
    users_per_ip=settings.RATE_LIMIT_USERS_PER_IP
)
