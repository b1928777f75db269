"""
Process-wide request throttle.

One shared budget for the whole server, regardless of credential or client
address. Every admitted request counts, including ones later refused for a
bad API key.

The budget is a moving window of `limit` hits per `interval` seconds, not a
refilling bucket: capacity comes back one hit at a time, `interval` seconds
after each admitted hit.
"""

import logging

from limits import RateLimitItemPerSecond
from limits.storage import MemoryStorage
from limits.strategies import MovingWindowRateLimiter

from warp_server.errors import WarpError

logger = logging.getLogger(__name__)

GLOBAL_BUCKET = "warp-global"


class RateGate:
    """Moving-window limiter shared by every request."""

    def __init__(self, limit: int, interval: int = 60):
        self.limit = limit
        self.interval = interval
        self._item = RateLimitItemPerSecond(limit, interval)
        self._storage = MemoryStorage()
        self._limiter = MovingWindowRateLimiter(self._storage)

    def admit(self) -> bool:
        """Consume one unit of the budget; False when it is exhausted"""
        return self._limiter.hit(self._item, GLOBAL_BUCKET)

    def hit(self) -> None:
        if not self.admit():
            logger.warning("Request throttled (%d per %ds exhausted)", self.limit, self.interval)
            raise WarpError(WarpError.Code.TooManyRequests, "Too many requests")

    def reset(self) -> None:
        self._storage.reset()
