"""
Redis Rate Limiter.
Fixed-window request counters keyed by client IP and route, with graceful
degradation: when Redis is down every request is allowed.
"""

import logging
import time
from typing import Optional, Tuple

import redis
from redis.exceptions import RedisError, ConnectionError, TimeoutError
from flask import Flask

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Redis-based fixed-window rate limiter.

    Keys pattern: {prefix}:rl:{route}:{client_ip}:{window_start}
    """

    def __init__(self, app: Optional[Flask] = None, client: Optional[redis.Redis] = None):
        """Initialize rate limiter."""
        self.client: Optional[redis.Redis] = client
        self._enabled: bool = client is not None
        self._prefix: str = "storefront"

        if app:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        """Initialize Redis client from Flask app config."""
        self._enabled = app.config.get('RATE_LIMIT_ENABLED', True)
        self._prefix = app.config.get('RATE_LIMIT_KEY_PREFIX', 'storefront')
        redis_url = app.config.get('REDIS_URL', 'redis://redis:6379/0')

        if not self._enabled:
            logger.info("[RATE] Rate limiting is DISABLED via config")
            return

        if self.client is not None:
            return

        try:
            self.client = redis.from_url(
                redis_url,
                decode_responses=True,
                socket_connect_timeout=3,
                socket_timeout=3,
                socket_keepalive=True,
                max_connections=50,
                retry_on_timeout=True,
                health_check_interval=30
            )
            self.client.ping()
            logger.info(f"[RATE] Redis connected: {redis_url}")
        except (ConnectionError, TimeoutError, RedisError) as e:
            logger.warning(f"[RATE] Redis connection failed: {e}. Rate limiting DISABLED.")
            self._enabled = False
            self.client = None

    @property
    def enabled(self) -> bool:
        return self._enabled and self.client is not None

    def _build_key(self, route: str, client_ip: str, window_start: int) -> str:
        """Build per-route, per-client window key."""
        return f"{self._prefix}:rl:{route}:{client_ip}:{window_start}"

    def hit(self, route: str, client_ip: str, limit: int, window: int,
            now: Optional[float] = None) -> Tuple[bool, int]:
        """
        Count one request in the current window.

        Returns:
            (allowed, retry_after_seconds). Fails open on Redis errors.
        """
        if not self.enabled or limit <= 0:
            return True, 0

        now = time.time() if now is None else now
        window_start = int(now // window) * window
        retry_after = max(1, int(window_start + window - now))
        key = self._build_key(route, client_ip, window_start)

        try:
            pipeline = self.client.pipeline()
            pipeline.incr(key)
            pipeline.expire(key, window + 1)
            count, _ = pipeline.execute()
        except RedisError as e:
            logger.warning(f"[RATE] Counter error, allowing request: {e}")
            return True, 0

        if int(count) > limit:
            logger.warning(f"[RATE] Limit exceeded route={route} ip={client_ip} count={count}/{limit}")
            return False, retry_after
        return True, 0


_rate_limiter: Optional[RateLimiter] = None


def init_rate_limiter(app: Flask) -> None:
    """Initialize rate limiter singleton."""
    global _rate_limiter
    _rate_limiter = RateLimiter(app)
    if not hasattr(app, 'extensions'):
        app.extensions = {}
    app.extensions['rate_limiter'] = _rate_limiter


def get_rate_limiter() -> RateLimiter:
    """Get rate limiter instance."""
    if _rate_limiter is None:
        raise RuntimeError("Rate limiter not initialized.")
    return _rate_limiter
