"""
Rate limiting for Discord prefix commands.

Simple in-memory sliding windows keyed by user and command.
"""

import time
import asyncio
from functools import wraps
from collections import deque
import logging

from matchbot.config import Config

logger = logging.getLogger(__name__)

CLEANUP_INTERVAL_SECONDS = 60


class SimpleRateLimiter:
    """In-memory rate limiter for Discord commands.

    Note: history lives in process memory, so limits apply per bot instance.
    At most once per cleanup interval, keys whose window has fully elapsed
    are dropped so idle users do not accumulate.
    """

    def __init__(self, clock=time.time, cleanup_interval: float = CLEANUP_INTERVAL_SECONDS):
        self._requests = {}
        self._windows = {}
        self._lock = asyncio.Lock()
        self._clock = clock
        self._cleanup_interval = cleanup_interval
        self._last_cleanup = clock()

    def _drop_idle(self, now: float):
        idle = [
            key for key, history in self._requests.items()
            if not history or history[-1] < now - self._windows[key]
        ]
        for key in idle:
            del self._requests[key]
            del self._windows[key]
        if idle:
            logger.debug(f"Dropped {len(idle)} idle rate limit keys")
        self._last_cleanup = now

    def tracked_keys(self) -> int:
        return len(self._requests)

    async def is_allowed(self, user_id: int, command: str, limit: int, window: int) -> bool:
        """Check if user can execute command within rate limit."""
        if limit <= 0 or window <= 0:
            return False

        key = f"{user_id}:{command}"
        now = self._clock()

        async with self._lock:
            if now - self._last_cleanup >= self._cleanup_interval:
                self._drop_idle(now)

            history = self._requests.setdefault(key, deque())
            self._windows[key] = window
            while history and history[0] < now - window:
                history.popleft()

            if len(history) < limit:
                history.append(now)
                return True

            logger.info(f"Rate limit hit for user {user_id} on {command}")
            return False


def rate_limit(command: str, limit: int = 1, window: int = 60):
    """Decorator for rate limiting prefix commands inside a Cog."""
    def decorator(func):
        @wraps(func)
        async def wrapper(self, ctx, *args, **kwargs):
            rate_limiter = self.bot.rate_limiter

            # Bot owner bypasses rate limits
            if ctx.author.id == Config.OWNER_DISCORD_ID:
                return await func(self, ctx, *args, **kwargs)

            if not await rate_limiter.is_allowed(ctx.author.id, command, limit, window):
                await ctx.send(
                    f"⏰ Rate limit exceeded. Please wait before using `{Config.COMMAND_PREFIX}{command}` again."
                )
                return

            return await func(self, ctx, *args, **kwargs)
        return wrapper
    return decorator
