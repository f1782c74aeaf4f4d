import logging
import threading
import time
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel

from marketplace.exceptions import RateLimitExceededException
from marketplace.metrics import rate_limited_total

logger = logging.getLogger(__name__)


class RateLimitResult(BaseModel):
    allowed: bool
    remaining: int
    reset_at: datetime


class RateLimiter:
    """Fixed-window attempt counter keyed by an arbitrary string.

    State lives in process memory; a multi-process deployment gets one
    window per worker.
    """

    def __init__(self) -> None:
        self._windows: dict[str, tuple[int, float]] = {}
        self._lock = threading.Lock()
        self._next_sweep = 0.0

    def __len__(self) -> int:
        return len(self._windows)

    def _sweep(self, now: float, window_seconds: int) -> None:
        # Called with the lock held
        if now < self._next_sweep:
            return
        expired = [key for key, (_, reset) in self._windows.items() if reset <= now]
        for key in expired:
            del self._windows[key]
        self._next_sweep = now + window_seconds

    def check(
        self,
        key: str,
        max_attempts: int,
        window_seconds: int,
        now: Optional[float] = None,
    ) -> RateLimitResult:
        now = time.time() if now is None else now

        with self._lock:
            self._sweep(now, window_seconds)
            count, reset_time = self._windows.get(key, (0, 0.0))

            if reset_time <= now:
                reset_time = now + window_seconds
                self._windows[key] = (1, reset_time)
                return RateLimitResult(
                    allowed=True,
                    remaining=max_attempts - 1,
                    reset_at=datetime.fromtimestamp(reset_time, tz=timezone.utc),
                )

            if count >= max_attempts:
                logger.warning(
                    "Rate limit exceeded key=%s attempts=%s",
                    key,
                    count,
                    extra={"key": key, "attempts": count},
                )
                return RateLimitResult(
                    allowed=False,
                    remaining=0,
                    reset_at=datetime.fromtimestamp(reset_time, tz=timezone.utc),
                )

            count += 1
            self._windows[key] = (count, reset_time)
            return RateLimitResult(
                allowed=True,
                remaining=max_attempts - count,
                reset_at=datetime.fromtimestamp(reset_time, tz=timezone.utc),
            )

    def reset(self, key: str) -> None:
        with self._lock:
            self._windows.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._windows.clear()
            self._next_sweep = 0.0


rate_limiter = RateLimiter()


def enforce_rate_limit(
    action: str, key: str, max_attempts: int, window_seconds: int
) -> RateLimitResult:
    result = rate_limiter.check(key, max_attempts, window_seconds)
    if not result.allowed:
        rate_limited_total.labels(action=action).inc()
        raise RateLimitExceededException(action, key, result.reset_at)
    return result
