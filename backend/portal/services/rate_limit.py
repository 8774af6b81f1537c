from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from threading import Lock
import time

from fastapi import HTTPException, Request, status


@dataclass
class _Bucket:
    stamps: deque[float] = field(default_factory=deque)

    def prune(self, cutoff: float) -> None:
        while self.stamps and self.stamps[0] <= cutoff:
            self.stamps.popleft()


class AuthAttemptLimiter:
    """Sliding-window counter keyed by route scope, client address and account email."""

    def __init__(self) -> None:
        self._buckets: dict[tuple[str, str, str], _Bucket] = {}
        self._lock = Lock()

    def attempt(self, key: tuple[str, str, str], *, limit: int, window_seconds: int) -> int:
        """Record an attempt and return 0, or the seconds to wait when over ``limit``."""
        now = time.monotonic()
        with self._lock:
            bucket = self._buckets.setdefault(key, _Bucket())
            bucket.prune(now - window_seconds)
            if len(bucket.stamps) >= limit:
                return max(1, int(bucket.stamps[0] + window_seconds - now))
            bucket.stamps.append(now)
            return 0

    def reset(self) -> None:
        with self._lock:
            self._buckets.clear()


_limiter = AuthAttemptLimiter()


def client_address(request: Request) -> str:
    forwarded_for = request.headers.get("x-forwarded-for", "").split(",")[0].strip()
    if forwarded_for:
        return forwarded_for
    return request.client.host if request.client else "unknown"


def enforce_rate_limit(
    *,
    request: Request,
    scope: str,
    limit: int,
    window_seconds: int,
    identity: str | None = None,
) -> None:
    key = (scope, client_address(request), (identity or "").strip().lower())
    wait = _limiter.attempt(key, limit=max(1, limit), window_seconds=max(1, window_seconds))
    if wait:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"Too many attempts. Try again in {wait} second(s).",
            headers={"Retry-After": str(wait)},
        )


def clear_rate_limiter() -> None:
    _limiter.reset()
