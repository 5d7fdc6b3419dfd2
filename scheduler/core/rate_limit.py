"""
In-memory sliding-window rate limiting for unauthenticated endpoints.

Counts live in this process only; put a shared limiter in front of the app
when running more than one worker.
"""

import logging
import time
from collections import deque
from threading import Lock
from typing import Callable

from fastapi import HTTPException, Request, status

from scheduler.core import config

logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = 'Too many requests from this IP, please try again later.'


def client_ip(request: Request) -> str:
    forwarded = request.headers.get('x-forwarded-for') if config.TRUST_PROXY_HEADERS else None
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.client.host if request.client else 'anonymous'


class RateLimiter:
    def __init__(
        self,
        max_requests: int,
        window_seconds: int,
        key_func: Callable[[Request], str] = client_ip,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.key_func = key_func
        self.clock = clock
        self._hits: dict[str, deque[float]] = {}
        self._lock = Lock()

    def hit(self, key: str) -> int:
        """Record a request for ``key`` and return how many remain in the window."""
        now = self.clock()
        window_start = now - self.window_seconds

        with self._lock:
            hits = self._hits.setdefault(key, deque())
            while hits and hits[0] <= window_start:
                hits.popleft()

            if len(hits) >= self.max_requests:
                logger.warning('Rate limit exceeded for %s', key)
                raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=RATE_LIMIT_MESSAGE)

            hits.append(now)
            self._prune(window_start)
            return self.max_requests - len(hits)

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()

    def _prune(self, window_start: float) -> None:
        stale = [key for key, hits in self._hits.items() if not hits or hits[-1] <= window_start]
        for key in stale:
            del self._hits[key]

    def __call__(self, request: Request) -> None:
        self.hit(self.key_func(request))
