"""
Per-IP sliding-window rate limiter for the AI proxy endpoint.
"""
import logging
import math
import threading
import time
from collections import defaultdict
from typing import Dict, List
from fastapi import Request

from lunaxcode.llm.errors import AIProviderError

logger = logging.getLogger(__name__)

MINUTE = 60
HOUR = 60 * 60
CLEANUP_INTERVAL = 5 * MINUTE


def get_client_ip(request: Request) -> str:
    """Extract client IP address from request."""
    cf_ip = request.headers.get("CF-Connecting-IP")
    if cf_ip:
        return cf_ip

    # Check for forwarded IP (from proxy/load balancer)
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # Take the first IP in the chain
        return forwarded.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    if request.client:
        return request.client.host

    return "unknown"


class SlidingWindowRateLimiter:
    """
    Allows `per_minute` requests in any 60s window and `per_hour` in any hour.

    State lives on the instance (one per app), so it resets on restart and is
    not shared between worker processes. IPs idle for an hour are forgotten by a
    sweep that `check` runs at most every five minutes.
    """

    def __init__(self, per_minute: int = 20, per_hour: int = 100, clock=time.monotonic):
        self.per_minute = per_minute
        self.per_hour = per_hour
        self._clock = clock
        self._lock = threading.Lock()
        self._requests: Dict[str, List[float]] = defaultdict(list)
        self._last_sweep = clock()

    @property
    def tracked_ips(self) -> int:
        with self._lock:
            return len(self._requests)

    def check(self, ip: str) -> None:
        """
        Record one request for ip.

        Raises:
            AIProviderError: RATE_LIMIT_EXCEEDED (429) with the retry delay in details
        """
        now = self._clock()
        with self._lock:
            if now - self._last_sweep >= CLEANUP_INTERVAL:
                self._sweep(now)

            recent = [t for t in self._requests[ip] if now - t < HOUR]

            if len(recent) >= self.per_hour:
                self._requests[ip] = recent
                self._reject(ip, min(recent) + HOUR - now)

            last_minute = [t for t in recent if now - t < MINUTE]
            if len(last_minute) >= self.per_minute:
                self._requests[ip] = recent
                self._reject(ip, min(last_minute) + MINUTE - now)

            recent.append(now)
            self._requests[ip] = recent

    def _reject(self, ip: str, wait: float) -> None:
        retry_after = max(1, math.ceil(wait))
        logger.warning(f"Rate limit exceeded for IP: {ip} (retry in {retry_after}s)")
        raise AIProviderError(
            "RATE_LIMIT_EXCEEDED",
            f"Rate limit exceeded. Please try again in {retry_after} seconds.",
            429,
            details=f"Retry-After: {retry_after}s",
        )

    def _sweep(self, now: float) -> None:
        # caller holds self._lock
        stale = [ip for ip, times in self._requests.items() if all(now - t >= HOUR for t in times)]
        for ip in stale:
            del self._requests[ip]
        self._last_sweep = now
        if stale:
            logger.debug(f"Rate limiter dropped {len(stale)} idle IPs")

    def cleanup(self) -> None:
        """Forget IPs with no request in the last hour."""
        now = self._clock()
        with self._lock:
            self._sweep(now)

    def enforce(self, request: Request) -> None:
        self.check(get_client_ip(request))
