from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict


@dataclass
class TokenBucket:
    """capacity tokens, refilled at refill_rate per second; one token per request."""

    capacity: float
    refill_rate: float
    tokens: float
    last_refill: float


class RateLimiter:
    def __init__(self, *, now: Callable[[], float] = time.monotonic) -> None:
        self._lock = threading.Lock()
        self._buckets: Dict[str, TokenBucket] = {}
        self.now = now

    def allow(self, key: str, *, per_minute: int) -> bool:
        now = self.now()
        cap = float(max(1, int(per_minute)))
        with self._lock:
            b = self._buckets.get(key)
            if b is None:
                b = self._buckets[key] = TokenBucket(capacity=cap, refill_rate=cap / 60.0, tokens=cap, last_refill=now)
            b.tokens = min(b.capacity, b.tokens + max(0.0, now - b.last_refill) * b.refill_rate)
            b.last_refill = now
            if b.tokens < 1.0:
                return False
            b.tokens -= 1.0
            return True
