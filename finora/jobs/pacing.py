"""
Pacing policies for the alerts tick.
The tick calls wait() between stocks to stay under the quote provider's rate limits.
"""
import time

from finora.config import ALERTS_TICK_DELAY_MS, ALERTS_TICK_RATE_PER_SECOND


class NoDelayPacer:
    def wait(self):
        return None


class FixedDelayPacer:
    """Sleeps a fixed delay on every call, however long the previous stock took."""

    def __init__(self, delay_ms=250, sleep=time.sleep):
        if delay_ms < 0:
            raise ValueError("delay_ms must be >= 0")
        self.delay_ms = delay_ms
        self._sleep = sleep

    def wait(self):
        if self.delay_ms:
            self._sleep(self.delay_ms / 1000.0)


class TokenBucketPacer:
    """
    Allows bursts up to `capacity` calls, refilling at `rate_per_second`.
    wait() only sleeps when the bucket is empty.
    """

    def __init__(self, rate_per_second, capacity=1, clock=time.monotonic, sleep=time.sleep):
        if rate_per_second <= 0:
            raise ValueError("rate_per_second must be > 0")
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.rate = float(rate_per_second)
        self.capacity = float(capacity)
        self._clock = clock
        self._sleep = sleep
        self._tokens = self.capacity
        self._updated = clock()

    def _refill(self):
        now = self._clock()
        self._tokens = min(self.capacity, self._tokens + (now - self._updated) * self.rate)
        self._updated = now

    def wait(self):
        self._refill()
        if self._tokens < 1:
            self._sleep((1 - self._tokens) / self.rate)
            self._refill()
        # never below zero, even if the clock lags the sleep
        self._tokens = max(0.0, self._tokens - 1)


def pacer_from_config():
    if ALERTS_TICK_RATE_PER_SECOND:
        return TokenBucketPacer(ALERTS_TICK_RATE_PER_SECOND)
    if ALERTS_TICK_DELAY_MS <= 0:
        return NoDelayPacer()
    return FixedDelayPacer(ALERTS_TICK_DELAY_MS)
