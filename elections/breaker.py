"""
Circuit breaker for database reads.

Wraps an awaitable read with CLOSED/OPEN/HALF_OPEN states and a fallback:
- CLOSED: calls pass through; consecutive failures are counted and reaching
  ``failure_threshold`` opens the circuit
- OPEN: calls go straight to the fallback until ``reset_timeout`` elapses
- HALF_OPEN: trial calls pass through; ``success_threshold`` consecutive
  successes close the circuit, a single failure reopens it

The breaker never retries. Its result is always a usable value: either the
operation's result or the fallback's.
"""

from dataclasses import dataclass, field
import asyncio
import inspect
import logging
import time

logger = logging.getLogger(__name__)

CLOSED = 'CLOSED'
OPEN = 'OPEN'
HALF_OPEN = 'HALF_OPEN'


@dataclass
class CircuitBreaker:
    name: str
    fallback: object
    failure_threshold: int = 3
    reset_timeout: float = 60
    success_threshold: int = 2
    timeout: float = None
    clock: object = time.monotonic
    state: str = CLOSED
    _failures: int = field(default=0, init=False)
    _successes: int = field(default=0, init=False)
    _opened_at: float = field(default=None, init=False)
    _last_failure: str = field(default=None, init=False)

    def _open(self, now):
        self.state = OPEN
        self._opened_at = now
        self._successes = 0
        logger.warning(f"Circuit {self.name} opened after {self._failures} failures")

    def _half_open(self):
        self.state = HALF_OPEN
        self._successes = 0
        logger.info(f"Circuit {self.name} half-open, allowing trial request")

    def _close(self):
        self.state = CLOSED
        self._failures = 0
        self._successes = 0
        self._opened_at = None
        logger.info(f"Circuit {self.name} closed")

    def allow_request(self):
        if self.state != OPEN:
            return True
        if self.clock() - self._opened_at >= self.reset_timeout:
            self._half_open()
            return True
        return False

    def record_failure(self, error=None):
        now = self.clock()
        self._failures += 1
        self._last_failure = str(error) if error else None
        if self.state == HALF_OPEN:
            self._open(now)
        elif self.state == CLOSED and self._failures >= self.failure_threshold:
            self._open(now)

    def record_success(self):
        if self.state == HALF_OPEN:
            self._successes += 1
            if self._successes >= self.success_threshold:
                self._close()
        else:
            self._failures = 0

    def reset(self):
        self._close()
        self._last_failure = None

    async def execute(self, operation, *args, **kwargs):
        """
        Run ``operation(*args, **kwargs)`` through the breaker.

        Args:
            operation: coroutine function performing the protected read
            *args, **kwargs: passed unchanged to the operation and, on
                failure or open circuit, to the fallback

        Returns:
            The operation's result, or the fallback's result
        """
        if not self.allow_request():
            logger.info(f"Circuit {self.name} open, using fallback")
            return await self._call_fallback(*args, **kwargs)

        try:
            if self.timeout:
                result = await asyncio.wait_for(operation(*args, **kwargs), timeout=self.timeout)
            else:
                result = await operation(*args, **kwargs)
        except Exception as e:
            logger.error(f"Circuit {self.name} operation failed: {e!r}")
            self.record_failure(e)
            return await self._call_fallback(*args, **kwargs)

        self.record_success()
        return result

    async def _call_fallback(self, *args, **kwargs):
        result = self.fallback(*args, **kwargs)
        if inspect.isawaitable(result):
            result = await result
        return result

    def stats(self):
        return {
            'name': self.name,
            'state': self.state,
            'failures': self._failures,
            'successes': self._successes,
            'failureThreshold': self.failure_threshold,
            'resetTimeout': self.reset_timeout,
            'successThreshold': self.success_threshold,
            'lastFailure': self._last_failure,
        }
