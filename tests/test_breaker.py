import asyncio

from django.test import SimpleTestCase

from elections.breaker import CLOSED, HALF_OPEN, OPEN, CircuitBreaker

from .base import FakeClock


class FlakyRead:
    """Awaitable operation that fails until told otherwise."""

    def __init__(self, failing=True):
        self.failing = failing
        self.calls = 0

    async def __call__(self, key):
        self.calls += 1
        if self.failing:
            raise ConnectionError('database unavailable')
        return f'fresh:{key}'


class CircuitBreakerTests(SimpleTestCase):

    def setUp(self):
        self.clock = FakeClock()
        self.breaker = CircuitBreaker(
            name='test',
            fallback=lambda key: f'fallback:{key}',
            failure_threshold=3,
            reset_timeout=60,
            success_threshold=2,
            clock=self.clock,
        )

    async def test_passes_through_when_closed(self):
        read = FlakyRead(failing=False)

        self.assertEqual(await self.breaker.execute(read, 'settings'), 'fresh:settings')
        self.assertEqual(self.breaker.state, CLOSED)

    async def test_opens_after_threshold_and_skips_operation(self):
        read = FlakyRead()
        for _ in range(3):
            self.assertEqual(await self.breaker.execute(read, 'settings'), 'fallback:settings')
        self.assertEqual(self.breaker.state, OPEN)
        self.assertEqual(read.calls, 3)

        self.assertEqual(await self.breaker.execute(read, 'settings'), 'fallback:settings')
        self.assertEqual(read.calls, 3)

    async def test_success_resets_failure_count_when_closed(self):
        read = FlakyRead()
        await self.breaker.execute(read, 'k')
        await self.breaker.execute(read, 'k')
        read.failing = False
        await self.breaker.execute(read, 'k')
        read.failing = True
        await self.breaker.execute(read, 'k')

        self.assertEqual(self.breaker.state, CLOSED)

    async def test_half_open_closes_after_success_threshold(self):
        read = FlakyRead()
        for _ in range(3):
            await self.breaker.execute(read, 'k')
        self.clock.advance(61)
        read.failing = False

        self.assertEqual(await self.breaker.execute(read, 'k'), 'fresh:k')
        self.assertEqual(self.breaker.state, HALF_OPEN)
        self.assertEqual(await self.breaker.execute(read, 'k'), 'fresh:k')
        self.assertEqual(self.breaker.state, CLOSED)

    async def test_half_open_failure_reopens(self):
        read = FlakyRead()
        for _ in range(3):
            await self.breaker.execute(read, 'k')
        self.clock.advance(61)

        await self.breaker.execute(read, 'k')
        self.assertEqual(self.breaker.state, OPEN)
        self.assertEqual(read.calls, 4)

        self.clock.advance(30)
        await self.breaker.execute(read, 'k')
        self.assertEqual(read.calls, 4)

    async def test_timeout_counts_as_failure(self):
        async def hang(key):
            await asyncio.sleep(5)

        self.breaker.timeout = 0.01

        self.assertEqual(await self.breaker.execute(hang, 'k'), 'fallback:k')
        self.assertEqual(self.breaker.stats()['failures'], 1)

    async def test_async_fallback_is_awaited(self):
        async def fallback(key):
            return f'async-fallback:{key}'

        self.breaker.fallback = fallback
        self.assertEqual(await self.breaker.execute(FlakyRead(), 'k'), 'async-fallback:k')

    def test_reset_closes_circuit(self):
        for _ in range(3):
            self.breaker.record_failure()
        self.assertEqual(self.breaker.state, OPEN)
        self.assertFalse(self.breaker.allow_request())

        self.breaker.reset()

        self.assertEqual(self.breaker.state, CLOSED)
        self.assertTrue(self.breaker.allow_request())
