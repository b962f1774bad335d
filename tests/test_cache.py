from django.test import SimpleTestCase

from elections.cache import ELECTION_STATUS_KEY, SETTINGS_KEY, CacheLayer

from .base import FakeClock


class CacheLayerTests(SimpleTestCase):

    def setUp(self):
        self.clock = FakeClock()
        self.cache = CacheLayer(sweep_interval=0, clock=self.clock)

    def test_expired_entry_is_a_miss(self):
        self.cache.set('status', {'isActive': True}, ttl=0.1)
        self.clock.advance(0.15)

        self.assertIsNone(self.cache.get('status'))

    def test_expired_entry_served_stale_when_allowed(self):
        self.cache.set('status', {'isActive': True}, ttl=0.1)
        self.clock.advance(0.15)

        value = self.cache.get('status', allow_expired=True)

        self.assertEqual(value, {'isActive': True})
        self.assertTrue(self.cache.entry('status').is_stale)

    def test_fresh_entry_is_returned_and_counted(self):
        self.cache.set('status', 'value', ttl=10, source='database')

        self.assertEqual(self.cache.get('status'), 'value')
        entry = self.cache.entry('status')
        self.assertEqual(entry.hits, 1)
        self.assertEqual(entry.source, 'database')
        self.assertFalse(entry.is_stale)

    def test_zero_ttl_never_expires(self):
        self.cache.set('forever', 42, ttl=0)
        self.clock.advance(10 ** 6)

        self.assertEqual(self.cache.get('forever'), 42)

    def test_none_replaced_by_key_default(self):
        self.assertTrue(self.cache.set(ELECTION_STATUS_KEY, None))

        status = self.cache.get(ELECTION_STATUS_KEY)
        self.assertFalse(status['isActive'])
        self.assertEqual(status['startTime'], '08:00:00')
        self.assertEqual(self.cache.entry(ELECTION_STATUS_KEY).source, 'default')

        self.cache.set(SETTINGS_KEY, None)
        self.assertEqual(self.cache.get(SETTINGS_KEY)['maxVotesPerVoter'], 1)

    def test_none_without_default_is_rejected(self):
        self.assertFalse(self.cache.set('other', None))
        self.assertIsNone(self.cache.get('other'))

    def test_invalidate_removes_entry(self):
        self.cache.set('status', 'value')

        self.assertTrue(self.cache.invalidate('status'))
        self.assertIsNone(self.cache.get('status'))
        self.assertFalse(self.cache.invalidate('status'))

    def test_sweep_removes_only_expired(self):
        self.cache.set('short', 1, ttl=1)
        self.cache.set('long', 2, ttl=100)
        self.clock.advance(5)

        self.assertEqual(self.cache.sweep(), 1)
        self.assertIsNone(self.cache.entry('short'))
        self.assertIsNotNone(self.cache.entry('long'))

    def test_stats(self):
        self.cache.set('a', 1)
        self.cache.get('a')
        self.cache.get('missing')

        stats = self.cache.stats()
        self.assertEqual(stats['hits'], 1)
        self.assertEqual(stats['misses'], 1)
        self.assertEqual(stats['totalRequests'], 2)
        self.assertEqual(stats['hitRate'], '50.00%')
        self.assertEqual(stats['itemCount'], 1)
        self.assertEqual(stats['keys'], ['a'])

        self.cache.reset_stats()
        self.assertEqual(self.cache.stats()['totalRequests'], 0)
        self.assertEqual(self.cache.stats()['hitRate'], '0%')

    def test_clear(self):
        self.cache.set('a', 1)
        self.cache.set('b', 2)
        self.cache.clear()

        self.assertEqual(self.cache.stats()['itemCount'], 0)

    def test_start_is_noop_when_sweeping_disabled(self):
        self.cache.start()
        self.assertIsNone(self.cache._sweeper)
        self.cache.stop()
