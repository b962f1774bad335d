"""
Resilient read path for election status and settings.

Request -> cache -> circuit breaker -> database. When the database read
fails or exceeds its time bound, the breaker's fallback serves the last
known value from the cache (even if expired) or the key's safe default.
These reads never raise to the caller.
"""

from dataclasses import dataclass
import logging

from asgiref.sync import sync_to_async

from .cache import ELECTION_STATUS_KEY, SETTINGS_KEY, default_election_status
from .models import Election, Setting

logger = logging.getLogger(__name__)


def no_election_status():
    """Inactive payload served when no election is current; voting days default to today."""
    return {**default_election_status(), 'title': 'No active election'}


@dataclass
class ReadResult:
    payload: dict
    source: str
    etag: str = None


class ElectionReadPath:
    """
    Cached, breaker-protected reads.

    Args:
        cache: CacheLayer shared with the write side
        status_breaker / settings_breaker: CircuitBreaker instances whose
            fallback is ``stale_or_default``
        synchronizer: SettingsSynchronizer used to enrich settings payloads
        status_ttl / settings_ttl: seconds a fresh read stays cached
    """

    def __init__(self, cache, status_breaker, settings_breaker, synchronizer, status_ttl=30, settings_ttl=600):
        self.cache = cache
        self.status_breaker = status_breaker
        self.settings_breaker = settings_breaker
        self.synchronizer = synchronizer
        self.status_ttl = status_ttl
        self.settings_ttl = settings_ttl

    def stale_or_default(self, key):
        """Breaker fallback: last cached value, even expired, else the safe default."""
        value = self.cache.get(key, allow_expired=True)
        if value is not None:
            return ReadResult(value, 'stale-cache')
        return ReadResult(self.cache.defaults[key](), 'default')

    async def _load_status(self, key):
        election = await Election.objects.filter(is_current=True).afirst()
        if election is None:
            return ReadResult(no_election_status(), 'no-election')
        return ReadResult(election.as_status_payload(), 'database')

    def _read_settings(self):
        setting = Setting.load()
        election = Election.objects.current()
        return self.synchronizer.pull_from_election(setting.as_dict(), election)

    async def _load_settings(self, key):
        payload = await sync_to_async(self._read_settings)()
        return ReadResult(payload, 'database')

    async def election_status(self):
        """Current election status payload; never raises."""
        cached = self.cache.get(ELECTION_STATUS_KEY)
        if cached is not None:
            return ReadResult(cached, 'cache')

        result = await self.status_breaker.execute(self._load_status, ELECTION_STATUS_KEY)
        if result.source == 'database':
            self.cache.set(ELECTION_STATUS_KEY, result.payload, ttl=self.status_ttl, source='database')
        return result

    async def settings(self, bypass_cache=False):
        """Settings payload with an ETag; ``bypass_cache`` forces a database read."""
        if not bypass_cache:
            cached = self.cache.get(SETTINGS_KEY)
            if cached is not None:
                return ReadResult(cached, 'cache', self._etag())

        result = await self.settings_breaker.execute(self._load_settings, SETTINGS_KEY)
        if result.source == 'database':
            self.cache.set(SETTINGS_KEY, result.payload, ttl=self.settings_ttl, source='database')
            result.etag = self._etag()
        return result

    def _etag(self):
        entry = self.cache.entry(SETTINGS_KEY)
        if entry is None:
            return None
        return f'"settings-{int(entry.created * 1000)}"'
