"""
In-process cache for election and settings reads
================================================

A small key/value store with:
- Per-entry TTL in seconds (0 means the entry never expires)
- Stale reads: ``get(key, allow_expired=True)`` returns an expired value
  and flags the entry as stale, for use as a fallback when the database
  is unavailable
- Per-key safe defaults substituted for ``None`` values, so an empty
  database result is never cached
- Hit/miss statistics and an optional background sweeper thread

The cache is never the source of truth: every value it holds can be
rebuilt from the database.
"""

from dataclasses import dataclass, field
from datetime import timedelta
import logging
import threading
import time

from django.utils import timezone  # pyright: ignore[reportMissingModuleSource]

logger = logging.getLogger(__name__)

ELECTION_STATUS_KEY = 'electionStatus'
SETTINGS_KEY = 'settings'


def default_election_status():
    """Inactive placeholder returned when no election status can be read."""
    today = timezone.localdate().isoformat()
    return {
        'title': 'Default Election',
        'isActive': False,
        'status': 'not-started',
        'date': today,
        'startDate': today,
        'endDate': today,
        'startTime': '08:00:00',
        'endTime': '17:00:00',
        'resultsPublished': False,
        'votingStartDate': today,
        'votingEndDate': today,
        'votingStartTime': '08:00',
        'votingEndTime': '17:00',
    }


def default_settings_payload():
    """Settings payload matching a freshly seeded settings row."""
    today = timezone.localdate()
    return {
        'isActive': False,
        'electionTitle': 'Student Council Election 2025',
        'votingStartDate': today.isoformat(),
        'votingEndDate': (today + timedelta(days=7)).isoformat(),
        'votingStartTime': '08:00',
        'votingEndTime': '17:00',
        'resultsPublished': False,
        'allowVoterRegistration': False,
        'requireEmailVerification': True,
        'maxVotesPerVoter': 1,
        'systemName': 'Peki Senior High School Elections',
        'systemLogo': '',
        'companyName': '',
        'companyLogo': '',
        'schoolName': '',
        'schoolLogo': '',
    }


DEFAULT_FACTORIES = {
    ELECTION_STATUS_KEY: default_election_status,
    SETTINGS_KEY: default_settings_payload,
}


@dataclass
class CacheEntry:
    value: object
    created: float
    last_accessed: float
    expiry: float = 0
    source: str = 'unknown'
    hits: int = 0
    is_stale: bool = False

    def expired(self, now):
        return bool(self.expiry) and now > self.expiry


@dataclass
class CacheLayer:
    """
    Process-wide key/value cache.

    Args:
        defaults: key -> zero-argument factory producing the safe default
            used in place of a ``None`` value
        sweep_interval: seconds between background sweeps (0 disables)
        clock: returns the current time in seconds; injectable for tests
    """

    defaults: dict = field(default_factory=lambda: dict(DEFAULT_FACTORIES))
    sweep_interval: float = 300
    clock: object = time.time
    _entries: dict = field(default_factory=dict, init=False, repr=False)
    _stats: dict = field(default_factory=dict, init=False, repr=False)
    _stop_event: threading.Event = field(default_factory=threading.Event, init=False, repr=False)
    _sweeper: threading.Thread = field(default=None, init=False, repr=False)

    def __post_init__(self):
        self.reset_stats()

    def get(self, key, allow_expired=False):
        """
        Return the cached value for ``key``.

        Returns None on a miss, or when the entry expired and
        ``allow_expired`` is False. An expired entry returned because of
        ``allow_expired`` is marked stale.
        """
        self._stats['totalRequests'] += 1
        entry = self._entries.get(key)
        if entry is None:
            self._stats['misses'] += 1
            return None

        now = self.clock()
        if entry.expired(now):
            if allow_expired:
                entry.is_stale = True
                entry.hits += 1
                entry.last_accessed = now
                self._stats['hits'] += 1
                logger.info(f"Serving stale cache entry for {key}")
                return entry.value
            self._stats['misses'] += 1
            self._stats['expirations'] += 1
            return None

        entry.hits += 1
        entry.last_accessed = now
        self._stats['hits'] += 1
        return entry.value

    def entry(self, key):
        """Return the raw CacheEntry for ``key`` without touching statistics."""
        return self._entries.get(key)

    def set(self, key, value, ttl=300, source='unknown'):
        """
        Store ``value`` under ``key`` for ``ttl`` seconds.

        A ``None`` value is replaced by the key's safe default. Returns False
        (and stores nothing) when there is no value and no default.
        """
        if value is None:
            factory = self.defaults.get(key)
            if factory is None:
                logger.warning(f"Refusing to cache empty value for {key}")
                return False
            logger.warning(f"Caching default value for {key} in place of an empty result")
            value = factory()
            source = 'default'

        now = self.clock()
        self._entries[key] = CacheEntry(
            value=value,
            created=now,
            last_accessed=now,
            expiry=now + ttl if ttl else 0,
            source=source,
        )
        return True

    def invalidate(self, key):
        """Drop one entry immediately."""
        removed = self._entries.pop(key, None) is not None
        if removed:
            logger.info(f"Invalidated cache entry {key}")
        return removed

    def sweep(self):
        """Remove expired entries; returns how many were removed."""
        now = self.clock()
        expired_keys = [key for key, entry in list(self._entries.items()) if entry.expired(now)]
        for key in expired_keys:
            self._entries.pop(key, None)
        if expired_keys:
            self._stats['expirations'] += len(expired_keys)
            logger.debug(f"Cache sweep removed {len(expired_keys)} expired entries")
        return len(expired_keys)

    def clear(self):
        self._entries.clear()

    def reset_stats(self):
        self._stats = {
            'hits': 0,
            'misses': 0,
            'totalRequests': 0,
            'expirations': 0,
            'lastReset': self.clock(),
        }

    def stats(self):
        total = self._stats['totalRequests']
        hit_rate = f"{self._stats['hits'] / total * 100:.2f}%" if total else '0%'
        keys = list(self._entries.keys())
        # Rough size: key and repr length as UTF-16 code units
        memory = sum(len(key) * 2 + len(repr(entry.value)) * 2 for key, entry in self._entries.items())
        return {
            **self._stats,
            'hitRate': hit_rate,
            'itemCount': len(keys),
            'keys': keys,
            'memoryUsageEstimate': f'{memory / 1024:.2f} KB',
        }

    def start(self):
        """Start the background sweeper thread (no-op if disabled or running)."""
        if not self.sweep_interval or (self._sweeper and self._sweeper.is_alive()):
            return
        self._stop_event.clear()
        self._sweeper = threading.Thread(target=self._run_sweeper, name='election-cache-sweeper', daemon=True)
        self._sweeper.start()
        logger.info(f"Cache sweeper started (every {self.sweep_interval}s)")

    def stop(self):
        self._stop_event.set()
        if self._sweeper and self._sweeper.is_alive():
            self._sweeper.join(timeout=1)
        self._sweeper = None

    def _run_sweeper(self):
        while not self._stop_event.wait(self.sweep_interval):
            try:
                self.sweep()
            except Exception as e:
                logger.error(f"Cache sweep failed: {e}")
