"""
Django app configuration for the elections module
=================================================

Builds the election engine's long-lived services once per process:
- CacheLayer (with its background sweeper)
- ElectionStateMachine and SettingsSynchronizer
- Circuit breakers and the read path for status/settings

Views reach them through ``apps.get_app_config('elections')``.
"""

import atexit
import logging

from django.apps import AppConfig  # pyright: ignore[reportMissingModuleSource]
from django.conf import settings  # pyright: ignore[reportMissingModuleSource]

logger = logging.getLogger(__name__)

ENGINE_DEFAULTS = {
    'STATUS_CACHE_TTL': 30,
    'SETTINGS_CACHE_TTL': 600,
    'SETTINGS_UPDATE_CACHE_TTL': 300,
    'CACHE_SWEEP_INTERVAL': 300,
    'QUERY_TIMEOUT': 10,
    'ELECTION_QUERY_TIMEOUT': 5,
    'BREAKER_FAILURE_THRESHOLD': 3,
    'BREAKER_RESET_TIMEOUT': 60,
    'BREAKER_SUCCESS_THRESHOLD': 2,
    'TOKEN_LENGTH': 6,
}


class ElectionsConfig(AppConfig):
    """Configuration class for the elections application."""
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'elections'
    verbose_name = 'School Elections'

    def ready(self):
        """
        Wire the engine services together.

        Imports happen here because models are not loaded before ready().
        """
        from .breaker import CircuitBreaker
        from .cache import CacheLayer
        from .lifecycle import ElectionStateMachine
        from .readpath import ElectionReadPath
        from .sync import SettingsSynchronizer

        self.engine_settings = {**ENGINE_DEFAULTS, **getattr(settings, 'ELECTIONS', {})}
        conf = self.engine_settings

        self.cache = CacheLayer(sweep_interval=conf['CACHE_SWEEP_INTERVAL'])
        self.state_machine = ElectionStateMachine(cache=self.cache)
        self.synchronizer = SettingsSynchronizer(
            self.state_machine,
            cache=self.cache,
            update_ttl=conf['SETTINGS_UPDATE_CACHE_TTL'],
        )

        def make_breaker(name, timeout):
            return CircuitBreaker(
                name=name,
                fallback=lambda key: self.read_path.stale_or_default(key),
                failure_threshold=conf['BREAKER_FAILURE_THRESHOLD'],
                reset_timeout=conf['BREAKER_RESET_TIMEOUT'],
                success_threshold=conf['BREAKER_SUCCESS_THRESHOLD'],
                timeout=timeout,
            )

        self.status_breaker = make_breaker('election-status', conf['ELECTION_QUERY_TIMEOUT'])
        self.settings_breaker = make_breaker('settings', conf['QUERY_TIMEOUT'])
        self.read_path = ElectionReadPath(
            cache=self.cache,
            status_breaker=self.status_breaker,
            settings_breaker=self.settings_breaker,
            synchronizer=self.synchronizer,
            status_ttl=conf['STATUS_CACHE_TTL'],
            settings_ttl=conf['SETTINGS_CACHE_TTL'],
        )

        if conf['CACHE_SWEEP_INTERVAL']:
            self.cache.start()
            atexit.register(self.cache.stop)
        logger.debug("Election engine services ready")

    @property
    def token_length(self):
        return self.engine_settings['TOKEN_LENGTH']
