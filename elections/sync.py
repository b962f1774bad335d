"""
Settings Synchronizer
=====================

Keeps the Setting singleton's schedule fields (title, voting dates and
times) and flags (isActive, resultsPublished) consistent with the current
election, in both directions:

- pull_from_election(): read-time enrichment of a settings payload with the
  current election's schedule
- push_to_election(): an admin settings update mapped onto the current
  election inside one transaction, followed by schedule reconciliation

Settings can exist without any election (before first setup); in that case
only the settings side of an update is applied.
"""

import logging

from django.db import transaction  # pyright: ignore[reportMissingModuleSource]

from .cache import ELECTION_STATUS_KEY, SETTINGS_KEY
from .errors import ValidationFailed
from .forms import SettingsPatchForm
from .models import Election, Setting
from .utils import format_clock, format_day

logger = logging.getLogger(__name__)


def mirror_election(election):
    """Persist the election's schedule, title and active flag into Setting."""
    setting = Setting.load(for_update=True)
    setting.election_title = election.title
    setting.voting_start_date = election.start_date or election.date
    setting.voting_end_date = election.end_date or election.date
    setting.voting_start_time = election.start_time
    setting.voting_end_time = election.end_time
    setting.is_active = election.is_active
    setting.results_published = election.results_published
    setting.save()
    return setting


class SettingsSynchronizer:
    """
    Args:
        state_machine: ElectionStateMachine used for schedule reconciliation
        cache: CacheLayer refreshed after a committed update (optional)
        update_ttl: seconds the refreshed settings entry stays cached
    """

    def __init__(self, state_machine, cache=None, update_ttl=300):
        self.state_machine = state_machine
        self.cache = cache
        self.update_ttl = update_ttl

    @staticmethod
    def pull_from_election(payload, election):
        """Return a copy of ``payload`` with the election's schedule copied in."""
        enriched = dict(payload)
        if election is None:
            return enriched
        enriched.update({
            'electionTitle': election.title,
            'votingStartDate': format_day(election.start_date or election.date),
            'votingEndDate': format_day(election.end_date or election.date),
            'votingStartTime': format_clock(election.start_time, seconds=False, default='08:00'),
            'votingEndTime': format_clock(election.end_time, seconds=False, default='17:00'),
            'isActive': election.is_active,
            'resultsPublished': election.results_published,
            'electionId': str(election.id),
            'status': election.status,
        })
        return enriched

    def push_to_election(self, patch, now=None):
        """
        Apply a partial settings update and mirror it onto the current election.

        Settings and election are written in one transaction: if any write
        fails nothing is kept.

        Args:
            patch: camelCase settings keys as sent by the client
            now: reference time for schedule reconciliation (defaults to now)

        Returns:
            The enriched settings payload after the update

        Raises:
            ValidationFailed: if any patched value is invalid
        """
        form = SettingsPatchForm(patch)
        if not form.is_valid():
            raise ValidationFailed('Invalid settings', errors=form.error_details())
        changes = form.changes()

        with transaction.atomic():
            setting = Setting.load(for_update=True)
            for field, value in changes.items():
                setattr(setting, field, value)
            setting.save()

            election = None
            if form.touches_election():
                election = Election.objects.select_for_update().filter(is_current=True).first()
                if election is None:
                    logger.info("No current election, settings updated without election sync")
                else:
                    self._apply_to_election(election, changes)
                    self.state_machine.reconcile_status(
                        now=now, election=election, end_expired='is_active' not in changes,
                    )
                    setting = mirror_election(election)
            else:
                election = Election.objects.current()

            payload = self.pull_from_election(setting.as_dict(), election)
            transaction.on_commit(lambda: self._refresh_cache(payload))

        logger.info(f"Settings updated: {sorted(form.present)}")
        return payload

    def _apply_to_election(self, election, changes):
        if 'election_title' in changes:
            election.title = changes['election_title']
        if 'voting_start_date' in changes:
            election.date = changes['voting_start_date']
            election.start_date = changes['voting_start_date']
        if 'voting_end_date' in changes:
            election.end_date = changes['voting_end_date']
        if 'voting_start_time' in changes:
            election.start_time = changes['voting_start_time']
        if 'voting_end_time' in changes:
            election.end_time = changes['voting_end_time']
        if 'is_active' in changes:
            election.is_active = changes['is_active']
        if 'results_published' in changes:
            election.results_published = changes['results_published']
        election.save()
        logger.info(f"Synced settings into election {election.id}")

    def _refresh_cache(self, payload):
        if self.cache is None:
            return
        self.cache.invalidate(ELECTION_STATUS_KEY)
        self.cache.set(SETTINGS_KEY, payload, ttl=self.update_ttl, source='updated')
