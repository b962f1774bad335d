from datetime import date, datetime, time
from unittest import mock

from django.test import TestCase
from django.utils import timezone

from elections.cache import SETTINGS_KEY
from elections.errors import ValidationFailed
from elections.models import STATUS_ACTIVE, Election, Setting
from elections.sync import SettingsSynchronizer

from .base import EngineStateMixin, make_election

# Well before the schedules used below, so reconciliation leaves them alone
EARLY = timezone.make_aware(datetime(2025, 1, 1, 12, 0))


class PushToElectionTests(EngineStateMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.sync = self.engine.synchronizer
        self.election = make_election()

    def test_schedule_round_trip(self):
        patch = {
            'electionTitle': 'Prefectorial Election',
            'votingStartDate': '2025-06-02',
            'votingEndDate': '2025-06-03',
            'votingStartTime': '07:30',
            'votingEndTime': '15:45:00',
        }

        self.sync.push_to_election(patch, now=EARLY)

        self.election.refresh_from_db()
        self.assertEqual(self.election.title, 'Prefectorial Election')
        self.assertEqual(self.election.date, date(2025, 6, 2))
        self.assertEqual(self.election.start_date, date(2025, 6, 2))
        self.assertEqual(self.election.end_date, date(2025, 6, 3))
        self.assertEqual(self.election.start_time, time(7, 30))
        self.assertEqual(self.election.end_time, time(15, 45))

        pulled = SettingsSynchronizer.pull_from_election(Setting.load().as_dict(), self.election)
        self.assertEqual(pulled['electionTitle'], 'Prefectorial Election')
        self.assertEqual(pulled['votingStartDate'], '2025-06-02')
        self.assertEqual(pulled['votingEndDate'], '2025-06-03')
        self.assertEqual(pulled['votingStartTime'], '07:30')
        self.assertEqual(pulled['votingEndTime'], '15:45')

    def test_settings_row_mirrors_election(self):
        self.sync.push_to_election({'votingStartTime': '09:00', 'systemName': 'PESCO Votes'}, now=EARLY)

        setting = Setting.load()
        self.assertEqual(setting.voting_start_time, time(9, 0))
        self.assertEqual(setting.system_name, 'PESCO Votes')
        self.assertEqual(setting.election_title, self.election.title)

    def test_activation_inside_window(self):
        inside = timezone.make_aware(datetime(2025, 5, 15, 10, 0))

        payload = self.sync.push_to_election({'votingStartTime': '08:00', 'votingEndTime': '17:00'}, now=inside)

        self.election.refresh_from_db()
        self.assertTrue(self.election.is_active)
        self.assertEqual(self.election.status, STATUS_ACTIVE)
        self.assertTrue(Setting.load().is_active)
        self.assertTrue(payload['isActive'])

    def test_is_active_flag_is_pushed(self):
        self.sync.push_to_election({'isActive': True}, now=EARLY)

        self.election.refresh_from_db()
        self.assertTrue(self.election.is_active)
        self.assertEqual(self.election.status, STATUS_ACTIVE)

    def test_results_published_flag_is_pushed(self):
        payload = self.sync.push_to_election({'resultsPublished': True}, now=EARLY)

        self.election.refresh_from_db()
        self.assertTrue(self.election.results_published)
        self.assertTrue(Setting.load().results_published)
        self.assertTrue(payload['resultsPublished'])

        self.sync.push_to_election({'resultsPublished': False}, now=EARLY)
        self.election.refresh_from_db()
        self.assertFalse(self.election.results_published)

    def test_omitted_fields_are_untouched(self):
        self.sync.push_to_election({'systemName': 'New Name'}, now=EARLY)

        setting = Setting.load()
        self.assertTrue(setting.require_email_verification)
        self.assertEqual(setting.max_votes_per_voter, 1)

    def test_invalid_time_changes_nothing(self):
        before = Setting.load().system_name

        with self.assertRaises(ValidationFailed) as ctx:
            self.sync.push_to_election({'systemName': 'Changed', 'votingStartTime': '25:99'}, now=EARLY)

        self.assertIn('voting_start_time', ctx.exception.extra['errors'])
        self.assertEqual(Setting.load().system_name, before)

    def test_rejects_zero_vote_budget(self):
        with self.assertRaises(ValidationFailed):
            self.sync.push_to_election({'maxVotesPerVoter': 0})

    def test_failed_election_write_rolls_back_settings(self):
        before = Setting.load().system_name

        with mock.patch.object(SettingsSynchronizer, '_apply_to_election', side_effect=RuntimeError('boom')):
            with self.assertRaises(RuntimeError):
                self.sync.push_to_election({'systemName': 'Changed', 'electionTitle': 'Changed'}, now=EARLY)

        self.assertEqual(Setting.load().system_name, before)
        self.assertEqual(Election.objects.get(pk=self.election.pk).title, self.election.title)

    def test_without_current_election_only_settings_change(self):
        Election.objects.demote()

        payload = self.sync.push_to_election({'electionTitle': 'Standalone', 'maxVotesPerVoter': 2})

        self.assertEqual(payload['electionTitle'], 'Standalone')
        self.assertEqual(Setting.load().max_votes_per_voter, 2)
        self.election.refresh_from_db()
        self.assertNotEqual(self.election.title, 'Standalone')

    def test_refreshes_cache_after_commit(self):
        with self.captureOnCommitCallbacks(execute=True):
            payload = self.sync.push_to_election({'schoolName': 'Peki SHS'}, now=EARLY)

        self.assertEqual(self.engine.cache.get(SETTINGS_KEY), payload)
        self.assertEqual(self.engine.cache.entry(SETTINGS_KEY).source, 'updated')
