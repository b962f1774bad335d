import json
from unittest import mock
import uuid

from django.contrib.auth import get_user_model
from django.db import OperationalError
from django.test import TestCase
from django.utils import timezone

from elections.models import Ballot, Election, Setting

from .base import EngineStateMixin, make_candidate, make_election, make_position, make_voter


class ApiTestCase(EngineStateMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.admin = get_user_model().objects.create_superuser('admin', 'admin@example.com', 'pass-1234')

    def send(self, method, url, payload=None, **extra):
        body = json.dumps(payload) if payload is not None else ''
        return getattr(self.client, method)(url, data=body, content_type='application/json', **extra)


class ElectionStatusApiTests(ApiTestCase):

    def test_fallback_without_current_election(self):
        response = self.client.get('/api/elections/status')

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertFalse(body['isActive'])
        self.assertEqual(body['votingStartTime'], '08:00')
        self.assertEqual(body['votingEndTime'], '17:00')
        today = timezone.localdate().isoformat()
        for key in ('startDate', 'endDate', 'votingStartDate', 'votingEndDate'):
            self.assertEqual(body[key], today)
        self.assertEqual(response['X-Data-Source'], 'no-election')

    def test_current_election_status_is_cached(self):
        make_election(title='SRC Election', is_active=True)

        first = self.client.get('/api/elections/status')
        second = self.client.get('/api/elections/status')

        self.assertEqual(first.json()['title'], 'SRC Election')
        self.assertEqual(first.json()['status'], 'active')
        self.assertEqual(first['X-Data-Source'], 'database')
        self.assertEqual(second['X-Data-Source'], 'cache')


class ElectionAdminApiTests(ApiTestCase):

    def test_create_and_list(self):
        self.client.force_login(self.admin)

        response = self.send('post', '/api/elections', {
            'title': 'House Captains',
            'date': '2025-09-01',
            'startTime': '08:30',
            'endTime': '16:00',
        })

        self.assertEqual(response.status_code, 201)
        created = response.json()
        self.assertEqual(created['startTime'], '08:30:00')
        self.assertEqual(created['startDate'], '2025-09-01')
        self.assertFalse(created['isCurrent'])
        self.assertEqual([e['title'] for e in self.client.get('/api/elections').json()], ['House Captains'])

    def test_create_requires_fields(self):
        self.client.force_login(self.admin)

        response = self.send('post', '/api/elections', {'title': 'Incomplete'})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['message'], 'Missing required fields')

    def test_set_current_requires_permission(self):
        election = make_election(is_current=False)
        url = f'/api/elections/{election.pk}/current'

        self.assertEqual(self.client.put(url).status_code, 401)

        clerk = get_user_model().objects.create_user('clerk', password='pass-1234')
        self.client.force_login(clerk)
        self.assertEqual(self.client.put(url).status_code, 403)

        self.client.force_login(self.admin)
        response = self.client.put(url)
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()['election']['isCurrent'])

    def test_set_current_unknown_election(self):
        self.client.force_login(self.admin)

        response = self.client.put(f'/api/elections/{uuid.uuid4()}/current')

        self.assertEqual(response.status_code, 404)
        self.assertIn('message', response.json())

    def test_delete_reports_stats(self):
        election = make_election()
        position = make_position(election, 'Head Prefect')
        make_candidate(position, 'Kofi')
        make_voter(election, 'DEL001')
        self.client.force_login(self.admin)

        response = self.client.delete(f'/api/elections/{election.pk}')

        self.assertEqual(response.status_code, 200)
        stats = response.json()['stats']
        self.assertEqual((stats['voters'], stats['candidates'], stats['positions'], stats['votes']), (1, 1, 1, 0))
        self.assertFalse(Election.objects.exists())

    def test_delete_malformed_id(self):
        self.client.force_login(self.admin)
        self.assertEqual(self.client.delete('/api/elections/12345').status_code, 400)

    def test_toggle(self):
        make_election()

        self.assertEqual(self.client.post('/api/election/toggle').status_code, 401)

        self.client.force_login(self.admin)
        response = self.client.post('/api/election/toggle')
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()['isActive'])
        self.assertEqual(response.json()['status'], 'active')

    def test_toggle_without_current_election(self):
        self.client.force_login(self.admin)
        self.assertEqual(self.client.post('/api/election/toggle').status_code, 404)

    def test_default_seed(self):
        self.client.force_login(self.admin)

        first = self.client.post('/api/elections/default')
        second = self.client.post('/api/elections/default')

        self.assertEqual(first.status_code, 201)
        self.assertTrue(first.json()['created'])
        self.assertFalse(second.json()['created'])
        self.assertEqual(self.client.get('/api/elections/current').json()['title'], 'Student Council Election 2025')

    def test_publish_results(self):
        make_election()
        self.client.force_login(self.admin)

        response = self.send('post', '/api/elections/results/publish', {'published': True})

        self.assertEqual(response.status_code, 200)
        self.assertTrue(Election.objects.current().results_published)
        self.assertTrue(Setting.load().results_published)

    def test_stats(self):
        election = make_election()
        make_voter(election, 'S001')
        self.client.force_login(self.admin)

        body = self.client.get('/api/elections/stats').json()

        self.assertEqual(body['electionId'], str(election.pk))
        self.assertEqual(body['totalVoters'], 1)


class SettingsApiTests(ApiTestCase):

    def test_etag_round_trip(self):
        first = self.client.get('/api/settings')
        etag = first['ETag']

        second = self.client.get('/api/settings', HTTP_IF_NONE_MATCH=etag)

        self.assertEqual(first.status_code, 200)
        self.assertEqual(first['X-Settings-Source'], 'database')
        self.assertEqual(second.status_code, 304)

    def test_nocache_reads_database(self):
        self.client.get('/api/settings')

        response = self.client.get('/api/settings?nocache=1')

        self.assertEqual(response['X-Settings-Source'], 'database')

    def test_enriched_with_current_election(self):
        make_election(title='Prefect Polls')

        body = self.client.get('/api/settings').json()

        self.assertEqual(body['electionTitle'], 'Prefect Polls')
        self.assertEqual(body['votingStartTime'], '08:00')

    def test_update_requires_permission(self):
        self.assertEqual(self.send('put', '/api/settings', {'systemName': 'X'}).status_code, 401)

    def test_update_syncs_election(self):
        election = make_election()
        self.client.force_login(self.admin)

        response = self.send('put', '/api/settings', {'electionTitle': 'Renamed', 'votingEndTime': '16:30'})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['electionTitle'], 'Renamed')
        self.assertEqual(response.json()['votingEndTime'], '16:30')
        election.refresh_from_db()
        self.assertEqual(election.title, 'Renamed')

    def test_invalid_update(self):
        self.client.force_login(self.admin)

        response = self.send('put', '/api/settings', {'votingStartTime': 'noon'})

        self.assertEqual(response.status_code, 400)
        self.assertIn('voting_start_time', response.json()['errors'])


class VotingApiTests(ApiTestCase):

    def setUp(self):
        super().setUp()
        self.election = make_election(is_active=True)
        self.head = make_position(self.election, 'Head Prefect')
        self.sports = make_position(self.election, 'Sports Prefect')
        self.kofi = make_candidate(self.head, 'Kofi')
        self.voter = make_voter(self.election, 'API001')

    def test_submit_and_budget(self):
        payload = {
            'voterId': 'api001',
            'selections': [{'positionId': str(self.head.pk), 'candidateId': str(self.kofi.pk)}],
            'abstentions': ['Sports Prefect'],
        }

        response = self.send('post', '/api/votes/submit', payload)

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertTrue(body['success'])
        self.assertEqual(body['votesRemaining'], 0)
        self.assertRegex(body['voteToken'], r'^[A-Z0-9]{6}$')
        self.assertEqual(len(body['voteTokens']), 1)
        self.assertEqual(Ballot.objects.count(), 2)

        again = self.send('post', '/api/votes/submit', payload)
        self.assertEqual(again.status_code, 400)
        self.assertEqual(again.json()['voteCount'], 1)
        self.assertEqual(again.json()['maxVotes'], 1)

    def test_submit_errors(self):
        self.assertEqual(self.send('post', '/api/votes/submit', {'selections': []}).status_code, 400)
        self.assertEqual(self.send('post', '/api/votes/submit', {'voterId': 'NOBODY'}).status_code, 404)

        bad_json = self.client.post('/api/votes/submit', data='{not json', content_type='application/json')
        self.assertEqual(bad_json.status_code, 400)
        self.assertIn('message', bad_json.json())

    def test_validate_voter(self):
        ok = self.send('post', '/api/voters/validate', {'voterId': 'API001', 'currentElectionId': str(self.election.pk)})
        self.assertEqual(ok.status_code, 200)
        self.assertTrue(ok.json()['success'])

        other = make_election(title='Other', is_current=False)
        wrong = self.send('post', '/api/voters/validate', {'voterId': 'API001', 'currentElectionId': str(other.pk)})
        self.assertEqual(wrong.status_code, 403)
        self.assertEqual(wrong.json()['errorCode'], 'WRONG_ELECTION')

        self.send('post', '/api/votes/submit', {'voterId': 'API001', 'abstentions': ['Head Prefect']})
        voted = self.send('post', '/api/voters/validate', {'voterId': 'API001'})
        self.assertEqual(voted.status_code, 200)
        self.assertEqual(voted.json()['errorCode'], 'ALREADY_VOTED')

        self.assertEqual(self.send('post', '/api/voters/validate', {}).status_code, 400)
        self.assertEqual(self.send('post', '/api/voters/validate', {'voterId': 'X'}).status_code, 404)

    def test_results_visibility(self):
        self.send('post', '/api/votes/submit', {
            'voterId': 'API001',
            'selections': [{'positionId': str(self.head.pk), 'candidateId': str(self.kofi.pk)}],
        })

        self.assertEqual(self.client.get('/api/results').status_code, 403)

        self.client.force_login(self.admin)
        body = self.client.get('/api/results').json()
        head = next(entry for entry in body['results'] if entry['position']['title'] == 'Head Prefect')
        self.assertEqual(head['candidates'][0]['voteCount'], 1)
        self.assertEqual(head['candidates'][0]['percentage'], 100.0)
        self.assertEqual(body['stats'], {'total': 1, 'voted': 1, 'notVoted': 0, 'percentage': 100.0})

    def test_results_without_election(self):
        Election.objects.all().delete()
        self.client.force_login(self.admin)
        self.assertEqual(self.client.get('/api/results').status_code, 404)


class CacheStatsApiTests(ApiTestCase):

    def test_staff_only(self):
        self.assertEqual(self.client.get('/api/system/cache').status_code, 401)

        self.client.force_login(self.admin)
        body = self.client.get('/api/system/cache').json()

        self.assertIn('hitRate', body['cache'])
        self.assertEqual(body['breakers']['settings']['state'], 'CLOSED')


class ConsistencyApiTests(ApiTestCase):

    def test_results_published_through_settings_reaches_the_election(self):
        make_election()
        self.client.force_login(self.admin)

        response = self.send('put', '/api/settings', {'resultsPublished': True})

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()['resultsPublished'])
        self.assertTrue(self.client.get('/api/elections/status').json()['resultsPublished'])
        self.client.logout()
        self.assertEqual(self.client.get('/api/results').status_code, 200)

    def test_deleting_current_election_closes_settings(self):
        election = make_election()
        self.client.force_login(self.admin)
        self.client.post('/api/election/toggle')

        self.client.delete(f'/api/elections/{election.pk}')

        body = self.client.get('/api/settings?nocache=1').json()
        self.assertFalse(body['isActive'])
        self.assertNotIn('electionId', body)

    def test_list_reports_voter_turnout(self):
        election = make_election()
        make_voter(election, 'T001', vote_count=1, has_voted=True)
        make_voter(election, 'T002')
        self.client.force_login(self.admin)

        listed = self.client.get('/api/elections').json()[0]
        current = self.client.get('/api/elections/current').json()

        self.assertEqual((listed['totalVoters'], listed['votedCount']), (2, 1))
        self.assertEqual((current['totalVoters'], current['votedCount']), (2, 1))


class ElectionOrderApiTests(ApiTestCase):

    def test_move_and_copy(self):
        older = make_election(title='Older', is_current=False, priority=0)
        newer = make_election(title='Newer', priority=1)
        make_candidate(make_position(older, 'Head Prefect'), 'Kofi')
        self.client.force_login(self.admin)

        moved = self.send('put', f'/api/elections/{newer.pk}/order', {'direction': 'up'})
        unchanged = self.send('put', f'/api/elections/{newer.pk}/order', {'direction': 'up'})
        copied = self.send('post', '/api/elections/copy-data', {
            'sourceElectionId': str(older.pk),
            'targetElectionId': str(newer.pk),
        })

        self.assertEqual(moved.status_code, 200)
        self.assertEqual(moved.json()['election']['priority'], 0)
        self.assertEqual(unchanged.json()['message'], 'No change in position possible')
        self.assertEqual([e['title'] for e in self.client.get('/api/elections').json()], ['Newer', 'Older'])
        self.assertEqual(copied.status_code, 200)
        self.assertEqual(copied.json()['details']['candidatesCopied'], 1)

    def test_order_and_copy_require_permission(self):
        election = make_election()

        self.assertEqual(self.send('put', f'/api/elections/{election.pk}/order', {'direction': 'up'}).status_code, 401)
        self.assertEqual(self.send('post', '/api/elections/copy-data', {}).status_code, 401)

    def test_copy_validation(self):
        self.client.force_login(self.admin)

        missing = self.send('post', '/api/elections/copy-data', {'sourceElectionId': str(uuid.uuid4())})
        unknown = self.send('post', '/api/elections/copy-data', {
            'sourceElectionId': str(uuid.uuid4()),
            'targetElectionId': str(uuid.uuid4()),
        })

        self.assertEqual(missing.status_code, 400)
        self.assertEqual(unknown.status_code, 404)
        self.assertEqual(unknown.json()['message'], 'Source election not found')


class ErrorMappingApiTests(ApiTestCase):

    def test_database_outage_is_service_unavailable(self):
        with mock.patch('elections.views.ballots.submit_vote', side_effect=OperationalError('database is locked')):
            response = self.send('post', '/api/votes/submit', {'voterId': 'ANY'})

        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.json()['message'], 'Database operation timed out')

    def test_unexpected_error_is_server_error(self):
        with mock.patch('elections.views.ballots.validate_voter', side_effect=RuntimeError('boom')):
            response = self.send('post', '/api/voters/validate', {'voterId': 'ANY'})

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()['message'], 'Server error')
