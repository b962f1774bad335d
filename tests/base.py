"""Shared helpers for the election engine tests."""

from datetime import date, time

from django.apps import apps

from elections.models import Ballot, Candidate, Election, Position, Setting, Voter


class FakeClock:
    """Manually advanced clock for the cache and circuit breaker."""

    def __init__(self, now=1_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class EngineStateMixin:
    """Reset the process-wide cache and breakers between tests."""

    def setUp(self):
        super().setUp()
        self.engine = apps.get_app_config('elections')
        self.engine.cache.clear()
        self.engine.cache.reset_stats()
        self.engine.status_breaker.reset()
        self.engine.settings_breaker.reset()


def make_election(title='Student Council Election', is_current=True, is_active=False, day=None, **fields):
    return Election.objects.create(
        title=title,
        date=day or date(2025, 5, 15),
        start_time=fields.pop('start_time', time(8, 0)),
        end_time=fields.pop('end_time', time(17, 0)),
        is_current=is_current,
        is_active=is_active,
        **fields,
    )


def make_position(election, title, priority=0):
    return Position.objects.create(election=election, title=title, priority=priority)


def make_candidate(position, name):
    return Candidate.objects.create(election=position.election, position=position, name=name)


def make_voter(election, voter_id, name='Ama Mensah', **fields):
    return Voter.objects.create(
        election=election,
        voter_id=voter_id,
        student_id=fields.pop('student_id', f'STU-{voter_id}'),
        name=name,
        **fields,
    )


def make_ballot(voter, position, candidate=None, session='session-1'):
    return Ballot.objects.create(
        voter=voter,
        election=voter.election,
        position=position,
        position_title=position.title,
        candidate=candidate,
        is_abstention=candidate is None,
        voting_session=session,
    )


def set_max_votes(limit):
    setting = Setting.load()
    setting.max_votes_per_voter = limit
    setting.save()
    return setting
