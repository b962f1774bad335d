"""
Concurrent administrator and voter requests against a real database.

Each worker thread opens its own connection. Depending on the backend a
losing request is serialized behind a row lock or fails with a database
error; either way the committed state must stay consistent.
"""

import threading

from django.db import DatabaseError, connection
from django.test import TransactionTestCase

from elections.ballots import submit_vote
from elections.errors import ElectionError
from elections.models import Ballot, Election, Setting, Voter

from .base import EngineStateMixin, make_election, make_position, make_voter


def run_together(*calls):
    """Start every call at the same moment; return one (result, error) pair per call."""
    barrier = threading.Barrier(len(calls))
    outcomes = [None] * len(calls)

    def worker(index, call):
        try:
            barrier.wait()
            outcomes[index] = (call(), None)
        except (DatabaseError, ElectionError) as exc:
            outcomes[index] = (None, exc)
        finally:
            connection.close()

    threads = [threading.Thread(target=worker, args=(i, call)) for i, call in enumerate(calls)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)
    return outcomes


class ConcurrentSetCurrentTests(EngineStateMixin, TransactionTestCase):

    def setUp(self):
        super().setUp()
        Setting.load()
        self.original = make_election(title='Original')
        self.first = make_election(title='First', is_current=False)
        self.second = make_election(title='Second', is_current=False)

    def test_single_current_election_survives_racing_promotions(self):
        machine = self.engine.state_machine

        outcomes = run_together(
            lambda: machine.set_current(str(self.first.pk)),
            lambda: machine.set_current(str(self.second.pk)),
        )

        current = Election.objects.filter(is_current=True)
        self.assertEqual(current.count(), 1)
        promoted = {result.pk for result, error in outcomes if error is None}
        if promoted:
            self.assertIn(current.get().pk, promoted)
        else:
            self.assertEqual(current.get().pk, self.original.pk)
        self.assertEqual(Setting.load().election_title, current.get().title)


class ConcurrentVoteTests(EngineStateMixin, TransactionTestCase):

    def setUp(self):
        super().setUp()
        Setting.load()
        election = make_election(is_active=True)
        make_position(election, 'Head Prefect')
        self.voter = make_voter(election, 'RACE001')

    def test_same_voter_cannot_overrun_the_budget(self):
        def vote():
            return submit_vote(voter_id='RACE001', abstentions=['Head Prefect'])

        outcomes = run_together(vote, vote)

        receipts = [result for result, error in outcomes if error is None]
        self.assertLessEqual(len(receipts), 1)
        self.voter.refresh_from_db()
        self.assertEqual(self.voter.vote_count, len(receipts))
        self.assertEqual(len(self.voter.vote_tokens), len(receipts))
        self.assertEqual(Ballot.objects.values('voting_session').distinct().count(), len(receipts))
        self.assertEqual(Voter.objects.filter(vote_count__gt=1).count(), 0)
