"""
Vote Resolution & Submission Engine
===================================

Turns a client ballot into stored Ballot rows:
- Position references arrive as ids or titles; they are parsed once into
  ``ById`` / ``ByTitle`` and resolved against the current election
- At most one ballot row per position per submission: later duplicates are
  skipped, never overwritten
- All rows of one submission share one voting session and timestamp
- The vote budget check and the voter's vote_count increment form a single
  conditional UPDATE, so two concurrent submissions cannot both pass it
"""

from dataclasses import dataclass, field
import logging

from django.db import transaction  # pyright: ignore[reportMissingModuleSource]
from django.db.models import F  # pyright: ignore[reportMissingModuleSource]
from django.utils import timezone  # pyright: ignore[reportMissingModuleSource]

from .audit import log_activity
from .errors import Forbidden, NotFound, ValidationFailed, VoteBudgetExceeded
from .models import Ballot, Candidate, Election, Position, Setting, Voter
from .utils import generate_receipt_token, new_voting_session, normalize_voter_id, parse_uuid

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ById:
    position_id: object


@dataclass(frozen=True)
class ByTitle:
    title: str


def parse_position_ref(raw):
    """
    Classify a client-supplied position reference.

    Anything that parses as a UUID is treated as an id, everything else as
    a title. Returns None for empty input.
    """
    if raw is None:
        return None
    if isinstance(raw, dict):
        raw = raw.get('positionId') or raw.get('position') or raw.get('id')
        if raw is None:
            return None
    pk = parse_uuid(raw)
    if pk is not None:
        return ById(pk)
    title = str(raw).strip()
    return ByTitle(title) if title else None


class PositionDirectory:
    """id -> Position and title -> Position lookups for one election."""

    def __init__(self, election, positions):
        self.election = election
        self.by_id = {position.pk: position for position in positions}
        self.by_title = {position.title: position for position in positions}

    @classmethod
    def for_election(cls, election):
        return cls(election, list(Position.objects.filter(election=election)))

    def resolve(self, ref):
        """
        Resolve a reference to a Position of this election, or None.

        Titles are tried against the title table first and then as ids;
        ids fall back to a direct lookup, which is still restricted to
        this election.
        """
        if isinstance(ref, ByTitle):
            position = self.by_title.get(ref.title)
            if position is None:
                pk = parse_uuid(ref.title)
                position = self.by_id.get(pk) if pk else None
            return position

        if isinstance(ref, ById):
            position = self.by_id.get(ref.position_id)
            if position is None:
                position = Position.objects.filter(pk=ref.position_id).first()
                if position is not None and position.election_id != self.election.pk:
                    logger.warning(f"Position {ref.position_id} belongs to another election")
                    return None
            return position
        return None


@dataclass
class VoteReceipt:
    token: str
    voted_at: object
    votes_remaining: int
    vote_tokens: list = field(default_factory=list)
    voting_session: str = ''
    ballots_written: int = 0

    def as_payload(self):
        return {
            'success': True,
            'message': 'Vote submitted successfully',
            'voteToken': self.token,
            'votedAt': self.voted_at,
            'votesRemaining': self.votes_remaining,
            'voteTokens': self.vote_tokens,
        }


def _build_ballots(voter, election, directory, selections, abstentions, session, timestamp):
    ballots = []
    consumed = set()

    for selection in selections or []:
        if not isinstance(selection, dict):
            logger.warning("Skipping malformed selection")
            continue
        position = directory.resolve(parse_position_ref(selection.get('positionId')))
        if position is None:
            logger.warning(f"Skipping selection for unknown position {selection.get('positionId')}")
            continue
        if position.pk in consumed:
            logger.warning(f"Skipping duplicate selection for position {position.title}")
            continue

        candidate_id = parse_uuid(selection.get('candidateId'))
        candidate = None
        if candidate_id is not None:
            candidate = Candidate.objects.filter(pk=candidate_id, position=position).first()
        if candidate is None:
            logger.warning(f"Skipping selection: candidate {selection.get('candidateId')} not in {position.title}")
            continue

        consumed.add(position.pk)
        ballots.append(Ballot(
            voter=voter,
            election=election,
            position=position,
            position_title=position.title,
            candidate=candidate,
            is_abstention=False,
            timestamp=timestamp,
            voting_session=session,
        ))

    for raw in abstentions or []:
        position = directory.resolve(parse_position_ref(raw))
        if position is None:
            logger.warning(f"Skipping abstention for unknown position {raw}")
            continue
        if position.pk in consumed:
            logger.warning(f"Skipping abstention for already voted position {position.title}")
            continue

        consumed.add(position.pk)
        ballots.append(Ballot(
            voter=voter,
            election=election,
            position=position,
            position_title=position.title,
            candidate=None,
            is_abstention=True,
            timestamp=timestamp,
            voting_session=session,
        ))

    return ballots


def submit_vote(*, voter_id, selections=None, abstentions=None, ip_address=None, token_length=6):
    """
    Record one ballot submission for a voter.

    Args:
        voter_id: voter login code (case-insensitive)
        selections: [{"positionId": ..., "candidateId": ...}, ...]
        abstentions: position ids or titles the voter abstained on
        ip_address: client address for the audit trail
        token_length: receipt token length

    Returns:
        VoteReceipt

    Raises:
        ValidationFailed: voter_id missing
        NotFound: voter or current election missing
        VoteBudgetExceeded: the voter has no votes left
    """
    normalized = normalize_voter_id(voter_id)
    if not normalized:
        raise ValidationFailed('Voter ID is required')

    with transaction.atomic():
        voter = Voter.objects.select_for_update().filter(voter_id=normalized).first()
        if voter is None:
            raise NotFound('Voter not found')

        max_votes = Setting.load().max_votes_per_voter or 1
        if voter.vote_count >= max_votes:
            raise VoteBudgetExceeded(voter.vote_count, max_votes)

        election = Election.objects.filter(is_current=True).first()
        if election is None:
            raise NotFound('No active election found')

        directory = PositionDirectory.for_election(election)
        voted_at = timezone.now()
        session = new_voting_session(voted_at)
        ballots = _build_ballots(voter, election, directory, selections, abstentions, session, voted_at)

        Ballot.objects.bulk_create(ballots, ignore_conflicts=True)

        token = generate_receipt_token(token_length)
        history = list(voter.vote_tokens or [])
        history.append({'token': token, 'timestamp': voted_at.isoformat()})

        # Budget precondition and increment in one statement
        updated = Voter.objects.filter(pk=voter.pk, vote_count__lt=max_votes).update(
            vote_count=F('vote_count') + 1,
            has_voted=True,
            voted_at=voted_at,
            vote_token=token,
            vote_tokens=history,
        )
        if not updated:
            raise VoteBudgetExceeded(voter.vote_count, max_votes)

        vote_count = voter.vote_count + 1
        transaction.on_commit(lambda: log_activity(
            'vote:submit', 'vote', voter.pk,
            details={
                'voterId': voter.voter_id,
                'electionId': str(election.pk),
                'votingSession': session,
                'positions': len(ballots),
            },
            election=election,
            ip_address=ip_address,
        ))

    logger.info(f"Voter {voter.voter_id} submitted {len(ballots)} ballots (vote {vote_count}/{max_votes})")
    return VoteReceipt(
        token=token,
        voted_at=voted_at,
        votes_remaining=max(max_votes - vote_count, 0),
        vote_tokens=history,
        voting_session=session,
        ballots_written=len(ballots),
    )


def validate_voter(voter_id, current_election_id=None):
    """
    Check whether a voter may vote.

    Returns:
        dict payload for the client; ``success`` is False with
        ``errorCode: ALREADY_VOTED`` when the voter's budget is used

    Raises:
        ValidationFailed: voter_id missing
        NotFound: unknown voter
        Forbidden: the voter belongs to another election (WRONG_ELECTION)
    """
    normalized = normalize_voter_id(voter_id)
    if not normalized:
        raise ValidationFailed('Voter ID is required')

    voter = Voter.objects.select_related('election').filter(voter_id=normalized).first()
    if voter is None:
        raise NotFound('Invalid voter ID')

    if current_election_id and str(voter.election_id) != str(current_election_id):
        raise Forbidden(
            'This voter is not registered for the current election',
            errorCode='WRONG_ELECTION',
            voterElection=str(voter.election_id),
            currentElection=str(current_election_id),
        )

    max_votes = Setting.load().max_votes_per_voter or 1
    voter_info = {
        'id': str(voter.pk),
        'name': voter.name,
        'voterId': voter.voter_id,
        'studentId': voter.student_id,
        'class': voter.class_name,
        'year': voter.year,
        'house': voter.house,
        'electionId': str(voter.election_id),
        'hasVoted': voter.has_voted,
        'voteCount': voter.vote_count,
    }

    if voter.vote_count >= max_votes:
        return {
            'success': False,
            'message': 'You have already used all your votes',
            'errorCode': 'ALREADY_VOTED',
            'voter': {
                **voter_info,
                'votedAt': voter.voted_at,
                'voteToken': voter.vote_token,
                'voteTokens': voter.vote_tokens or [],
            },
            'maxVotes': max_votes,
        }

    return {
        'success': True,
        'message': 'Voter validated successfully',
        'voter': voter_info,
        'maxVotes': max_votes,
        'votesRemaining': max_votes - voter.vote_count,
    }
