"""
Result Aggregator
=================

Tallies ballots for one election:
- per position, candidate vote counts and abstentions
- candidate percentage = votes / (all candidate votes + abstentions) * 100,
  rounded to one decimal, 0 when nothing was cast
- voter turnout, independent of the per-position tallies
"""

from collections import Counter
import logging

from django.db.models import Count, Q  # pyright: ignore[reportMissingModuleSource]

from .models import Ballot, Candidate, Position, Voter
from .utils import percentage

logger = logging.getLogger(__name__)


def turnout_stats(election):
    total = Voter.objects.filter(election=election).count()
    voted = Voter.objects.filter(election=election, has_voted=True).count()
    return {
        'total': total,
        'voted': voted,
        'notVoted': total - voted,
        'percentage': percentage(voted, total),
    }


def tally_results(election):
    """
    Build the results table for ``election``.

    Returns:
        dict with ``results`` (one entry per position, display order) and
        ``stats`` (turnout)
    """
    positions = list(Position.objects.filter(election=election))
    candidates = list(Candidate.objects.filter(election=election).order_by('name'))

    ballots = Ballot.objects.filter(election=election)
    candidate_votes = dict(
        ballots.filter(is_abstention=False, candidate__isnull=False)
        .values_list('candidate')
        .annotate(total=Count('id'))
    )

    # Abstentions are matched by position reference, or by title for rows
    # whose position was deleted
    abstentions_by_id = dict(
        ballots.filter(is_abstention=True, position__isnull=False)
        .values_list('position')
        .annotate(total=Count('id'))
    )
    abstentions_by_title = Counter(dict(
        ballots.filter(is_abstention=True, position__isnull=True)
        .values_list('position_title')
        .annotate(total=Count('id'))
    ))

    by_position = {}
    for candidate in candidates:
        by_position.setdefault(candidate.position_id, []).append(candidate)

    results = []
    for position in positions:
        rows = [
            {'candidate': candidate.as_dict(), 'voteCount': candidate_votes.get(candidate.pk, 0)}
            for candidate in by_position.get(position.pk, [])
        ]
        abstained = abstentions_by_id.get(position.pk, 0) + abstentions_by_title.get(position.title, 0)
        cast = sum(row['voteCount'] for row in rows)
        denominator = cast + abstained

        for row in rows:
            row['percentage'] = percentage(row['voteCount'], denominator)
        rows.sort(key=lambda row: row['voteCount'], reverse=True)

        results.append({
            'position': position.as_dict(),
            'candidates': rows,
            'totalVotes': cast,
            'abstentions': {
                'count': abstained,
                'percentage': percentage(abstained, denominator),
            },
        })

    logger.debug(f"Tallied {len(results)} positions for election {election.pk}")
    return {'results': results, 'stats': turnout_stats(election)}


def dashboard_stats(election):
    """
    Turnout dashboard for one election, or a zeroed report when there is none.
    """
    if election is None:
        return {
            'electionId': None,
            'totalVoters': 0,
            'votedCount': 0,
            'remainingVoters': 0,
            'completionPercentage': 0,
            'recentVoters': [],
            'votingByYear': [],
            'votingByClass': [],
            'votingByHouse': [],
        }

    voters = Voter.objects.filter(election=election)
    total = voters.count()
    voted = voters.filter(has_voted=True).count()
    recent = voters.filter(has_voted=True).order_by('-voted_at')[:3]

    def grouped(field):
        rows = (
            voters.values(field)
            .annotate(total=Count('id'), voted=Count('id', filter=Q(has_voted=True)))
            .order_by(field)
        )
        return [{'name': row[field] or 'Unknown', 'total': row['total'], 'voted': row['voted']} for row in rows]

    return {
        'electionId': str(election.pk),
        'totalVoters': total,
        'votedCount': voted,
        'remainingVoters': total - voted,
        'completionPercentage': round(voted / total * 100) if total else 0,
        'recentVoters': [
            {'id': str(voter.pk), 'name': voter.name, 'voterId': voter.voter_id, 'votedAt': voter.voted_at}
            for voter in recent
        ],
        'votingByYear': grouped('year'),
        'votingByClass': grouped('class_name'),
        'votingByHouse': grouped('house'),
    }
