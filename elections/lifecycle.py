"""
Election State Machine
======================

Owns the "current election" rule and the isActive/status consistency rule.

States: not-started, active, ended
- not-started <-> active: toggle_active() or schedule reconciliation
- active -> ended: schedule reconciliation once the window has closed
- any -> not-started (unless ended): the election stops being current

Every mutation runs in one database transaction, mirrors the schedule into
the Setting singleton and invalidates the cached status/settings once the
transaction commits.
"""

from collections import Counter
import logging

from django.db import transaction  # pyright: ignore[reportMissingModuleSource]
from django.utils import timezone  # pyright: ignore[reportMissingModuleSource]

from .audit import log_activity
from .cache import ELECTION_STATUS_KEY, SETTINGS_KEY
from .errors import NotFound, ValidationFailed
from .models import (
    STATUS_ACTIVE,
    STATUS_ENDED,
    Ballot,
    Candidate,
    Election,
    House,
    Position,
    SchoolClass,
    Setting,
    Voter,
    Year,
)
from .sync import mirror_election
from .utils import parse_clock, parse_day, parse_uuid

logger = logging.getLogger(__name__)

DEFAULT_ELECTION = {
    'title': 'Student Council Election 2025',
    'date': '2025-05-15',
    'start_time': '08:00:00',
    'end_time': '17:00:00',
}

# Model label -> key in the cascade delete report
DELETE_REPORT_KEYS = {
    'elections.Voter': 'voters',
    'elections.Candidate': 'candidates',
    'elections.Position': 'positions',
    'elections.Year': 'years',
    'elections.SchoolClass': 'classes',
    'elections.House': 'houses',
    'elections.Ballot': 'votes',
}


class ElectionStateMachine:
    """
    Lifecycle operations on Election rows.

    Args:
        cache: CacheLayer whose election status / settings entries are
            invalidated after every committed change (optional)
    """

    def __init__(self, cache=None):
        self.cache = cache

    def invalidate_later(self, *keys):
        """Drop cache entries once the surrounding transaction commits."""
        if self.cache is None:
            return
        keys = keys or (ELECTION_STATUS_KEY, SETTINGS_KEY)

        def _invalidate():
            for key in keys:
                self.cache.invalidate(key)

        transaction.on_commit(_invalidate)

    def current(self):
        return Election.objects.current()

    def require_current(self, for_update=False):
        queryset = Election.objects.select_for_update() if for_update else Election.objects.all()
        election = queryset.filter(is_current=True).first()
        if election is None:
            raise NotFound('No current election found')
        return election

    def get(self, election_id, missing='Election not found'):
        """Fetch an election by id; ValidationFailed if malformed, NotFound if missing."""
        pk = parse_uuid(election_id)
        if pk is None:
            raise ValidationFailed('Invalid election ID')
        election = Election.objects.filter(pk=pk).first()
        if election is None:
            raise NotFound(missing)
        return election

    def create(self, title, date, start_time, end_time, start_date=None, end_date=None, is_current=False):
        """Create an election; dates and times are normalized before saving."""
        if not title or not date or not start_time or not end_time:
            raise ValidationFailed('Missing required fields')

        with transaction.atomic():
            if is_current:
                Election.objects.filter(is_current=True).demote()
            election = Election(
                title=str(title).strip(),
                date=parse_day(date),
                start_date=parse_day(start_date),
                end_date=parse_day(end_date),
                start_time=parse_clock(start_time),
                end_time=parse_clock(end_time),
                is_current=is_current,
            )
            election.save()
            if is_current:
                mirror_election(election)
                self.invalidate_later()

        logger.info(f"Created election {election.id} ({election.title})")
        return election

    def seed_default(self):
        """
        Create the default election as current, only when none exist.

        Returns:
            The new Election, or None if elections already exist
        """
        if Election.objects.exists():
            return None
        election = self.create(is_current=True, **DEFAULT_ELECTION)
        logger.info("Seeded default election")
        return election

    @transaction.atomic
    def set_current(self, election_id, user=None, ip_address=None):
        """
        Promote one election to current.

        All elections are locked, cleared of isCurrent/isActive, then the
        target is flagged current with the isActive value it had before.
        """
        # Lock every election row so concurrent promotions serialize
        list(Election.objects.select_for_update().values_list('pk', flat=True))

        pk = parse_uuid(election_id)
        target = Election.objects.filter(pk=pk).first() if pk else None
        if target is None:
            raise NotFound('Election not found')

        was_active = target.is_active
        demoted = Election.objects.demote()
        logger.info(f"Cleared current flag on {demoted} elections")

        target.refresh_from_db()
        target.is_current = True
        target.is_active = was_active
        target.save()

        mirror_election(target)
        self.invalidate_later()
        transaction.on_commit(lambda: log_activity(
            'election:set-current', 'election', target.id,
            details={'title': target.title}, election=target, user=user, ip_address=ip_address,
        ))
        logger.info(f"Election {target.id} is now current (active={target.is_active})")
        return target

    @transaction.atomic
    def toggle_active(self, user=None, ip_address=None):
        """Flip isActive on the current election and mirror it into settings."""
        election = self.require_current(for_update=True)
        election.is_active = not election.is_active
        election.save()

        setting = Setting.load(for_update=True)
        setting.is_active = election.is_active
        setting.save(update_fields=['is_active', 'updated_at'])

        self.invalidate_later()
        transaction.on_commit(lambda: log_activity(
            'election:toggle', 'election', election.id,
            details={'isActive': election.is_active}, election=election, user=user, ip_address=ip_address,
        ))
        logger.info(f"Election {election.id} toggled to {election.status}")
        return election

    @transaction.atomic
    def delete(self, election_id, user=None, ip_address=None):
        """
        Delete an election and everything scoped to it.

        Dependents are removed one table at a time so the report shows
        exactly what each step deleted.

        Returns:
            dict of deletion counts: voters, candidates, positions, years,
            classes, houses, votes
        """
        election = self.get(election_id)

        deleted = Counter()
        for model in (Voter, Candidate, Position, Year, SchoolClass, House, Ballot):
            _, per_model = model.objects.filter(election=election).delete()
            deleted.update(per_model)

        title = election.title
        was_current = election.is_current
        election.delete()

        stats = {key: deleted.get(label, 0) for label, key in DELETE_REPORT_KEYS.items()}
        logger.info(f"Deleted election {election_id} ({title}): {stats}")

        if was_current:
            # No election is current any more, so voting is closed
            setting = Setting.load(for_update=True)
            setting.is_active = False
            setting.results_published = False
            setting.save(update_fields=['is_active', 'results_published', 'updated_at'])
            self.invalidate_later()
        transaction.on_commit(lambda: log_activity(
            'election:delete', 'election', election_id,
            details={'title': title, 'stats': stats}, user=user, ip_address=ip_address,
        ))
        return stats

    @transaction.atomic
    def reconcile_status(self, now=None, election=None, end_expired=True):
        """
        Bring the current election's status in line with its voting window.

        Inside [start, end) the election becomes active. At or after the end
        an active election becomes ended (skipped when ``end_expired`` is
        False). Calling it again with the same ``now`` changes nothing.

        Returns:
            The current Election (possibly updated), or None if there is none
        """
        now = now or timezone.now()
        if election is None:
            election = Election.objects.select_for_update().filter(is_current=True).first()
        if election is None:
            return None

        start, end = election.voting_window()
        changed = False
        if start <= now < end and not election.is_active:
            election.is_active = True
            election.status = STATUS_ACTIVE
            changed = True
            logger.info(f"Election {election.id} activated by schedule")
        elif now >= end and election.is_active and end_expired:
            election.is_active = False
            election.status = STATUS_ENDED
            changed = True
            logger.info(f"Election {election.id} ended by schedule")

        if changed:
            election.save()
            setting = Setting.load(for_update=True)
            setting.is_active = election.is_active
            setting.save(update_fields=['is_active', 'updated_at'])
            self.invalidate_later()
        return election

    @transaction.atomic
    def set_results_published(self, published):
        election = self.require_current(for_update=True)
        election.results_published = bool(published)
        election.save(update_fields=['results_published'])

        setting = Setting.load(for_update=True)
        setting.results_published = election.results_published
        setting.save(update_fields=['results_published', 'updated_at'])

        self.invalidate_later()
        logger.info(f"Results for election {election.id} published={election.results_published}")
        return election

    @transaction.atomic
    def move(self, election_id, direction, user=None, ip_address=None):
        """
        Swap an election with its neighbour in the display order.

        Elections are listed by (priority, newest first). Priorities are
        renumbered 0..n-1 in that order before the swap.

        Returns:
            The moved Election, or None when it is already first (up) or
            last (down)
        """
        if direction not in ('up', 'down'):
            raise ValidationFailed('Direction must be "up" or "down"')
        election = self.get(election_id)

        ordered = list(Election.objects.select_for_update().order_by('priority', '-created_at'))
        index = next(i for i, item in enumerate(ordered) if item.pk == election.pk)
        neighbour = index - 1 if direction == 'up' else index + 1
        if not 0 <= neighbour < len(ordered):
            return None

        ordered[index], ordered[neighbour] = ordered[neighbour], ordered[index]
        for priority, item in enumerate(ordered):
            item.priority = priority
        Election.objects.bulk_update(ordered, ['priority'])

        moved = ordered[neighbour]
        transaction.on_commit(lambda: log_activity(
            'election:order', 'election', moved.id,
            details={'direction': direction, 'priority': moved.priority}, user=user, ip_address=ip_address,
        ))
        logger.info(f"Election {moved.id} moved {direction} to priority {moved.priority}")
        return moved

    @transaction.atomic
    def copy_data(self, source_id, target_id, user=None, ip_address=None):
        """
        Copy positions and candidates from one election into another.

        Positions already in the target (same title) are reused, and a
        candidate is skipped when the target position already has one with
        the same name, so copying twice adds nothing.

        Returns:
            dict with positionsCopied, positionsCreated and candidatesCopied
        """
        if not source_id or not target_id:
            raise ValidationFailed('Source and target election IDs are required')
        source = self.get(source_id, missing='Source election not found')
        target = self.get(target_id, missing='Target election not found')
        if source.pk == target.pk:
            raise ValidationFailed('Source and target elections must be different')

        by_title = {position.title: position for position in target.positions.select_for_update()}
        position_map = {}
        positions_created = 0
        for position in source.positions.all():
            copy = by_title.get(position.title)
            if copy is None:
                copy = Position.objects.create(
                    election=target,
                    title=position.title,
                    description=position.description,
                    priority=position.priority,
                    order=position.order,
                    max_candidates=position.max_candidates,
                    max_selections=position.max_selections,
                    is_active=position.is_active,
                )
                by_title[copy.title] = copy
                positions_created += 1
            position_map[position.pk] = copy

        taken = set(Candidate.objects.filter(election=target).values_list('position_id', 'name'))
        new_candidates = []
        for candidate in source.candidates.all():
            copy_position = position_map.get(candidate.position_id)
            if copy_position is None:
                logger.warning(f"Candidate {candidate.id} points at position {candidate.position_id} outside its election, skipped")
                continue
            if (copy_position.pk, candidate.name) in taken:
                continue
            taken.add((copy_position.pk, candidate.name))
            new_candidates.append(Candidate(
                election=target,
                position=copy_position,
                name=candidate.name,
                image=candidate.image,
                biography=candidate.biography,
                year=candidate.year,
                class_name=candidate.class_name,
                house=candidate.house,
                is_active=candidate.is_active,
                voter_category=candidate.voter_category,
                voter_category_values=list(candidate.voter_category_values or []),
            ))
        Candidate.objects.bulk_create(new_candidates)

        stats = {
            'positionsCopied': len(position_map),
            'positionsCreated': positions_created,
            'candidatesCopied': len(new_candidates),
        }
        transaction.on_commit(lambda: log_activity(
            'election:copy-data', 'election', target.id,
            details={'sourceElectionId': str(source.id), **stats}, election=target, user=user, ip_address=ip_address,
        ))
        logger.info(f"Copied election {source.id} into {target.id}: {stats}")
        return stats
