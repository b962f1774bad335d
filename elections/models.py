"""
Database models for the School Election backend
===============================================

Defines the data structure for:
- Election: one voting event; exactly one may be "current"
- Setting: singleton mirroring the current election's public schedule
- Position / Candidate: what is being voted on, scoped to an election
- Voter: registered student with a vote budget and receipt history
- Ballot: one row per (voter, position) decision in a voting session
- Year / SchoolClass / House: voter grouping, scoped to an election
- ActivityLog: audit trail of administrative and voting actions

Consistency:
- Election.save() normalizes isCurrent/isActive/status on every write
- Database constraints back the same rules so bulk updates cannot bypass them
- One ballot row per position per voting session is a unique constraint
"""

from datetime import datetime, time, timedelta
import logging
import uuid

from django.conf import settings  # pyright: ignore[reportMissingModuleSource]
from django.core.validators import MinValueValidator  # pyright: ignore[reportMissingModuleSource]
from django.db import models  # pyright: ignore[reportMissingModuleSource]
from django.db.models import Case, Count, F, Q, Value, When  # pyright: ignore[reportMissingModuleSource]
from django.utils import timezone  # pyright: ignore[reportMissingModuleSource]

from .utils import format_clock, format_day, normalize_voter_id

logger = logging.getLogger(__name__)

STATUS_NOT_STARTED = 'not-started'
STATUS_ACTIVE = 'active'
STATUS_ENDED = 'ended'
STATUS_CHOICES = [
    (STATUS_NOT_STARTED, 'Not started'),
    (STATUS_ACTIVE, 'Active'),
    (STATUS_ENDED, 'Ended'),
]

DEFAULT_START_TIME = time(8, 0)
DEFAULT_END_TIME = time(17, 0)


def default_voting_start_date():
    return timezone.localdate()


def default_voting_end_date():
    return timezone.localdate() + timedelta(days=7)


class ElectionQuerySet(models.QuerySet):

    def current(self):
        """Return the election flagged current, or None."""
        return self.filter(is_current=True).first()

    def with_turnout(self):
        """Annotate registered and voted voter counts, read by ``Election.turnout()``."""
        return self.annotate(
            voter_total=Count('voters'),
            voter_voted=Count('voters', filter=Q(voters__has_voted=True)),
        )

    def demote(self):
        """
        Clear isCurrent and isActive on every election in the queryset.

        ``status`` is rewritten in the same UPDATE so that no row is left
        reporting "active" while inactive; ended elections stay ended.
        """
        return self.update(
            is_current=False,
            is_active=False,
            status=Case(
                When(status=STATUS_ACTIVE, then=Value(STATUS_NOT_STARTED)),
                default=F('status'),
            ),
            updated_at=timezone.now(),
        )


class Election(models.Model):
    """
    Represents a single voting event.

    Attributes:
        id: UUID primary key
        title: Election title shown to voters
        date: Main election day
        start_date / end_date: Voting window days (default to ``date``)
        start_time / end_time: Voting window times of day
        is_current: The one election every other entity is scoped to
        is_active: Whether ballots are accepted right now
        status: not-started | active | ended, kept consistent with is_active
        results_published: Whether results are visible to voters
        priority: Display order among elections (lower first, then newest)

    Invariants (enforced in save() and by database constraints):
        - at most one election has is_current = True
        - is_active = True implies status = "active"
        - is_active = False implies status != "active"
        - is_current = False implies is_active = False
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    title = models.CharField(max_length=200, help_text="Election title")
    date = models.DateField(help_text="Main election day")
    start_date = models.DateField(null=True, blank=True, help_text="First voting day (defaults to date)")
    end_date = models.DateField(null=True, blank=True, help_text="Last voting day (defaults to date)")
    start_time = models.TimeField(default=DEFAULT_START_TIME)
    end_time = models.TimeField(default=DEFAULT_END_TIME)
    is_current = models.BooleanField(default=False)
    is_active = models.BooleanField(default=False)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_NOT_STARTED)
    results_published = models.BooleanField(default=False)
    priority = models.IntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ElectionQuerySet.as_manager()

    class Meta:
        ordering = ['priority', '-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['is_current'],
                condition=Q(is_current=True),
                name='single_current_election',
            ),
            models.CheckConstraint(
                condition=Q(is_active=False) | Q(status=STATUS_ACTIVE),
                name='active_election_has_active_status',
            ),
            models.CheckConstraint(
                condition=Q(is_active=True) | ~Q(status=STATUS_ACTIVE),
                name='inactive_election_not_active_status',
            ),
            models.CheckConstraint(
                condition=Q(is_current=True) | Q(is_active=False),
                name='only_current_election_active',
            ),
        ]
        indexes = [
            models.Index(fields=['is_current'], name='elections_e_is_curr_5d3c1a_idx'),
        ]

    def __str__(self):
        return f"{self.title} ({self.id})"

    def normalize_state(self):
        """Bring is_active/status back in line with the invariants."""
        if not self.is_current and self.is_active:
            logger.info(f"Correcting election {self.id}: non-current election cannot be active")
            self.is_active = False
        if self.is_active:
            self.status = STATUS_ACTIVE
        elif self.status == STATUS_ACTIVE:
            self.status = STATUS_NOT_STARTED

    def save(self, *args, **kwargs):
        """Normalize state and fill the window days before every write."""
        self.normalize_state()
        if self.start_date is None:
            self.start_date = self.date
        if self.end_date is None:
            self.end_date = self.date

        update_fields = kwargs.get('update_fields')
        if update_fields is not None:
            kwargs['update_fields'] = set(update_fields) | {'is_active', 'status', 'updated_at'}
        super().save(*args, **kwargs)

    def voting_window(self):
        """Return the aware [start, end) datetimes of the voting window."""
        start_day = self.start_date or self.date
        end_day = self.end_date or self.date
        start = timezone.make_aware(datetime.combine(start_day, self.start_time or DEFAULT_START_TIME))
        end = timezone.make_aware(datetime.combine(end_day, self.end_time or DEFAULT_END_TIME))
        return start, end

    def turnout(self):
        """Registered and voted voter counts, from annotations when present."""
        if hasattr(self, 'voter_total'):
            return {'totalVoters': self.voter_total, 'votedCount': self.voter_voted}
        counts = self.voters.aggregate(total=Count('id'), voted=Count('id', filter=Q(has_voted=True)))
        return {'totalVoters': counts['total'], 'votedCount': counts['voted']}

    def as_dict(self):
        return {
            'id': str(self.id),
            'title': self.title,
            'date': format_day(self.date),
            'startDate': format_day(self.start_date or self.date),
            'endDate': format_day(self.end_date or self.date),
            'startTime': format_clock(self.start_time),
            'endTime': format_clock(self.end_time),
            **self.turnout(),
            'isCurrent': self.is_current,
            'isActive': self.is_active,
            'status': self.status,
            'resultsPublished': self.results_published,
            'priority': self.priority,
            'createdAt': self.created_at,
            'updatedAt': self.updated_at,
        }

    def as_status_payload(self):
        """Shape returned by GET /elections/status."""
        start_day = format_day(self.start_date or self.date)
        end_day = format_day(self.end_date or self.date)
        return {
            'id': str(self.id),
            'title': self.title,
            'date': format_day(self.date),
            'isActive': self.is_active,
            'status': self.status,
            'startDate': start_day,
            'endDate': end_day,
            'startTime': format_clock(self.start_time),
            'endTime': format_clock(self.end_time),
            'resultsPublished': self.results_published,
            'votingStartDate': start_day,
            'votingEndDate': end_day,
            'votingStartTime': format_clock(self.start_time, seconds=False, default='08:00'),
            'votingEndTime': format_clock(self.end_time, seconds=False, default='17:00'),
        }


class Setting(models.Model):
    """
    Singleton system settings.

    The schedule fields (voting dates/times, election title, is_active) mirror
    the current election; the remaining fields are system-wide.
    """

    SINGLETON_ID = 1

    is_active = models.BooleanField(default=False)
    election_title = models.CharField(max_length=200, default="Student Council Election 2025")
    voting_start_date = models.DateField(default=default_voting_start_date)
    voting_end_date = models.DateField(default=default_voting_end_date)
    voting_start_time = models.TimeField(default=DEFAULT_START_TIME)
    voting_end_time = models.TimeField(default=DEFAULT_END_TIME)
    results_published = models.BooleanField(default=False)
    allow_voter_registration = models.BooleanField(default=False)
    require_email_verification = models.BooleanField(default=True)
    max_votes_per_voter = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
    system_name = models.CharField(max_length=200, default="Peki Senior High School Elections")
    system_logo = models.CharField(max_length=500, blank=True, default='')
    company_name = models.CharField(max_length=200, blank=True, default='')
    company_logo = models.CharField(max_length=500, blank=True, default='')
    school_name = models.CharField(max_length=200, blank=True, default='')
    school_logo = models.CharField(max_length=500, blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Settings ({self.system_name})"

    def save(self, *args, **kwargs):
        self.pk = self.SINGLETON_ID
        super().save(*args, **kwargs)

    @classmethod
    def load(cls, for_update=False):
        """Return the singleton row, creating it with defaults if missing."""
        queryset = cls.objects.select_for_update() if for_update else cls.objects
        setting, created = queryset.get_or_create(pk=cls.SINGLETON_ID)
        if created:
            logger.info("Created default settings row")
        return setting

    def as_dict(self):
        return {
            'isActive': self.is_active,
            'electionTitle': self.election_title,
            'votingStartDate': format_day(self.voting_start_date),
            'votingEndDate': format_day(self.voting_end_date),
            'votingStartTime': format_clock(self.voting_start_time, seconds=False),
            'votingEndTime': format_clock(self.voting_end_time, seconds=False),
            'resultsPublished': self.results_published,
            'allowVoterRegistration': self.allow_voter_registration,
            'requireEmailVerification': self.require_email_verification,
            'maxVotesPerVoter': self.max_votes_per_voter,
            'systemName': self.system_name,
            'systemLogo': self.system_logo,
            'companyName': self.company_name,
            'companyLogo': self.company_logo,
            'schoolName': self.school_name,
            'schoolLogo': self.school_logo,
        }


class ElectionScopedGroup(models.Model):
    """Common shape of the voter grouping tables (years, classes, houses)."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    election = models.ForeignKey(Election, on_delete=models.CASCADE)
    name = models.CharField(max_length=100)
    description = models.CharField(max_length=500, blank=True, default='')
    active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        abstract = True
        ordering = ['name']

    def __str__(self):
        return self.name


class Year(ElectionScopedGroup):
    class Meta(ElectionScopedGroup.Meta):
        constraints = [
            models.UniqueConstraint(fields=['election', 'name'], name='unique_year_per_election'),
        ]


class SchoolClass(ElectionScopedGroup):
    class Meta(ElectionScopedGroup.Meta):
        verbose_name = 'class'
        verbose_name_plural = 'classes'
        constraints = [
            models.UniqueConstraint(fields=['election', 'name'], name='unique_class_per_election'),
        ]


class House(ElectionScopedGroup):
    class Meta(ElectionScopedGroup.Meta):
        constraints = [
            models.UniqueConstraint(fields=['election', 'name'], name='unique_house_per_election'),
        ]


class Position(models.Model):
    """
    An office being voted on within one election.

    Titles are unique within an election. Deleting a position deletes its
    candidates.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    election = models.ForeignKey(Election, on_delete=models.CASCADE, related_name='positions')
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True, default='')
    priority = models.IntegerField(default=0)
    order = models.IntegerField(default=0)
    max_candidates = models.PositiveIntegerField(default=1)
    max_selections = models.PositiveIntegerField(default=1)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['priority', 'order', 'title']
        constraints = [
            models.UniqueConstraint(fields=['election', 'title'], name='unique_position_title_per_election'),
        ]
        indexes = [
            models.Index(fields=['election', 'is_active'], name='elections_p_electio_8b1f2e_idx'),
        ]

    def __str__(self):
        return self.title

    def as_dict(self):
        return {
            'id': str(self.id),
            'title': self.title,
            'description': self.description,
            'priority': self.priority,
            'order': self.order,
            'maxCandidates': self.max_candidates,
            'maxSelections': self.max_selections,
            'isActive': self.is_active,
            'electionId': str(self.election_id),
        }


class Candidate(models.Model):
    """
    A person standing for a position.

    ``voter_category`` restricts which voters may see/select the candidate;
    ``voter_category_values`` lists the allowed classes/years/houses.
    """

    CATEGORY_ALL = 'all'
    CATEGORY_CHOICES = [
        (CATEGORY_ALL, 'All voters'),
        ('class', 'By class'),
        ('year', 'By year'),
        ('house', 'By house'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    election = models.ForeignKey(Election, on_delete=models.CASCADE, related_name='candidates')
    position = models.ForeignKey(Position, on_delete=models.CASCADE, related_name='candidates')
    name = models.CharField(max_length=200)
    image = models.CharField(max_length=500, blank=True, default='')
    biography = models.TextField(blank=True, default='')
    year = models.CharField(max_length=50, blank=True, default='')
    class_name = models.CharField(max_length=100, blank=True, default='')
    house = models.CharField(max_length=100, blank=True, default='')
    is_active = models.BooleanField(default=True)
    voter_category = models.CharField(max_length=10, choices=CATEGORY_CHOICES, default=CATEGORY_ALL)
    voter_category_values = models.JSONField(default=list, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['name']
        indexes = [
            models.Index(fields=['position', 'election', 'is_active'], name='elections_c_positio_4e7a9d_idx'),
        ]

    def __str__(self):
        return f"{self.name} ({self.position.title})"

    def as_dict(self):
        return {
            'id': str(self.id),
            'name': self.name,
            'positionId': str(self.position_id),
            'electionId': str(self.election_id),
            'image': self.image,
            'biography': self.biography,
            'year': self.year,
            'class': self.class_name,
            'house': self.house,
            'isActive': self.is_active,
            'voterCategory': {
                'type': self.voter_category,
                'values': self.voter_category_values or [],
            },
        }


class Voter(models.Model):
    """
    A registered voter.

    Attributes:
        voter_id: Login code, unique and stored upper-case
        student_id: School identifier
        vote_count: Completed ballots; never exceeds Setting.max_votes_per_voter
        has_voted: True iff vote_count > 0
        vote_token: Latest receipt token (kept for older clients)
        vote_tokens: Ordered receipt history, [{"token", "timestamp"}, ...]
    """

    GENDER_CHOICES = [
        ('Male', 'Male'),
        ('Female', 'Female'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    election = models.ForeignKey(Election, on_delete=models.CASCADE, related_name='voters')
    name = models.CharField(max_length=200)
    voter_id = models.CharField(max_length=50, unique=True)
    student_id = models.CharField(max_length=50, db_index=True)
    gender = models.CharField(max_length=10, choices=GENDER_CHOICES, blank=True, default='')
    class_name = models.CharField(max_length=100, blank=True, default='')
    year = models.CharField(max_length=50, blank=True, default='')
    house = models.CharField(max_length=100, blank=True, default='')
    vote_count = models.PositiveIntegerField(default=0)
    has_voted = models.BooleanField(default=False)
    voted_at = models.DateTimeField(null=True, blank=True)
    vote_token = models.CharField(max_length=32, null=True, blank=True)
    vote_tokens = models.JSONField(default=list, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['name']
        constraints = [
            models.CheckConstraint(
                condition=Q(has_voted=True, vote_count__gt=0) | Q(has_voted=False, vote_count=0),
                name='voter_has_voted_matches_count',
            ),
        ]
        indexes = [
            models.Index(fields=['voter_id', 'election'], name='elections_v_voter_i_2c6b0f_idx'),
        ]

    def __str__(self):
        return f"{self.name} ({self.voter_id})"

    def save(self, *args, **kwargs):
        self.voter_id = normalize_voter_id(self.voter_id)
        self.student_id = (self.student_id or '').strip()
        super().save(*args, **kwargs)

    def as_dict(self):
        return {
            'id': str(self.id),
            'name': self.name,
            'voterId': self.voter_id,
            'studentId': self.student_id,
            'class': self.class_name,
            'year': self.year,
            'house': self.house,
            'electionId': str(self.election_id),
            'voteCount': self.vote_count,
            'hasVoted': self.has_voted,
            'votedAt': self.voted_at,
            'voteToken': self.vote_token,
            'voteTokens': self.vote_tokens or [],
        }


class Ballot(models.Model):
    """
    One voter's decision for one position within one voting session.

    The position is stored both as a title and as a reference because
    older rows and client payloads mix the two. ``candidate`` is empty for
    abstentions. Every row written by one submission shares ``voting_session``.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    voter = models.ForeignKey(Voter, on_delete=models.CASCADE, related_name='ballots')
    election = models.ForeignKey(Election, on_delete=models.CASCADE, related_name='ballots')
    position_title = models.CharField(max_length=200)
    position = models.ForeignKey(
        Position,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='ballots',
    )
    candidate = models.ForeignKey(
        Candidate,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='ballots',
    )
    is_abstention = models.BooleanField(default=False)
    timestamp = models.DateTimeField(default=timezone.now)
    voting_session = models.CharField(max_length=64)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = 'vote'
        ordering = ['-timestamp']
        constraints = [
            models.UniqueConstraint(
                fields=['voter', 'voting_session', 'position_title'],
                name='one_ballot_per_position_per_session',
            ),
            models.CheckConstraint(
                condition=Q(is_abstention=False) | Q(candidate__isnull=True),
                name='abstention_has_no_candidate',
            ),
        ]
        indexes = [
            models.Index(fields=['voter', 'election'], name='elections_b_voter_i_7a1c3e_idx'),
            models.Index(fields=['election', 'position_title'], name='elections_b_electio_9d4f21_idx'),
            models.Index(fields=['voting_session'], name='elections_b_voting__3b8e5a_idx'),
        ]

    def __str__(self):
        choice = 'abstained' if self.is_abstention else self.candidate_id
        return f"Ballot {self.position_title}: {choice}"


class ActivityLog(models.Model):
    """Audit trail entry. Writes are best effort and never block voting."""

    action = models.CharField(max_length=100, db_index=True)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
    )
    entity = models.CharField(max_length=50, blank=True, default='')
    entity_id = models.CharField(max_length=64, blank=True, default='')
    details = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    election = models.ForeignKey(Election, on_delete=models.SET_NULL, null=True, blank=True)
    timestamp = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ['-timestamp']
        indexes = [
            models.Index(fields=['action', '-timestamp'], name='elections_a_action_6f2d8c_idx'),
            models.Index(fields=['entity', 'action'], name='elections_a_entity_1e9b7d_idx'),
        ]

    def __str__(self):
        return f"{self.action} {self.entity}:{self.entity_id}"
