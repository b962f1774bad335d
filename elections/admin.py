"""
Django Admin Configuration for the School Election backend
==========================================================

Configures Django admin interface for:
- Election management (promotion goes through the state machine)
- Settings singleton
- Positions, candidates, voters and voter groups
- Ballots and activity logs (read-only)

Security:
- Ballots cannot be added, edited or deleted from the admin
- Activity logs are an append-only audit trail
"""

from django.apps import apps  # pyright: ignore[reportMissingModuleSource]
from django.contrib import admin, messages  # pyright: ignore[reportMissingModuleSource, reportMissingImports]

from .models import (
    ActivityLog,
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


@admin.register(Election)
class ElectionAdmin(admin.ModelAdmin):
    """
    Admin interface for Election model.

    ``is_current`` is read-only here; use the "Make current" action so the
    other elections are demoted and settings are re-synced.
    """

    list_display = ('title', 'date', 'is_current', 'is_active', 'status', 'results_published', 'created_at')
    list_filter = ('is_current', 'is_active', 'status', 'results_published')
    search_fields = ('title',)
    readonly_fields = ('id', 'is_current', 'status', 'created_at', 'updated_at')
    fieldsets = (
        ('Election Information', {
            'fields': ('id', 'title', 'priority')
        }),
        ('Schedule', {
            'fields': ('date', 'start_date', 'end_date', 'start_time', 'end_time'),
            'description': 'Start/end dates default to the election date'
        }),
        ('State', {
            'fields': ('is_current', 'is_active', 'status', 'results_published'),
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at'),
        }),
    )
    actions = ['make_current']

    @admin.action(description='Make selected election current')
    def make_current(self, request, queryset):
        if queryset.count() != 1:
            self.message_user(request, 'Select exactly one election.', level=messages.ERROR)
            return
        election = queryset.first()
        apps.get_app_config('elections').state_machine.set_current(election.pk, user=request.user)
        self.message_user(request, f'"{election.title}" is now the current election.')


@admin.register(Setting)
class SettingAdmin(admin.ModelAdmin):
    list_display = ('system_name', 'election_title', 'is_active', 'max_votes_per_voter', 'updated_at')
    readonly_fields = ('created_at', 'updated_at')

    def has_add_permission(self, request):
        """Only the seeded singleton exists."""
        return not Setting.objects.exists()

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Position)
class PositionAdmin(admin.ModelAdmin):
    list_display = ('title', 'election', 'priority', 'order', 'max_selections', 'is_active')
    list_filter = ('election', 'is_active')
    search_fields = ('title',)


@admin.register(Candidate)
class CandidateAdmin(admin.ModelAdmin):
    list_display = ('name', 'position', 'election', 'voter_category', 'is_active')
    list_filter = ('election', 'position', 'voter_category', 'is_active')
    search_fields = ('name', 'position__title')


@admin.register(Voter)
class VoterAdmin(admin.ModelAdmin):
    list_display = ('name', 'voter_id', 'student_id', 'election', 'vote_count', 'has_voted', 'voted_at')
    list_filter = ('election', 'has_voted', 'year', 'house')
    search_fields = ('name', 'voter_id', 'student_id')
    readonly_fields = ('vote_count', 'has_voted', 'voted_at', 'vote_token', 'vote_tokens', 'created_at')


@admin.register(Year, SchoolClass, House)
class VoterGroupAdmin(admin.ModelAdmin):
    list_display = ('name', 'election', 'active')
    list_filter = ('election', 'active')
    search_fields = ('name',)


@admin.register(Ballot)
class BallotAdmin(admin.ModelAdmin):
    """
    Admin interface for Ballot model.

    IMPORTANT: Ballots are READ-ONLY in admin
    """

    list_display = ('position_title', 'candidate', 'is_abstention', 'voter', 'voting_session', 'timestamp')
    list_filter = ('election', 'is_abstention', 'timestamp')
    search_fields = ('position_title', 'voting_session', 'voter__voter_id')
    readonly_fields = ('id', 'voter', 'election', 'position', 'position_title', 'candidate',
                       'is_abstention', 'timestamp', 'voting_session', 'created_at')

    def has_add_permission(self, request):
        """Prevent manual ballot creation in admin."""
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        """Ballots are only removed with their election."""
        return False


@admin.register(ActivityLog)
class ActivityLogAdmin(admin.ModelAdmin):
    list_display = ('action', 'entity', 'entity_id', 'user', 'ip_address', 'timestamp')
    list_filter = ('action', 'entity', 'timestamp')
    search_fields = ('action', 'entity_id')
    readonly_fields = ('action', 'entity', 'entity_id', 'details', 'ip_address', 'election', 'user', 'timestamp')

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
