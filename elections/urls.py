"""
URL routing for the elections app
=================================

All endpoints live under /api/ so that ApiErrorMiddleware answers their
errors with JSON.
"""

from django.urls import path  # pyright: ignore[reportMissingModuleSource]

from . import views

app_name = 'elections'

urlpatterns = [
    # Election status (public, cached)
    path('api/elections/status', views.election_status, name='election_status'),

    # Election administration
    path('api/elections', views.election_collection, name='election_collection'),
    path('api/elections/current', views.current_election, name='current_election'),
    path('api/elections/default', views.create_default_election, name='create_default_election'),
    path('api/elections/stats', views.election_stats, name='election_stats'),
    path('api/elections/results/publish', views.publish_results, name='publish_results'),
    path('api/elections/copy-data', views.copy_election_data, name='copy_election_data'),
    path('api/elections/<str:election_id>/order', views.move_election, name='move_election'),
    path('api/elections/<str:election_id>/current', views.set_current_election, name='set_current_election'),
    path('api/elections/<str:election_id>', views.delete_election, name='delete_election'),
    path('api/election/toggle', views.toggle_election, name='toggle_election'),

    # Settings
    path('api/settings', views.system_settings, name='settings'),

    # Voting
    path('api/votes/submit', views.submit_vote, name='submit_vote'),
    path('api/voters/validate', views.validate_voter, name='validate_voter'),

    # Results and diagnostics
    path('api/results', views.election_results, name='results'),
    path('api/system/cache', views.cache_stats, name='cache_stats'),
]
