"""
Reconcile the current election's status against the clock.

Meant to run from a periodic timer (cron, systemd timer):

    python manage.py reconcile_elections
"""

import logging

from django.apps import apps  # pyright: ignore[reportMissingModuleSource]
from django.core.management.base import BaseCommand  # pyright: ignore[reportMissingModuleSource]

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Activate or end the current election according to its voting window"

    def handle(self, *args, **options):
        state_machine = apps.get_app_config('elections').state_machine
        election = state_machine.reconcile_status()
        if election is None:
            self.stdout.write("No current election")
            return
        self.stdout.write(f"{election.title}: {election.status} (active={election.is_active})")
