"""Best-effort activity logging."""

import logging

from .models import ActivityLog

logger = logging.getLogger(__name__)


def log_activity(action, entity='', entity_id='', details=None, election=None, user=None, ip_address=None):
    """
    Write an ActivityLog row.

    Failures are logged and swallowed: the audit trail must never fail or
    roll back the operation being recorded.
    """
    if user is not None and not getattr(user, 'is_authenticated', False):
        user = None
    try:
        return ActivityLog.objects.create(
            action=action,
            entity=entity,
            entity_id=str(entity_id or ''),
            details=details or {},
            election=election,
            user=user,
            ip_address=ip_address,
        )
    except Exception:
        logger.exception(f"Failed to write activity log entry {action}")
        return None
