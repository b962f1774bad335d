"""
Helper Functions for the Election Engine
========================================

Small, dependency-free helpers shared by models, services and views:
- Clock/date parsing and canonical formatting (HH:MM:SS, YYYY-MM-DD)
- Receipt token and voting session generation
- Percentage rounding used by the results tally
- Client IP extraction and JSON body parsing for API views
"""

from datetime import date, datetime, time
from typing import Optional, Union
import json
import logging
import secrets
import string
import uuid

from django.core.exceptions import ValidationError  # pyright: ignore[reportMissingModuleSource]

logger = logging.getLogger(__name__)

CLOCK_FORMATS = ('%H:%M:%S', '%H:%M')
TOKEN_ALPHABET = string.ascii_uppercase + string.digits


def parse_clock(value: Union[str, time, None]) -> Optional[time]:
    """
    Parse a time of day into a ``datetime.time``.

    Accepts "HH:MM", "HH:MM:SS" or an existing time object. The result is the
    canonical representation stored on Election and Setting rows.

    Raises:
        ValidationError: if the string matches neither format
    """
    if value is None or value == '':
        return None
    if isinstance(value, time):
        return value.replace(microsecond=0)

    text = str(value).strip()
    for fmt in CLOCK_FORMATS:
        try:
            return datetime.strptime(text, fmt).time()
        except ValueError:
            continue
    raise ValidationError(f'Invalid time "{text}", expected HH:MM or HH:MM:SS.')


def format_clock(value: Optional[time], seconds: bool = True, default: str = '') -> str:
    """Render a time as HH:MM:SS (or HH:MM when ``seconds`` is False)."""
    if value is None:
        return default
    return value.strftime('%H:%M:%S' if seconds else '%H:%M')


def parse_day(value: Union[str, date, None]) -> Optional[date]:
    """
    Parse a calendar day.

    Accepts "YYYY-MM-DD", a full ISO timestamp (the date part is kept) or a
    date object.
    """
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        raise ValidationError(f'Invalid date "{text}", expected YYYY-MM-DD.')


def format_day(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


def parse_uuid(value) -> Optional[uuid.UUID]:
    """Return ``value`` as a UUID, or None if it is not one."""
    if isinstance(value, uuid.UUID):
        return value
    if value is None:
        return None
    try:
        return uuid.UUID(str(value).strip())
    except (ValueError, AttributeError):
        return None


def normalize_voter_id(voter_id) -> str:
    """Voter IDs are stored trimmed and upper-cased."""
    return str(voter_id or '').strip().upper()


def generate_receipt_token(length: int = 6) -> str:
    """
    Generate a short receipt token handed to a voter after submission.

    Tokens are upper-case alphanumeric and drawn from ``secrets`` so they
    cannot be predicted from earlier receipts.
    """
    return ''.join(secrets.choice(TOKEN_ALPHABET) for _ in range(length))


def new_voting_session(moment: datetime) -> str:
    """
    Build the identifier shared by every ballot row of one submission.

    Millisecond timestamp plus a random suffix: ordered by time, unique per call.
    """
    millis = int(moment.timestamp() * 1000)
    return f'{millis}-{secrets.token_hex(4)}'


def percentage(part: int, whole: int, digits: int = 1) -> float:
    """Return part/whole as a percentage rounded to ``digits``; 0 if whole is 0."""
    if not whole:
        return 0
    return round(part / whole * 100, digits)


def read_json(request) -> dict:
    """
    Decode a JSON object from a request body.

    An empty body is treated as ``{}``.

    Raises:
        ValidationError: body is not valid JSON or not an object
    """
    if not request.body:
        return {}
    try:
        payload = json.loads(request.body)
    except (ValueError, UnicodeDecodeError):
        raise ValidationError('Request body must be valid JSON.')
    if not isinstance(payload, dict):
        raise ValidationError('Request body must be a JSON object.')
    return payload


def get_client_ip(request):
    """
    Extract client IP address, considering proxies.

    Checks headers in order:
    1. X-Forwarded-For (most common proxy header)
    2. X-Real-IP
    3. REMOTE_ADDR (direct connection)
    """
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        # Can contain multiple IPs, first is client
        return x_forwarded_for.split(',')[0].strip()

    x_real_ip = request.META.get('HTTP_X_REAL_IP')
    if x_real_ip:
        return x_real_ip

    return request.META.get('REMOTE_ADDR') or None
