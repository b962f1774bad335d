"""
Custom middleware for the School Election backend
=================================================

- SecurityHeadersMiddleware: Adds security headers to every response
- ApiErrorMiddleware: Turns exceptions raised by API views into JSON errors

Error responses always carry a ``message`` field. In DEBUG only, the
exception type and stack are added as ``error`` and ``stack``.
"""

import logging
import traceback

from django.conf import settings  # pyright: ignore[reportMissingModuleSource]
from django.core.exceptions import PermissionDenied, ValidationError  # pyright: ignore[reportMissingModuleSource]
from django.db import IntegrityError, OperationalError  # pyright: ignore[reportMissingModuleSource]
from django.http import Http404, JsonResponse  # pyright: ignore[reportMissingModuleSource]
from django.utils.deprecation import MiddlewareMixin  # pyright: ignore[reportMissingModuleSource]

from .errors import Conflict, ElectionError, Internal, UpstreamTimeout

logger = logging.getLogger(__name__)

API_PREFIX = '/api/'


class SecurityHeadersMiddleware(MiddlewareMixin):
    """
    Add security headers to all HTTP responses.

    Headers added:
    - X-Frame-Options: DENY (prevent clickjacking)
    - X-Content-Type-Options: nosniff (prevent MIME sniffing)
    - Strict-Transport-Security: HTTPS enforcement (not in DEBUG)
    - Referrer-Policy / Permissions-Policy
    """

    def process_response(self, request, response):
        response['X-Frame-Options'] = 'DENY'
        response['X-Content-Type-Options'] = 'nosniff'

        if not settings.DEBUG and not response.has_header('Strict-Transport-Security'):
            response['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'

        response['Referrer-Policy'] = 'strict-origin-when-cross-origin'
        response['Permissions-Policy'] = 'geolocation=(), microphone=(), camera=()'
        return response


def _validation_message(error):
    if hasattr(error, 'message_dict'):
        return '; '.join(f"{field}: {' '.join(messages)}" for field, messages in error.message_dict.items())
    return ' '.join(error.messages)


class ApiErrorMiddleware(MiddlewareMixin):
    """
    Convert exceptions raised by API views into JSON responses.

    Mapping:
    - ElectionError subclasses: their own status and payload
    - django ValidationError: 400
    - IntegrityError: 409 (duplicate unique field)
    - OperationalError: 503 (database locked, timed out or unreachable)
    - PermissionDenied: 403
    - Http404: 404
    - anything else under /api/: 500

    Non-API paths fall through to Django's normal handling.
    """

    def process_exception(self, request, exception):
        if not request.path.startswith(API_PREFIX):
            return None

        if isinstance(exception, ElectionError):
            error = exception
        elif isinstance(exception, ValidationError):
            error = ElectionError(_validation_message(exception))
            error.status_code = 400
        elif isinstance(exception, IntegrityError):
            error = Conflict()
        elif isinstance(exception, OperationalError):
            error = UpstreamTimeout()
        elif isinstance(exception, PermissionDenied):
            error = ElectionError(str(exception) or 'Permission denied')
            error.status_code = 403
        elif isinstance(exception, Http404):
            error = ElectionError(str(exception) or 'Not found')
            error.status_code = 404
        else:
            logger.exception(f"Unhandled error on {request.method} {request.path}")
            error = Internal()

        if error.status_code >= 500:
            logger.error(f"{request.method} {request.path} failed: {exception!r}")
        else:
            logger.info(f"{request.method} {request.path} -> {error.status_code}: {error.message}")

        payload = error.as_payload()
        if settings.DEBUG:
            payload['error'] = f'{type(exception).__name__}: {exception}'
            payload['stack'] = traceback.format_exception(type(exception), exception, exception.__traceback__)
        return JsonResponse(payload, status=error.status_code)
