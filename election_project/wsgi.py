"""
WSGI config for the School Election backend
===========================================

Exposes the WSGI callable as a module-level variable named ``application``,
for Gunicorn or any other WSGI server.
"""

import os
from django.core.wsgi import get_wsgi_application  # pyright: ignore[reportMissingModuleSource]

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'election_project.settings')

application = get_wsgi_application()
