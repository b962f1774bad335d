"""
ASGI config for the School Election backend
===========================================

Exposes the ASGI callable as a module-level variable named ``application``.
The status and settings endpoints are async views, so ASGI servers
(Uvicorn, Daphne, Hypercorn) serve them without a thread hop.
"""

import os
from django.core.asgi import get_asgi_application  # pyright: ignore[reportMissingModuleSource]

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'election_project.settings')

application = get_asgi_application()
