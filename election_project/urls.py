"""
Main URL Router for the School Election backend
===============================================

Routes the Django admin and the elections API.
"""

from django.contrib import admin  # pyright: ignore[reportMissingModuleSource]
from django.urls import include, path  # pyright: ignore[reportMissingModuleSource]

urlpatterns = [
    # Django admin panel
    path('admin/', admin.site.urls),

    # Election API (status, settings, voting, results)
    path('', include('elections.urls')),
]
