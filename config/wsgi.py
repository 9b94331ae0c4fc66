"""
WSGI config. Exposes the WSGI callable as ``application``.

DJANGO_ENV picks local/prod/test settings inside config.settings.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

application = get_wsgi_application()
