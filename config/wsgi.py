"""
WSGI config for Coffee Loyalty project.

It exposes the WSGI callable as a module-level variable named ``application``.
"""

import os

from django.conf import settings
from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

application = get_wsgi_application()

from config.logging import configure_logging  # noqa: E402

configure_logging(settings.LOG_LEVEL)
