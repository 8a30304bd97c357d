"""
WSGI config for fleet_backoffice project.

It exposes the WSGI callable as a module-level variable named ``application``.

For more information on this file, see
https://docs.djangoproject.com/en/4.0/howto/deployment/wsgi/
"""

import logging
import os

from django.conf import settings
from django.core.wsgi import get_wsgi_application
from whitenoise import WhiteNoise

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'fleet_backoffice.settings')

logger = logging.getLogger(__name__)

django_application = get_wsgi_application()

# Only log whether the gate is on, never the credentials.
logger.info(
    "Basic auth gate enabled=%s",
    bool(getattr(settings, 'BASIC_AUTH_USERNAME', '') and getattr(settings, 'BASIC_AUTH_PASSWORD', '')),
)

# Static assets (admin + DRF browsable API) are served by the process itself.
application = WhiteNoise(django_application)

static_root = getattr(settings, 'STATIC_ROOT', None)
if static_root:
    application.add_files(static_root, prefix='static/')
