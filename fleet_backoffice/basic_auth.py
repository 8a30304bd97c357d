import base64
import binascii
import logging
import secrets

from django.conf import settings
from django.http import JsonResponse
from django.utils.deprecation import MiddlewareMixin

logger = logging.getLogger(__name__)


def _decode_credentials(header):
    scheme, _, encoded = (header or '').partition(' ')
    if scheme.lower() != 'basic' or not encoded:
        return None
    try:
        decoded = base64.b64decode(encoded.strip()).decode('utf-8')
    except (binascii.Error, UnicodeDecodeError):
        return None
    username, sep, password = decoded.partition(':')
    if not sep:
        return None
    return username, password


class BasicAuthGateMiddleware(MiddlewareMixin):
    """Require a shared username/password on every request except health checks.

    The gate is off when ``BASIC_AUTH_USERNAME`` or ``BASIC_AUTH_PASSWORD`` is
    blank. Per-user API tokens travel in the ``Token`` header so they can sit
    alongside the Basic credentials.
    """

    def process_request(self, request):
        username = getattr(settings, 'BASIC_AUTH_USERNAME', '')
        password = getattr(settings, 'BASIC_AUTH_PASSWORD', '')
        if not (username and password):
            return None

        exempt = getattr(settings, 'BASIC_AUTH_EXEMPT_PATHS', ['/healthz/', '/api/health/'])
        if request.path in exempt or request.method == 'OPTIONS':
            return None

        credentials = _decode_credentials(request.META.get('HTTP_AUTHORIZATION'))
        if credentials:
            supplied_user, supplied_password = credentials
            user_ok = secrets.compare_digest(supplied_user.encode(), username.encode())
            password_ok = secrets.compare_digest(supplied_password.encode(), password.encode())
            if user_ok and password_ok:
                return None

        logger.warning("Basic auth rejected for %s %s", request.method, request.path)
        response = JsonResponse({'status': 'error', 'message': 'Authentication required'}, status=401)
        response['WWW-Authenticate'] = 'Basic realm="Fleet Backoffice"'
        return response
