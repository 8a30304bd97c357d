# api/authentication.py
from rest_framework import exceptions
from rest_framework.authentication import TokenAuthentication


class HeaderTokenAuthentication(TokenAuthentication):
    """DRF token auth that also reads a dedicated ``Token`` header.

    The ``Token`` header wins so that ``Authorization`` stays free for the
    shared basic-auth gate. Both ``Bearer <key>`` and ``Token <key>`` are
    accepted; a bare key is accepted in the ``Token`` header only.
    """

    keywords = ('bearer', 'token')

    def _extract_key(self, header, allow_bare=False):
        parts = header.split() if header else []
        if not parts:
            return None
        if parts[0].lower() not in self.keywords:
            if allow_bare and len(parts) == 1:
                return parts[0]
            # Not ours (e.g. "Basic ..."); let other schemes handle it
            return None
        if len(parts) != 2:
            raise exceptions.AuthenticationFailed('Invalid token header.')
        return parts[1]

    def authenticate(self, request):
        key = self._extract_key(request.META.get('HTTP_TOKEN'), allow_bare=True)
        if key is None:
            key = self._extract_key(request.META.get('HTTP_AUTHORIZATION'))
        if key is None:
            return None
        return self.authenticate_credentials(key)

    def authenticate_header(self, request):
        return 'Bearer'
