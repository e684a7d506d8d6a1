import logging
import re

from django.http import JsonResponse
from rest_framework.exceptions import AuthenticationFailed
from rest_framework_simplejwt.authentication import JWTAuthentication

from users.permissions import is_platform_admin
from .models import PlatformSetting

logger = logging.getLogger(__name__)

SAFE_METHODS = ('GET', 'HEAD', 'OPTIONS')

# Sign-in and money already captured by the gateway must still go through.
ALWAYS_OPEN = (
    re.compile(r'^/api/auth/login/$'),
    re.compile(r'^/api/webhooks/identity/$'),
    re.compile(r'^/api/payments/verify/$'),
    re.compile(r'^/api/sessions/enrollments/\d+/verify-payment/$'),
)


class MaintenanceModeMiddleware:
    """
    While PlatformSetting.maintenance_mode is on, API writes from anyone but
    platform admins are answered with 503. Reads keep working.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        if self._blocked(request):
            return JsonResponse(
                {"error": "The platform is under maintenance. Please try again later."},
                status=503,
            )
        return self.get_response(request)

    def _blocked(self, request):
        if request.method in SAFE_METHODS or not request.path.startswith('/api/'):
            return False
        if any(pattern.match(request.path) for pattern in ALWAYS_OPEN):
            return False
        if not PlatformSetting.load().maintenance_mode:
            return False
        return not is_platform_admin(self._user(request))

    def _user(self, request):
        user = getattr(request, 'user', None)
        if user is not None and user.is_authenticated:
            return user
        # API clients send a bearer token that only DRF resolves, so resolve it here too.
        try:
            result = JWTAuthentication().authenticate(request)
        except AuthenticationFailed as exc:
            logger.info("Maintenance check ignored an unusable token: %s", exc)
            return None
        return result[0] if result else None
