import jwt
from django.conf import settings
from django.http import JsonResponse
from django.utils.deprecation import MiddlewareMixin
import logging

logger = logging.getLogger(__name__)


class JWTAuthenticationMiddleware(MiddlewareMixin):
    """
    JWT Authentication Middleware for HMS.

    Validates the bearer token issued by the identity service and attaches
    the actor identity to the request. HMS never authenticates users itself,
    it only passes the actor id through to audit fields.
    """

    skip_paths = [
        '/admin/',
        '/static/',
        '/media/',
        '/health/',
        '/api/schema/',
        '/api/docs/',
        '/api/redoc/',
    ]

    required_fields = ['user_id', 'email']

    def process_request(self, request):
        """Process incoming request and validate JWT."""

        if any(request.path.startswith(path) for path in self.skip_paths):
            return None

        # Get JWT token from Authorization header
        auth_header = request.META.get('HTTP_AUTHORIZATION', '')

        if not auth_header.startswith('Bearer '):
            return self._error(
                'Missing or invalid Authorization header',
                'Expected format: Bearer <token>',
                401
            )

        token = auth_header.split(' ', 1)[1].strip()

        try:
            payload = jwt.decode(
                token,
                settings.JWT_SECRET_KEY,
                algorithms=[settings.JWT_ALGORITHM]
            )
        except jwt.ExpiredSignatureError:
            return self._error('Token expired', 'JWT token has expired', 401)
        except jwt.InvalidTokenError as e:
            return self._error('Invalid token', str(e), 401)

        # Validate required fields
        for field in self.required_fields:
            if field not in payload:
                return self._error('Invalid JWT token', f'Missing required field: {field}', 401)

        request.user_id = str(payload['user_id'])
        request.email = payload['email']
        request.is_super_admin = bool(payload.get('is_super_admin', False))
        request.permissions = payload.get('permissions', {}) or {}
        request.jwt_payload = payload

        logger.debug(f"JWT validated for user {payload['email']}")
        return None

    @staticmethod
    def _error(error, detail, status):
        code = 'not_authenticated' if status == 401 else 'permission_denied'
        return JsonResponse({
            'success': False,
            'error': {'code': code, 'message': f'{error}: {detail}'}
        }, status=status)
