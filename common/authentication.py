from rest_framework.authentication import BaseAuthentication


class JWTUser:
    """
    Request user built from a validated JWT payload.

    Mimics the attributes DRF and Django expect from request.user without
    a local user table; identities live in the external identity service.
    """

    def __init__(self, payload):
        self.id = str(payload.get('user_id'))
        self.pk = self.id
        self.email = payload.get('email', '')
        self.username = self.email
        self.first_name = payload.get('first_name', '')
        self.last_name = payload.get('last_name', '')
        self.is_active = True
        self.is_staff = False
        self.is_superuser = bool(payload.get('is_super_admin', False))
        self.permissions = payload.get('permissions', {}) or {}

    def __str__(self):
        return self.email

    @property
    def is_anonymous(self):
        return False

    @property
    def is_authenticated(self):
        return True

    def get_username(self):
        return self.username

    def get_full_name(self):
        return f"{self.first_name} {self.last_name}".strip() or self.email


class JWTRequestAuthentication(BaseAuthentication):
    """
    DRF authentication backed by JWTAuthenticationMiddleware.

    The middleware has already verified the token; this class only exposes
    the decoded payload as request.user.
    """

    def authenticate(self, request):
        payload = getattr(request._request, 'jwt_payload', None)
        if not payload:
            return None
        return (JWTUser(payload), None)

    def authenticate_header(self, request):
        return 'Bearer'
