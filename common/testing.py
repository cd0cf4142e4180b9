"""
Test helpers: JWTs signed with the configured secret and an APITestCase
that sends them.
"""

import uuid

import jwt
from django.conf import settings
from rest_framework.test import APITestCase


def make_token(permissions=None, **claims):
    """Create a signed JWT the middleware will accept."""
    payload = {
        'user_id': str(uuid.uuid4()),
        'email': 'staff@hospital.com',
        'is_super_admin': False,
        'permissions': permissions or {},
    }
    payload.update(claims)
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


class HMSAPITestCase(APITestCase):
    """APITestCase authenticated as a super admin unless told otherwise."""

    user_id = '7f1d7a4e-2b7e-4c55-9a51-0d3f0d7c8a10'

    def setUp(self):
        super().setUp()
        self.authenticate(is_super_admin=True)

    def authenticate(self, permissions=None, **claims):
        claims.setdefault('user_id', self.user_id)
        token = make_token(permissions, **claims)
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')
        return token
