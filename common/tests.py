"""
Tests for HMS JWT authentication, permissions, error rendering and
transaction helpers.
"""

import datetime
import uuid

import jwt
from django.db import IntegrityError, OperationalError
from django.test import TestCase, SimpleTestCase, RequestFactory, override_settings
from django.http import JsonResponse
from django.utils import timezone
from rest_framework import serializers
from rest_framework.exceptions import PermissionDenied
from rest_framework.request import Request

from common.authentication import JWTRequestAuthentication, JWTUser
from common.exceptions import (
    ConcurrencyConflict, InvalidState, NotFound, api_exception_handler,
)
from common.middleware import JWTAuthenticationMiddleware
from common.numbering import next_daily_number
from common.permissions import check_permission, HMSActionPermission, HMSPermissions
from common.transactions import atomic_operation

TEST_SECRET = 'test-jwt-secret-key'


@override_settings(JWT_SECRET_KEY=TEST_SECRET, JWT_ALGORITHM='HS256')
class JWTMiddlewareTest(SimpleTestCase):
    """Test JWT authentication middleware."""

    def setUp(self):
        self.factory = RequestFactory()
        self.middleware = JWTAuthenticationMiddleware(lambda request: None)

    def create_test_jwt(self, payload=None, secret=TEST_SECRET):
        """Create a test JWT token."""
        default_payload = {
            'user_id': str(uuid.uuid4()),
            'email': 'test@hospital.com',
            'is_super_admin': False,
            'permissions': {
                'hms.billing.view': 'all',
                'hms.billing.create': True,
            },
        }
        if payload:
            default_payload.update(payload)
        return jwt.encode(default_payload, secret, algorithm='HS256')

    def test_valid_jwt_processing(self):
        token = self.create_test_jwt({'user_id': 'abc-123'})
        request = self.factory.get('/api/billing/bills/', HTTP_AUTHORIZATION=f'Bearer {token}')

        response = self.middleware.process_request(request)

        self.assertIsNone(response)
        self.assertEqual(request.user_id, 'abc-123')
        self.assertEqual(request.email, 'test@hospital.com')
        self.assertFalse(request.is_super_admin)
        self.assertIn('hms.billing.view', request.permissions)

    def test_missing_authorization_header(self):
        request = self.factory.get('/api/billing/bills/')
        response = self.middleware.process_request(request)

        self.assertIsInstance(response, JsonResponse)
        self.assertEqual(response.status_code, 401)

    def test_invalid_jwt_format(self):
        request = self.factory.get('/api/wards/', HTTP_AUTHORIZATION='Bearer invalid-token')
        response = self.middleware.process_request(request)
        self.assertEqual(response.status_code, 401)

    def test_wrong_signature(self):
        token = self.create_test_jwt(secret='some-other-secret')
        request = self.factory.get('/api/wards/', HTTP_AUTHORIZATION=f'Bearer {token}')
        self.assertEqual(self.middleware.process_request(request).status_code, 401)

    def test_expired_token(self):
        expired = timezone.now() - datetime.timedelta(minutes=5)
        token = self.create_test_jwt({'exp': int(expired.timestamp())})
        request = self.factory.get('/api/wards/', HTTP_AUTHORIZATION=f'Bearer {token}')
        self.assertEqual(self.middleware.process_request(request).status_code, 401)

    def test_missing_required_field(self):
        token = jwt.encode({'user_id': str(uuid.uuid4())}, TEST_SECRET, algorithm='HS256')
        request = self.factory.get('/api/wards/', HTTP_AUTHORIZATION=f'Bearer {token}')
        self.assertEqual(self.middleware.process_request(request).status_code, 401)

    def test_skip_paths(self):
        for path in ['/admin/', '/health/', '/api/docs/', '/api/schema/']:
            request = self.factory.get(path)
            self.assertIsNone(self.middleware.process_request(request))


class PermissionTest(SimpleTestCase):
    """Test permission checking functions."""

    def setUp(self):
        self.factory = RequestFactory()

    def create_mock_request(self, permissions=None, is_super_admin=False):
        request = self.factory.get('/')
        request.user_id = str(uuid.uuid4())
        request.email = 'test@hospital.com'
        request.is_super_admin = is_super_admin
        request.permissions = permissions or {}
        return request

    def test_check_permission_boolean(self):
        request = self.create_mock_request({'hms.billing.create': True, 'hms.billing.delete': False})
        self.assertTrue(check_permission(request, 'hms.billing.create'))
        self.assertFalse(check_permission(request, 'hms.billing.delete'))

    def test_check_permission_scopes(self):
        request = self.create_mock_request({'hms.ipd.view': 'all', 'hms.icu.view': 'own', 'hms.wards.view': 'none'})
        self.assertTrue(check_permission(request, 'hms.ipd.view'))
        self.assertTrue(check_permission(request, 'hms.icu.view', request.user_id))
        self.assertFalse(check_permission(request, 'hms.icu.view', str(uuid.uuid4())))
        self.assertFalse(check_permission(request, 'hms.wards.view'))

    def test_check_permission_missing(self):
        request = self.create_mock_request({})
        self.assertFalse(check_permission(request, HMSPermissions.INSURANCE_APPROVE))

    def test_super_admin_bypass(self):
        request = self.create_mock_request({}, is_super_admin=True)
        self.assertTrue(check_permission(request, HMSPermissions.INSURANCE_APPROVE))

    def test_action_permission_uses_mapping(self):
        class View:
            action = 'update_status'
            permission_mapping = {'update_status': HMSPermissions.INSURANCE_APPROVE}

        permission = HMSActionPermission()
        allowed = self.create_mock_request({HMSPermissions.INSURANCE_APPROVE: True})
        denied = self.create_mock_request({HMSPermissions.INSURANCE_EDIT: True})

        self.assertTrue(permission.has_permission(allowed, View()))
        self.assertFalse(permission.has_permission(denied, View()))

    def test_action_permission_requires_identity(self):
        class View:
            action = 'list'
            permission_mapping = {}

        request = self.factory.get('/')
        self.assertFalse(HMSActionPermission().has_permission(request, View()))


class AuthenticationTest(SimpleTestCase):

    def test_authenticate_from_payload(self):
        django_request = RequestFactory().get('/')
        django_request.jwt_payload = {'user_id': 'u-1', 'email': 'nurse@hospital.com', 'is_super_admin': True}

        user, auth = JWTRequestAuthentication().authenticate(Request(django_request))

        self.assertIsInstance(user, JWTUser)
        self.assertEqual(user.id, 'u-1')
        self.assertTrue(user.is_authenticated)
        self.assertTrue(user.is_superuser)
        self.assertIsNone(auth)

    def test_no_payload(self):
        self.assertIsNone(JWTRequestAuthentication().authenticate(Request(RequestFactory().get('/'))))


class ExceptionHandlerTest(SimpleTestCase):

    def test_domain_error_envelope(self):
        response = api_exception_handler(InvalidState("Bed B1 is Occupied"), {})
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data, {
            'success': False,
            'error': {'code': 'invalid_state', 'message': 'Bed B1 is Occupied'}
        })

    def test_retryable_flag(self):
        response = api_exception_handler(ConcurrencyConflict(), {})
        self.assertEqual(response.status_code, 409)
        self.assertTrue(response.data['error']['retryable'])

    def test_not_found_default_message(self):
        response = api_exception_handler(NotFound(), {})
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data['error']['message'], 'Resource not found')

    def test_validation_error_keeps_fields(self):
        response = api_exception_handler(serializers.ValidationError({'amount': ['Required']}), {})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['error']['code'], 'invalid_argument')
        self.assertIn('amount', response.data['error']['message'])

    def test_permission_denied(self):
        response = api_exception_handler(PermissionDenied(), {})
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.data['error']['code'], 'permission_denied')

    def test_unexpected_error_is_500(self):
        response = api_exception_handler(RuntimeError('boom'), {})
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.data['error']['code'], 'server_error')


class TransactionTest(TestCase):

    def test_store_errors_become_concurrency_conflict(self):
        for error in (OperationalError('lock timeout'), IntegrityError('duplicate key')):
            with self.assertRaises(ConcurrencyConflict):
                with atomic_operation('test'):
                    raise error

    def test_domain_errors_pass_through(self):
        with self.assertRaises(InvalidState):
            with atomic_operation('test'):
                raise InvalidState('not allowed')


class NumberingTest(TestCase):

    def test_daily_sequence(self):
        from apps.patients.models import PatientProfile
        from apps.billing.models import Bill

        patient = PatientProfile.objects.create(first_name='Isha', gender='female', mobile_primary='+919877777777')
        today = timezone.localdate().strftime('%Y%m%d')

        self.assertEqual(next_daily_number(Bill, 'bill_number', 'BILL'), f'BILL/{today}/001')
        Bill.objects.create(patient=patient)
        self.assertEqual(next_daily_number(Bill, 'bill_number', 'BILL'), f'BILL/{today}/002')
        self.assertEqual(next_daily_number(Bill, 'bill_number', 'CLM', sep='-'), f'CLM-{today}-001')

    def test_sequence_compares_numerically_past_999(self):
        from apps.patients.models import PatientProfile
        from apps.billing.models import Bill

        patient = PatientProfile.objects.create(first_name='Isha', gender='female', mobile_primary='+919877777777')
        today = timezone.localdate().strftime('%Y%m%d')
        Bill.objects.create(patient=patient, bill_number=f'BILL/{today}/999')
        Bill.objects.create(patient=patient, bill_number=f'BILL/{today}/1000')

        self.assertEqual(next_daily_number(Bill, 'bill_number', 'BILL'), f'BILL/{today}/1001')
        self.assertEqual(Bill.objects.create(patient=patient).bill_number, f'BILL/{today}/1001')


class HealthViewTest(TestCase):

    def test_health_without_token(self):
        response = self.client.get('/health/')
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()['success'])
