"""
Error taxonomy for the HMS core and the DRF exception handler that renders it.

Services raise the HMSError subclasses below; views never build error
responses by hand. Every API error leaves the service in the same envelope:

    {"success": false, "error": {"code": "...", "message": "..."}}
"""

import logging

from django.core.exceptions import ObjectDoesNotExist
from django.http import Http404
from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger(__name__)


class HMSError(APIException):
    """Base class for domain errors raised by service functions."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Request could not be processed'
    default_code = 'hms_error'
    retryable = False

    def __init__(self, message=None, code=None):
        super().__init__(detail=message or self.default_detail, code=code or self.default_code)
        self.message = str(self.detail)

    def __str__(self):
        return self.message


class NotFound(HMSError):
    """Referenced Bed/Ward/Admission/Bill/Claim does not exist."""
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Resource not found'
    default_code = 'not_found'


class InvalidState(HMSError):
    """Aggregate is not in the state the operation requires."""
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Operation not allowed in the current state'
    default_code = 'invalid_state'


class InvalidArgument(HMSError):
    """Malformed enum value or missing required field."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Invalid argument'
    default_code = 'invalid_argument'


class ReferentialConflict(HMSError):
    """Delete attempted on a row still referenced by live data."""
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Resource is still referenced'
    default_code = 'referential_conflict'


class ConcurrencyConflict(HMSError):
    """Transaction failed on a lock or constraint; the caller may retry."""
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Concurrent update detected, please retry'
    default_code = 'concurrency_conflict'
    retryable = True


def _error_body(code, message, retryable=False):
    error = {'code': code, 'message': message}
    if retryable:
        error['retryable'] = True
    return {'success': False, 'error': error}


def api_exception_handler(exc, context):
    """
    DRF EXCEPTION_HANDLER.

    Normalizes domain errors, DRF errors (validation, auth, permission) and
    unexpected exceptions into the error envelope.
    """
    if isinstance(exc, HMSError):
        return Response(
            _error_body(getattr(exc.detail, 'code', exc.default_code), exc.message, exc.retryable),
            status=exc.status_code
        )

    if isinstance(exc, ObjectDoesNotExist) and not isinstance(exc, Http404):
        exc = NotFound(str(exc) or None)
        return Response(_error_body(exc.default_code, exc.message), status=exc.status_code)

    response = drf_exception_handler(exc, context)
    if response is None:
        view = context.get('view')
        logger.exception(f"Unhandled error in {view.__class__.__name__ if view else 'API'}: {exc}")
        return Response(
            _error_body('server_error', 'Internal server error'),
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    data = response.data
    if isinstance(data, dict) and 'detail' in data and len(data) == 1:
        message = str(data['detail'])
        code = getattr(data['detail'], 'code', None) or 'api_error'
    else:
        # Serializer validation errors keep their field map
        message = data
        code = 'invalid_argument' if response.status_code == 400 else 'api_error'

    response.data = _error_body(code, message)
    return response
