import logging

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db.models import ProtectedError, RestrictedError
from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler, set_rollback

logger = logging.getLogger(__name__)


class InsufficientStock(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Insufficient stock in the selected batch.'
    default_code = 'insufficient_stock'


class ResourceInUse(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'This record is still referenced and cannot be deleted.'
    default_code = 'in_use'


class SetupAlreadyDone(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Setup has already been completed.'
    default_code = 'setup_done'


def _error(code, message, status_code):
    return Response({'ok': False, 'error': {'code': code, 'message': message}}, status=status_code)


def api_exception_handler(exc, context):
    if isinstance(exc, (ProtectedError, RestrictedError)):
        set_rollback()
        return _error(ResourceInUse.default_code, str(ResourceInUse.default_detail), 400)
    if isinstance(exc, DjangoValidationError):
        set_rollback()
        return _error('invalid', exc.message_dict if hasattr(exc, 'error_dict') else exc.messages, 400)

    resp = drf_exception_handler(exc, context)
    if resp is None:
        logger.exception('unhandled API error: %s', exc)
        message = str(exc) if settings.DEBUG else 'Internal server error'
        return _error('server_error', message, 500)

    # normalize response
    if isinstance(resp.data, dict):
        detail = resp.data.get('detail') or resp.data
    else:
        detail = resp.data
    out = _error(getattr(exc, 'default_code', 'api_error'), detail, resp.status_code)
    for header in ('WWW-Authenticate', 'Retry-After'):
        if resp.has_header(header):
            out[header] = resp[header]
    return out
