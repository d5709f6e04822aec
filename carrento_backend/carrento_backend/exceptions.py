"""
Error taxonomy shared by every app.

Services raise these; views let them propagate and the project exception
handler turns them into ``{"error_code", "error_message"}`` responses.
Multi-record operations never raise for partial failure, they return a
``BulkUpdateResult`` instead (see ``maintenance.services``).
"""
import logging

from django.db import DatabaseError
from rest_framework import exceptions, status
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class CarRentoError(exceptions.APIException):
    """Base class for domain errors surfaced to API callers."""


class Unauthorized(CarRentoError, exceptions.NotAuthenticated):
    default_detail = 'You must be logged in to perform this action.'
    default_code = 'unauthorized'


class Forbidden(CarRentoError, exceptions.PermissionDenied):
    default_detail = 'Your role does not allow this action.'
    default_code = 'forbidden'


class OwnershipError(Forbidden):
    default_detail = 'Booking not found or you do not have permission.'
    default_code = 'not_owner'


class NotFound(CarRentoError, exceptions.NotFound):
    default_code = 'not_found'


class ValidationError(CarRentoError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Invalid input.'
    default_code = 'validation_error'


class NotAvailable(CarRentoError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Car is not available for booking.'
    default_code = 'not_available'


class InvalidTransition(CarRentoError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'This status change is not allowed.'
    default_code = 'invalid_transition'


class BackendError(CarRentoError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = 'The data store could not complete the request. Please retry.'
    default_code = 'backend_error'


def carrento_exception_handler(exc, context):
    if isinstance(exc, DatabaseError):
        view = context.get('view')
        logger.error('Store failure in %s: %s', view.__class__.__name__ if view else 'unknown view', exc)
        exc = BackendError()

    response = exception_handler(exc, context)
    if response is not None and isinstance(exc, CarRentoError):
        response.data = {
            'error_code': exc.default_code,
            'error_message': exc.detail,
        }
    return response
