"""
Domain errors raised by the ledger and catalog services.

The API-facing ones are DRF exceptions so the default exception handler
renders them as ``{"detail": ...}`` with the right status code.
"""
from rest_framework import exceptions, status


class InvalidArgument(exceptions.APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Invalid argument.'
    default_code = 'invalid_argument'


class NotFound(exceptions.NotFound):
    default_detail = 'Referenced record does not exist.'
    default_code = 'not_found'


class PermissionDenied(exceptions.PermissionDenied):
    default_detail = 'You are not allowed to perform this operation.'
    default_code = 'permission_denied'


class ConflictOrTransient(exceptions.APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'The stock ledger is busy, please retry.'
    default_code = 'conflict'


class ImmutableRecordError(Exception):
    """Raised when code tries to change or delete an append-only record"""
