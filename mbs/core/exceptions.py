"""
Errors raised by the domain services and the API exception handler that
turns them into responses.
"""
import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler, set_rollback

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    """Base class for errors a view reports to the client as-is"""
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = 'The request could not be processed'

    def __init__(self, message=None, errors=None, warnings=None):
        self.message = message or self.default_message
        self.errors = errors
        self.warnings = warnings
        super().__init__(self.message)

    def get_payload(self):
        payload = {'error': self.message}
        if self.errors is not None:
            payload['errors'] = self.errors
        if self.warnings is not None:
            payload['warnings'] = self.warnings
        return payload

    def to_response(self):
        return Response(self.get_payload(), status=self.status_code)


class ValidationFailed(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = 'Invalid data'


class NotFound(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = 'Not found'


class Conflict(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    default_message = 'The operation conflicts with existing data'


class StoreSelectionError(ServiceError):
    code = None

    def get_payload(self):
        payload = super().get_payload()
        payload['status'] = self.code
        return payload


class StoreRequired(StoreSelectionError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = 'store_required'
    default_message = 'Please select a store'


class StoreInvalid(StoreSelectionError):
    status_code = status.HTTP_404_NOT_FOUND
    code = 'store_invalid'
    default_message = 'The selected store was not found'


def api_exception_handler(exc, context):
    """DRF exception handler that also understands ServiceError"""
    response = exception_handler(exc, context)
    if response is not None:
        return response

    if isinstance(exc, ServiceError):
        set_rollback()
        return exc.to_response()

    request = context.get('request')
    path = request.path if request is not None else 'unknown path'
    logger.error(f"Unexpected error on {path}: {str(exc)}", exc_info=exc)
    set_rollback()
    return Response({'error': 'An unexpected error occurred'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
