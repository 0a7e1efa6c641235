"""
Domain exceptions raised by the service layer.

Route handlers catch ServiceError and turn it into a JSON error response with
the status code carried by the exception.
"""

from http import HTTPStatus


class ServiceError(Exception):
    """Base class for expected business-rule failures."""

    status_code = HTTPStatus.BAD_REQUEST
    code = 'BAD_REQUEST'

    def __init__(self, message, status_code=None, details=None):
        super().__init__(message)
        self.message = message
        self.details = details
        if status_code is not None:
            self.status_code = status_code


class ValidationFailed(ServiceError):
    status_code = HTTPStatus.BAD_REQUEST
    code = 'VALIDATION_ERROR'


class NotFoundError(ServiceError):
    status_code = HTTPStatus.NOT_FOUND
    code = 'NOT_FOUND'


class ForbiddenError(ServiceError):
    status_code = HTTPStatus.FORBIDDEN
    code = 'FORBIDDEN'


class UnauthorizedError(ServiceError):
    status_code = HTTPStatus.UNAUTHORIZED
    code = 'UNAUTHORIZED'


class ConflictError(ServiceError):
    status_code = HTTPStatus.CONFLICT
    code = 'CONFLICT'


class ExternalServiceError(ServiceError):
    """Failure talking to Stripe, Resend or S3."""

    status_code = HTTPStatus.BAD_GATEWAY
    code = 'EXTERNAL_SERVICE_ERROR'
