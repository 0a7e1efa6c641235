"""
Standardized JSON response utilities for API endpoints.

Provides consistent response formats for success and error responses across all routes.
Error bodies always carry the human-readable message under ``error`` so that
clients can display it directly; ``code`` carries the machine-readable kind.
"""

from typing import Any, Dict, Optional, Union
from flask import jsonify, Response
from http import HTTPStatus


def success_response(
    data: Any = None,
    message: str = "Success",
    status_code: int = HTTPStatus.OK
) -> tuple[Response, int]:
    """
    Generate a standardized success response.

    Args:
        data: Response payload (dict, list, or any JSON-serializable data)
        message: Success message to include in response
        status_code: HTTP status code (default: 200 OK)

    Returns:
        Tuple of (JSON response, status code)

    Example:
        >>> return success_response({"event": event_dict}, "Evento creado", 201)
        ({
            "success": true,
            "message": "Evento creado",
            "data": {"event": {...}}
        }, 201)
    """
    response_body = {
        "success": True,
        "message": message,
    }

    if data is not None:
        response_body["data"] = data

    return jsonify(response_body), status_code


def error_response(
    code: str,
    message: str,
    details: Optional[Union[str, Dict[str, Any], list]] = None,
    status_code: int = HTTPStatus.BAD_REQUEST
) -> tuple[Response, int]:
    """
    Generate a standardized error response.

    Args:
        code: Error code identifier (e.g., "QUOTA_EXCEEDED", "VALIDATION_ERROR")
        message: Human-readable error message
        details: Additional error details (string or dict with field-level errors)
        status_code: HTTP status code (default: 400 Bad Request)

    Returns:
        Tuple of (JSON response, status code)

    Example:
        >>> return error_response(
        ...     "VALIDATION_ERROR",
        ...     "RUT, nombre y apellido son requeridos",
        ...     {"rut": ["Missing data for required field."]},
        ...     400
        ... )
        ({
            "success": false,
            "error": "RUT, nombre y apellido son requeridos",
            "code": "VALIDATION_ERROR",
            "details": {"rut": ["Missing data for required field."]}
        }, 400)
    """
    response_body = {
        "success": False,
        "error": message,
        "code": code,
    }

    if details is not None:
        response_body["details"] = details

    return jsonify(response_body), status_code


# Convenience functions for common HTTP responses

def ok(data: Any = None, message: str = "Success") -> tuple[Response, int]:
    """
    200 OK response.

    Args:
        data: Response payload
        message: Success message

    Returns:
        Tuple of (JSON response, 200)
    """
    return success_response(data, message, HTTPStatus.OK)


def created(data: Any = None, message: str = "Resource created") -> tuple[Response, int]:
    """
    201 Created response.

    Args:
        data: Created resource data
        message: Success message

    Returns:
        Tuple of (JSON response, 201)
    """
    return success_response(data, message, HTTPStatus.CREATED)


def accepted(data: Any = None, message: str = "Request accepted") -> tuple[Response, int]:
    """202 Accepted response (for work handed to the Celery queue)."""
    return success_response(data, message, HTTPStatus.ACCEPTED)


def bad_request(message: str, details: Optional[Union[str, Dict[str, Any], list]] = None) -> tuple[Response, int]:
    """
    400 Bad Request error response.

    Args:
        message: Error message
        details: Additional error details

    Returns:
        Tuple of (JSON response, 400)
    """
    return error_response("BAD_REQUEST", message, details, HTTPStatus.BAD_REQUEST)


def unauthorized(message: str = "No autenticado", details: Optional[str] = None) -> tuple[Response, int]:
    """
    401 Unauthorized error response.

    Args:
        message: Error message
        details: Additional error details

    Returns:
        Tuple of (JSON response, 401)
    """
    return error_response("UNAUTHORIZED", message, details, HTTPStatus.UNAUTHORIZED)


def forbidden(message: str = "Acceso denegado", details: Optional[Union[str, Dict[str, Any]]] = None) -> tuple[Response, int]:
    """
    403 Forbidden error response.

    Args:
        message: Error message
        details: Additional error details

    Returns:
        Tuple of (JSON response, 403)
    """
    return error_response("FORBIDDEN", message, details, HTTPStatus.FORBIDDEN)


def not_found(message: str = "Recurso no encontrado", details: Optional[str] = None) -> tuple[Response, int]:
    """
    404 Not Found error response.

    Args:
        message: Error message (e.g. "Registro no encontrado")
        details: Additional error details

    Returns:
        Tuple of (JSON response, 404)
    """
    return error_response("NOT_FOUND", message, details, HTTPStatus.NOT_FOUND)


def conflict(message: str, details: Optional[Union[str, Dict[str, Any]]] = None) -> tuple[Response, int]:
    """
    409 Conflict error response.

    Args:
        message: Error message
        details: Additional error details

    Returns:
        Tuple of (JSON response, 409)
    """
    return error_response("CONFLICT", message, details, HTTPStatus.CONFLICT)


def validation_error(errors: Dict[str, Any], message: str = "Validation failed") -> tuple[Response, int]:
    """
    422 Unprocessable Entity for field-level validation errors.

    Args:
        errors: Dictionary of field-level validation errors
        message: Error message

    Returns:
        Tuple of (JSON response, 422)
    """
    return error_response("VALIDATION_ERROR", message, errors, HTTPStatus.UNPROCESSABLE_ENTITY)


def too_many_requests(message: str = "Demasiadas solicitudes. Intenta nuevamente en un momento.",
                      details: Optional[Dict[str, Any]] = None) -> tuple[Response, int]:
    """429 Too Many Requests response used by the rate limiter."""
    return error_response("RATE_LIMITED", message, details, HTTPStatus.TOO_MANY_REQUESTS)


def internal_error(message: str = "Error interno del servidor", details: Optional[str] = None) -> tuple[Response, int]:
    """
    500 Internal Server Error response.

    Args:
        message: Error message
        details: Additional error details (omit stack traces in production)

    Returns:
        Tuple of (JSON response, 500)
    """
    return error_response("INTERNAL_ERROR", message, details, HTTPStatus.INTERNAL_SERVER_ERROR)


def service_unavailable(message: str = "Servicio no disponible", details: Optional[str] = None) -> tuple[Response, int]:
    """
    503 Service Unavailable response.

    Args:
        message: Error message
        details: Additional error details

    Returns:
        Tuple of (JSON response, 503)
    """
    return error_response("SERVICE_UNAVAILABLE", message, details, HTTPStatus.SERVICE_UNAVAILABLE)


def service_error_response(error) -> tuple[Response, int]:
    """
    Translate a ServiceError into a JSON error response using its status code.

    Args:
        error: accredia.services.errors.ServiceError instance

    Returns:
        Tuple of (JSON response, error.status_code)
    """
    return error_response(error.code, error.message, error.details, error.status_code)


def paginated(items: list, total: int, limit: int, offset: int, message: str = "Success") -> tuple[Response, int]:
    """
    200 OK response for list endpoints.

    Args:
        items: Serialized rows of the current page
        total: Total rows matching the filters
        limit: Page size applied
        offset: Offset applied

    Returns:
        Tuple of (JSON response, 200)
    """
    return success_response({
        "items": items,
        "pagination": {
            "total": total,
            "limit": limit,
            "offset": offset,
        }
    }, message, HTTPStatus.OK)
