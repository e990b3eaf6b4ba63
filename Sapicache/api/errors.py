"""Error handling for the Sapicache API."""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

logger = logging.getLogger("SAPICACHE.API.Errors")


class APIError(Exception):
    """Base API error."""

    def __init__(self, message: str, status_code: int = 400, error_code: str = "API_ERROR"):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        super().__init__(message)


class ValidationError(APIError):
    """Validation error."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, 400, "VALIDATION_ERROR")
        self.details = details


class NotFoundError(APIError):
    """Resource not found."""

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message, 404, "NOT_FOUND")


class ServiceUnavailableError(APIError):
    """Service unavailable."""

    def __init__(self, message: str = "Service temporarily unavailable"):
        super().__init__(message, 503, "SERVICE_UNAVAILABLE")


def format_error_response(error: Exception, request_id: Optional[str] = None) -> Tuple[Dict[str, Any], int]:
    """Format an exception as the standard response envelope."""
    timestamp = datetime.now(timezone.utc).isoformat()
    if isinstance(error, APIError):
        return {
            "success": False,
            "data": {"message": error.message, "details": getattr(error, "details", None)},
            "error": error.error_code,
            "request_id": request_id,
            "timestamp": timestamp,
        }, error.status_code

    if isinstance(error, HTTPException):
        return {
            "success": False,
            "data": {"message": error.description or str(error)},
            "error": "HTTP_ERROR",
            "request_id": request_id,
            "timestamp": timestamp,
        }, error.code or 400

    logger.error(f"Unhandled exception: {type(error).__name__}: {str(error)}", exc_info=error)
    return {
        "success": False,
        "data": {"message": "An unexpected error occurred. Please try again later."},
        "error": "INTERNAL_SERVER_ERROR",
        "request_id": request_id,
        "timestamp": timestamp,
    }, 500


def setup_error_handlers(app: Flask) -> None:
    """Register error handlers with Flask app."""

    @app.errorhandler(APIError)
    def handle_api_error(error):
        response, status = format_error_response(error, getattr(request, "request_id", None))
        return jsonify(response), status

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        response, status = format_error_response(error, getattr(request, "request_id", None))
        return jsonify(response), status

    @app.errorhandler(Exception)
    def handle_generic_error(error):
        response, status = format_error_response(error, getattr(request, "request_id", None))
        return jsonify(response), status


__all__ = [
    "APIError",
    "ValidationError",
    "NotFoundError",
    "ServiceUnavailableError",
    "format_error_response",
    "setup_error_handlers",
]
