"""
Error handling utilities for the PictoTale story pipeline.

Provides structured error responses, the API exception hierarchy used by the
service layer, and the pipeline error taxonomy used by the orchestrator and
the retry executor.
"""

import logging
import traceback
from typing import Optional, Dict, Any
from flask import jsonify, request

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Base exception for API errors."""

    def __init__(
        self,
        message: str,
        error_code: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize API error.

        Args:
            message: Human-readable error message
            error_code: Machine-readable error code
            status_code: HTTP status code
            details: Additional error details
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}


class ValidationError(APIError):
    """Raised when input validation fails."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            status_code=400,
            details=details
        )


class NotFoundError(APIError):
    """Raised when a resource is not found."""

    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            message=f"{resource_type} with ID '{resource_id}' not found.",
            error_code="NOT_FOUND",
            status_code=404,
            details={"resource_type": resource_type, "resource_id": resource_id}
        )


class InvalidStateError(APIError):
    """Raised when a story is not in a status that allows the requested operation."""

    def __init__(self, story_id: str, current_status: str, message: Optional[str] = None):
        super().__init__(
            message=message or f"Story '{story_id}' cannot be modified while '{current_status}'.",
            error_code="INVALID_STATE",
            status_code=409,
            details={"story_id": story_id, "status": current_status}
        )


class ServiceUnavailableError(APIError):
    """Raised when an external service is unavailable."""

    def __init__(self, service: str, message: Optional[str] = None):
        error_message = message or f"Service '{service}' is currently unavailable."
        super().__init__(
            message=error_message,
            error_code="SERVICE_UNAVAILABLE",
            status_code=503,
            details={"service": service}
        )


class PersistenceError(APIError):
    """
    Raised when the document store or object storage cannot complete a write or read.

    Surfaced to whichever caller invoked the failing step. The retry executor
    never classifies it as retryable.
    """

    def __init__(self, operation: str, message: str):
        super().__init__(
            message=f"Persistence failure during {operation}: {message}",
            error_code="PERSISTENCE_ERROR",
            status_code=503,
            details={"operation": operation}
        )
        self.operation = operation


# ---------------------------------------------------------------------------
# Pipeline error taxonomy
# ---------------------------------------------------------------------------

class PipelineError(Exception):
    """Base class for errors raised while a story run is in progress."""


class ProviderError(PipelineError):
    """An external provider call failed."""

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None):
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.status_code = status_code


class TransientProviderError(ProviderError):
    """Provider failure worth retrying (5xx, timeouts, dropped connections)."""


class NonRetryableProviderError(ProviderError):
    """Provider failure that will not improve on retry (auth, validation, exhausted quota)."""


class ContentSafetyViolation(PipelineError):
    """Generated text failed the safety gate. Fatal and never retried."""

    def __init__(self, flagged_terms, severity: str):
        terms = ", ".join(flagged_terms)
        super().__init__(f"Content safety check failed ({severity}): {terms}")
        self.flagged_terms = list(flagged_terms)
        self.severity = severity


class DegradableAssetError(PipelineError):
    """A non-essential asset could not be produced and was replaced by a fallback."""

    def __init__(self, asset: str, cause: Exception):
        super().__init__(f"{asset} degraded to fallback: {cause}")
        self.asset = asset
        self.cause = cause


def _log_error(error: Exception, status_code: int) -> None:
    where = f"{request.method} {request.path}" if request else "-"
    if status_code < 500:
        logger.warning(f"{where} -> {status_code} {type(error).__name__}: {error}")
    else:
        logger.error(f"{where} -> {status_code} {type(error).__name__}: {error}", exc_info=error)


def create_error_response(
    error: Exception,
    include_traceback: bool = False
) -> tuple:
    """
    Build the JSON body and status for an exception.

    APIError subclasses carry their own code and status. Anything else is
    reported as a 500 INTERNAL_ERROR whose message is hidden unless
    ``include_traceback`` is set.

    Returns:
        Tuple of (json_response, status_code)
    """
    if isinstance(error, APIError):
        status_code = error.status_code
        body: Dict[str, Any] = {"error": error.message, "error_code": error.error_code}
        if error.details:
            body["details"] = error.details
    else:
        status_code = 500
        body = {
            "error": str(error) if include_traceback else
            "An unexpected error occurred while handling the story request.",
            "error_code": "INTERNAL_ERROR",
            "error_type": type(error).__name__,
        }

    _log_error(error, status_code)
    if include_traceback:
        body["traceback"] = "".join(traceback.format_exception(type(error), error, error.__traceback__))
    return jsonify(body), status_code


def register_error_handlers(app, debug: bool = False):
    """
    Register JSON error handlers on the Flask app.

    Router-level 404 and 405 responses use the same body shape as APIError.
    """
    @app.errorhandler(APIError)
    def handle_api_error(error: APIError):
        return create_error_response(error, include_traceback=debug)

    @app.errorhandler(404)
    def handle_not_found(error):
        return create_error_response(NotFoundError("Resource", request.path))

    @app.errorhandler(405)
    def handle_method_not_allowed(error):
        return create_error_response(APIError(
            message=f"Method '{request.method}' not allowed for {request.path}.",
            error_code="METHOD_NOT_ALLOWED",
            status_code=405,
        ))

    @app.errorhandler(Exception)
    def handle_unexpected(error: Exception):
        return create_error_response(error, include_traceback=debug)
