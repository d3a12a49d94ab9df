import logging
import uuid

from flask import jsonify
from pydantic import ValidationError as PydanticValidationError
from werkzeug.exceptions import HTTPException

from keycabinet.schemas.error import ErrorResponse
from keycabinet.utils.exceptions import CabinetApiError, ValidationError

logger = logging.getLogger(__name__)


def _error_response(status_code: int, code: str, message: str, field=None, details=None):
    body = ErrorResponse(
        error={
            "code": code,
            "message": message,
            "field": field,
            "details": details,
        },
        request_id=str(uuid.uuid4()),
    )
    return jsonify(body.model_dump()), status_code


def parse_body(model, data):
    """Validate a JSON body against a pydantic model, raising our ValidationError."""
    try:
        return model(**(data or {}))
    except PydanticValidationError as exc:
        errors = exc.errors(include_url=False, include_context=False, include_input=False)
        raise ValidationError("Invalid request body", details={"errors": errors})


def register_error_handlers(app):
    """Convert exceptions to structured error responses."""

    @app.errorhandler(CabinetApiError)
    def handle_cabinet_error(e: CabinetApiError):
        logger.warning(f"API Error: {e.code} - {e.message}")
        return _error_response(e.status_code, e.code, e.message, e.field, e.details)

    @app.errorhandler(HTTPException)
    def handle_http_exception(e: HTTPException):
        logger.warning(f"HTTP Exception: {e.code} - {e.description}")
        return _error_response(
            e.code or 500,
            "HTTP_EXCEPTION",
            e.description or e.name,
            details={"status_code": e.code},
        )

    @app.errorhandler(Exception)
    def handle_unexpected(e: Exception):
        logger.error(f"Unexpected error: {str(e)}", exc_info=True)
        return _error_response(
            500,
            "INTERNAL_SERVER_ERROR",
            "An unexpected error occurred",
            details={"error_type": type(e).__name__},
        )
