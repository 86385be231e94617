"""
Utility functions for API operations.
"""

import traceback

from fastapi.responses import JSONResponse

from .models import ErrorResponse
from .exceptions import APIException
from caltrigger.logger import UnifiedLogger
from caltrigger.settings.store import get_general_settings

# Create API logger
logger = UnifiedLogger(tag="api")


def _debug_mode() -> bool:
    settings = get_general_settings()
    debug_setting = settings.get("debug")
    return bool(debug_setting and getattr(debug_setting, "value", False))


def create_error_response(exception: Exception) -> JSONResponse:
    """
    Create a standardized error response from an exception.

    Args:
        exception: The exception that occurred

    Returns:
        JSONResponse with standardized error format
    """
    if isinstance(exception, APIException):
        error_response = ErrorResponse(
            error=exception.error_type,
            message=exception.detail,
            details=exception.details
        )
        return JSONResponse(
            status_code=exception.status_code,
            content=error_response.model_dump()
        )

    logger.error(f"Unhandled API error: {exception}", error_type=type(exception).__name__)

    if _debug_mode():
        # Include full traceback for debugging
        error_response = ErrorResponse(
            error="InternalServerError",
            message=str(exception),
            details={
                "error_type": type(exception).__name__,
                "traceback": "".join(traceback.format_exception(exception)),
            }
        )
    else:
        # Generic error for production
        error_response = ErrorResponse(
            error="InternalServerError",
            message="An unexpected error occurred",
            details={"error_type": type(exception).__name__}
        )

    return JSONResponse(
        status_code=500,
        content=error_response.model_dump()
    )
