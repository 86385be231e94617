"""
Custom exceptions and error handling for the API module.
"""

from typing import Dict, Optional
from fastapi import HTTPException


class APIException(HTTPException):
    """Base exception for API-related errors."""

    def __init__(
        self,
        status_code: int,
        error_type: str,
        message: str,
        details: Optional[Dict] = None
    ):
        self.error_type = error_type
        self.details = details
        super().__init__(status_code=status_code, detail=message)


class RuntimeUnavailableError(APIException):
    """Raised when the runtime has not finished bootstrapping."""

    def __init__(self):
        super().__init__(
            status_code=503,
            error_type="RuntimeUnavailable",
            message="Runtime is not initialized yet",
        )


class SchedulerError(APIException):
    """Raised when scheduler operations fail."""

    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(
            status_code=500,
            error_type="SchedulerError",
            message=f"Scheduler error: {message}",
            details=details
        )


class SystemConfigurationError(APIException):
    """Raised when there are system configuration issues."""

    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(
            status_code=500,
            error_type="SystemConfiguration",
            message=f"System configuration error: {message}",
            details=details
        )
