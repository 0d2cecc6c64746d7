"""
Custom Exceptions for AlumniTrack
=================================

Use these instead of generic Exception so callers can tell a server
rejection from a dropped connection, and so the CLI can print a clean
message instead of a traceback.

Usage:
    from alumnitrack.exceptions import APIError, NotFoundError

    try:
        survey = await api.get_survey(survey_id)
    except NotFoundError:
        console.print("[red]Survey not found[/red]")
"""

from typing import Optional, Any, Dict


class AlumniTrackError(Exception):
    """Base exception for all AlumniTrack errors"""

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


class ConfigurationError(AlumniTrackError):
    """Invalid client configuration"""

    def __init__(self, message: str):
        super().__init__(message, code="CONFIG_ERROR")


# ============================================
# API Errors
# ============================================

class APIError(AlumniTrackError):
    """The server answered with a non-2xx status"""

    def __init__(
        self,
        message: str,
        status_code: int = 0,
        code: str = "API_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, code=code, details=details)
        self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["status_code"] = self.status_code
        return data


class APIConnectionError(APIError):
    """The server could not be reached"""

    def __init__(self, message: str = "Cannot connect to server"):
        super().__init__(message, status_code=0, code="CONNECTION_ERROR")


class AuthenticationError(APIError):
    """User authentication failed"""

    def __init__(self, message: str = "Authentication failed", status_code: int = 401):
        super().__init__(message, status_code=status_code, code="AUTH_FAILED")


class AuthorizationError(APIError):
    """User not authorized for this action"""

    def __init__(self, message: str = "Not authorized", status_code: int = 403):
        super().__init__(message, status_code=status_code, code="NOT_AUTHORIZED")


class NotFoundError(APIError):
    """Requested resource does not exist"""

    def __init__(self, message: str = "Not found", status_code: int = 404):
        super().__init__(message, status_code=status_code, code="NOT_FOUND")


# ============================================
# Survey Errors
# ============================================

class SurveyDefinitionError(AlumniTrackError):
    """A survey definition file or draft is unusable"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="SURVEY_DEFINITION_ERROR", details=details)
