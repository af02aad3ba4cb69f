"""
Domain exceptions
Raised by services and authorization helpers; translated to HTTP responses in main.
"""

from __future__ import annotations

from typing import Any, Optional


class AppError(Exception):
    """Base application error carrying a machine code and an HTTP status"""

    default_code = "APP_ERROR"
    status_code = 500

    def __init__(self, message: str, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code

    def to_payload(self) -> dict[str, Any]:
        return {
            "error": self.message,
            "code": self.code,
            "status": self.status_code,
            "success": False,
        }


class AuthorizationError(AppError):
    default_code = "AUTHORIZATION_ERROR"
    status_code = 403


class PermissionDeniedError(AuthorizationError):
    default_code = "PERMISSION_DENIED"


class ForbiddenError(AuthorizationError):
    default_code = "FORBIDDEN"


class NotFoundError(AppError):
    default_code = "NOT_FOUND"
    status_code = 404


class ConflictError(AppError):
    default_code = "CONFLICT"
    status_code = 409


class InvalidRequestError(AppError):
    default_code = "INVALID_REQUEST"
    status_code = 422


class SettingValidationError(InvalidRequestError):
    default_code = "INVALID_SETTING_VALUE"


class SettingsResolutionError(AppError):
    """A settings store read failed; never replaced by a default value"""

    default_code = "SETTINGS_UNAVAILABLE"
    status_code = 503
