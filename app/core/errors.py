"""
Request-level error taxonomy.

Services raise these; the handlers registered in app.main turn them into
HTTP responses. Persistence errors are not wrapped and surface as 500s.
"""
from typing import Optional


class AppError(Exception):
    """Base class for errors that map to a client-facing status code."""

    status_code: int = 500

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class AuthenticationFailed(AppError):
    """Missing, malformed, or expired credentials."""

    status_code = 401


class AuthorizationDenied(AppError):
    """An authorization check failed.

    ``reason`` is the machine-readable denial reason from the authorization
    engine, kept separate from the human-readable ``detail``.
    """

    status_code = 403

    def __init__(self, reason: str, detail: Optional[str] = None):
        super().__init__(detail or f"Access denied: {reason}")
        self.reason = reason


class ResourceNotFound(AppError):
    status_code = 404


class InvalidRequest(AppError):
    status_code = 400
