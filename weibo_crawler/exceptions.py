"""
Error hierarchy for the Weibo crawler.

Every error carries a machine-readable ErrorCode so callers (CLI, service
layers) can render a structured failure object without string matching.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """Machine-readable failure codes."""
    DATA_FETCH = "data_fetch"
    COOKIE_REFRESH = "cookie_refresh"
    PRECONDITION = "precondition"
    SESSION_EXPIRED = "session_expired"
    LOGIN_FAILED = "login_failed"
    LOGIN_NOT_SUPPORTED = "login_not_supported"


class CrawlerError(Exception):
    """Base error for crawler operations."""

    code: ErrorCode = ErrorCode.DATA_FETCH

    def __init__(self, message: str = ""):
        super().__init__(message or self.code.value)
        self.message = message or self.code.value

    def to_dict(self) -> dict:
        """Structured failure object for outer layers."""
        return {
            "success": False,
            "code": self.code.value,
            "message": self.message,
        }


class DataFetchError(CrawlerError):
    """Platform responded but signaled an application failure."""
    code = ErrorCode.DATA_FETCH


class CookieRefreshError(DataFetchError):
    """The session-scoping cookie was not issued after a refresh."""
    code = ErrorCode.COOKIE_REFRESH


class PreconditionError(CrawlerError):
    """Operation invoked without a live session and without auto-login."""
    code = ErrorCode.PRECONDITION


class SessionExpiredError(PreconditionError):
    """Liveness probe failed and auto-login is not permitted."""
    code = ErrorCode.SESSION_EXPIRED


class LoginError(CrawlerError):
    """Fatal failure of a login flow."""
    code = ErrorCode.LOGIN_FAILED

    def __init__(self, message: str = "", step: str = ""):
        super().__init__(message)
        self.step = step

    def to_dict(self) -> dict:
        data = super().to_dict()
        if self.step:
            data["step"] = self.step
        return data


class LoginNotSupportedError(LoginError):
    """Requested login flow is not implemented."""
    code = ErrorCode.LOGIN_NOT_SUPPORTED
