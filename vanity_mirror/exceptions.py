"""Vanity Mirror exception classes."""

from datetime import datetime


class VanityMirrorError(Exception):
    """Base exception for all aggregation-layer errors."""

    status_code = 500

    def __init__(self, code: str, message: str, source: str | None = None) -> None:
        self.code = code
        self.message = message
        self.source = source
        super().__init__(f"[{code}] {message}")


class ConfigError(VanityMirrorError):
    """Raised when a required setting is missing or malformed."""

    def __init__(self, message: str, source: str | None = None) -> None:
        super().__init__("CONFIG_ERROR", message, source)


class NotConfiguredError(ConfigError):
    """Raised when a feature has no configuration at all."""

    status_code = 503


class ValidationError(VanityMirrorError):
    """Raised on a malformed request window."""

    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__("VALIDATION_ERROR", message)


class AuthError(VanityMirrorError):
    """Raised when an upstream rejects our credentials."""

    status_code = 401


class TokenExchangeError(AuthError):
    """Raised when the upstream's token infrastructure fails (bad grant, disabled account)."""

    status_code = 502


class PermissionDeniedError(VanityMirrorError):
    """Raised when access is denied."""

    status_code = 403


class NotFoundError(VanityMirrorError):
    """Raised when an account, project or package is not found."""

    status_code = 404


class RateLimitError(VanityMirrorError):
    """Raised when a quota (ours or an upstream's) is exhausted."""

    status_code = 429

    def __init__(
        self,
        code: str,
        message: str,
        retry_after: int,
        reset_at: datetime | None = None,
        source: str | None = None,
    ) -> None:
        super().__init__(code, message, source)
        self.retry_after = retry_after
        self.reset_at = reset_at


class FetchTimeoutError(VanityMirrorError):
    """Raised when a single upstream call exceeds its deadline."""

    def __init__(self, url: str, timeout_ms: int) -> None:
        super().__init__(
            "TIMEOUT", f"Request to {url} timed out after {timeout_ms}ms"
        )
        self.url = url
        self.timeout_ms = timeout_ms


class UpstreamError(VanityMirrorError):
    """Raised on any other non-2xx response from a third party."""

    def __init__(
        self,
        code: str,
        message: str,
        status: int | None = None,
        source: str | None = None,
    ) -> None:
        super().__init__(code, message, source)
        self.status = status
