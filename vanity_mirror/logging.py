"""
Vanity Mirror logging utilities.

Provides configurable logging for upstream HTTP traffic, token generation
and cache activity. Credentials (API keys, bearer tokens, JWTs, private keys)
are never logged in the clear.
"""

import logging
import os
import re
from typing import Any

# Package logger tree
_root_logger = logging.getLogger("vanity_mirror")
_http_logger = logging.getLogger("vanity_mirror.http")
_auth_logger = logging.getLogger("vanity_mirror.auth")
_cache_logger = logging.getLogger("vanity_mirror.cache")

# Patterns for sensitive data that should be masked
_SENSITIVE_PATTERNS = [
    # PEM private keys
    (re.compile(r"-----BEGIN[^-]*PRIVATE KEY-----.*?-----END[^-]*PRIVATE KEY-----", re.DOTALL), "[PRIVATE_KEY_REDACTED]"),
    # Compact JWTs (header.payload.signature)
    (re.compile(r"eyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+"), "[JWT_REDACTED]"),
    # Bearer tokens in headers
    (re.compile(r"(Bearer)\s+[A-Za-z0-9._~+/=-]+", re.IGNORECASE), r"\1 [REDACTED]"),
    # API keys passed as query parameters
    (re.compile(r"([?&](?:key|api_key|access_token)=)[^&\s]+", re.IGNORECASE), r"\1[REDACTED]"),
    # Secret/token patterns in key=value or JSON form
    (re.compile(r"(secret|token|password|api_key|private_key)['\"]?\s*[:=]\s*['\"][^'\"]+['\"]", re.IGNORECASE), r"\1: [REDACTED]"),
]

_DEFAULT_SENSITIVE_KEYS = {
    "authorization",
    "key",
    "token",
    "secret",
    "password",
    "api_key",
    "private_key",
    "assertion",
}

LOG_LEVEL_ENV = "VANITY_MIRROR_LOG_LEVEL"


def configure_logging(
    level: int | None = None,
    http_level: int | None = None,
    auth_level: int | None = None,
    handler: logging.Handler | None = None,
    format_string: str | None = None,
) -> None:
    """
    Configure Vanity Mirror logging.

    Args:
        level: Default log level for all package loggers. When omitted, the
            ``VANITY_MIRROR_LOG_LEVEL`` environment variable is consulted
            (default: INFO)
        http_level: Log level for upstream request/response logging
            (default: same as level)
        auth_level: Log level for token generation (default: same as level)
        handler: Custom handler to use (default: StreamHandler to stderr)
        format_string: Custom format string (default: includes timestamp,
            level, logger name)

    Example:
        ```python
        import logging
        from vanity_mirror.logging import configure_logging

        # Trace every upstream call
        configure_logging(level=logging.INFO, http_level=logging.DEBUG)
        ```
    """
    if level is None:
        level_name = os.environ.get(LOG_LEVEL_ENV, "INFO").upper()
        level = logging.getLevelName(level_name)
        if not isinstance(level, int):
            level = logging.INFO

    if format_string is None:
        format_string = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    formatter = logging.Formatter(format_string)

    if handler is None:
        handler = logging.StreamHandler()

    handler.setFormatter(formatter)

    _root_logger.setLevel(level)
    _root_logger.addHandler(handler)

    _http_logger.setLevel(http_level if http_level is not None else level)
    _auth_logger.setLevel(auth_level if auth_level is not None else level)
    _cache_logger.setLevel(level)


def get_logger(name: str | None = None) -> logging.Logger:
    """
    Get a package logger.

    Args:
        name: Logger name suffix (e.g., "http", "clients.github"). If None,
            returns the root package logger.

    Returns:
        Logger instance
    """
    if name is None:
        return _root_logger
    return logging.getLogger(f"vanity_mirror.{name}")


def mask_sensitive_data(text: str) -> str:
    """
    Mask sensitive data in a string.

    Args:
        text: Text that may contain credentials

    Returns:
        Text with credentials replaced by redaction markers
    """
    result = text
    for pattern, replacement in _SENSITIVE_PATTERNS:
        result = pattern.sub(replacement, result)
    return result


def safe_log_dict(data: dict[str, Any], sensitive_keys: set[str] | None = None) -> dict[str, Any]:
    """
    Create a copy of a dictionary with sensitive values masked.

    Keys are compared case-insensitively, so ``Authorization`` headers and
    ``key`` query parameters are both redacted.

    Args:
        data: Dictionary that may contain sensitive values
        sensitive_keys: Set of lower-case keys to mask

    Returns:
        Dictionary with sensitive values replaced with "[REDACTED]"
    """
    if sensitive_keys is None:
        sensitive_keys = _DEFAULT_SENSITIVE_KEYS

    result: dict[str, Any] = {}
    for key, value in data.items():
        key_lower = str(key).lower()
        if key_lower in sensitive_keys:
            result[key] = "[REDACTED]"
        elif isinstance(value, dict):
            result[key] = safe_log_dict(value, sensitive_keys)
        elif isinstance(value, list):
            result[key] = [
                safe_log_dict(item, sensitive_keys) if isinstance(item, dict) else item
                for item in value
            ]
        elif isinstance(value, str):
            result[key] = mask_sensitive_data(value)
        else:
            result[key] = value

    return result


def log_http_request(
    method: str,
    url: str,
    params: dict[str, Any] | None = None,
    body: dict[str, Any] | None = None,
) -> None:
    """Log an upstream request at DEBUG level with credentials masked."""
    if not _http_logger.isEnabledFor(logging.DEBUG):
        return

    log_parts = [f"{method} {mask_sensitive_data(url)}"]

    if params:
        log_parts.append(f"params={safe_log_dict(params)}")

    if body:
        log_parts.append(f"body={safe_log_dict(body)}")

    _http_logger.debug(" | ".join(log_parts))


def log_http_response(
    status_code: int,
    url: str,
    elapsed_ms: float | None = None,
) -> None:
    """Log an upstream response at DEBUG level."""
    if not _http_logger.isEnabledFor(logging.DEBUG):
        return

    log_parts = [f"Response {status_code} from {mask_sensitive_data(url)}"]

    if elapsed_ms is not None:
        log_parts.append(f"elapsed={elapsed_ms:.2f}ms")

    _http_logger.debug(" | ".join(log_parts))


def log_token_operation(operation: str, issuer: str, expires_at: int | None = None) -> None:
    """
    Log a token generation or reuse at DEBUG level.

    Only the issuer and expiry are logged, never the token itself.
    """
    if not _auth_logger.isEnabledFor(logging.DEBUG):
        return

    log_parts = [f"{operation}: issuer={issuer}"]

    if expires_at is not None:
        log_parts.append(f"expires_at={expires_at}")

    _auth_logger.debug(" | ".join(log_parts))


def log_cache_event(event: str, namespace: str, key: str) -> None:
    """Log a cache hit, miss or eviction at DEBUG level."""
    if not _cache_logger.isEnabledFor(logging.DEBUG):
        return

    _cache_logger.debug(f"{event}: {namespace} {key}")


__all__ = [
    "configure_logging",
    "get_logger",
    "mask_sensitive_data",
    "safe_log_dict",
    "log_http_request",
    "log_http_response",
    "log_token_operation",
    "log_cache_event",
]
