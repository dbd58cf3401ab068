"""
Response envelope for the HTTP boundary.

Every route answers ``{"success": true, "data": ...}`` or
``{"success": false, "error": "..."}``. Errors are mapped to a status code and
a message that never includes upstream response bodies or request URLs.
"""

import dataclasses
from datetime import date, datetime
from typing import Any

from vanity_mirror.exceptions import (
    ConfigError,
    FetchTimeoutError,
    RateLimitError,
    TokenExchangeError,
    ValidationError,
    VanityMirrorError,
)

GENERIC_ERROR = "Failed to fetch analytics data"
TIMEOUT_ERROR = "An upstream service did not respond in time"
TOKEN_EXCHANGE_ERROR = (
    "Authentication failed. The service account credentials may be invalid or the "
    "account may be disabled."
)


def camel_case(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def to_payload(value: Any) -> Any:
    """
    Convert result objects into JSON-ready values.

    Dataclass fields become camelCase keys; objects that define ``to_dict``
    control their own shape. Mapping keys are left as they are.
    """
    if hasattr(value, "to_dict"):
        return to_payload(value.to_dict())
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            camel_case(f.name): to_payload(getattr(value, f.name))
            for f in dataclasses.fields(value)
        }
    if isinstance(value, dict):
        return {key: to_payload(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_payload(item) for item in value]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def success_envelope(data: Any) -> dict[str, Any]:
    return {"success": True, "data": to_payload(data)}


def error_envelope(message: str) -> dict[str, Any]:
    return {"success": False, "error": message}


def public_message(exc: BaseException) -> str:
    """The message a caller may see for ``exc``."""
    if isinstance(exc, (ValidationError, ConfigError)):
        # Names the missing variable or the malformed parameter, nothing secret
        return exc.message
    if isinstance(exc, TokenExchangeError):
        return TOKEN_EXCHANGE_ERROR
    if isinstance(exc, FetchTimeoutError):
        return TIMEOUT_ERROR
    if isinstance(exc, VanityMirrorError) and exc.status_code in (401, 403, 404, 429):
        # Fixed per-source wording from transport.ErrorMessages
        return exc.message
    return GENERIC_ERROR


def error_response(exc: BaseException) -> tuple[int, dict[str, Any], dict[str, str]]:
    """
    Map an exception to ``(status, body, headers)``.

    ``RateLimitError`` adds a ``Retry-After`` header in whole seconds.
    """
    status = exc.status_code if isinstance(exc, VanityMirrorError) else 500
    headers: dict[str, str] = {}
    if isinstance(exc, RateLimitError):
        headers["Retry-After"] = str(exc.retry_after)
    return status, error_envelope(public_message(exc)), headers

