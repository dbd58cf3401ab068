"""Vanity Mirror - external-data aggregation layer for a personal analytics dashboard."""

__version__ = "0.1.0"

from vanity_mirror.cache import TTLCache
from vanity_mirror.dashboard import Dashboard
from vanity_mirror.exceptions import (
    AuthError,
    ConfigError,
    FetchTimeoutError,
    NotConfiguredError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
    TokenExchangeError,
    UpstreamError,
    ValidationError,
    VanityMirrorError,
)
from vanity_mirror.logging import configure_logging, get_logger
from vanity_mirror.metrics import DateWindow, calculate_trend, previous_period
from vanity_mirror.ratelimit import RateLimiter, RateLimitResult
from vanity_mirror.signers import EcdsaSigner, RsaSigner, Signer
from vanity_mirror.timeout import fetch_with_timeout
from vanity_mirror.transport import AsyncHTTPTransport, RetryConfig

__all__ = [
    "__version__",
    # Composition root
    "Dashboard",
    # Infrastructure
    "TTLCache",
    "RateLimiter",
    "RateLimitResult",
    "fetch_with_timeout",
    "AsyncHTTPTransport",
    "RetryConfig",
    # Metrics
    "DateWindow",
    "calculate_trend",
    "previous_period",
    # Signers
    "Signer",
    "EcdsaSigner",
    "RsaSigner",
    # Exceptions
    "VanityMirrorError",
    "ConfigError",
    "NotConfiguredError",
    "ValidationError",
    "AuthError",
    "TokenExchangeError",
    "PermissionDeniedError",
    "NotFoundError",
    "RateLimitError",
    "FetchTimeoutError",
    "UpstreamError",
    # Logging
    "configure_logging",
    "get_logger",
]
