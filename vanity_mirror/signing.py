"""
Compact JWT encoding and short-lived token caching.

Implements the signing flow: header + claims -> compact JSON -> base64url ->
sign ``header.payload`` -> append base64url signature.
"""

import asyncio
import base64
import json
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from vanity_mirror.logging import log_token_operation
from vanity_mirror.signers import Signer

# Tokens are regenerated this many seconds before they expire
EXPIRY_BUFFER_SECONDS = 60


def base64url_encode(data: bytes) -> str:
    """Encode bytes as unpadded base64url."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def base64url_decode(data: str) -> bytes:
    """Decode unpadded base64url."""
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


def _segment(value: dict[str, Any]) -> str:
    return base64url_encode(
        json.dumps(value, separators=(",", ":"), sort_keys=True).encode("utf-8")
    )


def encode_jwt(
    claims: dict[str, Any],
    signer: Signer,
    headers: dict[str, Any] | None = None,
) -> str:
    """
    Build and sign a compact JWT.

    Args:
        claims: JWT payload claims
        signer: Signer whose ``algorithm`` is written into the header
        headers: Extra protected header fields (e.g. ``kid``)

    Returns:
        The compact serialization ``header.payload.signature``
    """
    header = {"alg": signer.algorithm, "typ": "JWT", **(headers or {})}
    signing_input = f"{_segment(header)}.{_segment(claims)}"
    signature = signer.sign(signing_input.encode("ascii"))
    return f"{signing_input}.{base64url_encode(signature)}"


def decode_jwt_unverified(token: str) -> tuple[dict[str, Any], dict[str, Any]]:
    """Return ``(header, claims)`` without checking the signature."""
    header_b64, payload_b64, _ = token.split(".")
    return (
        json.loads(base64url_decode(header_b64)),
        json.loads(base64url_decode(payload_b64)),
    )


@dataclass
class CachedToken:
    """A bearer token and its absolute expiry (epoch seconds)."""

    token: str
    expires_at: int

    def is_fresh(self, now: float, buffer: int = EXPIRY_BUFFER_SECONDS) -> bool:
        return self.expires_at > now + buffer


class TokenCache:
    """
    Holds one short-lived token and regenerates it shortly before expiry.

    Concurrent callers that find the token stale share a single regeneration,
    so an aggregation that fans out ten requests signs only once.
    """

    def __init__(
        self,
        issuer: str,
        buffer: int = EXPIRY_BUFFER_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.issuer = issuer
        self.buffer = buffer
        self._clock = clock
        self._token: CachedToken | None = None
        self._lock = asyncio.Lock()

    @property
    def current(self) -> CachedToken | None:
        return self._token

    def invalidate(self) -> None:
        self._token = None

    async def get(self, factory: Callable[[], Awaitable[CachedToken]]) -> str:
        """
        Return a fresh token, awaiting ``factory()`` when none is cached.

        Args:
            factory: Coroutine function producing a new CachedToken

        Returns:
            The bearer token string
        """
        token = self._token
        if token is not None and token.is_fresh(self._clock(), self.buffer):
            log_token_operation("reuse_token", self.issuer, token.expires_at)
            return token.token

        async with self._lock:
            # Another waiter may have refreshed it while we were blocked
            token = self._token
            if token is not None and token.is_fresh(self._clock(), self.buffer):
                return token.token

            token = await factory()
            self._token = token
            log_token_operation("generate_token", self.issuer, token.expires_at)
            return token.token
