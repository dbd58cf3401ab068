"""
JWS signers for short-lived upstream tokens.

Supports ES256 (ECDSA P-256, App Store Connect) and RS256 (RSA PKCS#1 v1.5,
Google service accounts). Signatures are returned in JOSE form, ready to be
base64url-encoded into a compact JWT.
"""

from abc import ABC, abstractmethod

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa
from cryptography.hazmat.primitives.asymmetric.utils import (
    decode_dss_signature,
    encode_dss_signature,
)

from vanity_mirror.exceptions import ConfigError

_P256_COORDINATE_BYTES = 32


class Signer(ABC):
    """Abstract base class for JWS signers."""

    algorithm: str

    @abstractmethod
    def sign(self, message: bytes) -> bytes:
        """Sign a message and return the JOSE signature bytes."""
        pass

    @abstractmethod
    def verify(self, signature: bytes, message: bytes) -> bool:
        """Verify a JOSE signature (used by tests)."""
        pass

    @classmethod
    @abstractmethod
    def from_pem(cls, pem_string: str, source: str | None = None) -> "Signer":
        """Load a signer from a PEM string."""
        pass


def _load_private_key(pem_string: str, source: str | None):
    try:
        return serialization.load_pem_private_key(pem_string.encode(), password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise ConfigError("Private key is not a valid unencrypted PEM key", source) from e


class EcdsaSigner(Signer):
    """ES256: ECDSA P-256 with SHA-256."""

    algorithm = "ES256"

    def __init__(self, private_key: ec.EllipticCurvePrivateKey) -> None:
        """
        Initialize with an ECDSA P-256 private key.

        Args:
            private_key: ECDSA P-256 private key from cryptography library
        """
        if not isinstance(private_key.curve, ec.SECP256R1):
            raise TypeError(
                f"Expected P-256 curve, got {type(private_key.curve).__name__}"
            )
        self._private_key = private_key
        self._public_key = private_key.public_key()

    def sign(self, message: bytes) -> bytes:
        """
        Sign a message using ECDSA P-256 with SHA-256.

        cryptography produces DER; JWS wants the fixed-width ``r || s``
        concatenation (64 bytes).
        """
        der = self._private_key.sign(message, ec.ECDSA(hashes.SHA256()))
        r, s = decode_dss_signature(der)
        return r.to_bytes(_P256_COORDINATE_BYTES, "big") + s.to_bytes(
            _P256_COORDINATE_BYTES, "big"
        )

    def verify(self, signature: bytes, message: bytes) -> bool:
        if len(signature) != 2 * _P256_COORDINATE_BYTES:
            return False
        r = int.from_bytes(signature[:_P256_COORDINATE_BYTES], "big")
        s = int.from_bytes(signature[_P256_COORDINATE_BYTES:], "big")
        try:
            self._public_key.verify(
                encode_dss_signature(r, s), message, ec.ECDSA(hashes.SHA256())
            )
            return True
        except InvalidSignature:
            return False

    def private_key_pem(self) -> str:
        """Return the private key in PKCS#8 PEM format."""
        return self._private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        ).decode()

    @classmethod
    def from_pem(cls, pem_string: str, source: str | None = None) -> "EcdsaSigner":
        """
        Load an ES256 signer from a PKCS#8 PEM string.

        Raises:
            ConfigError: If the PEM is malformed or not a P-256 key
        """
        private_key = _load_private_key(pem_string, source)

        if not isinstance(private_key, ec.EllipticCurvePrivateKey) or not isinstance(
            private_key.curve, ec.SECP256R1
        ):
            raise ConfigError(
                f"Expected an ECDSA P-256 private key, got {type(private_key).__name__}",
                source,
            )

        return cls(private_key)

    @classmethod
    def generate(cls) -> "EcdsaSigner":
        """Generate a fresh P-256 key (for tests)."""
        return cls(ec.generate_private_key(ec.SECP256R1()))


class RsaSigner(Signer):
    """RS256: RSASSA-PKCS1-v1_5 with SHA-256."""

    algorithm = "RS256"

    def __init__(self, private_key: rsa.RSAPrivateKey) -> None:
        self._private_key = private_key
        self._public_key = private_key.public_key()

    def sign(self, message: bytes) -> bytes:
        return self._private_key.sign(message, padding.PKCS1v15(), hashes.SHA256())

    def verify(self, signature: bytes, message: bytes) -> bool:
        try:
            self._public_key.verify(signature, message, padding.PKCS1v15(), hashes.SHA256())
            return True
        except InvalidSignature:
            return False

    def private_key_pem(self) -> str:
        return self._private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        ).decode()

    @classmethod
    def from_pem(cls, pem_string: str, source: str | None = None) -> "RsaSigner":
        """
        Load an RS256 signer from a PEM string.

        Raises:
            ConfigError: If the PEM is malformed or not an RSA key
        """
        private_key = _load_private_key(pem_string, source)

        if not isinstance(private_key, rsa.RSAPrivateKey):
            raise ConfigError(
                f"Expected an RSA private key, got {type(private_key).__name__}",
                source,
            )

        return cls(private_key)

    @classmethod
    def generate(cls) -> "RsaSigner":
        """Generate a fresh 2048-bit key (for tests)."""
        return cls(rsa.generate_private_key(public_exponent=65537, key_size=2048))
