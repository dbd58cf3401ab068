"""
Environment-sourced configuration for every upstream.

Each ``from_env()`` reads the process environment and fails fast with a
ConfigError naming the exact variable that is missing. Base64-encoded
credentials are decoded and parsed here so a malformed secret is reported as
a configuration problem, not as an upstream failure later on.
"""

import base64
import binascii
import json
import os
from dataclasses import dataclass, field

from vanity_mirror.exceptions import ConfigError
from vanity_mirror.signers import EcdsaSigner, RsaSigner

DEFAULT_POSTHOG_HOST = "https://us.posthog.com"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"


def _require(name: str, source: str) -> str:
    value = os.environ.get(name)
    if not value:
        raise ConfigError(f"Missing {name} environment variable", source)
    return value


def _optional(name: str) -> str | None:
    return os.environ.get(name) or None


def _decode_base64(name: str, value: str, source: str) -> str:
    try:
        return base64.b64decode(value, validate=True).decode("utf-8")
    except (binascii.Error, ValueError) as e:
        raise ConfigError(f"Failed to decode {name}. Ensure it is valid base64.", source) from e


def parse_package_list(value: str | None) -> list[str]:
    """Split a comma-separated list, trimming whitespace and dropping empties."""
    if not value:
        return []
    return [name.strip() for name in value.split(",") if name.strip()]


@dataclass
class GitHubConfig:
    username: str
    token: str | None = field(default=None, repr=False)

    @classmethod
    def from_env(cls) -> "GitHubConfig":
        """
        Environment variables:
            GITHUB_USERNAME: Account whose repositories are reported (required)
            GITHUB_TOKEN: Token for private repos and a higher quota (optional)
        """
        return cls(
            username=_require("GITHUB_USERNAME", "github"),
            token=_optional("GITHUB_TOKEN"),
        )


@dataclass
class PackagesConfig:
    npm: list[str] = field(default_factory=list)
    pypi: list[str] = field(default_factory=list)
    crates: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.npm) + len(self.pypi) + len(self.crates)

    @classmethod
    def from_env(cls) -> "PackagesConfig":
        """
        Environment variables (all optional, comma-separated):
            NPM_PACKAGES, PYPI_PACKAGES, CRATES_PACKAGES
        """
        return cls(
            npm=parse_package_list(os.environ.get("NPM_PACKAGES")),
            pypi=parse_package_list(os.environ.get("PYPI_PACKAGES")),
            crates=parse_package_list(os.environ.get("CRATES_PACKAGES")),
        )


@dataclass
class PostHogConfig:
    api_key: str = field(repr=False)
    project_id: str
    host: str = DEFAULT_POSTHOG_HOST

    @classmethod
    def from_env(cls) -> "PostHogConfig":
        """
        Environment variables:
            POSTHOG_API_KEY: Personal API key (required)
            POSTHOG_PROJECT_ID: Project identifier (required)
            POSTHOG_HOST: API host (optional, default: https://us.posthog.com)
        """
        return cls(
            api_key=_require("POSTHOG_API_KEY", "posthog"),
            project_id=_require("POSTHOG_PROJECT_ID", "posthog"),
            host=(_optional("POSTHOG_HOST") or DEFAULT_POSTHOG_HOST).rstrip("/"),
        )


@dataclass
class ServiceAccountCredentials:
    """The parts of a Google service-account key file the client needs."""

    client_email: str
    signer: RsaSigner = field(repr=False)
    project_id: str | None = None
    private_key_id: str | None = None
    token_uri: str = GOOGLE_TOKEN_URI

    @classmethod
    def from_json(cls, raw: str, source: str = "google-analytics") -> "ServiceAccountCredentials":
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ConfigError(
                "Failed to parse GOOGLE_SERVICE_ACCOUNT_KEY. Ensure it is valid base64-encoded JSON.",
                source,
            ) from e

        if not isinstance(data, dict) or not data.get("client_email") or not data.get("private_key"):
            raise ConfigError(
                "Invalid service account key: missing client_email or private_key", source
            )

        # Keys pasted through some secret stores arrive with escaped newlines
        private_key = data["private_key"].replace("\\n", "\n")

        return cls(
            client_email=data["client_email"],
            signer=RsaSigner.from_pem(private_key, source),
            project_id=data.get("project_id"),
            private_key_id=data.get("private_key_id"),
            token_uri=data.get("token_uri") or GOOGLE_TOKEN_URI,
        )

    @classmethod
    def from_env(cls) -> "ServiceAccountCredentials":
        """
        Environment variables:
            GOOGLE_SERVICE_ACCOUNT_KEY: base64-encoded service account JSON
        """
        raw = _require("GOOGLE_SERVICE_ACCOUNT_KEY", "google-analytics")
        return cls.from_json(
            _decode_base64("GOOGLE_SERVICE_ACCOUNT_KEY", raw, "google-analytics")
        )


@dataclass
class GoogleAnalyticsConfig:
    property_id: str
    credentials: ServiceAccountCredentials

    @classmethod
    def from_env(cls, property_env: str = "BLOG_GA_PROPERTY_ID") -> "GoogleAnalyticsConfig":
        """
        Environment variables:
            BLOG_GA_PROPERTY_ID (or ``property_env``): GA4 property (required)
            GOOGLE_SERVICE_ACCOUNT_KEY: base64 service account JSON (required)
        """
        property_id = _require(property_env, "google-analytics")
        return cls(property_id=property_id, credentials=ServiceAccountCredentials.from_env())


APP_STORE_ENV_VARS = (
    "APP_STORE_CONNECT_KEY_ID",
    "APP_STORE_CONNECT_ISSUER_ID",
    "APP_STORE_CONNECT_PRIVATE_KEY",
    "APP_STORE_CONNECT_APP_ID",
    "APP_STORE_CONNECT_VENDOR_NUMBER",
)


@dataclass
class AppStoreConnectConfig:
    key_id: str
    issuer_id: str
    signer: EcdsaSigner = field(repr=False)
    app_id: str
    vendor_number: str

    @staticmethod
    def is_configured() -> bool:
        """True when every App Store Connect variable is set."""
        return all(os.environ.get(name) for name in APP_STORE_ENV_VARS)

    @classmethod
    def from_env(cls) -> "AppStoreConnectConfig":
        """
        Environment variables (all required):
            APP_STORE_CONNECT_KEY_ID, APP_STORE_CONNECT_ISSUER_ID,
            APP_STORE_CONNECT_PRIVATE_KEY (base64 of the .p8 PEM),
            APP_STORE_CONNECT_APP_ID, APP_STORE_CONNECT_VENDOR_NUMBER
        """
        source = "app-store"
        key_id = _require("APP_STORE_CONNECT_KEY_ID", source)
        issuer_id = _require("APP_STORE_CONNECT_ISSUER_ID", source)
        encoded_key = _require("APP_STORE_CONNECT_PRIVATE_KEY", source)
        app_id = _require("APP_STORE_CONNECT_APP_ID", source)
        vendor_number = _require("APP_STORE_CONNECT_VENDOR_NUMBER", source)

        pem = _decode_base64("APP_STORE_CONNECT_PRIVATE_KEY", encoded_key, source)

        return cls(
            key_id=key_id,
            issuer_id=issuer_id,
            signer=EcdsaSigner.from_pem(pem, source),
            app_id=app_id,
            vendor_number=vendor_number,
        )


@dataclass
class YouTubeConfig:
    api_key: str = field(repr=False)
    channel_id: str

    @classmethod
    def from_env(cls) -> "YouTubeConfig":
        """
        Environment variables:
            YOUTUBE_API_KEY: Data API v3 key (required)
            YOUTUBE_CHANNEL_ID: Channel identifier (required)
        """
        return cls(
            api_key=_require("YOUTUBE_API_KEY", "youtube"),
            channel_id=_require("YOUTUBE_CHANNEL_ID", "youtube"),
        )
