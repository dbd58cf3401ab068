"""Vanity Mirror testing utilities.

Provides a mock upstream and payload builders for testing the clients, the
dashboard and the HTTP API without network access.
"""

from vanity_mirror.testing.fixtures import (
    crate_payload,
    encode_base64,
    ga_row,
    github_repo_payload,
    npm_range_payload,
    pypistats_payload,
    sales_report_tsv,
    service_account_json,
    youtube_video_payload,
)
from vanity_mirror.testing.mock import MockRoute, MockUpstream

__all__ = [
    # Mock upstream
    "MockUpstream",
    "MockRoute",
    # Payload builders
    "github_repo_payload",
    "npm_range_payload",
    "pypistats_payload",
    "crate_payload",
    "ga_row",
    "youtube_video_payload",
    "sales_report_tsv",
    "service_account_json",
    "encode_base64",
]
