"""
Pytest fixtures and upstream payload builders for Vanity Mirror testing.

The ``*_payload`` helpers return bodies shaped like each upstream's real
responses, trimmed to the fields the clients read.
"""

import base64
import json
from collections.abc import Generator
from datetime import date, timedelta
from typing import Any

import pytest

from vanity_mirror.config import AppStoreConnectConfig, ServiceAccountCredentials
from vanity_mirror.metrics import DateWindow
from vanity_mirror.signers import EcdsaSigner, RsaSigner
from vanity_mirror.testing.mock import MockUpstream

SALES_REPORT_COLUMNS = [
    "Provider",
    "Provider Country",
    "SKU",
    "Developer",
    "Title",
    "Version",
    "Product Type Identifier",
    "Units",
    "Developer Proceeds",
    "Begin Date",
    "End Date",
    "Customer Currency",
    "Country Code",
    "Currency of Proceeds",
    "Apple Identifier",
]


# ============================================================================
# Payload builders
# ============================================================================


def github_repo_payload(
    repo_id: int,
    name: str,
    owner: str = "octocat",
    stars: int = 0,
    forks: int = 0,
    updated_at: str = "2024-01-01T00:00:00Z",
    **overrides: Any,
) -> dict[str, Any]:
    payload = {
        "id": repo_id,
        "name": name,
        "full_name": f"{owner}/{name}",
        "description": f"The {name} project",
        "html_url": f"https://github.com/{owner}/{name}",
        "stargazers_count": stars,
        "forks_count": forks,
        "watchers_count": stars,
        "language": "Python",
        "archived": False,
        "fork": False,
        "private": False,
        "created_at": "2020-01-01T00:00:00Z",
        "updated_at": updated_at,
        "pushed_at": updated_at,
    }
    payload.update(overrides)
    return payload


def npm_range_payload(name: str, start: date, counts: list[int]) -> dict[str, Any]:
    """``downloads/range`` body with one entry per day from ``start``."""
    downloads = [
        {"day": (start + timedelta(days=i)).isoformat(), "downloads": count}
        for i, count in enumerate(counts)
    ]
    end = start + timedelta(days=max(len(counts) - 1, 0))
    return {"start": start.isoformat(), "end": end.isoformat(), "package": name, "downloads": downloads}


def pypistats_payload(name: str, start: date, counts: list[int]) -> dict[str, Any]:
    """``overall`` body; ``with_mirrors`` rows carry a larger decoy count."""
    rows = []
    for i, count in enumerate(counts):
        day = (start + timedelta(days=i)).isoformat()
        rows.append({"category": "with_mirrors", "date": day, "downloads": count * 3})
        rows.append({"category": "without_mirrors", "date": day, "downloads": count})
    return {"data": rows, "package": name, "type": "overall_downloads"}


def crate_payload(
    name: str, downloads: int = 1000, recent_downloads: int = 900
) -> dict[str, Any]:
    return {
        "crate": {
            "id": name,
            "name": name,
            "downloads": downloads,
            "recent_downloads": recent_downloads,
            "created_at": "2021-06-01T12:00:00.000000+00:00",
        }
    }


def ga_row(dimensions: list[str], metrics: list[float | int]) -> dict[str, Any]:
    return {
        "dimensionValues": [{"value": value} for value in dimensions],
        "metricValues": [{"value": str(value)} for value in metrics],
    }


def youtube_video_payload(
    video_id: str, views: int, published_at: str = "2024-01-15T10:00:00Z"
) -> dict[str, Any]:
    return {
        "id": video_id,
        "snippet": {
            "title": f"Video {video_id}",
            "publishedAt": published_at,
            "thumbnails": {"medium": {"url": f"https://i.ytimg.com/vi/{video_id}/mqdefault.jpg"}},
        },
        "statistics": {"viewCount": str(views), "likeCount": "3", "commentCount": "1"},
    }


def sales_report_tsv(rows: list[dict[str, Any]]) -> str:
    """
    A SUMMARY sales report.

    Each row dict may set ``type``, ``units``, ``proceeds`` and ``begin``
    (MM/DD/YYYY); everything else is filled in.
    """
    lines = ["\t".join(SALES_REPORT_COLUMNS)]
    for row in rows:
        begin = row.get("begin", "01/15/2024")
        values = {
            "Provider": "APPLE",
            "Provider Country": "US",
            "SKU": "walk-in-the-parquet",
            "Developer": "Test Developer",
            "Title": "Walk in the Parquet",
            "Version": "1.0",
            "Product Type Identifier": row.get("type", "1F"),
            "Units": str(row.get("units", 1)),
            "Developer Proceeds": str(row.get("proceeds", 0)),
            "Begin Date": begin,
            "End Date": row.get("end", begin),
            "Customer Currency": "USD",
            "Country Code": "US",
            "Currency of Proceeds": "USD",
            "Apple Identifier": "1234567890",
        }
        lines.append("\t".join(values[column] for column in SALES_REPORT_COLUMNS))
    return "\n".join(lines) + "\n"


def service_account_json(signer: RsaSigner, client_email: str = "dashboard@test.iam.gserviceaccount.com") -> str:
    return json.dumps(
        {
            "type": "service_account",
            "project_id": "vanity-mirror-test",
            "private_key_id": "test-key-id",
            "private_key": signer.private_key_pem(),
            "client_email": client_email,
            "token_uri": "https://oauth2.googleapis.com/token",
        }
    )


def encode_base64(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


# ============================================================================
# Upstream Fixtures
# ============================================================================


@pytest.fixture
def mock_upstream() -> Generator[MockUpstream, None, None]:
    """
    Provide a MockUpstream for testing.

    Example:
        ```python
        def test_crate(mock_upstream):
            mock_upstream.add("GET", f"{CRATES_API}/serde", json=crate_payload("serde"))
            client = CratesClient(transport=mock_upstream.transport("crates"))
        ```
    """
    upstream = MockUpstream()
    yield upstream
    upstream.reset()


@pytest.fixture
def window() -> DateWindow:
    """A 30-day window whose previous period is 2023-12-02..2023-12-31."""
    return DateWindow(date(2024, 1, 1), date(2024, 1, 30))


# ============================================================================
# Signer Fixtures
# ============================================================================


@pytest.fixture(scope="session")
def es256_signer() -> EcdsaSigner:
    return EcdsaSigner.generate()


@pytest.fixture(scope="session")
def rs256_signer() -> RsaSigner:
    """RSA key generation is slow; one key serves the whole session."""
    return RsaSigner.generate()


@pytest.fixture
def service_account(rs256_signer: RsaSigner) -> ServiceAccountCredentials:
    return ServiceAccountCredentials.from_json(service_account_json(rs256_signer))


@pytest.fixture
def app_store_config(es256_signer: EcdsaSigner) -> AppStoreConnectConfig:
    return AppStoreConnectConfig(
        key_id="KEY123",
        issuer_id="issuer-uuid",
        signer=es256_signer,
        app_id="1234567890",
        vendor_number="87654321",
    )
