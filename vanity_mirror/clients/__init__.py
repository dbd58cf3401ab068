"""Vanity Mirror upstream clients.

One client per third-party source; each owns its authentication, pagination,
normalization and cache.
"""

from vanity_mirror.clients.app_store import AppStoreClient
from vanity_mirror.clients.crates import CratesClient
from vanity_mirror.clients.github import GitHubClient
from vanity_mirror.clients.google_analytics import GoogleAnalyticsClient
from vanity_mirror.clients.npm import NpmClient
from vanity_mirror.clients.packages import PackagesClient
from vanity_mirror.clients.posthog import PostHogClient
from vanity_mirror.clients.pypi import PyPIClient
from vanity_mirror.clients.youtube import YouTubeClient

__all__ = [
    "AppStoreClient",
    "CratesClient",
    "GitHubClient",
    "GoogleAnalyticsClient",
    "NpmClient",
    "PackagesClient",
    "PostHogClient",
    "PyPIClient",
    "YouTubeClient",
]
