"""
Pytest plugin for Vanity Mirror testing fixtures.

To use these fixtures in your tests, add this to your conftest.py:

    pytest_plugins = ["vanity_mirror.testing.conftest"]
"""

# Re-export all fixtures for pytest auto-discovery
from vanity_mirror.testing.fixtures import (
    app_store_config,
    es256_signer,
    mock_upstream,
    rs256_signer,
    service_account,
    window,
)

__all__ = [
    "mock_upstream",
    "window",
    "es256_signer",
    "rs256_signer",
    "service_account",
    "app_store_config",
]
