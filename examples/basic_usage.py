#!/usr/bin/env python3
"""
Basic Vanity Mirror usage example.

Runs entirely offline: upstream responses come from a MockUpstream.
Run with: python examples/basic_usage.py
"""

import asyncio
from datetime import date

from vanity_mirror import ConfigError, DateWindow, RateLimiter, calculate_trend, previous_period
from vanity_mirror.clients.crates import CRATES_API, CratesClient
from vanity_mirror.signers import EcdsaSigner
from vanity_mirror.signing import decode_jwt_unverified, encode_jwt
from vanity_mirror.testing import MockUpstream, crate_payload

print("=== Vanity Mirror Basic Usage Example ===\n")

# 1. Exception hierarchy
print("1. Testing exception classes...")
try:
    raise ConfigError("Missing GITHUB_USERNAME environment variable", "github")
except ConfigError as e:
    print(f"   Caught ConfigError: {e}")
    print(f"   Status: {e.status_code}, Source: {e.source}")

print("\n   OK: Exception classes working\n")

# 2. Windows and trends
print("2. Testing windows and trends...")
window = DateWindow.parse("2024-01-01", "2024-01-30")
previous = previous_period(window)
print(f"   Window: {window.start_iso}..{window.end_iso} ({window.days} days)")
print(f"   Previous: {previous.start_iso}..{previous.end_iso}")
assert previous == DateWindow(date(2023, 12, 2), date(2023, 12, 31))

print(f"   150 vs 100: {calculate_trend(150, 100)}%")
print(f"   5 vs 0: {calculate_trend(5, 0)}%")
print(f"   0 vs 0: {calculate_trend(0, 0)}%")

print("\n   OK: Windows and trends working\n")

# 3. ES256 tokens
print("3. Testing ES256 tokens...")
signer = EcdsaSigner.generate()
token = encode_jwt(
    {"iss": "issuer", "iat": 1700000000, "exp": 1700001200, "aud": "appstoreconnect-v1"},
    signer,
    {"kid": "KEY123"},
)
header, claims = decode_jwt_unverified(token)
print(f"   Header: {header}")
print(f"   Claims: {claims}")

print("\n   OK: ES256 tokens working\n")

# 4. Rate limiting
print("4. Testing rate limiter...")
limiter = RateLimiter(max_requests=3)
for attempt in range(4):
    result = limiter.check("203.0.113.7")
    print(f"   Request {attempt + 1}: allowed={result.success} remaining={result.remaining}")

print("\n   OK: Rate limiter working\n")

# 5. A registry client against a mock upstream
print("5. Testing crates.io client...")
upstream = MockUpstream()
upstream.add("GET", f"{CRATES_API}/serde", json=crate_payload("serde", 1_000_000, 90_000))


async def no_pause(delay: float) -> None:
    pass


client = CratesClient(transport=upstream.transport("crates"), sleep=no_pause)
batch = asyncio.run(client.fetch_packages(["serde", "not-a-crate"], window))
for package in batch.successful:
    print(f"   {package.name}: total={package.total_downloads} weekly~{package.weekly_downloads}")
for error in batch.errors:
    print(f"   {error.name}: {error.error}")

print("\n   OK: crates.io client working\n")
