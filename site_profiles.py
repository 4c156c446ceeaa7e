"""
Platform Profiles - Strategy priorities per detected platform
=============================================================
Each platform tag maps to a PlatformProfile listing strategy names in
priority order. The ScrapeManager runs the first one and, when the result is
thin, escalates to the browser strategy.

To support a new platform:
1. Add a fingerprint to platform_detector.py
2. Create a PlatformProfile with strategies in priority order
3. Register it in PLATFORM_PROFILES
"""

from dataclasses import dataclass, field
from typing import List


@dataclass
class PlatformProfile:
    name: str
    key: str
    strategies: List[str] = field(default_factory=list)
    notes: str = ""


# Squarespace exposes typed page/store data through ?format=json
SQUARESPACE = PlatformProfile(
    name="Squarespace",
    key="squarespace",
    strategies=["squarespace"],
    notes="Structured JSON API",
)

# Cargo assembles its pages client-side
CARGO = PlatformProfile(
    name="Cargo",
    key="cargo",
    strategies=["playwright"],
    notes="Needs browser rendering",
)

WORDPRESS = PlatformProfile(
    name="WordPress",
    key="wordpress",
    strategies=["requests"],
)

SHOPIFY = PlatformProfile(
    name="Shopify",
    key="shopify",
    strategies=["requests"],
    notes="Product pages embed schema.org JSON-LD",
)

GENERIC = PlatformProfile(
    name="Generic",
    key="generic",
    strategies=["requests"],
)

PLATFORM_PROFILES = {
    "squarespace": SQUARESPACE,
    "cargo": CARGO,
    "wordpress": WORDPRESS,
    "shopify": SHOPIFY,
    "generic": GENERIC,
}


def get_platform_profile(key: str) -> PlatformProfile:
    """Profile for a platform tag; unknown tags get the generic profile."""
    return PLATFORM_PROFILES.get(key, GENERIC)


def list_platforms() -> list:
    return list(PLATFORM_PROFILES.keys())
