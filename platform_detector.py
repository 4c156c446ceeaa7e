"""
Platform Detector - Identify the site builder behind an artist website
=====================================================================
Checks run from the most specific fingerprint to the least; the first match
wins and anything unrecognized is 'generic'.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

from url_utils import extract_domain

PLATFORMS = ("squarespace", "cargo", "wordpress", "shopify", "generic")

_SQSP_SITE_ID = re.compile(r'SQUARESPACE_CONTEXT\s*=\s*\{[^}]*"websiteId"\s*:\s*"([^"]+)"')
_SQSP_CDN = re.compile(r"[\"']https?://[^\"']*\.squarespace-cdn\.com\b")
_CARGO_SITE = re.compile(r"[\"']https?://[^\"']*\.cargo\.site\b")
_CARGO_COLLECTIVE = re.compile(r"[\"']https?://[^\"']*\.cargocollective\.com\b")
_WP_GENERATOR = re.compile(r"<meta[^>]+name=[\"']generator[\"'][^>]+content=[\"']WordPress", re.IGNORECASE)
_SHOPIFY_CDN = re.compile(r"[\"']https?://cdn\.shopify\.com\b")
_MYSHOPIFY = re.compile(r"[\"']https?://[^\"']*\.myshopify\.com\b")


@dataclass
class DetectedPlatform:
    platform: str
    hints: Dict[str, str] = field(default_factory=dict)


def _header(headers: Optional[Mapping[str, str]], name: str) -> str:
    for key, value in (headers or {}).items():
        if key.lower() == name:
            return value or ""
    return ""


def is_squarespace(headers: Mapping[str, str], html: str) -> bool:
    if "squarespace" in _header(headers, "x-servedby").lower():
        return True
    if "squarespace" in _header(headers, "server").lower():
        return True
    if "Static.SQUARESPACE_CONTEXT" in html:
        return True
    if _SQSP_CDN.search(html):
        return True
    return "<!-- This is Squarespace." in html


def is_cargo(url: str, html: str) -> bool:
    domain = extract_domain(url or "") or ""
    if domain.endswith(".cargo.site"):
        return True
    if "Cargo Collective" in html:
        return True
    return bool(_CARGO_SITE.search(html) or _CARGO_COLLECTIVE.search(html))


def is_wordpress(headers: Mapping[str, str], html: str) -> bool:
    if "wordpress" in _header(headers, "x-powered-by").lower():
        return True
    if "/wp-content/" in html or "/wp-includes/" in html or "wp-json" in html:
        return True
    return bool(_WP_GENERATOR.search(html))


def is_shopify(html: str) -> bool:
    if "Shopify.theme" in html:
        return True
    return bool(_SHOPIFY_CDN.search(html) or _MYSHOPIFY.search(html))


def detect_platform(headers: Optional[Mapping[str, str]], html: Optional[str],
                    url: Optional[str]) -> DetectedPlatform:
    """Classify a fetched page. Total: every input maps to one platform tag."""
    headers = headers or {}
    html = html or ""
    url = url or ""

    if is_squarespace(headers, html):
        hints = {}
        match = _SQSP_SITE_ID.search(html)
        if match:
            hints["siteId"] = match.group(1)
        return DetectedPlatform("squarespace", hints)

    if is_cargo(url, html):
        return DetectedPlatform("cargo")

    if is_wordpress(headers, html):
        return DetectedPlatform("wordpress")

    if is_shopify(html):
        return DetectedPlatform("shopify")

    return DetectedPlatform("generic")
