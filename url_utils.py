"""
URL Utilities - Normalization, slugs, social links and navigation hints
=======================================================================
"""

import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urljoin, urlparse, urlunparse

_HOST_RE = re.compile(r"^[a-z0-9.-]+(:\d+)?$", re.IGNORECASE)


def normalize_url(raw: str) -> Optional[str]:
    """
    Normalize an operator-supplied URL.

    Adds https:// when no scheme is given and strips a trailing slash from
    non-root paths. Returns None when no usable host remains.
    """
    if not raw or not isinstance(raw, str):
        return None
    url = raw.strip()
    if not url or any(ch.isspace() for ch in url):
        return None

    if not url.startswith(("http://", "https://")):
        url = f"https://{url}"

    parsed = urlparse(url)
    host = parsed.hostname or ""
    if not host or not _HOST_RE.match(parsed.netloc.split("@")[-1]):
        return None
    if "." not in host and host != "localhost":
        return None

    path = parsed.path or "/"
    if len(path) > 1 and path.endswith("/"):
        path = path[:-1]
    return urlunparse(parsed._replace(path=path))


def extract_domain(url: str) -> Optional[str]:
    """Hostname without a www. prefix."""
    try:
        host = urlparse(url if "://" in url else f"https://{url}").hostname
    except ValueError:
        return None
    if not host:
        return None
    return re.sub(r"^www\.", "", host.lower())


def is_same_domain(url: str, base_url: str) -> bool:
    url_domain = extract_domain(url)
    base_domain = extract_domain(base_url)
    if not url_domain or not base_domain:
        return False
    return url_domain == base_domain


def resolve_url(href: str, base_url: str) -> Optional[str]:
    """Resolve a possibly relative href against a page URL."""
    if not href:
        return None
    href = href.strip()
    if href.startswith("//"):
        href = "https:" + href
    try:
        resolved = urljoin(base_url, href)
    except ValueError:
        return None
    if not resolved.startswith(("http://", "https://")):
        return None
    return resolved


def slugify(text: str) -> str:
    """'Abbey Peters' -> 'abbey-peters'"""
    slug = (text or "").lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[\s_]+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


# Social platform fingerprints, checked in order
SOCIAL_PATTERNS = [
    ("instagram", re.compile(r"instagram\.com/[^/?#]+", re.IGNORECASE)),
    ("twitter", re.compile(r"(?:^|[/.])(?:twitter|x)\.com/[^/?#]+", re.IGNORECASE)),
    ("facebook", re.compile(r"facebook\.com/[^/?#]+", re.IGNORECASE)),
    ("tiktok", re.compile(r"tiktok\.com/@[^/?#]+", re.IGNORECASE)),
    ("youtube", re.compile(r"youtube\.com/(?:@|channel/|c/)[^/?#]+", re.IGNORECASE)),
    ("pinterest", re.compile(r"pinterest\.com/[^/?#]+", re.IGNORECASE)),
    ("linkedin", re.compile(r"linkedin\.com/in/[^/?#]+", re.IGNORECASE)),
    ("etsy", re.compile(r"etsy\.com/shop/[^/?#]+", re.IGNORECASE)),
]


def detect_social_platform(url: str) -> Optional[str]:
    for platform, pattern in SOCIAL_PATTERNS:
        if pattern.search(url or ""):
            return platform
    return None


@dataclass
class NavLink:
    """A classified outbound link worth visiting."""

    url: str
    text: str
    hint: str
    priority: int


# (pattern, priority, hint) - lower priority value is visited first
NAV_PAGE_PATTERNS = [
    (re.compile(r"\b(about|bio|artist)\b", re.IGNORECASE), 1, "about"),
    (re.compile(r"\b(cv|resume|curriculum|vitae)\b", re.IGNORECASE), 1, "cv"),
    (re.compile(r"\b(shop|store|buy|available|purchase)\b", re.IGNORECASE), 1, "shop"),
    (re.compile(r"\b(work|portfolio|gallery|pieces|collection)\b", re.IGNORECASE), 2, "work"),
    (re.compile(r"\b(process|studio|making)\b", re.IGNORECASE), 2, "process"),
    (re.compile(r"\b(contact|info)\b", re.IGNORECASE), 3, "contact"),
    (re.compile(r"\b(press|publications|media)\b", re.IGNORECASE), 3, "press"),
    (re.compile(r"\b(exhibitions?|shows?)\b", re.IGNORECASE), 3, "exhibitions"),
]


def classify_nav_link(text: str, url: str) -> Optional[NavLink]:
    """Classify a link by its text (or URL path); None if it is not interesting."""
    trimmed = (text or "").strip()
    if not trimmed:
        return None
    # Only the path: hostnames like artist-name.com must not look like pages
    path = urlparse(url or "").path
    for pattern, priority, hint in NAV_PAGE_PATTERNS:
        if pattern.search(trimmed) or pattern.search(path):
            return NavLink(url=url, text=trimmed, hint=hint, priority=priority)
    return None
