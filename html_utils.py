"""
HTML Helpers - Shared BeautifulSoup extraction routines
========================================================
Used by every scraping strategy: images (with srcset handling), navigation
discovery, social links, bio paragraphs, emails, locations, heuristic CV
sections and schema.org Product blocks.
"""

import json
import logging
import re
from typing import Iterable, List, Optional, Set

from bs4 import BeautifulSoup, Tag

from dimension_parser import find_dimensions
from models import (
    ExtractedField,
    ScrapedCvEntry,
    ScrapedImage,
    ScrapedListing,
    SocialLink,
)
from price_parser import parse_price
from url_utils import NavLink, classify_nav_link, detect_social_platform, resolve_url

logger = logging.getLogger(__name__)

# Filters out icons and UI chrome
MIN_IMAGE_WIDTH = 200
MIN_PARAGRAPH_LENGTH = 50
EXCLUDED_IMAGE_PATTERNS = ["favicon", "logo", "icon", "sprite", "spinner", "pixel"]

NAV_SELECTORS = [
    "nav a",
    "header a",
    '[role="navigation"] a',
    ".nav a",
    ".navigation a",
    ".menu a",
    ".main-nav a",
    ".site-nav a",
]

EMAIL_RE = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
LOCATION_RE = re.compile(
    r"(?:based in|located in|lives? in|from)\s+([A-Z][a-z]+(?:\s+[A-Z][a-z]+)*,\s*[A-Z]{2})\b"
)
YEAR_RE = re.compile(r"\b(?:19|20)\d{2}\b")

CV_SECTION_PATTERNS = [
    (re.compile(r"education", re.IGNORECASE), "education"),
    (re.compile(r"exhibition|show", re.IGNORECASE), "exhibition"),
    (re.compile(r"residenc", re.IGNORECASE), "residency"),
    (re.compile(r"award|grant|fellowship|honor", re.IGNORECASE), "award"),
    (re.compile(r"press|publication|media", re.IGNORECASE), "press"),
]


def load_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "lxml")


def page_text(soup: BeautifulSoup) -> str:
    body = soup.body or soup
    return body.get_text(separator=" ", strip=True)


def get_largest_from_srcset(srcset: str, base_url: str) -> Optional[str]:
    """Pick the widest candidate from a srcset attribute."""
    best_url = None
    best_width = -1
    for entry in (srcset or "").split(","):
        parts = entry.strip().split()
        if not parts:
            continue
        width = 0
        if len(parts) > 1:
            match = re.match(r"^(\d+)w$", parts[1])
            if match:
                width = int(match.group(1))
        if width > best_width:
            best_url, best_width = parts[0], width
    return resolve_url(best_url, base_url) if best_url else None


def _is_content_image(url: str) -> bool:
    lower = url.lower()
    return not any(pattern in lower for pattern in EXCLUDED_IMAGE_PATTERNS)


def image_from_tag(img: Tag, page_url: str, context: str = "unknown",
                   alt: Optional[str] = None) -> Optional[ScrapedImage]:
    """Build a ScrapedImage from an <img>, or None if it looks like chrome."""
    raw_url = img.get("src") or img.get("data-src") or img.get("data-lazy-src") or img.get("data-image")
    if not raw_url or raw_url.startswith("data:"):
        return None

    width_attr = img.get("width")
    if width_attr:
        try:
            if int(str(width_attr).strip().rstrip("px")) < MIN_IMAGE_WIDTH:
                return None
        except ValueError:
            pass

    resolved = resolve_url(raw_url, page_url)
    if not resolved or not _is_content_image(resolved):
        return None

    srcset = img.get("srcset") or img.get("data-srcset")
    if srcset:
        resolved = get_largest_from_srcset(srcset, page_url) or resolved

    alt_text = alt if alt is not None else (img.get("alt") or "").strip() or None
    return ScrapedImage(url=resolved, alt=alt_text, context=context, source_page_url=page_url)


def extract_images(soup: BeautifulSoup, page_url: str, context: str = "unknown") -> List[ScrapedImage]:
    """All images on the page that pass the size and chrome filters, deduplicated."""
    images: List[ScrapedImage] = []
    seen: Set[str] = set()
    for img in soup.find_all("img"):
        image = image_from_tag(img, page_url, context)
        if image and image.url not in seen:
            seen.add(image.url)
            images.append(image)
    return images


def extract_nav_links(soup: BeautifulSoup, base_url: str) -> List[NavLink]:
    """Classified navigation links, deduplicated and ordered by priority."""
    links: List[NavLink] = []
    seen: Set[str] = set()

    for selector in NAV_SELECTORS:
        for a in soup.select(selector):
            href = (a.get("href") or "").strip()
            text = a.get_text(" ", strip=True)
            if not href or not text:
                continue
            if href.startswith(("#", "mailto:", "tel:", "javascript:")):
                continue
            resolved = resolve_url(href, base_url)
            if not resolved:
                continue
            resolved = resolved.split("#")[0]
            if resolved in seen:
                continue
            seen.add(resolved)

            classified = classify_nav_link(text, resolved)
            if classified:
                links.append(classified)

    # sorted() is stable, so document order is kept within a priority
    return sorted(links, key=lambda link: link.priority)


def extract_social_links(soup: BeautifulSoup, base_url: str) -> List[SocialLink]:
    """One link per known social platform."""
    links: List[SocialLink] = []
    seen: Set[str] = set()
    for a in soup.find_all("a", href=True):
        resolved = resolve_url(a["href"], base_url)
        if not resolved:
            continue
        platform = detect_social_platform(resolved)
        if not platform or platform in seen:
            continue
        seen.add(platform)
        links.append(SocialLink(platform=platform, url=resolved))
    return links


def extract_paragraphs(soup: BeautifulSoup, min_length: int = MIN_PARAGRAPH_LENGTH) -> List[str]:
    """Paragraph texts of at least min_length chars, longest first."""
    texts = [p.get_text(" ", strip=True) for p in soup.find_all("p")]
    texts = [t for t in texts if len(t) >= min_length]
    return sorted(texts, key=len, reverse=True)


def extract_longest_paragraph(soup: BeautifulSoup) -> Optional[str]:
    paragraphs = extract_paragraphs(soup)
    return paragraphs[0] if paragraphs else None


def extract_emails(soup: BeautifulSoup) -> List[str]:
    """Emails from mailto: links first, then a sweep of the body text."""
    emails: List[str] = []

    def add(email: str) -> None:
        email = email.strip().lower()
        if email and email not in emails:
            emails.append(email)

    for a in soup.select('a[href^="mailto:"]'):
        add(a["href"][len("mailto:"):].split("?")[0])

    for match in EMAIL_RE.finditer(page_text(soup)):
        add(match.group(0))

    return emails


def extract_location(soup: BeautifulSoup) -> Optional[str]:
    """'based in Portland, OR' style locations."""
    match = LOCATION_RE.search(page_text(soup))
    return match.group(1) if match else None


def classify_cv_section(heading: str) -> Optional[str]:
    for pattern, entry_type in CV_SECTION_PATTERNS:
        if pattern.search(heading):
            return entry_type
    return None


def _is_heading(el: Tag) -> bool:
    if el.name in ("h1", "h2", "h3", "h4", "h5", "h6"):
        return True
    # <p><strong>Exhibitions</strong></p> style headings
    if el.name == "p":
        strong = el.find(["strong", "b"])
        text = el.get_text(" ", strip=True)
        return bool(strong) and strong.get_text(" ", strip=True) == text and len(text) < 60
    return False


def parse_cv_entries(soup: BeautifulSoup, source_url: str, require_year: bool = True,
                     default_type: str = "other") -> List[ScrapedCvEntry]:
    """
    Walk headings, list items and paragraphs in document order. Headings set
    the current section type; items under them become low-confidence entries.
    """
    entries: List[ScrapedCvEntry] = []
    seen: Set[str] = set()
    current_type = default_type

    for el in soup.find_all(["h1", "h2", "h3", "h4", "h5", "h6", "p", "li"]):
        if _is_heading(el):
            current_type = classify_cv_section(el.get_text(" ", strip=True)) or current_type
            continue
        # Nested lists are handled through their own <li>
        if el.name == "li" and el.find("li"):
            continue

        raw = el.get_text(" ", strip=True)
        if len(raw) < 10 or raw in seen:
            continue
        year_match = YEAR_RE.search(raw)
        if require_year and not year_match:
            continue
        seen.add(raw)

        entries.append(ScrapedCvEntry(
            type=ExtractedField(current_type, "low", source_url),
            title=ExtractedField(raw, "low", source_url),
            institution=None,
            year=ExtractedField(int(year_match.group(0)), "medium", source_url) if year_match else None,
            raw=raw,
        ))

    return entries


def _iter_ld_objects(data) -> Iterable[dict]:
    if isinstance(data, list):
        for item in data:
            yield from _iter_ld_objects(item)
    elif isinstance(data, dict):
        if "@graph" in data:
            yield from _iter_ld_objects(data["@graph"])
        yield data


def extract_json_ld_products(soup: BeautifulSoup, page_url: str) -> List[ScrapedListing]:
    """schema.org Product blocks embedded as application/ld+json."""
    listings: List[ScrapedListing] = []

    for script in soup.find_all("script", type="application/ld+json"):
        try:
            data = json.loads(script.string or "")
        except (json.JSONDecodeError, TypeError):
            continue

        for obj in _iter_ld_objects(data):
            obj_type = obj.get("@type")
            types = obj_type if isinstance(obj_type, list) else [obj_type]
            if "Product" not in types or not obj.get("name"):
                continue
            listing = _listing_from_ld(obj, page_url)
            if listing:
                listings.append(listing)

    return listings


def _listing_from_ld(obj: dict, page_url: str) -> Optional[ScrapedListing]:
    title = str(obj.get("name", "")).strip()
    if not title:
        return None

    offers = obj.get("offers") or {}
    if isinstance(offers, list):
        offers = offers[0] if offers else {}
    if not isinstance(offers, dict):
        offers = {}

    price = None
    currency = offers.get("priceCurrency") or None
    is_sold_out = "OutOfStock" in str(offers.get("availability", "")) or "SoldOut" in str(offers.get("availability", ""))
    if offers.get("price") not in (None, ""):
        parsed = parse_price(str(offers.get("price")))
        if parsed.cents is not None:
            price = ExtractedField(parsed.cents, "high", page_url)

    description = str(obj.get("description") or "").strip()
    description_html = load_html(description).get_text(" ", strip=True) if "<" in description else description

    images: List[ScrapedImage] = []
    raw_images = obj.get("image") or []
    if isinstance(raw_images, (str, dict)):
        raw_images = [raw_images]
    for raw in raw_images:
        src = raw.get("url") if isinstance(raw, dict) else raw
        resolved = resolve_url(str(src or ""), page_url)
        if resolved and all(img.url != resolved for img in images):
            images.append(ScrapedImage(url=resolved, alt=title, context="listing", source_page_url=page_url))

    dims = find_dimensions(description_html) or find_dimensions(title)
    material = obj.get("material")

    return ScrapedListing(
        title=ExtractedField(title, "high", page_url),
        description=ExtractedField(description_html, "high", page_url) if description_html else None,
        price=price,
        price_currency=currency,
        medium=ExtractedField(str(material), "medium", page_url) if material else None,
        dimensions=ExtractedField(dims, "medium", page_url) if dims else None,
        images=images,
        source_url=resolve_url(str(obj.get("url") or ""), page_url) or page_url,
        is_sold_out=is_sold_out,
    )


MEDIUM_LINE = re.compile(r"(?:medium|materials?)\s*:\s*([^\n.;]+)", re.IGNORECASE)


def find_medium(text: str) -> Optional[str]:
    """A 'Medium: stoneware' style line inside a description."""
    match = MEDIUM_LINE.search(text or "")
    if not match:
        return None
    value = match.group(1).strip()
    return value or None
