"""
Squarespace Strategy - Structured extraction through ?format=json
=================================================================
Squarespace serves every page, store and gallery as typed JSON when
'?format=json' is appended, so products, prices and stock state come back
explicitly instead of being guessed from markup.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup

from dimension_parser import find_dimensions
from fetcher import Fetcher, is_allowed_by_robots
from html_utils import (
    extract_emails,
    extract_longest_paragraph,
    extract_social_links,
    find_medium,
    image_from_tag,
    load_html,
    page_text,
    parse_cv_entries,
)
from models import (
    ExtractedField,
    ScrapedArtistData,
    ScrapedImage,
    ScrapedListing,
    ScrapeOptions,
    SocialLink,
)
from price_parser import parse_price
from scraper_engine import EnvironmentProbe, ScrapingStrategy, start_record
from url_utils import detect_social_platform, resolve_url

logger = logging.getLogger(__name__)

# Squarespace collection type numbers
PAGE_TYPES = {1, 2, 10}  # page, blog, cover page
GALLERY_TYPE = 3
STORE_TYPE = 11

COMMON_PATHS = ["/about", "/cv", "/shop", "/store", "/work", "/contact"]

ABOUT_WORDS = ("about", "bio", "artist")
CV_WORDS = ("cv", "resume", "curriculum", "exhibition")
CONTACT_WORDS = ("contact", "info")


def _mentions(text: str, words) -> bool:
    lower = (text or "").lower()
    return any(word in lower for word in words)


def json_url(url: str) -> str:
    return f"{url}&format=json" if "?" in url else f"{url}?format=json"


class SquarespaceApiStrategy(ScrapingStrategy):
    """Scrapes Squarespace sites through their JSON content API."""

    name = "squarespace"
    requires_browser = False

    def __init__(self, fetcher: Fetcher):
        self.fetcher = fetcher

    def supports(self, env: EnvironmentProbe) -> bool:
        return True

    def fetch_json(self, url: str, data: Optional[ScrapedArtistData] = None) -> Optional[Dict[str, Any]]:
        """Page JSON, or None. Network failures are recorded on data when given."""
        result = self.fetcher.fetch(json_url(url), accept_json=True)
        if not result.ok:
            if result.status == 0 and data is not None:
                data.add_error(url, "Failed to fetch after retries")
            return None
        try:
            payload = json.loads(result.body)
        except json.JSONDecodeError:
            logger.debug(f"Malformed JSON from {url}")
            return None
        return payload if isinstance(payload, dict) else None

    def scrape(self, url: str, options: ScrapeOptions,
               hints: Optional[Dict[str, str]] = None) -> ScrapedArtistData:
        data = start_record(url, options, platform="squarespace")
        if hints and hints.get("siteId"):
            logger.debug(f"Squarespace site id: {hints['siteId']}")

        site_json = self.fetch_json(url)
        if not site_json:
            data.add_error(url, "Failed to fetch Squarespace site JSON")
            self._html_fallback(url, data)
            return data

        data.add_source_url(url)
        self._site_metadata(site_json.get("website") or {}, url, data, options)
        disallow_paths = self.fetcher.robots_disallows(url)

        collections = [c for c in (site_json.get("collections") or []) if isinstance(c, dict)]
        if isinstance(site_json.get("collection"), dict):
            collections.append(site_json["collection"])

        for collection in collections:
            collection_url = resolve_url(
                collection.get("fullUrl") or f"/{collection.get('urlId', '')}", url
            )
            if not collection_url or not self._allowed(collection_url, disallow_paths, data):
                continue
            try:
                ctype = collection.get("type")
                if ctype == STORE_TYPE:
                    self._scrape_store(collection_url, data)
                elif ctype == GALLERY_TYPE:
                    self._scrape_gallery(collection_url, data)
                elif ctype in PAGE_TYPES:
                    self._scrape_page(collection_url, collection, data)
            except Exception as e:
                logger.warning(f"SquarespaceApiStrategy error on {collection_url}: {e}")
                data.add_error(collection_url, str(e))

        if not collections:
            self._try_common_paths(url, data, disallow_paths)

        return data

    # ------------------------------------------------------------------

    def _allowed(self, page_url: str, disallow_paths: List[str], data: ScrapedArtistData) -> bool:
        if is_allowed_by_robots(page_url, disallow_paths):
            return True
        logger.info(f"Skipping {page_url} (blocked by robots.txt)")
        data.warnings.append(f"Skipped {page_url} (blocked by robots.txt)")
        return False

    def _site_metadata(self, website: Dict[str, Any], url: str,
                       data: ScrapedArtistData, options: ScrapeOptions) -> None:
        title = website.get("siteTitle")
        if title and not options.artist_name:
            data.name = ExtractedField(title, "medium", url)

        for account in website.get("socialAccounts") or []:
            service_url = (account or {}).get("serviceUrl")
            if not service_url:
                continue
            platform = detect_social_platform(service_url)
            if platform:
                data.add_social_link(SocialLink(platform=platform, url=service_url))

        location = website.get("location") or {}
        address = ", ".join(
            part for part in (location.get("addressLine1"), location.get("addressLine2")) if part
        )
        if address and not data.location:
            data.location = ExtractedField(address, "medium", url)

    def _scrape_store(self, collection_url: str, data: ScrapedArtistData) -> None:
        store_json = self.fetch_json(collection_url, data)
        if not store_json or not isinstance(store_json.get("items"), list):
            return
        data.add_source_url(collection_url)

        for item in store_json["items"]:
            listing = self.parse_product(item, collection_url)
            if listing:
                data.listings.append(listing)
        logger.info(f"Scraped store {collection_url}: {len(data.listings)} listings")

    def parse_product(self, item: Dict[str, Any], source_url: str) -> Optional[ScrapedListing]:
        """Turn a store item into a listing. None for untitled items."""
        if not isinstance(item, dict) or not item.get("title"):
            return None
        title = str(item["title"]).strip()

        price_cents = None
        currency = None
        is_sold_out = False
        variants = item.get("variants") or []
        if variants and isinstance(variants[0], dict):
            variant = variants[0]
            money = variant.get("priceMoney")
            if isinstance(money, dict) and money.get("value") is not None:
                # priceMoney.value is a decimal amount string, e.g. "115.00"
                price_cents = parse_price(str(money["value"])).cents
                currency = money.get("currency") or "USD"
            elif isinstance(variant.get("price"), (int, float)):
                # Legacy field, already in cents
                price_cents = int(variant["price"])

            stock = variant.get("stock")
            if variant.get("soldOut") is True:
                is_sold_out = True
            elif isinstance(stock, dict) and not variant.get("unlimited"):
                is_sold_out = (stock.get("quantity") or 0) <= 0

        images: List[ScrapedImage] = []

        def add_image(asset_url: Optional[str], alt: Optional[str]) -> None:
            if asset_url and all(img.url != asset_url for img in images):
                images.append(ScrapedImage(url=asset_url, alt=alt or None,
                                           context="listing", source_page_url=source_url))

        add_image(item.get("assetUrl"), title)
        for img in item.get("items") or []:
            if isinstance(img, dict):
                add_image(img.get("assetUrl"), img.get("altText") or img.get("title"))
        for img in (item.get("structuredContent") or {}).get("images") or []:
            if isinstance(img, dict):
                add_image(img.get("assetUrl"), img.get("altText"))

        description = None
        if item.get("body"):
            description = page_text(load_html(item["body"])) or None
        elif item.get("excerpt"):
            description = str(item["excerpt"]).strip() or None

        dims = find_dimensions(title) or find_dimensions(description or "")
        medium = find_medium(description or "")

        return ScrapedListing(
            title=ExtractedField(title, "high", source_url),
            description=ExtractedField(description, "high", source_url) if description else None,
            price=ExtractedField(price_cents, "high", source_url) if price_cents is not None else None,
            price_currency=currency,
            medium=ExtractedField(medium, "low", source_url) if medium else None,
            dimensions=ExtractedField(dims, "medium", source_url) if dims else None,
            images=images,
            source_url=resolve_url(item.get("fullUrl") or "", source_url) or source_url,
            is_sold_out=is_sold_out,
        )

    def _scrape_gallery(self, collection_url: str, data: ScrapedArtistData) -> None:
        gallery_json = self.fetch_json(collection_url, data)
        if not gallery_json or not isinstance(gallery_json.get("items"), list):
            return
        data.add_source_url(collection_url)

        for item in gallery_json["items"]:
            if isinstance(item, dict) and item.get("assetUrl"):
                data.process_images.append(ScrapedImage(
                    url=item["assetUrl"],
                    alt=item.get("title") or None,
                    context="process",
                    source_page_url=collection_url,
                ))

    def _scrape_page(self, page_url: str, collection: Dict[str, Any],
                     data: ScrapedArtistData) -> None:
        label = f"{collection.get('title', '')} {collection.get('urlId', '')}"
        is_about = _mentions(label, ABOUT_WORDS)
        is_cv = _mentions(label, CV_WORDS)
        is_contact = _mentions(label, CONTACT_WORDS)
        if not (is_about or is_cv or is_contact):
            return

        page_json = self.fetch_json(page_url, data)
        if not page_json:
            return
        data.add_source_url(page_url)

        body_html = self._page_body(page_json)
        if not body_html:
            return
        self._apply_page_content(load_html(body_html), page_url, data,
                                 is_about=is_about, is_cv=is_cv, is_contact=is_contact)

    def _page_body(self, page_json: Dict[str, Any]) -> str:
        body = page_json.get("mainContent") or ""
        item = page_json.get("item")
        if isinstance(item, dict) and item.get("body"):
            body = item["body"]
        for item in page_json.get("items") or []:
            if isinstance(item, dict) and item.get("body"):
                body += "\n" + item["body"]
        return body

    def _apply_page_content(self, soup: BeautifulSoup, page_url: str, data: ScrapedArtistData,
                            is_about: bool = False, is_cv: bool = False,
                            is_contact: bool = False) -> None:
        if is_about and not data.bio:
            bio = extract_longest_paragraph(soup)
            if bio:
                data.bio = ExtractedField(bio, "high", page_url)
            for img in soup.find_all("img"):
                image = image_from_tag(img, page_url, "profile")
                if image:
                    data.profile_images.append(image)

        if is_cv:
            if len(page_text(soup)) > 50:
                data.warnings.append(f"CV page found at {page_url}. Raw text available for AI enrichment.")
            data.cv_entries.extend(parse_cv_entries(soup, page_url, require_year=False))

        if is_contact or is_about:
            emails = extract_emails(soup)
            if emails and not data.email:
                data.email = ExtractedField(emails[0], "medium", page_url)

    def _try_common_paths(self, base_url: str, data: ScrapedArtistData,
                          disallow_paths: List[str]) -> None:
        """Probe well-known paths when the site JSON lists no collections."""
        for path in COMMON_PATHS:
            full_url = resolve_url(path, base_url)
            if not full_url or not is_allowed_by_robots(full_url, disallow_paths):
                continue
            page_json = self.fetch_json(full_url, data)
            if not page_json:
                continue
            data.add_source_url(full_url)

            if path in ("/shop", "/store"):
                for item in page_json.get("items") or []:
                    listing = self.parse_product(item, full_url)
                    if listing:
                        data.listings.append(listing)
                continue

            body_html = self._page_body(page_json)
            if body_html:
                self._apply_page_content(
                    load_html(body_html), full_url, data,
                    is_about=path == "/about",
                    is_cv=path == "/cv",
                    is_contact=path == "/contact",
                )

    def _html_fallback(self, url: str, data: ScrapedArtistData) -> None:
        result = self.fetcher.fetch(url)
        if not result.ok:
            return
        data.add_source_url(result.url)
        soup = load_html(result.body)

        for link in extract_social_links(soup, url):
            data.add_social_link(link)

        bio = extract_longest_paragraph(soup)
        if bio and not data.bio:
            data.bio = ExtractedField(bio, "medium", url)

        emails = extract_emails(soup)
        if emails and not data.email:
            data.email = ExtractedField(emails[0], "medium", url)

        data.warnings.append("Squarespace JSON API unavailable - fell back to HTML parsing")
