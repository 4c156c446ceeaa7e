"""
Requests Strategy - Generic HTML scraping for unknown platforms
===============================================================
Fetches the homepage, discovers About/CV/Shop/... pages from the site
navigation, and pulls profile data out of each page with heuristics.

The page-level extraction methods take already-parsed HTML so the browser
strategy can feed them rendered pages.
"""

import logging
from typing import Dict, List, Optional, Set

from bs4 import BeautifulSoup, Tag

from dimension_parser import find_dimensions
from fetcher import Fetcher, is_allowed_by_robots
from html_utils import (
    extract_emails,
    extract_images,
    extract_json_ld_products,
    extract_location,
    extract_longest_paragraph,
    extract_nav_links,
    extract_paragraphs,
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
)
from price_parser import is_sold_out_text, parse_price
from scraper_engine import EnvironmentProbe, ScrapingStrategy, start_record
from url_utils import NavLink, is_same_domain, resolve_url

logger = logging.getLogger(__name__)

MAX_PAGES = 10
MAX_HOME_COVER_IMAGES = 5
MAX_WORK_COVER_IMAGES = 10
MAX_PROFILE_IMAGES = 3

PRODUCT_SELECTORS = [
    ".product",
    ".product-card",
    ".product-item",
    ".grid-item",
    '[class*="product"]',
    "article",
]
TITLE_SELECTOR = 'h1, h2, h3, h4, .product-title, .title, [class*="title"]'
PRICE_SELECTOR = '.price, [class*="price"], .money, [class*="money"]'


class RequestsStrategy(ScrapingStrategy):
    """Scrapes static HTML fetched over plain HTTP."""

    name = "requests"
    requires_browser = False

    def __init__(self, fetcher: Fetcher, max_pages: int = MAX_PAGES):
        self.fetcher = fetcher
        self.max_pages = max_pages

    def supports(self, env: EnvironmentProbe) -> bool:
        """Always supported - just needs internet access."""
        return True

    def scrape(self, url: str, options: ScrapeOptions,
               hints: Optional[Dict[str, str]] = None) -> ScrapedArtistData:
        data = start_record(url, options, platform="generic")

        disallow_paths = self.fetcher.robots_disallows(url)

        home = self.fetcher.fetch(url)
        if not home.ok:
            data.add_error(url, f"HTTP {home.status}: Failed to fetch")
            return data

        data.add_source_url(home.url)
        home_soup = load_html(home.body)
        nav_links = self.extract_home(home_soup, home.url, data)

        for nav_link in self.select_pages(nav_links, url, disallow_paths, data):
            try:
                result = self.fetcher.fetch(nav_link.url)
                if not result.ok:
                    if result.status == 0:
                        data.add_error(nav_link.url, "Failed to fetch after retries")
                    else:
                        data.warnings.append(f"Skipped {nav_link.url} (HTTP {result.status})")
                    continue

                data.add_source_url(result.url)
                self.extract_page(nav_link.hint, load_html(result.body), result.url, data,
                                  disallow_paths=disallow_paths)
            except Exception as e:
                logger.warning(f"RequestsStrategy error on {nav_link.url}: {e}")
                data.add_error(nav_link.url, str(e))

        self.finish(home_soup, home.url, data)
        return data

    # ------------------------------------------------------------------
    # Page selection
    # ------------------------------------------------------------------

    def select_pages(self, nav_links: List[NavLink], root_url: str,
                     disallow_paths: List[str], data: ScrapedArtistData) -> List[NavLink]:
        """Same-site, robots-allowed links, highest priority first, capped."""
        selected: List[NavLink] = []
        for nav_link in nav_links:
            if len(selected) >= self.max_pages:
                break
            if not is_same_domain(nav_link.url, root_url):
                continue
            if not is_allowed_by_robots(nav_link.url, disallow_paths):
                logger.info(f"Skipping {nav_link.url} (blocked by robots.txt)")
                data.warnings.append(f"Skipped {nav_link.url} (blocked by robots.txt)")
                continue
            if nav_link.url.rstrip("/") == root_url.rstrip("/"):
                continue
            selected.append(nav_link)
        return selected

    # ------------------------------------------------------------------
    # Extraction routines (shared with the browser strategy)
    # ------------------------------------------------------------------

    def extract_home(self, soup: BeautifulSoup, page_url: str,
                     data: ScrapedArtistData) -> List[NavLink]:
        """Homepage pass. Returns the classified navigation links."""
        for link in extract_social_links(soup, page_url):
            data.add_social_link(link)

        if not data.name and soup.title:
            title = soup.title.get_text(" ", strip=True)
            if title and len(title) < 60:
                data.name = ExtractedField(title, "low", page_url)

        emails = extract_emails(soup)
        if emails and not data.email:
            data.email = ExtractedField(emails[0], "medium", page_url)

        data.cover_images.extend(extract_images(soup, page_url, "cover")[:MAX_HOME_COVER_IMAGES])

        return extract_nav_links(soup, page_url)

    def extract_page(self, hint: str, soup: BeautifulSoup, page_url: str,
                     data: ScrapedArtistData, disallow_paths: Optional[List[str]] = None) -> None:
        """Dispatch a discovered page to the handler for its hint."""
        if hint == "about":
            self._about_page(soup, page_url, data)
        elif hint in ("cv", "exhibitions"):
            self._cv_page(soup, page_url, data)
        elif hint == "shop":
            self._shop_page(soup, page_url, data, disallow_paths or [])
        elif hint == "work":
            data.cover_images.extend(extract_images(soup, page_url, "cover")[:MAX_WORK_COVER_IMAGES])
        elif hint == "process":
            data.process_images.extend(extract_images(soup, page_url, "process"))
        elif hint == "contact":
            self._contact_page(soup, page_url, data)
        elif hint == "press":
            self._press_page(soup, page_url, data)

    def finish(self, home_soup: BeautifulSoup, home_url: str, data: ScrapedArtistData) -> None:
        """Fallbacks once every page has been seen."""
        if not data.bio:
            bio = extract_longest_paragraph(home_soup)
            if bio:
                data.bio = ExtractedField(bio, "low", home_url)

    # ------------------------------------------------------------------
    # Page handlers
    # ------------------------------------------------------------------

    def _about_page(self, soup: BeautifulSoup, page_url: str, data: ScrapedArtistData) -> None:
        paragraphs = extract_paragraphs(soup)
        if paragraphs and not data.bio:
            data.bio = ExtractedField(paragraphs[0], "medium", page_url)
        if len(paragraphs) >= 2 and not data.artist_statement:
            data.artist_statement = ExtractedField(paragraphs[1], "low", page_url)

        data.profile_images.extend(extract_images(soup, page_url, "profile")[:MAX_PROFILE_IMAGES])

        emails = extract_emails(soup)
        if emails and not data.email:
            data.email = ExtractedField(emails[0], "medium", page_url)

        location = extract_location(soup)
        if location and not data.location:
            data.location = ExtractedField(location, "low", page_url)

    def _cv_page(self, soup: BeautifulSoup, page_url: str, data: ScrapedArtistData) -> None:
        raw_text = page_text(soup)
        if len(raw_text) > 50:
            data.warnings.append(
                f"CV page found at {page_url} with {len(raw_text)} chars. "
                f"Use AI enrichment for structured extraction."
            )
        data.cv_entries.extend(parse_cv_entries(soup, page_url, require_year=True))

    def _contact_page(self, soup: BeautifulSoup, page_url: str, data: ScrapedArtistData) -> None:
        emails = extract_emails(soup)
        if emails and not data.email:
            data.email = ExtractedField(emails[0], "high", page_url)

        location = extract_location(soup)
        if location and not data.location:
            data.location = ExtractedField(location, "medium", page_url)

    def _press_page(self, soup: BeautifulSoup, page_url: str, data: ScrapedArtistData) -> None:
        data.cv_entries.extend(
            parse_cv_entries(soup, page_url, require_year=False, default_type="press")
        )

    def _shop_page(self, soup: BeautifulSoup, page_url: str, data: ScrapedArtistData,
                   disallow_paths: List[str]) -> None:
        seen_titles: Set[str] = {listing.title.value for listing in data.listings}
        found: List[ScrapedListing] = []

        # Method 1: schema.org Product JSON-LD
        for listing in extract_json_ld_products(soup, page_url):
            if listing.title.value not in seen_titles:
                seen_titles.add(listing.title.value)
                found.append(listing)

        # Method 2: product cards
        if not found:
            for selector in PRODUCT_SELECTORS:
                for el in soup.select(selector):
                    listing = self.parse_product_card(el, page_url)
                    if listing and listing.title.value not in seen_titles:
                        seen_titles.add(listing.title.value)
                        found.append(listing)
                if found:
                    break

        # Method 3: links wrapping an image
        if not found:
            found.extend(self._image_link_listings(soup, page_url, disallow_paths, seen_titles))

        data.listings.extend(found)
        logger.debug(f"Found {len(found)} listings on {page_url}")

    def parse_product_card(self, el: Tag, page_url: str) -> Optional[ScrapedListing]:
        title_el = el.select_one(TITLE_SELECTOR)
        title = title_el.get_text(" ", strip=True) if title_el else ""
        if not title:
            link = el.find("a")
            title = link.get_text(" ", strip=True) if link else ""
        if len(title) < 2:
            return None

        price = None
        is_sold_out = False
        price_el = el.select_one(PRICE_SELECTOR)
        if price_el:
            parsed = parse_price(price_el.get_text(" ", strip=True))
            if parsed.cents is not None:
                price = ExtractedField(parsed.cents, "medium", page_url)
            is_sold_out = parsed.is_sold_out
        if not is_sold_out:
            badge = el.select_one('[class*="sold"]')
            is_sold_out = bool(badge and is_sold_out_text(badge.get_text(" ", strip=True)))

        images: List[ScrapedImage] = []
        img = el.find("img")
        if img:
            image = image_from_tag(img, page_url, "listing")
            if image:
                images.append(image)

        card_text = el.get_text(" ", strip=True)
        dims = find_dimensions(card_text)
        medium = find_medium(card_text)

        link = el.find("a", href=True)
        source_url = resolve_url(link["href"], page_url) if link else None

        return ScrapedListing(
            title=ExtractedField(title, "medium", page_url),
            price=price,
            medium=ExtractedField(medium, "low", page_url) if medium else None,
            dimensions=ExtractedField(dims, "low", page_url) if dims else None,
            images=images,
            source_url=source_url or page_url,
            is_sold_out=is_sold_out,
        )

    def _image_link_listings(self, soup: BeautifulSoup, page_url: str,
                             disallow_paths: List[str], seen_titles: Set[str]) -> List[ScrapedListing]:
        listings: List[ScrapedListing] = []
        for a in soup.find_all("a", href=True):
            resolved = resolve_url(a["href"], page_url)
            if not resolved or not is_same_domain(resolved, page_url):
                continue
            if not is_allowed_by_robots(resolved, disallow_paths):
                continue
            img = a.find("img")
            text = a.get_text(" ", strip=True)
            if not img or not (3 < len(text) < 100) or text in seen_titles:
                continue
            seen_titles.add(text)

            price = None
            parent = a.parent
            price_el = parent.select_one('.price, [class*="price"]') if parent else None
            if price_el:
                parsed = parse_price(price_el.get_text(" ", strip=True))
                if parsed.cents is not None:
                    price = ExtractedField(parsed.cents, "low", page_url)

            image = image_from_tag(img, page_url, "listing", alt=text)
            listings.append(ScrapedListing(
                title=ExtractedField(text, "low", page_url),
                price=price,
                images=[image] if image else [],
                source_url=resolved,
            ))
        return listings
