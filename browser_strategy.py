"""
Playwright Strategy - Browser rendering for JS-heavy sites
==========================================================
Renders the homepage and navigation pages in headless Chromium, then hands
the rendered HTML to the RequestsStrategy extraction routines. Full-page
screenshots are kept in memory for the orchestrator to write out.
"""

import logging
from typing import Any, Dict, Optional

from bs4 import BeautifulSoup

from fetcher import USER_AGENT, Fetcher, is_allowed_by_robots
from html_strategy import RequestsStrategy
from models import ScrapedArtistData, ScrapeOptions
from scraper_engine import EnvironmentProbe, ScrapingStrategy, start_record
from url_utils import is_same_domain

logger = logging.getLogger(__name__)

PAGE_TIMEOUT_MS = 60000
SETTLE_MS = 3000
MAX_BROWSER_PAGES = 8
BROWSER_WARNING = "Site was rendered via Playwright browser (JS-heavy)"


class PlaywrightStrategy(ScrapingStrategy):
    """Scrapes using a Playwright browser - for JavaScript-rendered sites."""

    name = "playwright"
    requires_browser = True

    def __init__(self, fetcher: Fetcher, page_timeout: int = PAGE_TIMEOUT_MS,
                 max_pages: int = MAX_BROWSER_PAGES):
        self.fetcher = fetcher
        self.page_timeout = page_timeout
        self.max_pages = max_pages
        self.screenshots: Dict[str, bytes] = {}
        self._playwright: Any = None
        self._browser: Any = None
        self._context: Any = None
        self._page: Any = None

    def supports(self, env: EnvironmentProbe) -> bool:
        """Requires Playwright to be installed."""
        return env.playwright_available

    def _ensure_browser(self):
        """Lazy-initialize browser on first use."""
        if self._browser is None:
            from playwright.sync_api import sync_playwright
            self._playwright = sync_playwright().start()
            self._browser = self._playwright.chromium.launch(headless=True)
            self._context = self._browser.new_context(user_agent=USER_AGENT)
            self._page = self._context.new_page()

    def cleanup(self) -> None:
        """Clean up browser resources."""
        if self._context:
            self._context.close()
        if self._browser:
            self._browser.close()
        if self._playwright:
            self._playwright.stop()
        self._playwright = None
        self._browser = None
        self._context = None
        self._page = None

    def render(self, url: str, screenshot_name: Optional[str] = None) -> str:
        """Load url, let scripts settle, and return the rendered HTML."""
        self._ensure_browser()
        self._page.goto(url, wait_until="networkidle", timeout=self.page_timeout)
        self._page.wait_for_timeout(SETTLE_MS)
        if screenshot_name:
            self.screenshots[screenshot_name] = self._page.screenshot(full_page=True)
        return self._page.content()

    def scrape(self, url: str, options: ScrapeOptions,
               hints: Optional[Dict[str, str]] = None) -> ScrapedArtistData:
        data = start_record(url, options, platform="browser")
        extractor = RequestsStrategy(self.fetcher)

        try:
            home_html = self.render(url, screenshot_name="homepage")
        except ImportError:
            data.add_error(url, "Playwright not installed. Run: playwright install chromium")
            return data
        except Exception as e:
            logger.warning(f"PlaywrightStrategy error on {url}: {e}")
            data.add_error(url, f"Browser scraping failed: {e}")
            return data

        data.add_source_url(url)
        home_soup = BeautifulSoup(home_html, "lxml")
        nav_links = extractor.extract_home(home_soup, url, data)
        disallow_paths = self.fetcher.robots_disallows(url)

        visited = 0
        for nav_link in nav_links:
            if visited >= self.max_pages:
                break
            if not is_same_domain(nav_link.url, url):
                continue
            if not is_allowed_by_robots(nav_link.url, disallow_paths):
                continue
            if nav_link.url.rstrip("/") == url.rstrip("/"):
                continue
            visited += 1
            shot = nav_link.hint if nav_link.hint not in self.screenshots else f"{nav_link.hint}-{visited}"

            try:
                html = self.render(nav_link.url, screenshot_name=shot)
            except Exception as e:
                logger.warning(f"PlaywrightStrategy error on {nav_link.url}: {e}")
                data.add_error(nav_link.url, f"Browser render failed: {e}")
                continue

            data.add_source_url(nav_link.url)
            extractor.extract_page(nav_link.hint, BeautifulSoup(html, "lxml"), nav_link.url, data,
                                   disallow_paths=disallow_paths)

        extractor.finish(home_soup, url, data)
        data.warnings.append(BROWSER_WARNING)
        return data
