"""
Scraper Engine - Multi-Strategy Artist Site Extraction
=======================================================
Provides platform-aware scraping with automatic strategy selection.

Components:
- EnvironmentProbe: Detects runtime capabilities (Playwright, browser, API key)
- ScrapingStrategy: The contract every strategy implements
- has_content / pick_better: The escalation policy
- ScrapeManager: Orchestrator that detects the platform, runs a strategy,
  escalates to the browser when the result is thin, enriches and writes output

Flow:
  fetch root -> detect platform -> strategy -> sufficiency check
  -> (browser fallback, keep the better record) -> AI enrichment
  -> JSON + summary -> image downloads
"""

import logging
import os
import re
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Dict, List, Optional
from urllib.parse import urlparse

from fetcher import Fetcher
from html_utils import load_html, page_text
from models import (
    ExtractedField,
    ImageStats,
    ScrapedArtistData,
    ScrapeOptions,
    ScrapeResult,
    SOURCE_CLI,
    create_empty_data,
)
from platform_detector import detect_platform
from site_profiles import get_platform_profile
from url_utils import normalize_url, slugify

logger = logging.getLogger(__name__)

CV_URL_HINT = re.compile(r"cv|resume|exhibition", re.IGNORECASE)
ABOUT_URL_HINT = re.compile(r"about|bio|artist", re.IGNORECASE)


# =============================================================================
# ENVIRONMENT PROBE
# =============================================================================

class EnvironmentProbe:
    """Detects runtime environment and available capabilities."""

    def __init__(self):
        self._playwright_available = None
        self._browser_available = None

    @property
    def playwright_available(self) -> bool:
        """Check if Playwright is installed and importable."""
        if self._playwright_available is None:
            try:
                from playwright.sync_api import sync_playwright  # noqa: F401
                self._playwright_available = True
            except ImportError:
                self._playwright_available = False
        return self._playwright_available

    @property
    def browser_available(self) -> bool:
        """Check if a browser can actually be launched (not just installed)."""
        if self._browser_available is None:
            if not self.playwright_available:
                self._browser_available = False
            else:
                try:
                    from playwright.sync_api import sync_playwright
                    with sync_playwright() as p:
                        browser = p.chromium.launch(headless=True)
                        browser.close()
                    self._browser_available = True
                except Exception as e:
                    logger.debug(f"Browser check failed: {e}")
                    self._browser_available = False
        return self._browser_available

    def has_secret(self, key: str) -> bool:
        """Check if a specific secret/API key is available."""
        return bool(os.environ.get(key))

    def get_capabilities(self) -> Dict[str, bool]:
        return {
            "playwright_available": self.playwright_available,
            "browser_available": self.browser_available,
            "anthropic_api_key": self.has_secret("ANTHROPIC_API_KEY"),
        }

    def __repr__(self):
        return f"EnvironmentProbe(playwright_available={self.playwright_available})"


# =============================================================================
# STRATEGY CONTRACT
# =============================================================================

class ScrapingStrategy(ABC):
    """Contract shared by all scraping strategies."""

    name: str = "base"
    requires_browser: bool = False

    @abstractmethod
    def supports(self, env: EnvironmentProbe) -> bool:
        """Check if this strategy can run in the current environment."""

    @abstractmethod
    def scrape(self, url: str, options: ScrapeOptions,
               hints: Optional[Dict[str, str]] = None) -> ScrapedArtistData:
        """Extract artist data from the site rooted at url."""

    def cleanup(self) -> None:
        """Release any resources (override in subclasses)."""


def start_record(url: str, options: ScrapeOptions, platform: Optional[str]) -> ScrapedArtistData:
    """Empty record for a strategy run, seeded with operator-supplied values."""
    data = create_empty_data(url, options.instagram_url)
    data.platform = platform
    if options.artist_name:
        data.name = ExtractedField(options.artist_name, "high", SOURCE_CLI)
    return data


# =============================================================================
# ESCALATION POLICY
# =============================================================================

def has_content(data: ScrapedArtistData) -> bool:
    """Default sufficiency predicate: any listing, any CV entry, or a bio."""
    return bool(data.listings) or bool(data.cv_entries) or data.bio is not None


def pick_better(current: ScrapedArtistData, candidate: ScrapedArtistData) -> ScrapedArtistData:
    """
    Keep current unless candidate strictly improves on listings, CV entries,
    or bio presence.
    """
    improves = (
        len(candidate.listings) > len(current.listings)
        or len(candidate.cv_entries) > len(current.cv_entries)
        or (candidate.bio is not None and current.bio is None)
    )
    return candidate if improves else current


def default_strategy_factories() -> Dict[str, Callable]:
    # Local imports: the strategy modules import this one
    from browser_strategy import PlaywrightStrategy
    from html_strategy import RequestsStrategy
    from squarespace_strategy import SquarespaceApiStrategy

    return {
        "requests": RequestsStrategy,
        "squarespace": SquarespaceApiStrategy,
        "playwright": PlaywrightStrategy,
    }


def artist_slug(options: ScrapeOptions, data: Optional[ScrapedArtistData], url: str) -> str:
    """Explicit name, else extracted name, else hostname."""
    if options.artist_name and slugify(options.artist_name):
        return slugify(options.artist_name)
    if data is not None and data.name and slugify(data.name.value):
        return slugify(data.name.value)
    host = (urlparse(url).hostname or "").replace(".", "-")
    return slugify(host) or "artist"


# =============================================================================
# SCRAPE MANAGER
# =============================================================================

class ScrapeManager:
    """Runs the full extraction pipeline for one artist site."""

    def __init__(self, options: ScrapeOptions,
                 fetcher: Optional[Fetcher] = None,
                 strategy_factories: Optional[Dict[str, Callable]] = None,
                 sufficiency: Callable[[ScrapedArtistData], bool] = has_content,
                 enricher=None,
                 image_downloader: Optional[Callable] = None,
                 env: Optional[EnvironmentProbe] = None):
        self.options = options
        self._owns_fetcher = fetcher is None
        self.fetcher = fetcher
        self.strategy_factories = strategy_factories
        self.sufficiency = sufficiency
        self.enricher = enricher
        self.image_downloader = image_downloader
        self.env = env or EnvironmentProbe()

        self.strategy_used: Optional[str] = None
        self.screenshots: Dict[str, bytes] = {}

    def _build_strategy(self, name: str) -> ScrapingStrategy:
        if self.strategy_factories is None:
            self.strategy_factories = default_strategy_factories()
        return self.strategy_factories[name](self.fetcher)

    def run(self) -> ScrapeResult:
        """Execute the pipeline. Never raises."""
        start = time.perf_counter()

        url = normalize_url(self.options.website_url)
        if not url:
            logger.error(f"Invalid website URL: {self.options.website_url!r}")
            return ScrapeResult(False, None, None, time.perf_counter() - start)

        if self.fetcher is None:
            self.fetcher = Fetcher()

        data: Optional[ScrapedArtistData] = None
        output_dir: Optional[str] = None
        image_stats: Optional[ImageStats] = None
        try:
            data = self._extract(url)
            if not self.options.skip_ai and data.source_urls:
                self._enrich(data)

            output_dir = str(Path(self.options.output_dir) / artist_slug(self.options, data, url))
            self._write_outputs(data, output_dir)

            if not self.options.skip_images and data.source_urls:
                image_stats = self._download_images(data, output_dir)
        except Exception as e:
            logger.exception(f"Scrape failed for {url}")
            if data is None:
                data = create_empty_data(url, self.options.instagram_url)
            data.add_error(url, f"Unexpected error: {e}")
        finally:
            if self._owns_fetcher:
                self.fetcher.close()

        duration = time.perf_counter() - start
        result = ScrapeResult(
            success=not data.errors,
            data=data,
            output_dir=output_dir,
            duration=duration,
            image_stats=image_stats,
        )
        self._log_summary(result)
        return result

    # ------------------------------------------------------------------

    def _extract(self, url: str) -> ScrapedArtistData:
        logger.info(f"Detecting platform for {url}")
        home = self.fetcher.fetch(url)

        if not home.ok:
            logger.error(f"Failed to fetch website {url} (status {home.status})")
            if self.options.force_browser:
                logger.info("Trying browser scraper...")
                return self._run_strategy("playwright", url)
            data = create_empty_data(url, self.options.instagram_url)
            data.add_error(url, f"HTTP {home.status}: Failed to fetch")
            return data

        detected = detect_platform(home.headers, home.body, home.url)
        logger.info(f"Platform detected: {detected.platform}")

        if self.options.force_browser:
            return self._run_strategy("playwright", url)

        profile = get_platform_profile(detected.platform)
        primary = profile.strategies[0]
        data = self._run_strategy(primary, url, detected.hints)
        if data.platform is None:
            data.platform = detected.platform

        if primary != "playwright" and not self.sufficiency(data):
            data = self._escalate(url, data)
        return data

    def _run_strategy(self, name: str, url: str,
                      hints: Optional[Dict[str, str]] = None) -> ScrapedArtistData:
        return self._run(self._build_strategy(name), url, hints)

    def _run(self, strategy: ScrapingStrategy, url: str,
             hints: Optional[Dict[str, str]] = None) -> ScrapedArtistData:
        logger.info(f">>> Running strategy: {strategy.name}")
        try:
            data = strategy.scrape(url, self.options, hints or {})
            self.strategy_used = strategy.name
        except Exception as e:
            logger.error(f"Strategy '{strategy.name}' failed: {e}")
            data = start_record(url, self.options, platform=None)
            data.add_error(url, f"Strategy '{strategy.name}' failed: {e}")
        finally:
            strategy.cleanup()
            self.screenshots.update(getattr(strategy, "screenshots", {}) or {})
        return data

    def _escalate(self, url: str, data: ScrapedArtistData) -> ScrapedArtistData:
        browser = self._build_strategy("playwright")
        if not browser.supports(self.env):
            logger.warning("Little content found and Playwright is not installed; skipping browser fallback")
            data.warnings.append("Little content found; browser fallback unavailable (Playwright not installed)")
            return data

        logger.info("Found little content - trying browser fallback")
        browser_data = self._run(browser, url)
        chosen = pick_better(data, browser_data)
        if chosen is browser_data:
            logger.info("Browser fallback found more content; using it")
        else:
            logger.info("Browser fallback did not improve the result; keeping original")
        return chosen

    def _enrich(self, data: ScrapedArtistData) -> None:
        if self.enricher is None:
            from ai_enrichment import ClaudeEnricher
            self.enricher = ClaudeEnricher()

        raw_cv_text = self._raw_text_for(data, CV_URL_HINT)
        raw_about_text = self._raw_text_for(data, ABOUT_URL_HINT)
        try:
            self.enricher.enrich(data, raw_cv_text, raw_about_text)
        except Exception as e:
            logger.warning(f"AI enrichment failed: {e}")
            data.warnings.append(f"AI enrichment failed: {e}")

    def _raw_text_for(self, data: ScrapedArtistData, pattern: re.Pattern) -> Optional[str]:
        """Body text of the first visited page whose URL matches pattern."""
        for source_url in data.source_urls:
            if not pattern.search(urlparse(source_url).path):
                continue
            result = self.fetcher.fetch(source_url)
            return page_text(load_html(result.body)) if result.ok else None
        return None

    def _write_outputs(self, data: ScrapedArtistData, output_dir: str) -> None:
        from output_writers import write_json, write_markdown, write_screenshots

        logger.info(f"Writing outputs to {output_dir}")
        json_path = write_json(data, output_dir)
        logger.info(f"JSON written: {json_path}")
        md_path = write_markdown(data, output_dir)
        logger.info(f"Summary written: {md_path}")
        if self.screenshots:
            write_screenshots(self.screenshots, output_dir)

    def _download_images(self, data: ScrapedArtistData, output_dir: str) -> ImageStats:
        if self.image_downloader is None:
            from image_downloader import download_images
            self.image_downloader = download_images
        logger.info("Downloading images...")
        stats = self.image_downloader(data, output_dir)
        logger.info(
            f"Images: {stats.downloaded} downloaded, {stats.skipped} skipped, "
            f"{stats.failed} failed, {stats.duplicates} duplicates"
        )
        return stats

    def _log_summary(self, result: ScrapeResult) -> None:
        counts = result.counts
        logger.info("=" * 60)
        logger.info("SCRAPE COMPLETE")
        logger.info(f"Strategy used: {self.strategy_used or 'None'}")
        logger.info(f"Listings: {counts['listings']}")
        logger.info(f"CV entries: {counts['cv_entries']}")
        logger.info(f"Errors: {counts['errors']}")
        logger.info(f"Duration: {result.duration:.1f}s")
        logger.info("=" * 60)
