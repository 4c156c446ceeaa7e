from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from browser_strategy import BROWSER_WARNING, PlaywrightStrategy
from models import ScrapeOptions

ROOT = "https://abbey-peters.com/"

BIO = ("Abbey Peters is a ceramic artist making wheel-thrown functional stoneware "
       "in her Portland studio.")

HOME = """
<html><head><title>Abbey Peters</title></head><body>
<nav>
  <a href="/">Home</a>
  <a href="/about">About</a>
  <a href="/shop">Shop</a>
  <a href="/work">Work</a>
  <a href="/gallery">Gallery</a>
  <a href="https://blog.example.org/about">Blog</a>
</nav>
<a href="https://instagram.com/abbeypeters">Instagram</a>
</body></html>
"""

PAGES = {
    ROOT: HOME,
    ROOT + "about": f"<html><body><p>{BIO}</p></body></html>",
    ROOT + "work": '<html><body><img src="/img/bowl.jpg" width="800"></body></html>',
    ROOT + "gallery": "<html><body></body></html>",
}


@pytest.fixture
def site(fake_site):
    return fake_site({})


def rendering(strategy, pages, rendered):
    """Serve rendered HTML from pages; unknown URLs fail like a navigation timeout."""

    def render(url, screenshot_name=None):
        rendered.append(url)
        if url not in pages:
            raise RuntimeError(f"Timeout 60000ms exceeded navigating to {url}")
        if screenshot_name:
            strategy.screenshots[screenshot_name] = b"png:" + url.encode()
        return pages[url]

    strategy.render = render
    return strategy


class TestPlaywrightStrategy:
    def test_rendered_site(self, site):
        rendered = []
        strategy = rendering(PlaywrightStrategy(site.fetcher), PAGES, rendered)
        data = strategy.scrape(ROOT, ScrapeOptions(website_url=ROOT))

        assert data.platform == "browser"
        assert data.warnings[-1] == BROWSER_WARNING
        # /shop is not in PAGES, so its render fails
        assert [e.url for e in data.errors] == [ROOT + "shop"]
        assert data.errors[0].error.startswith("Browser render failed: Timeout")
        assert rendered == [ROOT, ROOT + "about", ROOT + "shop", ROOT + "work", ROOT + "gallery"]
        assert data.source_urls == [ROOT, ROOT + "about", ROOT + "work", ROOT + "gallery"]

        assert (data.bio.value, data.bio.confidence) == (BIO, "medium")
        assert data.instagram_url == "https://instagram.com/abbeypeters"
        assert [img.url for img in data.cover_images] == [ROOT + "img/bowl.jpg"]
        assert sorted(strategy.screenshots) == ["about", "homepage", "work", "work-4"]

    def test_page_cap(self, site):
        rendered = []
        strategy = rendering(PlaywrightStrategy(site.fetcher, max_pages=1), PAGES, rendered)
        strategy.scrape(ROOT, ScrapeOptions(website_url=ROOT))
        assert rendered == [ROOT, ROOT + "about"]

    def test_robots_disallowed_pages_skipped(self, fake_site):
        site = fake_site({ROOT + "robots.txt": "User-agent: *\nDisallow: /about\n"})
        rendered = []
        strategy = rendering(PlaywrightStrategy(site.fetcher), PAGES, rendered)
        strategy.scrape(ROOT, ScrapeOptions(website_url=ROOT))
        assert ROOT + "about" not in rendered

    def test_playwright_not_installed(self, site):
        strategy = PlaywrightStrategy(site.fetcher)

        def missing():
            raise ImportError("No module named 'playwright'")

        strategy._ensure_browser = missing
        data = strategy.scrape(ROOT, ScrapeOptions(website_url=ROOT))

        assert [e.error for e in data.errors] == ["Playwright not installed. Run: playwright install chromium"]
        assert data.source_urls == []
        assert BROWSER_WARNING not in data.warnings

    def test_homepage_render_failure(self, site):
        strategy = rendering(PlaywrightStrategy(site.fetcher), {}, [])
        data = strategy.scrape(ROOT, ScrapeOptions(website_url=ROOT))
        assert len(data.errors) == 1
        assert data.errors[0].error.startswith("Browser scraping failed: Timeout")

    @pytest.mark.parametrize("available", [True, False])
    def test_supports(self, site, available):
        env = SimpleNamespace(playwright_available=available)
        assert PlaywrightStrategy(site.fetcher).supports(env) is available


class TestBrowserLifecycle:
    def test_render_waits_and_screenshots(self, site):
        strategy = PlaywrightStrategy(site.fetcher, page_timeout=1000)
        strategy._browser = MagicMock()
        strategy._page = page = MagicMock()
        page.content.return_value = "<html>rendered</html>"
        page.screenshot.return_value = b"\x89PNG"

        assert strategy.render(ROOT, screenshot_name="homepage") == "<html>rendered</html>"
        page.goto.assert_called_once_with(ROOT, wait_until="networkidle", timeout=1000)
        page.screenshot.assert_called_once_with(full_page=True)
        assert strategy.screenshots == {"homepage": b"\x89PNG"}

    def test_cleanup_closes_everything(self, site):
        strategy = PlaywrightStrategy(site.fetcher)
        context, browser, playwright = MagicMock(), MagicMock(), MagicMock()
        strategy._context, strategy._browser, strategy._playwright = context, browser, playwright

        strategy.cleanup()

        context.close.assert_called_once_with()
        browser.close.assert_called_once_with()
        playwright.stop.assert_called_once_with()
        assert strategy._browser is None
        assert strategy._page is None

    def test_cleanup_before_launch(self, site):
        PlaywrightStrategy(site.fetcher).cleanup()
