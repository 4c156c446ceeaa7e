import json
from unittest.mock import MagicMock

import httpx
import pytest

from models import ExtractedField, ImageStats, ScrapedListing, ScrapeOptions, create_empty_data
from scraper_engine import (
    ScrapeManager,
    ScrapingStrategy,
    artist_slug,
    has_content,
    pick_better,
    start_record,
)

ROOT = "https://abbey-peters.com/"

BIO = ("Abbey Peters is a ceramic artist making wheel-thrown functional stoneware "
       "in her Portland studio.")


def with_bio(data):
    data.bio = ExtractedField(BIO, "medium", ROOT)


def with_listing(data):
    data.listings.append(ScrapedListing(title=ExtractedField("Blue Bowl", "medium", ROOT)))


def make_strategy(name, fill=None, supported=True, screenshots=None, error=None, built=None):
    """A strategy class whose scrape() returns a record shaped by fill."""

    class FakeStrategy(ScrapingStrategy):
        def __init__(self, fetcher):
            self.fetcher = fetcher
            self.screenshots = dict(screenshots or {})
            self.cleaned_up = False
            if built is not None:
                built.append(self)

        def supports(self, env):
            return supported

        def scrape(self, url, options, hints=None):
            if error:
                raise error
            data = start_record(url, options, platform=self.platform_tag)
            if fill:
                fill(data)
            return data

        def cleanup(self):
            self.cleaned_up = True

    FakeStrategy.name = name
    FakeStrategy.platform_tag = "browser" if name == "playwright" else "generic"
    return FakeStrategy


def options_for(tmp_path, **kwargs):
    kwargs.setdefault("website_url", ROOT)
    kwargs.setdefault("output_dir", str(tmp_path))
    kwargs.setdefault("skip_ai", True)
    kwargs.setdefault("skip_images", True)
    return ScrapeOptions(**kwargs)


def read_json(path):
    with open(path, encoding="utf-8") as f:
        return json.load(f)


class TestEscalationPolicy:
    def test_has_content(self):
        data = create_empty_data(ROOT)
        assert not has_content(data)
        with_bio(data)
        assert has_content(data)

    @pytest.mark.parametrize("fill", [with_bio, with_listing])
    def test_browser_result_wins_over_empty(self, fill):
        current = create_empty_data(ROOT)
        candidate = create_empty_data(ROOT)
        fill(candidate)
        assert pick_better(current, candidate) is candidate

    def test_ties_keep_current(self):
        current, candidate = create_empty_data(ROOT), create_empty_data(ROOT)
        with_bio(current)
        with_bio(candidate)
        assert pick_better(current, candidate) is current

    def test_fewer_signals_keep_current(self):
        current, candidate = create_empty_data(ROOT), create_empty_data(ROOT)
        with_listing(current)
        with_listing(current)
        with_listing(candidate)
        assert pick_better(current, candidate) is current


class TestArtistSlug:
    def test_explicit_name(self):
        options = ScrapeOptions(website_url=ROOT, artist_name="Abbey Peters")
        assert artist_slug(options, None, ROOT) == "abbey-peters"

    def test_extracted_name(self):
        data = create_empty_data(ROOT)
        data.name = ExtractedField("Mara Lin Ceramics", "low", ROOT)
        assert artist_slug(ScrapeOptions(website_url=ROOT), data, ROOT) == "mara-lin-ceramics"

    def test_hostname(self):
        assert artist_slug(ScrapeOptions(website_url=ROOT), None, "https://www.artist.com/") == "www-artist-com"


class TestScrapeManagerOrchestration:
    @pytest.fixture
    def site(self, fake_site):
        return fake_site({ROOT: "<html><body><p>Welcome</p></body></html>"})

    def test_thin_result_escalates_to_browser(self, site, tmp_path):
        factories = {
            "requests": make_strategy("requests"),
            "playwright": make_strategy("playwright", fill=with_listing,
                                        screenshots={"homepage": b"\x89PNG"}),
        }
        manager = ScrapeManager(options_for(tmp_path), fetcher=site.fetcher,
                                strategy_factories=factories, env=MagicMock())
        result = manager.run()

        assert result.success
        assert result.data.platform == "browser"
        assert len(result.data.listings) == 1
        assert manager.strategy_used == "playwright"
        assert (tmp_path / "abbey-peters-com" / "screenshots" / "homepage.png").read_bytes() == b"\x89PNG"

    def test_browser_that_finds_nothing_keeps_original(self, site, tmp_path):
        factories = {
            "requests": make_strategy("requests", fill=lambda d: d.warnings.append("thin")),
            "playwright": make_strategy("playwright"),
        }
        result = ScrapeManager(options_for(tmp_path), fetcher=site.fetcher,
                               strategy_factories=factories, env=MagicMock()).run()
        assert result.data.platform == "generic"
        assert "thin" in result.data.warnings

    def test_browser_unavailable_adds_warning(self, site, tmp_path):
        factories = {
            "requests": make_strategy("requests"),
            "playwright": make_strategy("playwright", fill=with_listing, supported=False),
        }
        result = ScrapeManager(options_for(tmp_path), fetcher=site.fetcher,
                               strategy_factories=factories, env=MagicMock()).run()
        assert result.data.listings == []
        assert any("browser fallback unavailable" in w for w in result.data.warnings)
        assert result.success

    def test_sufficient_result_skips_browser(self, site, tmp_path):
        browsers = []
        factories = {
            "requests": make_strategy("requests", fill=with_bio),
            "playwright": make_strategy("playwright", built=browsers),
        }
        result = ScrapeManager(options_for(tmp_path), fetcher=site.fetcher,
                               strategy_factories=factories, env=MagicMock()).run()
        assert result.data.bio.value == BIO
        assert browsers == []

    def test_custom_sufficiency_predicate(self, site, tmp_path):
        browsers = []
        factories = {
            "requests": make_strategy("requests", fill=with_bio),
            "playwright": make_strategy("playwright", built=browsers),
        }
        ScrapeManager(options_for(tmp_path), fetcher=site.fetcher, strategy_factories=factories,
                      sufficiency=lambda data: bool(data.listings), env=MagicMock()).run()
        assert len(browsers) == 1

    def test_forced_browser(self, site, tmp_path):
        built = []
        factories = {
            "requests": make_strategy("requests", built=built),
            "playwright": make_strategy("playwright", fill=with_bio, built=built),
        }
        manager = ScrapeManager(options_for(tmp_path, force_browser=True), fetcher=site.fetcher,
                                strategy_factories=factories, env=MagicMock())
        result = manager.run()
        assert [s.name for s in built] == ["playwright"]
        assert built[0].cleaned_up
        assert result.data.platform == "browser"

    def test_strategy_crash_is_recorded(self, site, tmp_path):
        factories = {
            "requests": make_strategy("requests", error=RuntimeError("boom")),
            "playwright": make_strategy("playwright", supported=False),
        }
        result = ScrapeManager(options_for(tmp_path), fetcher=site.fetcher,
                               strategy_factories=factories, env=MagicMock()).run()
        assert not result.success
        assert any("boom" in e.error for e in result.data.errors)

    def test_squarespace_site_uses_squarespace_strategy(self, fake_site, tmp_path):
        site = fake_site({ROOT: "<script>Static.SQUARESPACE_CONTEXT = {};</script>"})
        built = []
        factories = {
            "squarespace": make_strategy("squarespace", fill=with_listing, built=built),
            "playwright": make_strategy("playwright", built=built),
        }
        ScrapeManager(options_for(tmp_path), fetcher=site.fetcher,
                      strategy_factories=factories, env=MagicMock()).run()
        assert [s.name for s in built] == ["squarespace"]

    def test_enrichment_and_images(self, fake_site, tmp_path):
        about = f"<html><body><p>{BIO}</p></body></html>"
        site = fake_site({ROOT: "<html></html>", ROOT + "about": about})

        def visit_about(data):
            data.add_source_url(ROOT)
            data.add_source_url(ROOT + "about")
            with_bio(data)

        enricher = MagicMock()
        downloader = MagicMock(return_value=ImageStats(downloaded=2))
        options = options_for(tmp_path, skip_ai=False, skip_images=False, artist_name="Abbey Peters")
        result = ScrapeManager(options, fetcher=site.fetcher,
                               strategy_factories={"requests": make_strategy("requests", fill=visit_about)},
                               enricher=enricher, image_downloader=downloader, env=MagicMock()).run()

        data, raw_cv_text, raw_about_text = enricher.enrich.call_args[0]
        assert data is result.data
        assert raw_cv_text is None
        assert BIO in raw_about_text
        downloader.assert_called_once_with(result.data, str(tmp_path / "abbey-peters"))
        assert result.image_stats.downloaded == 2

    def test_enrichment_failure_is_warning(self, site, tmp_path):
        enricher = MagicMock()
        enricher.enrich.side_effect = RuntimeError("rate limited")

        def visited(data):
            data.add_source_url(ROOT)
            with_bio(data)

        result = ScrapeManager(options_for(tmp_path, skip_ai=False), fetcher=site.fetcher,
                               strategy_factories={"requests": make_strategy("requests", fill=visited)},
                               enricher=enricher, env=MagicMock()).run()
        assert result.success
        assert any("rate limited" in w for w in result.data.warnings)


class TestScrapeManagerEndToEnd:
    def test_generic_site(self, fake_site, tmp_path):
        site = fake_site({
            ROOT: """
                <html><head><title>Abbey Peters</title></head><body>
                <nav><a href="/about">About</a><a href="/shop">Shop</a></nav>
                </body></html>
            """,
            ROOT + "about": f"<html><body><p>{BIO}</p></body></html>",
            ROOT + "shop": """
                <html><body>
                <div class="product"><h3>Blue Bowl</h3><span class="price">$115.00</span></div>
                <div class="product"><h3>Green Vase</h3><span class="price">Sold</span></div>
                </body></html>
            """,
        })
        options = options_for(tmp_path, website_url="abbey-peters.com", artist_name="Abbey Peters")
        result = ScrapeManager(options, fetcher=site.fetcher, env=MagicMock()).run()

        assert result.success
        assert result.output_dir == str(tmp_path / "abbey-peters")
        assert result.data.platform == "generic"
        assert result.counts["listings"] == 2

        written = read_json(tmp_path / "abbey-peters" / "scraped-data.json")
        assert written["websiteUrl"] == ROOT
        assert written["bio"]["value"] == BIO
        assert written["listings"][0]["price"]["value"] == 11500
        assert written["listings"][1]["isSoldOut"] is True
        assert written["name"] == {"value": "Abbey Peters", "confidence": "high", "source": "cli-input"}
        assert (tmp_path / "abbey-peters" / "summary.md").exists()

    def test_root_timeout(self, fake_site, tmp_path):
        def timeout(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        site = fake_site({ROOT: timeout})
        enricher = MagicMock()
        downloader = MagicMock()
        options = options_for(tmp_path, skip_ai=False, skip_images=False)
        result = ScrapeManager(options, fetcher=site.fetcher, enricher=enricher,
                               image_downloader=downloader, env=MagicMock()).run()

        assert result.success is False
        assert [e.url for e in result.data.errors] == [ROOT]
        assert site.requests.count(ROOT) == 1
        enricher.enrich.assert_not_called()
        downloader.assert_not_called()

        out = tmp_path / "abbey-peters-com"
        assert sorted(p.name for p in out.iterdir()) == ["scraped-data.json", "summary.md"]
        written = read_json(out / "scraped-data.json")
        assert written["listings"] == []
        assert written["bio"] is None
        assert len(written["errors"]) == 1

    def test_invalid_url_is_fatal(self, tmp_path):
        result = ScrapeManager(options_for(tmp_path, website_url="not a url")).run()
        assert result.success is False
        assert result.data is None
        assert result.output_dir is None
        assert list(tmp_path.iterdir()) == []
