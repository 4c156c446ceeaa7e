import httpx
import pytest

from html_strategy import RequestsStrategy
from html_utils import load_html
from models import ScrapeOptions, create_empty_data

ROOT = "https://abbey-peters.com/"

HOME = """
<html><head><title>Abbey Peters</title></head><body>
<header><nav>
  <a href="/about">About</a>
  <a href="/cv">CV</a>
  <a href="/shop">Shop</a>
  <a href="/work">Work</a>
  <a href="/contact">Contact</a>
  <a href="/private/studio">Studio</a>
  <a href="https://other-site.com/about">About elsewhere</a>
</nav></header>
<img src="/img/hero.jpg" width="1600">
<a href="https://instagram.com/abbeypeters">Instagram</a>
<a href="https://www.facebook.com/abbeypetersceramics">Facebook</a>
</body></html>
"""

BIO = ("Abbey Peters is a ceramic artist based in Portland, OR, making wheel-thrown "
       "functional stoneware for everyday use.")
STATEMENT = "Her work explores quiet domestic rituals and the pleasure of use."

ABOUT = f"""
<html><body>
<p>{BIO}</p>
<p>{STATEMENT}</p>
<img src="/img/portrait.jpg" width="800" alt="Abbey in the studio">
</body></html>
"""

CV = """
<html><body>
<h2>Exhibitions</h2>
<ul>
  <li>Vessels, Northern Clay Center, 2022</li>
  <li>Table Manners, Portland Art Museum, 2021</li>
</ul>
</body></html>
"""

SHOP = """
<html><body>
<div class="product">
  <a href="/shop/blue-bowl"><img src="/img/blue-bowl.jpg" width="600"></a>
  <h3>Blue Bowl</h3>
  <span class="price">$115.00</span>
  <p>Medium: stoneware. 6 x 6 x 3 in</p>
</div>
<div class="product">
  <h3>Green Vase</h3>
  <span class="price">Sold</span>
</div>
</body></html>
"""

WORK = """
<html><body>
<img src="/img/work-1.jpg" width="900">
<img src="/img/work-2.jpg" width="900">
</body></html>
"""

CONTACT = '<html><body><a href="mailto:studio@abbey-peters.com">Email me</a></body></html>'


def site_routes(**overrides):
    routes = {
        ROOT: HOME,
        ROOT + "robots.txt": "User-agent: *\nDisallow: /private\n",
        ROOT + "about": ABOUT,
        ROOT + "cv": CV,
        ROOT + "shop": SHOP,
        ROOT + "work": WORK,
        ROOT + "contact": CONTACT,
    }
    routes.update(overrides)
    return routes


class TestRequestsStrategy:
    def test_full_site(self, fake_site):
        site = fake_site(site_routes())
        data = RequestsStrategy(site.fetcher).scrape(ROOT, ScrapeOptions(website_url=ROOT))

        assert data.platform == "generic"
        assert data.errors == []
        assert data.source_urls == [
            ROOT, ROOT + "about", ROOT + "cv", ROOT + "shop", ROOT + "work", ROOT + "contact",
        ]
        assert ROOT + "private/studio" not in site.requests
        assert any("robots.txt" in w and "/private/studio" in w for w in data.warnings)

        assert (data.name.value, data.name.confidence) == ("Abbey Peters", "low")
        assert (data.bio.value, data.bio.confidence) == (BIO, "medium")
        assert data.artist_statement.value == STATEMENT
        assert data.location.value == "Portland, OR"
        assert (data.email.value, data.email.confidence) == ("studio@abbey-peters.com", "high")

        assert data.instagram_url == "https://instagram.com/abbeypeters"
        assert [link.platform for link in data.other_social_links] == ["facebook"]

        assert [img.url for img in data.profile_images] == [ROOT + "img/portrait.jpg"]
        assert [img.url for img in data.cover_images] == [
            ROOT + "img/hero.jpg", ROOT + "img/work-1.jpg", ROOT + "img/work-2.jpg",
        ]

        assert [entry.year.value for entry in data.cv_entries] == [2022, 2021]
        assert all(entry.type.value == "exhibition" for entry in data.cv_entries)

        blue, green = data.listings
        assert blue.title.value == "Blue Bowl"
        assert blue.price.value == 11500
        assert blue.medium.value == "stoneware"
        assert blue.dimensions.value.height == 3
        assert blue.source_url == ROOT + "shop/blue-bowl"
        assert [img.url for img in blue.images] == [ROOT + "img/blue-bowl.jpg"]
        assert blue.is_sold_out is False
        assert green.price is None
        assert green.is_sold_out is True

    def test_operator_supplied_name_wins(self, fake_site):
        site = fake_site(site_routes())
        options = ScrapeOptions(website_url=ROOT, artist_name="Abbey K. Peters")
        data = RequestsStrategy(site.fetcher).scrape(ROOT, options)
        assert (data.name.value, data.name.confidence, data.name.source) == (
            "Abbey K. Peters", "high", "cli-input",
        )

    def test_root_failure_records_error(self, fake_site):
        site = fake_site(site_routes(**{ROOT: 503}))
        data = RequestsStrategy(site.fetcher).scrape(ROOT, ScrapeOptions(website_url=ROOT))
        assert len(data.errors) == 1
        assert data.errors[0].url == ROOT
        assert "503" in data.errors[0].error
        assert data.source_urls == []

    def test_secondary_http_error_is_warning(self, fake_site):
        site = fake_site(site_routes(**{ROOT + "cv": 500}))
        data = RequestsStrategy(site.fetcher).scrape(ROOT, ScrapeOptions(website_url=ROOT))
        assert data.errors == []
        assert any(ROOT + "cv" in w and "500" in w for w in data.warnings)
        assert data.cv_entries == []

    def test_secondary_network_failure_is_error(self, fake_site):
        def refuse(request):
            raise httpx.ConnectError("refused", request=request)

        site = fake_site(site_routes(**{ROOT + "cv": refuse}))
        data = RequestsStrategy(site.fetcher).scrape(ROOT, ScrapeOptions(website_url=ROOT))
        assert [e.url for e in data.errors] == [ROOT + "cv"]

    def test_malformed_nav_link_keeps_other_pages(self, fake_site):
        home = """
            <html><body><nav>
            <a href="/about">About</a>
            <a href="https://abbey-peters.com:abc/shop">Shop</a>
            </nav></body></html>
        """
        site = fake_site({ROOT: home, ROOT + "about": ABOUT})
        data = RequestsStrategy(site.fetcher).scrape(ROOT, ScrapeOptions(website_url=ROOT))

        assert data.bio.value == BIO
        assert [e.url for e in data.errors] == ["https://abbey-peters.com:abc/shop"]
        assert data.source_urls == [ROOT, ROOT + "about"]

    def test_page_cap(self, fake_site):
        site = fake_site(site_routes())
        data = RequestsStrategy(site.fetcher, max_pages=2).scrape(ROOT, ScrapeOptions(website_url=ROOT))
        assert data.source_urls == [ROOT, ROOT + "about", ROOT + "cv"]

    def test_home_bio_fallback_is_low_confidence(self, fake_site):
        home = f"<html><body><p>{BIO}</p></body></html>"
        site = fake_site({ROOT: home})
        data = RequestsStrategy(site.fetcher).scrape(ROOT, ScrapeOptions(website_url=ROOT))
        assert (data.bio.value, data.bio.confidence) == (BIO, "low")


class TestShopExtraction:
    @pytest.fixture
    def strategy(self, fake_site):
        return RequestsStrategy(fake_site({}).fetcher)

    def test_json_ld_preferred_over_cards(self, fake_site):
        shop = SHOP.replace("<body>", """<body>
            <script type="application/ld+json">
            {"@type": "Product", "name": "Celadon Mug", "offers": {"price": "48", "priceCurrency": "USD"}}
            </script>""")
        site = fake_site(site_routes(**{ROOT + "shop": shop}))
        data = RequestsStrategy(site.fetcher).scrape(ROOT, ScrapeOptions(website_url=ROOT))
        assert [listing.title.value for listing in data.listings] == ["Celadon Mug"]
        assert data.listings[0].price.value == 4800
        assert data.listings[0].price.confidence == "high"

    def test_image_link_fallback(self, strategy):
        soup = load_html("""
            <div>
              <a href="/pieces/moon-jar"><img src="/img/moon.jpg" width="700">Moon Jar</a>
              <span class="price">$300</span>
            </div>
            <a href="https://elsewhere.com/x"><img src="/img/x.jpg">Elsewhere piece</a>
        """)
        data = create_empty_data(ROOT)
        strategy.extract_page("shop", soup, ROOT + "shop", data)
        assert len(data.listings) == 1
        listing = data.listings[0]
        assert (listing.title.value, listing.title.confidence) == ("Moon Jar", "low")
        assert listing.price.value == 30000
        assert listing.source_url == ROOT + "pieces/moon-jar"
