"""
Data Models - Extracted artist profile records
===============================================
Every semantically extracted value is wrapped in ExtractedField so a human
reviewer can see how much to trust it and where it came from. Absent values
are None, never empty strings.

ScrapedArtistData is created empty at the start of a run, filled in place by
one scraping strategy (and optionally the enrichment step), then serialized.
"""

import re
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Any, Dict, Generic, List, Literal, Optional, TypeVar

T = TypeVar("T")

Confidence = Literal["high", "medium", "low"]
ImageContext = Literal["profile", "cover", "process", "listing", "unknown"]
CvEntryType = Literal["exhibition", "award", "education", "press", "residency", "other"]

CV_ENTRY_TYPES = ("exhibition", "award", "education", "press", "residency", "other")

CATEGORIES = (
    "ceramics",
    "painting",
    "print",
    "jewelry",
    "illustration",
    "photography",
    "woodworking",
    "fibers",
    "mixed_media",
)

# Sources that are not page URLs
SOURCE_CLI = "cli-input"
SOURCE_AI = "claude-api"


@dataclass
class ExtractedField(Generic[T]):
    """A single extracted value with its confidence and provenance."""

    value: T
    confidence: Confidence
    source: str = ""


@dataclass
class ParsedDimensions:
    length: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None
    unit: str = "in"


@dataclass
class ScrapedImage:
    """Image reference discovered while scraping (not downloaded yet)."""

    url: str
    alt: Optional[str] = None
    context: ImageContext = "unknown"
    source_page_url: str = ""


@dataclass
class ScrapedListing:
    title: ExtractedField[str]
    description: Optional[ExtractedField[str]] = None
    price: Optional[ExtractedField[int]] = None
    price_currency: Optional[str] = None
    medium: Optional[ExtractedField[str]] = None
    dimensions: Optional[ExtractedField[ParsedDimensions]] = None
    images: List[ScrapedImage] = field(default_factory=list)
    source_url: str = ""
    is_sold_out: bool = False


@dataclass
class ScrapedCvEntry:
    type: ExtractedField[str]
    title: ExtractedField[str]
    institution: Optional[ExtractedField[str]] = None
    year: Optional[ExtractedField[int]] = None
    raw: str = ""


@dataclass
class SocialLink:
    platform: str
    url: str


@dataclass
class ScrapeError:
    url: str
    error: str


@dataclass
class ScrapedArtistData:
    """Complete output of a scraping run for a single artist."""

    website_url: str
    scraped_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    source_urls: List[str] = field(default_factory=list)
    platform: Optional[str] = None

    # Profile
    name: Optional[ExtractedField[str]] = None
    bio: Optional[ExtractedField[str]] = None
    artist_statement: Optional[ExtractedField[str]] = None
    location: Optional[ExtractedField[str]] = None
    email: Optional[ExtractedField[str]] = None
    instagram_url: Optional[str] = None
    other_social_links: List[SocialLink] = field(default_factory=list)

    # Image candidates
    profile_images: List[ScrapedImage] = field(default_factory=list)
    cover_images: List[ScrapedImage] = field(default_factory=list)
    process_images: List[ScrapedImage] = field(default_factory=list)

    cv_entries: List[ScrapedCvEntry] = field(default_factory=list)
    listings: List[ScrapedListing] = field(default_factory=list)

    suggested_categories: Optional[ExtractedField[List[str]]] = None

    # Diagnostics (append-only)
    errors: List[ScrapeError] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def add_error(self, url: str, error: str) -> None:
        self.errors.append(ScrapeError(url=url, error=error))

    def add_source_url(self, url: str) -> None:
        if url not in self.source_urls:
            self.source_urls.append(url)

    def add_social_link(self, link: SocialLink) -> None:
        """Route Instagram to its own slot; keep one link per other platform."""
        if link.platform == "instagram":
            if not self.instagram_url:
                self.instagram_url = link.url
            return
        if any(existing.platform == link.platform for existing in self.other_social_links):
            return
        self.other_social_links.append(link)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize with camelCase keys for the import format."""
        return _camelize(asdict(self))


def create_empty_data(website_url: str, instagram_url: Optional[str] = None) -> ScrapedArtistData:
    """Create a fresh, empty record for a run."""
    return ScrapedArtistData(website_url=website_url, instagram_url=instagram_url)


@dataclass
class ScrapeOptions:
    """Per-run options supplied by the operator."""

    website_url: str
    artist_name: Optional[str] = None
    instagram_url: Optional[str] = None
    output_dir: str = "./artist-scraper-output"
    skip_images: bool = False
    skip_ai: bool = False
    force_browser: bool = False
    verbose: bool = False


@dataclass
class ImageStats:
    downloaded: int = 0
    skipped: int = 0
    failed: int = 0
    duplicates: int = 0


@dataclass
class ScrapeResult:
    """Result envelope returned by the orchestrator."""

    success: bool
    data: Optional[ScrapedArtistData]
    output_dir: Optional[str]
    duration: float
    image_stats: Optional[ImageStats] = None

    @property
    def counts(self) -> Dict[str, int]:
        if self.data is None:
            return {"listings": 0, "cv_entries": 0, "errors": 0, "warnings": 0}
        return {
            "listings": len(self.data.listings),
            "cv_entries": len(self.data.cv_entries),
            "errors": len(self.data.errors),
            "warnings": len(self.data.warnings),
        }


_CAMEL_RE = re.compile(r"_([a-z])")


def _camel(key: str) -> str:
    return _CAMEL_RE.sub(lambda m: m.group(1).upper(), key)


def _camelize(value: Any) -> Any:
    if isinstance(value, dict):
        return {_camel(k): _camelize(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_camelize(v) for v in value]
    return value
