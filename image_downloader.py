"""
Image Downloader - Save discovered images into a categorized folder tree
========================================================================
Layout under the artist output directory:

    profile/01.jpg
    cover/01.jpg
    process/01.jpg
    listings/01-blue-bowl/01.jpg

Every URL is downloaded once, no matter how many buckets reference it.
Downloads run in fixed-size batches on a thread pool; one failed image never
aborts the batch.
"""

import logging
import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlparse

import requests

from fetcher import USER_AGENT
from models import ImageStats, ScrapedArtistData, ScrapedImage
from url_utils import slugify

logger = logging.getLogger(__name__)

CONCURRENT_DOWNLOADS = 5
MIN_FILE_SIZE = 5000  # bytes; smaller bodies are icons or broken images
DOWNLOAD_TIMEOUT = 30

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp", ".gif", ".avif")
CONTENT_TYPE_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/gif": ".gif",
    "image/avif": ".avif",
}

DOWNLOADED = "downloaded"
SKIPPED = "skipped"
FAILED = "failed"


@dataclass
class ImageDownload:
    url: str
    dir: str
    filename: str


@dataclass
class DownloadPlan:
    downloads: List[ImageDownload] = field(default_factory=list)
    duplicates: int = 0


def get_extension(url: str) -> str:
    """File extension from the URL path, or '' when it is not a known image type."""
    ext = os.path.splitext(urlparse(url).path)[1].lower()
    return ext if ext in IMAGE_EXTENSIONS else ""


def build_download_plan(data: ScrapedArtistData, output_dir: str) -> DownloadPlan:
    """Flatten every image bucket into one work list, deduplicated by URL."""
    targets: List[Tuple[ScrapedImage, str]] = []
    for bucket, images in (
        ("profile", data.profile_images),
        ("cover", data.cover_images),
        ("process", data.process_images),
    ):
        targets.extend((img, os.path.join(output_dir, bucket)) for img in images)

    for index, listing in enumerate(data.listings, 1):
        listing_slug = slugify(listing.title.value)[:40].rstrip("-") or "listing"
        listing_dir = os.path.join(output_dir, "listings", f"{index:02d}-{listing_slug}")
        targets.extend((img, listing_dir) for img in listing.images)

    plan = DownloadPlan()
    seen = set()
    counters: Dict[str, int] = {}
    for image, directory in targets:
        if image.url in seen:
            plan.duplicates += 1
            continue
        seen.add(image.url)
        counters[directory] = counters.get(directory, 0) + 1
        filename = f"{counters[directory]:02d}{get_extension(image.url) or '.jpg'}"
        plan.downloads.append(ImageDownload(url=image.url, dir=directory, filename=filename))

    return plan


def get_session() -> requests.Session:
    """Create a requests session with headers."""
    session = requests.Session()
    session.headers.update({"User-Agent": USER_AGENT})
    return session


def download_one(session: requests.Session, item: ImageDownload) -> str:
    """Download a single image. Returns DOWNLOADED, SKIPPED or FAILED."""
    try:
        response = session.get(item.url, timeout=DOWNLOAD_TIMEOUT)
        response.raise_for_status()
    except requests.RequestException as e:
        logger.debug(f"Image download failed {item.url}: {e}")
        return FAILED

    content = response.content
    if len(content) < MIN_FILE_SIZE:
        logger.debug(f"Skipping tiny image {item.url} ({len(content)} bytes)")
        return SKIPPED

    filename = item.filename
    if not get_extension(item.url):
        content_type = response.headers.get("content-type", "").split(";")[0].strip().lower()
        ext = CONTENT_TYPE_EXTENSIONS.get(content_type)
        if ext:
            filename = os.path.splitext(filename)[0] + ext

    os.makedirs(item.dir, exist_ok=True)
    path = os.path.join(item.dir, filename)
    with open(path, "wb") as f:
        f.write(content)
    logger.debug(f"Downloaded {item.url} -> {path} ({len(content)} bytes)")
    return DOWNLOADED


def download_images(data: ScrapedArtistData, output_dir: str,
                    session: Optional[requests.Session] = None,
                    batch_size: int = CONCURRENT_DOWNLOADS) -> ImageStats:
    plan = build_download_plan(data, output_dir)
    stats = ImageStats(duplicates=plan.duplicates)
    if not plan.downloads:
        return stats

    logger.info(f"Downloading {len(plan.downloads)} images ({plan.duplicates} duplicates dropped)")
    session = session or get_session()

    for start in range(0, len(plan.downloads), batch_size):
        batch = plan.downloads[start:start + batch_size]
        with ThreadPoolExecutor(max_workers=batch_size) as executor:
            futures = {executor.submit(download_one, session, item): item for item in batch}
            for future in as_completed(futures):
                try:
                    outcome = future.result()
                except OSError as e:
                    logger.warning(f"Could not save {futures[future].url}: {e}")
                    outcome = FAILED
                if outcome == DOWNLOADED:
                    stats.downloaded += 1
                elif outcome == SKIPPED:
                    stats.skipped += 1
                else:
                    stats.failed += 1

    return stats
