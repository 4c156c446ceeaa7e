"""
Output Writers - scraped-data.json, summary.md and screenshots
==============================================================
"""

import json
import logging
import os
from typing import Dict, List, Optional

from models import ExtractedField, ScrapedArtistData, ScrapedCvEntry, ScrapedListing

logger = logging.getLogger(__name__)

JSON_FILENAME = "scraped-data.json"
SUMMARY_FILENAME = "summary.md"
SCREENSHOT_DIR = "screenshots"

BADGES = {"high": "[HIGH]", "medium": "[MED]", "low": "[LOW]"}


def write_json(data: ScrapedArtistData, output_dir: str) -> str:
    """Write the full record with camelCase keys. Returns the file path."""
    os.makedirs(output_dir, exist_ok=True)
    path = os.path.join(output_dir, JSON_FILENAME)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data.to_dict(), f, indent=2, ensure_ascii=False)
    return path


def write_screenshots(screenshots: Dict[str, bytes], output_dir: str) -> List[str]:
    directory = os.path.join(output_dir, SCREENSHOT_DIR)
    os.makedirs(directory, exist_ok=True)
    paths = []
    for name, png in screenshots.items():
        path = os.path.join(directory, f"{name}.png")
        with open(path, "wb") as f:
            f.write(png)
        paths.append(path)
    logger.info(f"Saved {len(paths)} screenshots to {directory}")
    return paths


# =============================================================================
# MARKDOWN SUMMARY
# =============================================================================

def confidence_badge(confidence: str) -> str:
    return BADGES.get(confidence, f"[{confidence.upper()}]")


def format_field(field: Optional[ExtractedField], fallback: str = "Not found") -> str:
    if field is None:
        return fallback
    return f"{field.value} {confidence_badge(field.confidence)}"


def format_price(cents: int) -> str:
    return f"${cents / 100:.2f}"


def truncate(text: str, max_length: int = 200) -> str:
    return text if len(text) <= max_length else text[:max_length] + "..."


def _capitalize(text: str) -> str:
    return text[:1].upper() + text[1:]


def _format_listing(index: int, listing: ScrapedListing) -> str:
    price = f" - {format_price(listing.price.value)}" if listing.price else ""
    medium = f" - {listing.medium.value}" if listing.medium else ""
    images = f" [{len(listing.images)} images]" if listing.images else ""
    return f"{index}. **{listing.title.value}**{price}{medium}{images}"


def _group_cv_entries(entries: List[ScrapedCvEntry]) -> Dict[str, List[ScrapedCvEntry]]:
    groups: Dict[str, List[ScrapedCvEntry]] = {}
    for entry in entries:
        groups.setdefault(entry.type.value, []).append(entry)
    return groups


def generate_markdown(data: ScrapedArtistData) -> str:
    """Human-readable review report for one scrape."""
    name = data.name.value if data.name else "Unknown Artist"
    lines = [
        f"# Artist Extraction Report: {name}",
        "",
        f"**Scraped**: {data.scraped_at}",
        f"**Website**: {data.website_url}",
        f"**Platform**: {data.platform or 'unknown'}",
        f"**Pages visited**: {len(data.source_urls)}",
        "",
        "## Profile",
        "",
        f"- **Name**: {format_field(data.name)}",
    ]

    if data.bio:
        lines.append(f"- **Bio**: {truncate(data.bio.value)} {confidence_badge(data.bio.confidence)}")
    else:
        lines.append("- **Bio**: Not found")
    if data.artist_statement:
        lines.append(
            f"- **Artist Statement**: {truncate(data.artist_statement.value)} "
            f"{confidence_badge(data.artist_statement.confidence)}"
        )
    lines.append(f"- **Location**: {format_field(data.location)}")
    lines.append(f"- **Email**: {format_field(data.email)}")
    lines.append(f"- **Instagram**: {data.instagram_url or 'Not provided'}")
    for link in data.other_social_links:
        lines.append(f"- **{_capitalize(link.platform)}**: {link.url}")
    if data.suggested_categories:
        categories = ", ".join(data.suggested_categories.value)
        lines.append(
            f"- **Suggested Categories**: {categories} "
            f"{confidence_badge(data.suggested_categories.confidence)}"
        )
    lines.append("")

    if data.cv_entries:
        lines.append(f"## CV Entries ({len(data.cv_entries)} found)")
        lines.append("")
        for entry_type, entries in _group_cv_entries(data.cv_entries).items():
            lines.append(f"### {_capitalize(entry_type)} ({len(entries)})")
            lines.append("")
            for entry in entries:
                institution = f" - {entry.institution.value}" if entry.institution else ""
                year = f", {entry.year.value}" if entry.year else ""
                lines.append(
                    f"- {entry.title.value}{institution}{year} {confidence_badge(entry.title.confidence)}"
                )
            lines.append("")

    if data.listings:
        available = [listing for listing in data.listings if not listing.is_sold_out]
        sold = [listing for listing in data.listings if listing.is_sold_out]
        lines.append(f"## Listings ({len(data.listings)} found)")
        lines.append("")
        for label, group in (("Available", available), ("Sold", sold)):
            if not group:
                continue
            lines.append(f"### {label} ({len(group)})")
            lines.append("")
            lines.extend(_format_listing(i, listing) for i, listing in enumerate(group, 1))
            lines.append("")

    listing_images = sum(len(listing.images) for listing in data.listings)
    lines.extend([
        "## Images",
        "",
        f"- Profile candidates: {len(data.profile_images)}",
        f"- Cover candidates: {len(data.cover_images)}",
        f"- Process/studio: {len(data.process_images)}",
        f"- Listing images: {listing_images}",
        "",
    ])

    if data.warnings:
        lines.extend(["## Warnings", ""])
        lines.extend(f"- {warning}" for warning in data.warnings)
        lines.append("")

    lines.extend(["## Errors", ""])
    if data.errors:
        lines.extend(f"- **{error.url}**: {error.error}" for error in data.errors)
    else:
        lines.append("None")
    lines.append("")

    lines.extend(["## Source URLs", ""])
    lines.extend(f"- {url}" for url in data.source_urls)
    lines.append("")

    return "\n".join(lines)


def write_markdown(data: ScrapedArtistData, output_dir: str) -> str:
    os.makedirs(output_dir, exist_ok=True)
    path = os.path.join(output_dir, SUMMARY_FILENAME)
    with open(path, "w", encoding="utf-8") as f:
        f.write(generate_markdown(data))
    return path
