#!/usr/bin/env python3
"""
Artist Scraper - Extract an artist profile from their own website
=================================================================
Detects the platform serving the site, runs the matching scraping strategy
(falling back to a headless browser when the result is thin), optionally
enriches the record with Claude, and writes JSON, a markdown summary and the
downloaded images for human review.

Usage:
  python main.py --website https://abbey-peters.com --name "Abbey Peters"
  python main.py --env     # Show environment capabilities
  python main.py --list    # List platforms and their strategies

Output: {output}/{artist-slug}/scraped-data.json, summary.md, images
"""

import argparse
import logging
import sys
from typing import List, Optional

from models import ScrapeOptions, ScrapeResult
from scraper_engine import EnvironmentProbe, ScrapeManager
from site_profiles import get_platform_profile, list_platforms

DEFAULT_OUTPUT_DIR = "./artist-scraper-output"

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="artist-scraper",
        description="Extract artist profile data from a website for onboarding review.",
    )
    parser.add_argument("--website", help="Artist website URL")
    parser.add_argument("--name", help="Artist name (used for the output folder)")
    parser.add_argument("--instagram", help="Artist Instagram URL")
    parser.add_argument("--output", default=DEFAULT_OUTPUT_DIR,
                        help=f"Output directory (default: {DEFAULT_OUTPUT_DIR})")
    parser.add_argument("--no-images", action="store_true", help="Skip image downloads")
    parser.add_argument("--no-ai", action="store_true", help="Skip Claude API enrichment")
    parser.add_argument("--browser", action="store_true", help="Force the Playwright browser scraper")
    parser.add_argument("--verbose", action="store_true", help="Verbose logging")
    parser.add_argument("--env", action="store_true", help="Show environment capabilities and exit")
    parser.add_argument("--list", action="store_true", help="List platforms and strategies and exit")
    return parser


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(message)s',
        handlers=[logging.StreamHandler(sys.stdout)]
    )
    # HTTP client internals stay at WARNING
    for noisy in ("httpx", "httpcore", "hpack", "urllib3"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def print_environment() -> None:
    env = EnvironmentProbe()
    print("Environment capabilities:")
    for cap, val in env.get_capabilities().items():
        status = "✓" if val else "✗"
        print(f"  {status} {cap}: {val}")


def print_platforms() -> None:
    print("Supported platforms:")
    for key in list_platforms():
        profile = get_platform_profile(key)
        print(f"  {key}: {profile.name} (strategies: {', '.join(profile.strategies)})")


def print_completion(result: ScrapeResult) -> None:
    data = result.data
    counts = result.counts
    print("\n" + "=" * 60)
    print("Scrape complete" if result.success else "Scrape finished with errors")
    print("=" * 60)
    if data is not None:
        print(f"  Name:        {data.name.value if data.name else 'Not found'}")
        print(f"  Platform:    {data.platform or 'unknown'}")
        print(f"  Listings:    {counts['listings']}")
        print(f"  CV entries:  {counts['cv_entries']}")
        print(f"  Bio:         {'Found (' + data.bio.confidence + ')' if data.bio else 'Not found'}")
        categories = ", ".join(data.suggested_categories.value) if data.suggested_categories else "None"
        print(f"  Categories:  {categories}")
    print(f"  Errors:      {counts['errors']}")
    print(f"  Warnings:    {counts['warnings']}")
    if result.image_stats is not None:
        stats = result.image_stats
        print(f"  Images:      {stats.downloaded} downloaded, {stats.skipped} skipped, {stats.failed} failed")
    print(f"  Output:      {result.output_dir or 'None'}")
    print(f"  Duration:    {result.duration:.1f}s")
    print("=" * 60 + "\n")


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point. Returns the process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.env:
        print_environment()
        return 0
    if args.list:
        print_platforms()
        return 0
    if not args.website:
        parser.error("--website is required")

    configure_logging(args.verbose)

    options = ScrapeOptions(
        website_url=args.website,
        artist_name=args.name,
        instagram_url=args.instagram,
        output_dir=args.output,
        skip_images=args.no_images,
        skip_ai=args.no_ai,
        force_browser=args.browser,
        verbose=args.verbose,
    )

    print(f"\nArtist Scraper – running for: {args.website}\n")
    result = ScrapeManager(options).run()
    print_completion(result)
    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
