"""
AI Enrichment - Claude fills in what the structural scrapers could not
======================================================================
Three independent steps, each of which only ever adds or replaces specific
fields and records a warning on failure:

1. CV text -> structured CV entries (replaces heuristic entries)
2. About text -> clean bio (when the current bio is missing or not high confidence)
3. Bio, statement, listing titles and mediums -> 1-3 suggested categories

Requires the ANTHROPIC_API_KEY environment variable.
"""

import json
import logging
import os
import re
from typing import Any, List, Optional

import anthropic

from models import (
    CATEGORIES,
    CV_ENTRY_TYPES,
    SOURCE_AI,
    ExtractedField,
    ScrapedArtistData,
    ScrapedCvEntry,
)

logger = logging.getLogger(__name__)

MODEL = "claude-haiku-4-5-20251001"
CLAUDE_TIMEOUT = 120.0
MIN_TEXT_LENGTH = 50
MAX_CV_CHARS = 8000
MAX_ABOUT_CHARS = 4000

NO_KEY_WARNING = "Claude API unavailable (no ANTHROPIC_API_KEY). Skipping AI extraction."

CV_SYSTEM_PROMPT = """You are a data extraction assistant. Extract structured CV entries from the given artist CV text.

Return a JSON array where each entry has:
- type: one of "education", "exhibition", "residency", "award", "press", "other"
- title: the name/title of the entry
- institution: the institution, venue, or organization (null if not clear)
- year: the year as a number (null if not found)
- raw: the original text this was extracted from

Only return the JSON array, no other text. If the text doesn't contain CV entries, return []."""

BIO_SYSTEM_PROMPT = """You are a data extraction assistant. Extract the artist's bio/about paragraph from the given page text.{name_hint}

Return ONLY the bio paragraph text (80-150 words ideal, no more than 200 words). Strip navigation text, footer content, and other non-bio text. If no clear bio is found, return "null"."""

CATEGORY_SYSTEM_PROMPT = f"""You are classifying an artist into platform categories.

Available categories: {", ".join(CATEGORIES)}

Return a JSON array of 1-3 category strings that best describe this artist's work. Return ONLY the JSON array."""

JSON_ARRAY_RE = re.compile(r"\[[\s\S]*\]")


def first_json_array(text: str) -> Optional[list]:
    """The JSON array inside a model reply, tolerating code fences and chatter."""
    match = JSON_ARRAY_RE.search(text or "")
    if not match:
        return None
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, list) else None


def cv_entries_from_reply(text: str) -> List[ScrapedCvEntry]:
    entries: List[ScrapedCvEntry] = []
    for item in first_json_array(text) or []:
        if not isinstance(item, dict):
            continue
        title = item.get("title")
        if not title or not isinstance(title, str):
            continue
        entry_type = item.get("type") if item.get("type") in CV_ENTRY_TYPES else "other"
        institution = item.get("institution")
        year = item.get("year")
        entries.append(ScrapedCvEntry(
            type=ExtractedField(entry_type, "medium", SOURCE_AI),
            title=ExtractedField(title, "medium", SOURCE_AI),
            institution=ExtractedField(institution, "medium", SOURCE_AI) if institution else None,
            year=ExtractedField(year, "medium", SOURCE_AI) if isinstance(year, int) and year else None,
            raw=item.get("raw") or title,
        ))
    return entries


def categories_from_reply(text: str) -> List[str]:
    parsed = first_json_array(text) or []
    return [c for c in parsed if isinstance(c, str) and c in CATEGORIES]


def category_context(data: ScrapedArtistData) -> List[str]:
    context = []
    if data.bio:
        context.append(f"Bio: {data.bio.value}")
    if data.artist_statement:
        context.append(f"Statement: {data.artist_statement.value}")
    titles = [listing.title.value for listing in data.listings[:10]]
    if titles:
        context.append(f"Listing titles: {', '.join(titles)}")
    mediums = [listing.medium.value for listing in data.listings if listing.medium][:10]
    if mediums:
        context.append(f"Mediums: {', '.join(mediums)}")
    return context


class ClaudeEnricher:
    """Runs the enrichment steps against the Anthropic Messages API."""

    def __init__(self, client: Any = None, model: str = MODEL):
        self._client = client
        self.model = model

    def _get_client(self):
        if self._client is None:
            api_key = os.getenv("ANTHROPIC_API_KEY")
            if not api_key:
                return None
            self._client = anthropic.Anthropic(api_key=api_key, timeout=CLAUDE_TIMEOUT)
        return self._client

    def _ask(self, system: str, content: str, max_tokens: int) -> str:
        response = self._get_client().messages.create(
            model=self.model,
            max_tokens=max_tokens,
            system=system,
            messages=[{"role": "user", "content": content}],
        )
        for block in response.content:
            if getattr(block, "type", None) == "text":
                return (block.text or "").strip()
        return ""

    def enrich(self, data: ScrapedArtistData, raw_cv_text: Optional[str] = None,
               raw_about_text: Optional[str] = None) -> None:
        """Mutates data in place."""
        if self._get_client() is None:
            logger.warning("ANTHROPIC_API_KEY not set; skipping AI enrichment")
            data.warnings.append(NO_KEY_WARNING)
            return

        logger.info("Running Claude API extraction")

        if raw_cv_text and len(raw_cv_text) > MIN_TEXT_LENGTH:
            try:
                entries = self.parse_cv(raw_cv_text)
                if entries:
                    data.cv_entries = entries
            except Exception as e:
                logger.warning(f"Claude CV parsing failed: {e}")
                data.warnings.append(f"Claude CV parsing failed: {e}")

        bio_is_weak = data.bio is None or data.bio.confidence != "high"
        if raw_about_text and len(raw_about_text) > MIN_TEXT_LENGTH and bio_is_weak:
            try:
                bio = self.extract_bio(raw_about_text, data.name.value if data.name else None)
                if bio:
                    data.bio = ExtractedField(bio, "medium", SOURCE_AI)
            except Exception as e:
                logger.warning(f"Claude bio extraction failed: {e}")
                data.warnings.append(f"Claude bio extraction failed: {e}")

        try:
            categories = self.suggest_categories(data)
            if categories:
                data.suggested_categories = ExtractedField(categories, "medium", SOURCE_AI)
        except Exception as e:
            logger.warning(f"Claude category suggestion failed: {e}")
            data.warnings.append(f"Claude category suggestion failed: {e}")

    def parse_cv(self, raw_text: str) -> List[ScrapedCvEntry]:
        reply = self._ask(
            CV_SYSTEM_PROMPT,
            f"Extract structured CV entries from this artist's CV page text:\n\n{raw_text[:MAX_CV_CHARS]}",
            max_tokens=4096,
        )
        return cv_entries_from_reply(reply)

    def extract_bio(self, raw_text: str, artist_name: Optional[str] = None) -> Optional[str]:
        name_hint = f" The artist's name is {artist_name}." if artist_name else ""
        reply = self._ask(
            BIO_SYSTEM_PROMPT.format(name_hint=name_hint),
            f"Extract the artist bio from this page text:\n\n{raw_text[:MAX_ABOUT_CHARS]}",
            max_tokens=1024,
        )
        if not reply or reply == "null" or len(reply) < 30:
            return None
        return reply

    def suggest_categories(self, data: ScrapedArtistData) -> List[str]:
        context = category_context(data)
        if not context:
            return []
        reply = self._ask(CATEGORY_SYSTEM_PROMPT, "\n".join(context), max_tokens=256)
        return categories_from_reply(reply)[:3]
