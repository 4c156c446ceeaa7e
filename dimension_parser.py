import re
from typing import List, Optional

from models import ParsedDimensions

# Unit detection, first match wins. Default is inches. Units may touch the
# number ("25cm"), so they are bounded by a non-letter instead of \b.
UNIT_PATTERNS = [
    (re.compile(r"(?<![A-Za-z])(inches|inch|in)\b", re.IGNORECASE), "in"),
    (re.compile(r"[\"″”]"), "in"),
    (re.compile(r"(?<![A-Za-z])(centimeters|centimetres|centimeter|centimetre|cm)\b", re.IGNORECASE), "cm"),
    (re.compile(r"(?<![A-Za-z])(millimeters|millimetres|millimeter|millimetre|mm)\b", re.IGNORECASE), "mm"),
]

UNIT_WORDS = re.compile(
    r"(?<![A-Za-z])(inches|inch|in|centimeters|centimetres|centimeter|centimetre|cm|"
    r"millimeters|millimetres|millimeter|millimetre|mm)\b\.?",
    re.IGNORECASE,
)
AXIS_LABELS = re.compile(r"\(\s*[LlWwHhDd]\s*\)")
INCH_MARKS = re.compile(r"[\"″”]")
SEPARATOR = re.compile(r"\s*[x×]\s*|\s+by\s+", re.IGNORECASE)
LEADING_NUMBER = re.compile(r"^[-+]?(\d+(\.\d*)?|\.\d+)")


def detect_unit(text: str) -> str:
    for pattern, unit in UNIT_PATTERNS:
        if pattern.search(text):
            return unit
    return "in"


def _to_number(segment: str) -> Optional[float]:
    match = LEADING_NUMBER.match(segment.strip())
    if not match:
        return None
    return float(match.group(0))


def parse_dimensions(raw: str) -> Optional[ParsedDimensions]:
    """
    Parse a free-text dimension string.

    Examples:
      '8 x 10 x 2 inches'         -> 8 x 10 x 2 in
      '8" x 10" x 2"'             -> 8 x 10 x 2 in
      '20 × 25 cm'                -> 20 x 25 cm
      '8 (L) x 10 (W) x 2 (H) in' -> 8 x 10 x 2 in
      '12 by 16'                  -> 12 x 16 in

    The unit is detected before anything is stripped, and unit words are
    stripped before splitting so they never turn into extra segments.
    """
    if not raw or not isinstance(raw, str):
        return None
    text = raw.strip()
    if not text:
        return None

    unit = detect_unit(text)

    cleaned = UNIT_WORDS.sub("", text)
    cleaned = AXIS_LABELS.sub("", cleaned)
    cleaned = INCH_MARKS.sub("", cleaned).strip()

    parts = [p.strip() for p in SEPARATOR.split(cleaned)]
    parts = [p for p in parts if p]
    if not parts:
        return None

    numbers: List[Optional[float]] = [_to_number(p) for p in parts]
    if all(n is None for n in numbers):
        return None

    numbers = (numbers + [None, None, None])[:3]
    if len(parts) == 1:
        return ParsedDimensions(length=numbers[0], unit=unit)
    if len(parts) == 2:
        return ParsedDimensions(length=numbers[0], width=numbers[1], unit=unit)
    return ParsedDimensions(length=numbers[0], width=numbers[1], height=numbers[2], unit=unit)


DIMENSION_RUN = re.compile(
    r"\d+(?:\.\d+)?\s*[\"″”]?\s*(?:[x×]|by)\s*\d+(?:\.\d+)?\s*[\"″”]?"
    r"(?:\s*(?:[x×]|by)\s*\d+(?:\.\d+)?\s*[\"″”]?)?"
    r"(?:\s*(?:inches|inch|in|centimet(?:er|re)s?|cm|millimet(?:er|re)s?|mm)\b)?",
    re.IGNORECASE,
)


def find_dimensions(text: str) -> Optional[ParsedDimensions]:
    """Locate and parse the first 'N x N (x N)' run inside longer text."""
    if not text:
        return None
    match = DIMENSION_RUN.search(text)
    if not match:
        return None
    return parse_dimensions(match.group(0))
