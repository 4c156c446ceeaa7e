import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional

# Phrases that mark an item as sold out (substring, case-insensitive)
SOLD_PATTERNS = [
    "sold",
    "sold out",
    "soldout",
    "unavailable",
    "no longer available",
]

CURRENCY_SYMBOLS = re.compile(r"[$€£¥₹]")
LEADING_CODE = re.compile(r"^[A-Za-z]{3}\s*")
TRAILING_CODE = re.compile(r"\s*[A-Za-z]{3}$")
AMOUNT = re.compile(r"^\d+(?:\.\d{0,2})?$")


@dataclass
class PriceParseResult:
    cents: Optional[int]
    is_sold_out: bool


def is_sold_out_text(text: str) -> bool:
    lower = (text or "").lower()
    return any(pattern in lower for pattern in SOLD_PATTERNS)


def parse_price(raw: str) -> PriceParseResult:
    """
    Parse a price string into integer cents.

    '$125.00' -> 12500, 'USD 1,250' -> 125000, 'Sold' -> sold out.
    Ranges, prose and bare symbols give cents=None.
    """
    if not raw or not isinstance(raw, str):
        return PriceParseResult(None, False)
    trimmed = raw.strip()
    if not trimmed:
        return PriceParseResult(None, False)

    if is_sold_out_text(trimmed):
        return PriceParseResult(None, True)

    cleaned = LEADING_CODE.sub("", trimmed)
    cleaned = TRAILING_CODE.sub("", cleaned)
    cleaned = CURRENCY_SYMBOLS.sub("", cleaned).strip()
    cleaned = cleaned.replace(",", "")

    if not AMOUNT.match(cleaned):
        return PriceParseResult(None, False)

    try:
        dollars = Decimal(cleaned)
    except InvalidOperation:
        return PriceParseResult(None, False)

    cents = int((dollars * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return PriceParseResult(cents, False)
