"""
Extraction Base Module
======================

Defines the abstract base class for item extraction strategies and the
small parsing helpers they share.

A bundle detail page reaches us in one of two shapes:
1. The store's own HTML markup (direct fetch or a raw relay proxy)
2. A sanitized markdown rendering of the same page (reader proxies)

Each shape gets its own strategy so they can be tested in isolation.
"""

from __future__ import annotations

import html
import re
from abc import ABC, abstractmethod
from collections.abc import Iterable

from bundle_finder.core.schema import BundleItem

_TAG_RE = re.compile(r"<[^>]+>")
_WHITESPACE_RE = re.compile(r"\s+")
_ATTRIBUTE_RE = re.compile(r"""([\w:.-]+)\s*=\s*(?:"([^"]*)"|'([^']*)')""")
_PRICE_CHARS_RE = re.compile(r"[^\d.,]")
_PERCENT_RE = re.compile(r"(\d+)\s*%?")


def decode_entities(value: str) -> str:
    """
    Decode HTML character references.

    Handles named references (&amp;, &quot;, &lt;, ...) as well as decimal
    and hexadecimal numeric references. Non-breaking spaces become plain
    spaces.

    Args:
        value: Raw text possibly containing character references

    Returns:
        Decoded text
    """
    return html.unescape(value).replace("\xa0", " ")


def strip_tags(value: str) -> str:
    """Remove markup tags and collapse whitespace."""
    return _WHITESPACE_RE.sub(" ", _TAG_RE.sub(" ", value)).strip()


def collapse_whitespace(value: str | None) -> str | None:
    """Collapse runs of whitespace in already-decoded text; None if empty."""
    if value is None:
        return None
    return _WHITESPACE_RE.sub(" ", value).strip() or None


def clean_text(value: str | None) -> str | None:
    """Strip tags, decode entities and return None for empty results."""
    if value is None:
        return None
    cleaned = _WHITESPACE_RE.sub(" ", decode_entities(strip_tags(value))).strip()
    return cleaned or None


def parse_attributes(tag: str) -> dict[str, str]:
    """
    Parse the attributes of an opening tag into a dict.

    Attribute names are lower-cased and values entity-decoded. The first
    occurrence of a repeated attribute wins.
    """
    attributes: dict[str, str] = {}
    for match in _ATTRIBUTE_RE.finditer(tag):
        name = match.group(1).lower()
        if name in attributes:
            continue
        raw = match.group(2) if match.group(2) is not None else match.group(3)
        attributes[name] = decode_entities(raw)
    return attributes


def first_attribute(attributes: dict[str, str], aliases: Iterable[str]) -> str | None:
    """Return the value of the first alias present with a non-blank value."""
    for alias in aliases:
        value = attributes.get(alias)
        if value is not None and value.strip():
            return value.strip()
    return None


def parse_count(raw: str | None) -> int | None:
    """
    Parse a non-negative integer, tolerating thousands separators.

    Returns None for anything that is not a plain digit string after
    separators are removed.
    """
    if raw is None:
        return None
    cleaned = re.sub(r"[,\s.' ]", "", raw)
    if not cleaned.isdigit():
        return None
    return int(cleaned)


def parse_percent(raw: str | None) -> int | None:
    """
    Parse a whole-number percentage such as "93" or "93%".

    Fractional or otherwise decorated values yield None.
    """
    if raw is None:
        return None
    match = _PERCENT_RE.fullmatch(raw.strip())
    return int(match.group(1)) if match else None


def normalize_price(raw: str | None) -> float | None:
    """
    Normalize a raw price string to major currency units.

    Rules:
    1. A value with a separator ("." or ",") is already in major units.
       The last separator is the decimal point unless exactly three digits
       follow it, in which case every separator is a thousands separator.
       Earlier separators are always thousands separators.
    2. A digits-only value is in minor units (cents) and is divided by 100.
    3. The result is rounded to 2 decimals.

    Examples:
        "1999"      -> 19.99
        "19.99"     -> 19.99
        "1999.5"    -> 1999.5
        "$1,299.00" -> 1299.0
        "$1,299"    -> 1299.0
        "¥ 1,980"   -> 1980.0

    Args:
        raw: Price text as found in markup or markdown

    Returns:
        Price in major units, or None if no digits are present
    """
    if raw is None:
        return None
    cleaned = _PRICE_CHARS_RE.sub("", raw).strip(".,")
    if not any(ch.isdigit() for ch in cleaned):
        return None

    separator_index = max(cleaned.rfind("."), cleaned.rfind(","))
    if separator_index == -1:
        return round(int(cleaned) / 100, 2)

    whole = re.sub(r"[.,]", "", cleaned[:separator_index]) or "0"
    fraction = cleaned[separator_index + 1:]
    if len(fraction) == 3 and fraction.isdigit():
        # Grouping separator with no decimals
        return float(f"{whole}{fraction}")
    try:
        return round(float(f"{whole}.{fraction}"), 2)
    except ValueError:
        return None


def absolute_url(url: str | None) -> str | None:
    """Return an absolute http(s) URL, or None for relative or empty values."""
    if not url:
        return None
    url = url.strip()
    if url.startswith("//"):
        return f"https:{url}"
    if url.startswith(("http://", "https://")):
        return url
    return None


def dedupe_items(items: Iterable[BundleItem]) -> list[BundleItem]:
    """Drop repeated item ids, keeping the first occurrence."""
    seen: set[str] = set()
    unique: list[BundleItem] = []
    for item in items:
        if item.item_id in seen:
            continue
        seen.add(item.item_id)
        unique.append(item)
    return unique


class ItemStrategy(ABC):
    """
    Abstract base class for bundle item extraction strategies.

    Subclasses must implement extract_items. Strategies hold no per-call
    state, so one instance can be shared freely.
    """

    # Strategy identification (override in subclasses)
    STRATEGY_NAME: str = "base"
    STRATEGY_VERSION: str = "1.0.0"

    @abstractmethod
    def extract_items(self, text: str) -> list[BundleItem]:
        """
        Extract the items included in a bundle from page text.

        Args:
            text: Raw page text in the format this strategy understands

        Returns:
            Items in page order, deduplicated by item id. Empty when the
            format is not recognised.
        """
        pass

    def get_info(self) -> dict[str, str]:
        """Get strategy information."""
        return {
            "name": self.STRATEGY_NAME,
            "version": self.STRATEGY_VERSION,
            "class": self.__class__.__name__,
        }
