"""
Markdown Strategy Module
========================

Extracts bundle items from a sanitized markdown rendering of a bundle page,
as produced by reader-style proxies. The rendering loses all data
attributes, so items are recovered from store links and the text lines
that follow them.
"""

from __future__ import annotations

import re

from bundle_finder.core.schema import BundleItem
from bundle_finder.extraction.base import (
    ItemStrategy,
    clean_text,
    dedupe_items,
    normalize_price,
)

ITEMS_START_RE = re.compile(r"items?\s+included", re.IGNORECASE)
ITEMS_END_RE = re.compile(r"more\s+like\s+this", re.IGNORECASE)
ITEM_LINK_RE = re.compile(r"https?://store\.steampowered\.com/app/(\d+)", re.IGNORECASE)

# How many lines after an item link may hold its name or price
MAX_LOOKAHEAD = 6

_IMAGE_RE = re.compile(r"!\[[^\]]*\]\((https?://[^)\s]+)")
_LINK_TEXT_RE = re.compile(r"(?<!!)\[([^\[\]]+)\]\(https?://store\.steampowered\.com/app/\d+")
_CURRENCY_AMOUNT_RE = re.compile(
    r"[$€£¥₽₩]\s?\d|\d\s?(?:[$€£¥₽₩]|zł\b|USD\b|EUR\b|GBP\b)", re.IGNORECASE
)
_BARE_AMOUNT_RE = re.compile(r"\d+[.,]\d{2}")
_AMOUNT_RE = re.compile(r"\d[\d.,]*")
_MARKUP_LINE_RE = re.compile(r"^(?:[\[!<|>#]|[-=_*]{3,}$)|\]\(")
_BULLET_LINE_RE = re.compile(r"^(?:[*+\-•]|\d+[.)])\s+")
_PROMO_LINE_RE = re.compile(
    r"^-\d{1,3}%|\b(?:add to (?:cart|wishlist)|buy now|bundle discount|your cost|"
    r"offer ends|ends in|on sale|free to play)\b",
    re.IGNORECASE,
)


def is_price_line(line: str) -> bool:
    """Check whether a line is just a (possibly struck-through) price."""
    bare = line.replace("~", "").strip()
    if _BARE_AMOUNT_RE.fullmatch(bare):
        return True
    return len(bare) <= 40 and bool(_CURRENCY_AMOUNT_RE.search(bare))


def is_name_candidate(line: str) -> bool:
    """Check whether a line can serve as an item's display name."""
    return not (
        is_price_line(line)
        or _MARKUP_LINE_RE.search(line)
        or _BULLET_LINE_RE.match(line)
        or _PROMO_LINE_RE.search(line)
    )


def items_section(text: str) -> list[str]:
    """
    Return the lines between the "items included" and "more like this" markers.

    Without a start marker the whole document is used; without an end
    marker the section runs to the end of the document.
    """
    lines = text.splitlines()
    start = 0
    for index, line in enumerate(lines):
        if ITEMS_START_RE.search(line):
            start = index + 1
            break

    end = len(lines)
    for index in range(start, len(lines)):
        if ITEMS_END_RE.search(lines[index]):
            end = index
            break

    return lines[start:end]


class MarkdownItemStrategy(ItemStrategy):
    """
    Item extraction from sanitized markdown.

    Prices in this format are rendered with a decimal separator, so they
    normalize as major units.
    """

    STRATEGY_NAME = "markdown"
    STRATEGY_VERSION = "1.0.0"

    def extract_items(self, text: str) -> list[BundleItem]:
        """Extract one item per store app link inside the items section."""
        lines = items_section(text)
        items: list[BundleItem] = []

        for index, line in enumerate(lines):
            match = ITEM_LINK_RE.search(line)
            if match is None:
                continue
            item_id = match.group(1)
            name, price = self._scan_following(lines[index + 1:index + 1 + MAX_LOOKAHEAD], item_id)

            if name is None:
                link_text = _LINK_TEXT_RE.search(line)
                if link_text and is_name_candidate(link_text.group(1).strip()):
                    name = clean_text(link_text.group(1))

            image = _IMAGE_RE.search(line)
            items.append(
                BundleItem(
                    item_id=item_id,
                    name=name,
                    image_url=image.group(1) if image else None,
                    price=price,
                )
            )

        return dedupe_items(items)

    @staticmethod
    def _scan_following(lines: list[str], item_id: str) -> tuple[str | None, float | None]:
        """Find the name and price among the lines after an item link."""
        name: str | None = None
        price: float | None = None

        for raw_line in lines:
            link = ITEM_LINK_RE.search(raw_line)
            if link and link.group(1) != item_id:
                break
            line = raw_line.strip()
            if not line:
                continue
            if is_price_line(line):
                if price is None:
                    amounts = _AMOUNT_RE.findall(line.replace("~", ""))
                    price = normalize_price(amounts[-1]) if amounts else None
                continue
            if name is None and is_name_candidate(line):
                name = clean_text(line)

        return name, price
