"""
Markup Strategy Module
======================

Extracts bundle items from the store's HTML markup. Each included item is
rendered as an anchor carrying the item id plus optional data attributes
for name, capsule image, review signals and price.
"""

from __future__ import annotations

import re

from bundle_finder.core.schema import BundleItem
from bundle_finder.extraction.base import (
    ItemStrategy,
    absolute_url,
    clean_text,
    collapse_whitespace,
    dedupe_items,
    first_attribute,
    normalize_price,
    parse_attributes,
    parse_count,
    parse_percent,
)

ITEM_ANCHOR_RE = re.compile(r"<a\b([^>]*)>(.*?)</a>", re.IGNORECASE | re.DOTALL)

# Attribute aliases, in lookup order
ITEM_ID_ATTRIBUTES = ("data-ds-appid", "data-appid")
NAME_ATTRIBUTES = ("data-ds-name", "data-name", "title", "aria-label")
IMAGE_ATTRIBUTES = ("data-ds-image", "data-image", "data-src")
REVIEW_COUNT_ATTRIBUTES = ("data-ds-review-count", "data-review-count", "data-reviews")
REVIEW_PERCENT_ATTRIBUTES = (
    "data-ds-review-percent",
    "data-review-percent",
    "data-ds-reviewscore-percent",
)
PRICE_ATTRIBUTES = ("data-price-final", "data-ds-price", "data-price")

_INNER_NAME_RE = re.compile(
    r"<(div|span)[^>]*class=\"[^\"]*\b(?:tab_item_name|title)\b[^\"]*\"[^>]*>(.*?)</\1>",
    re.IGNORECASE | re.DOTALL,
)
_INNER_IMAGE_RE = re.compile(r"<img\b[^>]*\bsrc=\"([^\"]+)\"", re.IGNORECASE)
_INNER_PRICE_RE = re.compile(
    r"<(div|span)[^>]*class=\"[^\"]*\b(?:discount_final_price|price)\b[^\"]*\"[^>]*>(.*?)</\1>",
    re.IGNORECASE | re.DOTALL,
)


class MarkupItemStrategy(ItemStrategy):
    """
    Item extraction from structured store markup.

    Every field other than the item id is optional. A value that cannot be
    parsed leaves its field empty instead of discarding the item.
    """

    STRATEGY_NAME = "markup"
    STRATEGY_VERSION = "1.0.0"

    def extract_items(self, text: str) -> list[BundleItem]:
        """Extract items from every anchor carrying a numeric item id."""
        items: list[BundleItem] = []
        for match in ITEM_ANCHOR_RE.finditer(text):
            attributes = parse_attributes(match.group(1))
            item_id = first_attribute(attributes, ITEM_ID_ATTRIBUTES)
            if item_id is None or not item_id.isdigit():
                continue
            items.append(self._build_item(item_id, attributes, match.group(2)))
        return dedupe_items(items)

    def _build_item(
        self,
        item_id: str,
        attributes: dict[str, str],
        inner_html: str,
    ) -> BundleItem:
        """Assemble one item from anchor attributes and inner markup."""
        return BundleItem(
            item_id=item_id,
            name=self._extract_name(attributes, inner_html),
            image_url=self._extract_image(attributes, inner_html),
            review_count=parse_count(first_attribute(attributes, REVIEW_COUNT_ATTRIBUTES)),
            positive_review_percent=parse_percent(
                first_attribute(attributes, REVIEW_PERCENT_ATTRIBUTES)
            ),
            price=self._extract_price(attributes, inner_html),
        )

    @staticmethod
    def _extract_name(attributes: dict[str, str], inner_html: str) -> str | None:
        # Attribute values are decoded once by parse_attributes
        name = collapse_whitespace(first_attribute(attributes, NAME_ATTRIBUTES))
        if name:
            return name
        match = _INNER_NAME_RE.search(inner_html)
        return clean_text(match.group(2)) if match else None

    @staticmethod
    def _extract_image(attributes: dict[str, str], inner_html: str) -> str | None:
        image = absolute_url(first_attribute(attributes, IMAGE_ATTRIBUTES))
        if image:
            return image
        match = _INNER_IMAGE_RE.search(inner_html)
        return absolute_url(clean_text(match.group(1))) if match else None

    @staticmethod
    def _extract_price(attributes: dict[str, str], inner_html: str) -> float | None:
        price = normalize_price(first_attribute(attributes, PRICE_ATTRIBUTES))
        if price is not None:
            return price
        match = _INNER_PRICE_RE.search(inner_html)
        return normalize_price(clean_text(match.group(2))) if match else None
