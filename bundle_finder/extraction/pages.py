"""
Page Extraction Module
======================

Pure functions that turn fetched page text into domain records:

- Candidate bundle ids from a bundle list page
- Bundle display names from a bundle detail page
- Included items from a bundle detail page (markup first, markdown fallback)
- Bundles embedded in a store search results page

None of these functions perform I/O or keep state between calls.
"""

from __future__ import annotations

import json
import re

from bundle_finder.core.errors import MalformedStructuredPayload
from bundle_finder.core.schema import BundleItem, BundleRecord
from bundle_finder.extraction.base import ItemStrategy, clean_text, decode_entities, dedupe_items
from bundle_finder.extraction.markdown import MarkdownItemStrategy
from bundle_finder.extraction.markup import MarkupItemStrategy

BUNDLE_IDS_ATTRIBUTE = "data-ds-bundleids"

_BUNDLE_IDS_RE = re.compile(rf"{BUNDLE_IDS_ATTRIBUTE}\s*=\s*\"([^\"]*)\"", re.IGNORECASE)
_BUNDLE_LINK_RE = re.compile(r"/bundle/(\d+)(?=[/?#\"')\s]|$)", re.IGNORECASE)

# Name sources, in priority order
_HEADING_RE = re.compile(
    r"<h2[^>]*class=\"[^\"]*\bpageheader\b[^\"]*\"[^>]*>(.*?)</h2>",
    re.IGNORECASE | re.DOTALL,
)
_TITLE_ELEMENT_RE = re.compile(r"<title[^>]*>(.*?)</title>", re.IGNORECASE | re.DOTALL)
_TITLE_LABEL_RE = re.compile(r"^Title:[ \t]*(.+)$", re.MULTILINE)
_MARKDOWN_CONTENT_MARKER = "Markdown Content:"
_STORE_SUFFIX_RE = re.compile(r"\s+on\s+Steam\s*$", re.IGNORECASE)
_HEADING_MARKS_RE = re.compile(r"^#+\s*|\s+#+$")

_BUNDLE_ANCHOR_RE = re.compile(
    r"<a[^>]*data-ds-bundleid=\"(\d+)\"[^>]*data-ds-bundle-data=\"([^\"]*)\"[^>]*>(.*?)</a>",
    re.IGNORECASE | re.DOTALL,
)
_SEARCH_TITLE_RE = re.compile(r"<span class=\"title\">([^<]+)</span>", re.IGNORECASE)

PRIMARY_STRATEGY: ItemStrategy = MarkupItemStrategy()
FALLBACK_STRATEGY: ItemStrategy = MarkdownItemStrategy()


def extract_candidate_bundle_ids(text: str) -> list[str]:
    """
    Extract candidate bundle ids from a bundle list page.

    Two independent sources are combined, first-seen order preserved:
    1. JSON arrays embedded in the data-ds-bundleids attribute
    2. Links to bundle detail pages

    Args:
        text: List page HTML (or its markdown rendering)

    Returns:
        Unique bundle ids, possibly empty

    Raises:
        MalformedStructuredPayload: If an embedded id array cannot be parsed
    """
    ids: list[str] = []
    seen: set[str] = set()

    def add(bundle_id: str) -> None:
        if bundle_id not in seen:
            seen.add(bundle_id)
            ids.append(bundle_id)

    for match in _BUNDLE_IDS_RE.finditer(text):
        for bundle_id in _parse_id_array(match.group(1)):
            add(bundle_id)

    for match in _BUNDLE_LINK_RE.finditer(text):
        add(match.group(1))

    return ids


def _parse_id_array(raw: str) -> list[str]:
    """Parse an embedded JSON id array, keeping numeric entries."""
    decoded = decode_entities(raw)
    try:
        data = json.loads(decoded)
    except json.JSONDecodeError as e:
        raise MalformedStructuredPayload(BUNDLE_IDS_ATTRIBUTE, decoded) from e
    if not isinstance(data, list):
        raise MalformedStructuredPayload(BUNDLE_IDS_ATTRIBUTE, decoded)

    ids = []
    for entry in data:
        if isinstance(entry, bool):
            continue
        if isinstance(entry, int):
            ids.append(str(entry))
        elif isinstance(entry, str) and entry.strip().isdigit():
            ids.append(entry.strip())
    return ids


def _clean_name(raw: str | None, markdown: bool = False) -> str | None:
    """Decode a name candidate and strip store decorations.

    Heading marks are only removed from markdown sources.
    """
    name = clean_text(raw)
    if name is None:
        return None
    if markdown:
        name = _HEADING_MARKS_RE.sub("", name)
    name = _STORE_SUFFIX_RE.sub("", name).strip()
    return name or None


def _markdown_first_line(text: str) -> str | None:
    """Return the first non-blank line after the markdown content marker."""
    marker = text.find(_MARKDOWN_CONTENT_MARKER)
    if marker == -1:
        return None
    for line in text[marker + len(_MARKDOWN_CONTENT_MARKER):].splitlines():
        if line.strip():
            return line
    return None


def extract_bundle_name(text: str) -> str | None:
    """
    Extract a bundle's display name from its detail page.

    Sources are tried in order and the first non-empty decoded value wins:
    1. The page header element
    2. The document title
    3. A "Title:" line (markdown rendering)
    4. The first line of the markdown content

    Args:
        text: Detail page HTML or markdown rendering

    Returns:
        The bundle name, or None if no source yields one
    """
    heading = _HEADING_RE.search(text)
    title = _TITLE_ELEMENT_RE.search(text)
    label = _TITLE_LABEL_RE.search(text)
    candidates = [
        (heading.group(1) if heading else None, False),
        (title.group(1) if title else None, False),
        (label.group(1) if label else None, True),
        (_markdown_first_line(text), True),
    ]
    for candidate, markdown in candidates:
        name = _clean_name(candidate, markdown=markdown)
        if name:
            return name
    return None


def extract_bundle_items(text: str) -> list[BundleItem]:
    """
    Extract the items included in a bundle from its detail page.

    The markup strategy runs first; the markdown strategy only runs when
    markup yields nothing.

    Args:
        text: Detail page HTML or markdown rendering

    Returns:
        Items deduplicated by item id, first occurrence wins
    """
    items = PRIMARY_STRATEGY.extract_items(text)
    if not items:
        items = FALLBACK_STRATEGY.extract_items(text)
    return dedupe_items(items)


def _payload_includes(payload: object, subject: int) -> bool:
    """Check whether a bundle-data payload lists the subject app."""
    if not isinstance(payload, dict):
        return False
    entries = payload.get("m_rgItems")
    if not isinstance(entries, list):
        return False
    for entry in entries:
        apps = entry.get("m_rgIncludedAppIDs") if isinstance(entry, dict) else None
        if isinstance(apps, list) and subject in apps:
            return True
    return False


def extract_bundles_for_subject(text: str, subject_id: str) -> list[BundleRecord]:
    """
    Extract bundles that include the subject from a search results page.

    Each bundle anchor carries an embedded JSON payload describing the
    apps it includes. Anchors whose payload does not include the subject,
    whose payload is malformed, or whose title is missing are skipped.

    Args:
        text: Search results HTML
        subject_id: App id whose bundles are wanted

    Returns:
        Bundle records without items, deduplicated by id
    """
    try:
        subject = int(subject_id.strip())
    except ValueError:
        return []

    bundles: list[BundleRecord] = []
    seen: set[str] = set()
    for match in _BUNDLE_ANCHOR_RE.finditer(text):
        bundle_id, encoded_payload, anchor_html = match.groups()
        try:
            payload = json.loads(decode_entities(encoded_payload))
        except json.JSONDecodeError:
            continue
        if not _payload_includes(payload, subject):
            continue

        title = _SEARCH_TITLE_RE.search(anchor_html)
        name = clean_text(title.group(1)) if title else None
        if not name or bundle_id in seen:
            continue
        seen.add(bundle_id)
        bundles.append(BundleRecord(id=bundle_id, name=name))

    return bundles
