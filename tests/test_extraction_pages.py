"""Tests for page-level extraction functions."""

import json

import pytest

from bundle_finder.core.errors import MalformedStructuredPayload
from bundle_finder.extraction import (
    extract_bundle_items,
    extract_bundle_name,
    extract_bundles_for_subject,
    extract_candidate_bundle_ids,
)


SEARCH_HTML = """
<a data-ds-bundleid="123" data-ds-bundle-data="{&quot;m_rgItems&quot;:[{&quot;m_rgIncludedAppIDs&quot;:[111]}]}">
  <span class="title">Sample Bundle</span>
</a>
<a data-ds-bundleid="456" data-ds-bundle-data="{&quot;m_rgItems&quot;:[{&quot;m_rgIncludedAppIDs&quot;:[222]}]}">
  <span class="title">Other Bundle</span>
</a>"""


def _search_anchor(bundle_id: str, app_ids: list[int], title: str) -> str:
    payload = json.dumps({"m_rgItems": [{"m_rgIncludedAppIDs": app_ids}]}).replace('"', "&quot;")
    return (
        f'<a href="#" data-ds-bundleid="{bundle_id}" data-ds-bundle-data="{payload}">'
        f'<span class="title">{title}</span></a>\n'
    )


class TestExtractCandidateBundleIds:
    """Tests for candidate id discovery."""

    def test_json_and_links_are_unioned(self) -> None:
        """Test that both sources contribute, first-seen order preserved."""
        html = """
        <div class="bundle_list" data-ds-bundleids="[100, &quot;200&quot;, 100]"></div>
        <a href="https://store.steampowered.com/bundle/300/Some_Bundle/">Some</a>
        <a href="/bundle/200/">Duplicate</a>
        """
        assert extract_candidate_bundle_ids(html) == ["100", "200", "300"]

    def test_links_only(self) -> None:
        """Test discovery from bundle links alone."""
        html = (
            '<a href="https://store.steampowered.com/bundle/100/">A</a>'
            '<a href="https://store.steampowered.com/bundle/200">B</a>'
        )
        assert extract_candidate_bundle_ids(html) == ["100", "200"]

    def test_markdown_links(self) -> None:
        """Test discovery from a markdown rendering."""
        text = "[Bundle](https://store.steampowered.com/bundle/42/Bundle/)\n"
        assert extract_candidate_bundle_ids(text) == ["42"]

    def test_unrelated_paths_ignored(self) -> None:
        """Test that similar-looking paths are not bundle links."""
        html = '<a href="/bundlelist/5">list</a><a href="/bundle/7x">bad</a>'
        assert extract_candidate_bundle_ids(html) == []

    def test_empty_page(self) -> None:
        """Test that a page without sources yields an empty list."""
        assert extract_candidate_bundle_ids("<html></html>") == []

    def test_malformed_json_raises(self) -> None:
        """Test that a present but corrupt id payload is surfaced."""
        html = '<div data-ds-bundleids="[100, "></div>'
        with pytest.raises(MalformedStructuredPayload) as exc_info:
            extract_candidate_bundle_ids(html)
        assert isinstance(exc_info.value.__cause__, json.JSONDecodeError)
        assert exc_info.value.attribute == "data-ds-bundleids"

    def test_non_array_json_raises(self) -> None:
        """Test that a payload that is not an array is malformed."""
        with pytest.raises(MalformedStructuredPayload):
            extract_candidate_bundle_ids('<div data-ds-bundleids="{}"></div>')


class TestExtractBundleName:
    """Tests for bundle name extraction."""

    def test_page_header_first(self) -> None:
        """Test that the page header wins over the title."""
        html = (
            "<html><head><title>Other on Steam</title></head>"
            '<body><h2 class="pageheader">Tiny Flipper &amp; Co.</h2></body></html>'
        )
        assert extract_bundle_name(html) == "Tiny Flipper & Co."

    def test_title_fallback_strips_store_suffix(self) -> None:
        """Test the title element when the header is empty."""
        html = (
            "<title>Town Flipper on Steam</title>"
            '<h2 class="pageheader">&nbsp;</h2>'
        )
        assert extract_bundle_name(html) == "Town Flipper"

    def test_title_label(self) -> None:
        """Test the Title: line of a markdown rendering."""
        text = "Title: House Flipper Franchise Bundle on Steam\n\nMarkdown Content:\nIgnored"
        assert extract_bundle_name(text) == "House Flipper Franchise Bundle"

    def test_markdown_content_first_line(self) -> None:
        """Test the first line after the markdown content marker."""
        text = "URL Source: x\n\nMarkdown Content:\n\n# Sample &amp; Bundle\nmore text"
        assert extract_bundle_name(text) == "Sample & Bundle"

    def test_trailing_hash_kept_in_markup_names(self) -> None:
        """Test that a name ending in '#' is not treated as a heading."""
        assert extract_bundle_name('<h2 class="pageheader">Learn C#</h2>') == "Learn C#"
        assert extract_bundle_name("<title>Learn C# on Steam</title>") == "Learn C#"

    def test_markdown_closing_marks_removed(self) -> None:
        """Test that markdown closing heading marks are removed."""
        text = "Markdown Content:\n## Learn C# ##\n"
        assert extract_bundle_name(text) == "Learn C#"

    def test_no_name(self) -> None:
        """Test that pages without a name yield None."""
        assert extract_bundle_name("<html><body>nothing</body></html>") is None
        assert extract_bundle_name("<title> </title>") is None


class TestExtractBundleItems:
    """Tests for the combined item extraction."""

    def test_markup_preferred(self) -> None:
        """Test that markup items are used when present."""
        text = (
            '<a data-ds-appid="1" data-ds-name="Markup Game"></a>\n'
            "[Markdown Game](https://store.steampowered.com/app/2/X/)\n"
        )
        items = extract_bundle_items(text)
        assert [item.item_id for item in items] == ["1"]

    def test_markdown_fallback(self) -> None:
        """Test the markdown strategy when markup yields nothing."""
        text = "Items included\n[Markdown Game](https://store.steampowered.com/app/2/X/)\n$4.99\n"
        items = extract_bundle_items(text)
        assert [(item.item_id, item.name, item.price) for item in items] == [
            ("2", "Markdown Game", 4.99)
        ]

    def test_nothing_found(self) -> None:
        """Test that pages without items yield an empty list."""
        assert extract_bundle_items("<html></html>") == []


class TestExtractBundlesForSubject:
    """Tests for search result extraction."""

    def test_filters_by_subject(self) -> None:
        """Test that only bundles including the subject are kept."""
        result = extract_bundles_for_subject(SEARCH_HTML, "111")
        assert [(bundle.id, bundle.name) for bundle in result] == [("123", "Sample Bundle")]

    def test_matching_and_non_matching_anchors(self) -> None:
        """Test N matching anchors are returned and M others are not."""
        html = "".join(
            [
                _search_anchor("1", [5, 111], "First"),
                _search_anchor("2", [222], "Skip A"),
                _search_anchor("3", [111], "Second"),
                _search_anchor("4", [], "Skip B"),
                _search_anchor("5", [111, 6], "Third"),
            ]
        )
        result = extract_bundles_for_subject(html, "111")
        assert [bundle.id for bundle in result] == ["1", "3", "5"]
        assert [bundle.name for bundle in result] == ["First", "Second", "Third"]
        assert all(bundle.items == [] for bundle in result)

    def test_malformed_payload_skips_anchor_only(self) -> None:
        """Test that one corrupt payload does not stop the scan."""
        html = (
            '<a data-ds-bundleid="9" data-ds-bundle-data="{not json"><span class="title">Bad</span></a>\n'
            + _search_anchor("10", [111], "Good")
        )
        result = extract_bundles_for_subject(html, "111")
        assert [bundle.id for bundle in result] == ["10"]

    def test_missing_or_blank_title_skipped(self) -> None:
        """Test that anchors without a usable name are skipped."""
        html = _search_anchor("1", [111], "&nbsp;") + (
            '<a data-ds-bundleid="2" data-ds-bundle-data="{&quot;m_rgItems&quot;:'
            '[{&quot;m_rgIncludedAppIDs&quot;:[111]}]}">no title</a>'
        )
        assert extract_bundles_for_subject(html, "111") == []

    def test_duplicate_ids_first_wins(self) -> None:
        """Test deduplication by bundle id."""
        html = _search_anchor("1", [111], "First") + _search_anchor("1", [111], "Again")
        result = extract_bundles_for_subject(html, "111")
        assert [bundle.name for bundle in result] == ["First"]

    def test_non_numeric_subject(self) -> None:
        """Test that a non-numeric subject id yields no bundles."""
        assert extract_bundles_for_subject(SEARCH_HTML, "abc") == []

    def test_idempotent(self) -> None:
        """Test that repeated runs give identical output."""
        assert extract_bundles_for_subject(SEARCH_HTML, "111") == extract_bundles_for_subject(
            SEARCH_HTML, "111"
        )
