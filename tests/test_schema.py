"""Tests for the Pydantic schema models."""

import pytest
from pydantic import ValidationError

from bundle_finder.core.schema import BundleItem, BundleRecord, ProgressSnapshot


class TestBundleItem:
    """Tests for BundleItem."""

    def test_minimal(self) -> None:
        """Test that only the id is required."""
        item = BundleItem(item_id="613100")
        assert item.name is None
        assert item.price is None
        assert item.review_count is None

    def test_negative_review_count_rejected(self) -> None:
        """Test that review counts cannot be negative."""
        with pytest.raises(ValidationError):
            BundleItem(item_id="1", review_count=-1)

    def test_percent_not_clamped(self) -> None:
        """Test that review percentages pass through unchanged."""
        assert BundleItem(item_id="1", positive_review_percent=150).positive_review_percent == 150


class TestBundleRecord:
    """Tests for BundleRecord."""

    def test_name_stripped(self) -> None:
        """Test that names are stripped of surrounding whitespace."""
        assert BundleRecord(id="1", name="  Bundle  ").name == "Bundle"

    @pytest.mark.parametrize("name", ["", "   "])
    def test_blank_name_rejected(self, name: str) -> None:
        """Test that blank names are rejected."""
        with pytest.raises(ValidationError):
            BundleRecord(id="1", name=name)

    def test_serialization(self) -> None:
        """Test dumping a record with items."""
        record = BundleRecord(id="1", name="Bundle", items=[BundleItem(item_id="2", price=9.99)])
        data = record.model_dump()
        assert data["items"][0] == {
            "item_id": "2",
            "name": None,
            "image_url": None,
            "review_count": None,
            "positive_review_percent": None,
            "price": 9.99,
        }


class TestProgressSnapshot:
    """Tests for ProgressSnapshot."""

    def test_fraction(self) -> None:
        """Test the completed fraction."""
        assert ProgressSnapshot(current=1, total=4).fraction == 0.25

    def test_current_above_total_rejected(self) -> None:
        """Test that current cannot exceed total."""
        with pytest.raises(ValidationError):
            ProgressSnapshot(current=5, total=4)

    def test_zero_total_rejected(self) -> None:
        """Test that total must be at least one."""
        with pytest.raises(ValidationError):
            ProgressSnapshot(current=0, total=0)
