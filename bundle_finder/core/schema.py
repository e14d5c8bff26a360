"""Pydantic v2 models for resolved bundles."""

from typing import Annotated

from pydantic import BaseModel, Field, field_validator, model_validator


class BundleItem(BaseModel):
    """A single item included in a bundle."""

    item_id: str
    name: str | None = None
    image_url: str | None = None
    review_count: Annotated[int, Field(ge=0)] | None = None
    # Passed through as parsed; the store is not known to clamp it to 0-100
    positive_review_percent: int | None = None
    price: float | None = None


class BundleRecord(BaseModel):
    """A named bundle together with the items it contains."""

    id: str
    name: str
    items: list[BundleItem] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        """Reject bundles without a usable display name."""
        value = value.strip()
        if not value:
            raise ValueError("Bundle name must not be blank")
        return value


class ProgressSnapshot(BaseModel):
    """Progress of a resolution run, in completed units of work."""

    current: Annotated[int, Field(ge=0)]
    total: Annotated[int, Field(ge=1)]
    message: str = ""

    @model_validator(mode="after")
    def current_within_total(self) -> "ProgressSnapshot":
        """Ensure current never exceeds total."""
        if self.current > self.total:
            raise ValueError(f"Progress {self.current} exceeds total {self.total}")
        return self

    @property
    def fraction(self) -> float:
        """Completed fraction between 0.0 and 1.0."""
        return self.current / self.total
