"""Exceptions raised by the bundle resolution pipeline."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from bundle_finder.resolution.fetcher import FetchAttempt


class BundleFinderError(Exception):
    """Base class for all pipeline errors."""


class InvalidInput(BundleFinderError):
    """Raised when the subject identifier is blank."""


class ResourceUnavailable(BundleFinderError):
    """Raised when the direct URL and every proxy failed for one resource."""

    def __init__(self, label: str, attempts: list[FetchAttempt]):
        self.label = label
        self.attempts = list(attempts)
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        lines = [f"Failed to fetch {self.label} after {len(self.attempts)} attempt(s):"]
        for index, attempt in enumerate(self.attempts, start=1):
            lines.append(f"  {index}. {attempt.url} -> {attempt.error}")
        return "\n".join(lines)

    @property
    def urls(self) -> list[str]:
        """Attempted URLs in the order they were tried."""
        return [attempt.url for attempt in self.attempts]


class MalformedStructuredPayload(BundleFinderError):
    """Raised when an embedded JSON payload is present but cannot be parsed."""

    def __init__(self, attribute: str, raw: str):
        self.attribute = attribute
        self.raw = raw
        preview = raw if len(raw) <= 80 else raw[:77] + "..."
        super().__init__(f"Malformed JSON in '{attribute}' attribute: {preview}")


class UnknownSubject(BundleFinderError):
    """Raised when the store does not know the requested app."""

    def __init__(self, subject_id: str):
        self.subject_id = subject_id
        super().__init__(f"Could not resolve app name for {subject_id}")
