"""
Reporting Module
================

The contract between the resolver and whatever presents its results.

Only log() is required of a reporter. detail(), progress() and bundles()
are independent optional capabilities: a reporter implements the ones it
cares about and ReportChannel checks for each before calling it.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from bundle_finder.core.enums import LogLevel
from bundle_finder.core.schema import BundleRecord, ProgressSnapshot

logger = logging.getLogger(__name__)

_LOGGING_LEVELS = {
    LogLevel.INFO: logging.INFO,
    LogLevel.SUCCESS: logging.INFO,
    LogLevel.WARNING: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}


@runtime_checkable
class Reporter(Protocol):
    """
    Minimal reporter interface.

    Optional capabilities, looked up per instance:
        detail(title: str, body: str) -> None
        progress(snapshot: ProgressSnapshot) -> None
        bundles(records: list[BundleRecord], *, is_final: bool) -> None
    """

    def log(self, message: str, level: LogLevel) -> None:
        ...


class ReportChannel:
    """
    Dispatches pipeline events to a reporter's available capabilities.

    Every log line is also written to the standard logging module, so a
    run without a reporter still leaves a trace.
    """

    def __init__(self, reporter: Reporter | None = None) -> None:
        self.reporter = reporter
        self._last_progress: ProgressSnapshot | None = None

    def _capability(self, name: str):
        if self.reporter is None:
            return None
        method = getattr(self.reporter, name, None)
        return method if callable(method) else None

    @property
    def wants_bundles(self) -> bool:
        """Check if the reporter accepts result snapshots."""
        return self._capability("bundles") is not None

    def log(self, message: str, level: LogLevel = LogLevel.INFO) -> None:
        """Send a log line to the logger and the reporter."""
        logger.log(_LOGGING_LEVELS[level], message)
        method = self._capability("log")
        if method is not None:
            method(message, level)

    def detail(self, title: str, body: str) -> None:
        """Send a raw response body for diagnostics."""
        method = self._capability("detail")
        if method is not None:
            method(title, body)

    def progress(self, current: int, total: int, message: str = "") -> ProgressSnapshot:
        """
        Send a progress snapshot.

        Snapshots are normalized so that current never decreases within a
        run and never exceeds total.
        """
        current = min(max(current, 0), total)
        if self._last_progress is not None and self._last_progress.total == total:
            current = max(current, self._last_progress.current)
        snapshot = ProgressSnapshot(current=current, total=total, message=message)
        self._last_progress = snapshot

        method = self._capability("progress")
        if method is not None:
            method(snapshot)
        return snapshot

    def bundles(self, records: Sequence[BundleRecord], *, is_final: bool) -> None:
        """Send a sorted snapshot of the results collected so far."""
        method = self._capability("bundles")
        if method is not None:
            method(list(records), is_final=is_final)


class LoggingReporter:
    """Reporter that writes every event to the standard logging module."""

    def __init__(self, name: str = "bundle_finder.report") -> None:
        self._logger = logging.getLogger(name)

    def log(self, message: str, level: LogLevel) -> None:
        self._logger.debug(f"[{level.value}] {message}")

    def detail(self, title: str, body: str) -> None:
        preview = body if len(body) <= 500 else body[:500] + "..."
        self._logger.debug(f"{title}:\n{preview}")

    def progress(self, snapshot: ProgressSnapshot) -> None:
        self._logger.info(f"[{snapshot.current}/{snapshot.total}] {snapshot.message}")

    def bundles(self, records: list[BundleRecord], *, is_final: bool) -> None:
        state = "final" if is_final else "partial"
        self._logger.info(f"{len(records)} bundle(s) ({state})")
