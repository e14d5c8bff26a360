"""
Bundle Resolver Module
======================

Drives bundle resolution for a subject app.

List mode runs in stages:
1. Discover - fetch the bundle list page and extract candidate bundle ids
2. Fetch details - fetch and parse every candidate's detail page, at most
   `concurrency` at a time; one candidate failing never aborts the batch
3. Aggregate - drop unnamed records, deduplicate, filter and sort
4. Done - report the final snapshot

Search mode resolves the app's name, searches the store for bundles with
that name and keeps the ones whose embedded payload lists the app.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Iterable, Mapping
from urllib.parse import quote

from bundle_finder.core.enums import LogLevel, ResolutionStage, ResolveMode
from bundle_finder.core.errors import InvalidInput, ResourceUnavailable, UnknownSubject
from bundle_finder.core.schema import BundleRecord
from bundle_finder.extraction import (
    dedupe_items,
    extract_bundle_items,
    extract_bundle_name,
    extract_bundles_for_subject,
    extract_candidate_bundle_ids,
)
from bundle_finder.resolution.fetcher import FetchResult, ResilientFetcher
from bundle_finder.resolution.limiter import ConcurrencyLimiter
from bundle_finder.resolution.reporting import ReportChannel, Reporter
from bundle_finder.resolution.settings import ResolverSettings

logger = logging.getLogger(__name__)


def sort_bundles(
    records: Iterable[BundleRecord],
    order: Mapping[str, int],
) -> list[BundleRecord]:
    """Sort records by discovery index; unknown ids sort last."""
    unseen = len(order)
    return sorted(records, key=lambda record: order.get(record.id, unseen))


def finalize_bundles(
    records: Iterable[BundleRecord | None],
    order: Mapping[str, int],
    subject_id: str,
) -> list[BundleRecord]:
    """
    Aggregate raw detail results into the final collection.

    Rules:
    1. Absent records and records with a blank name are dropped
    2. Duplicate bundle ids keep the first occurrence
    3. Items are deduplicated by id and the subject itself is removed
    4. Records are sorted by discovery index

    Args:
        records: Detail results in candidate-discovery order
        order: Bundle id -> discovery index
        subject_id: App id the bundles were resolved for

    Returns:
        Sorted list of bundle records
    """
    seen: set[str] = set()
    unique: list[BundleRecord] = []
    for record in records:
        if record is None or not record.name.strip():
            continue
        if record.id in seen:
            continue
        seen.add(record.id)
        items = [item for item in dedupe_items(record.items) if item.item_id != subject_id]
        unique.append(record.model_copy(update={"items": items}))
    return sort_bundles(unique, order)


class BundleResolver:
    """
    Resolves the bundles that include a subject app.

    No state survives between runs; each call gets a fresh report channel,
    limiter and result map.
    """

    def __init__(
        self,
        fetcher: ResilientFetcher,
        reporter: Reporter | None = None,
        settings: ResolverSettings | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.reporter = reporter
        self.settings = settings or ResolverSettings()
        self.stage = ResolutionStage.IDLE

    def _enter(self, stage: ResolutionStage) -> None:
        logger.debug(f"Resolution stage: {self.stage.value} -> {stage.value}")
        self.stage = stage

    @staticmethod
    def _clean_subject(subject_id: str | None) -> str:
        clean = (subject_id or "").strip()
        if not clean:
            raise InvalidInput("Subject id is required")
        return clean

    @staticmethod
    def _report_failed_attempts(channel: ReportChannel, error: ResourceUnavailable) -> None:
        for attempt in error.attempts:
            if attempt.body:
                channel.detail(f"{error.label} ({attempt.url}, {attempt.error})", attempt.body)

    async def run(self, subject_id: str, mode: ResolveMode = ResolveMode.LIST) -> list[BundleRecord]:
        """Resolve bundles using the given discovery mode."""
        if mode == ResolveMode.SEARCH:
            return await self.resolve_via_search(subject_id)
        return await self.resolve(subject_id)

    async def resolve(self, subject_id: str) -> list[BundleRecord]:
        """
        Resolve bundles from the subject's bundle list page.

        Args:
            subject_id: App id to resolve bundles for

        Returns:
            Bundle records sorted by discovery order

        Raises:
            InvalidInput: If subject_id is blank
            ResourceUnavailable: If the bundle list page cannot be fetched
            MalformedStructuredPayload: If the list page's id payload is corrupt
        """
        self.stage = ResolutionStage.IDLE
        subject = self._clean_subject(subject_id)
        channel = ReportChannel(self.reporter)

        # Stage 1: discovery
        self._enter(ResolutionStage.DISCOVERING_LIST)
        channel.progress(0, 1, f"Fetching bundle list for {subject}")
        channel.log(f"Fetching bundle list for {subject}...")

        try:
            listing = await self.fetcher.fetch_text(
                self.settings.list_url(subject), f"bundle list for {subject}"
            )
        except ResourceUnavailable as e:
            self._report_failed_attempts(channel, e)
            channel.log(str(e), LogLevel.ERROR)
            raise

        channel.detail(f"Bundle list response ({listing.url})", listing.text)
        candidate_ids = extract_candidate_bundle_ids(listing.text)

        if not candidate_ids:
            channel.log(f"No bundles found for {subject}", LogLevel.WARNING)
            channel.progress(1, 1, "No bundles found")
            channel.bundles([], is_final=True)
            self._enter(ResolutionStage.DONE)
            return []

        # Stage 2: detail pages
        self._enter(ResolutionStage.FETCHING_DETAILS)
        total = 1 + len(candidate_ids)
        order = {bundle_id: index for index, bundle_id in enumerate(candidate_ids)}
        channel.log(f"Found {len(candidate_ids)} candidate bundle(s)")
        completed = 1
        channel.progress(completed, total, f"Found {len(candidate_ids)} candidate bundle(s)")

        limiter = ConcurrencyLimiter(self.settings.concurrency)
        interim: dict[str, BundleRecord] = {}

        async def process(bundle_id: str) -> BundleRecord | None:
            nonlocal completed
            try:
                record = await self._fetch_bundle(bundle_id, channel)
            except Exception as e:
                channel.log(f"Skipping bundle {bundle_id}: unexpected error: {e}", LogLevel.ERROR)
                record = None
            completed += 1
            channel.progress(completed, total, f"Processed bundle {bundle_id}")
            if record is not None:
                interim.setdefault(record.id, record)
                if channel.wants_bundles:
                    channel.bundles(
                        finalize_bundles(interim.values(), order, subject),
                        is_final=False,
                    )
            return record

        results = await asyncio.gather(
            *(
                limiter.schedule(lambda bundle_id=bundle_id: process(bundle_id))
                for bundle_id in candidate_ids
            )
        )

        # Stage 3: aggregation
        self._enter(ResolutionStage.AGGREGATING)
        bundles = finalize_bundles(results, order, subject)

        # Stage 4: done
        self._enter(ResolutionStage.DONE)
        channel.log(f"Found {len(bundles)} bundle(s) for {subject}", LogLevel.SUCCESS)
        channel.progress(total, total, "Done")
        channel.bundles(bundles, is_final=True)
        return bundles

    async def _fetch_bundle(self, bundle_id: str, channel: ReportChannel) -> BundleRecord | None:
        """Fetch and parse one bundle detail page; failures yield None."""
        label = f"bundle {bundle_id}"
        try:
            page = await self.fetcher.fetch_text(self.settings.detail_url(bundle_id), label)
        except ResourceUnavailable as e:
            self._report_failed_attempts(channel, e)
            channel.log(f"Skipping bundle {bundle_id}: {e}", LogLevel.ERROR)
            return None

        channel.detail(f"Bundle {bundle_id} response ({page.url})", page.text)

        name = extract_bundle_name(page.text)
        if not name:
            channel.log(f"Skipping bundle {bundle_id}: no name found on page", LogLevel.WARNING)
            return None

        items = extract_bundle_items(page.text)
        channel.log(f"Bundle {bundle_id}: {name} ({len(items)} item(s))")
        return BundleRecord(id=bundle_id, name=name, items=items)

    async def resolve_via_search(self, subject_id: str) -> list[BundleRecord]:
        """
        Resolve bundles through the store's search results.

        Args:
            subject_id: App id to resolve bundles for

        Returns:
            Bundle records (without items) in search result order

        Raises:
            InvalidInput: If subject_id is blank
            ResourceUnavailable: If app details or search results cannot be fetched
            UnknownSubject: If the store does not know the app
        """
        self.stage = ResolutionStage.IDLE
        subject = self._clean_subject(subject_id)
        channel = ReportChannel(self.reporter)
        total = 3

        self._enter(ResolutionStage.DISCOVERING_LIST)
        channel.progress(0, total, f"Resolving app name for {subject}")
        try:
            details = await self.fetcher.fetch_text(
                self.settings.app_details_url_template.format(subject_id=quote(subject)),
                f"app details for {subject}",
            )
            channel.detail(f"App details response ({details.url})", details.text)
            app_name = self._parse_app_name(details, subject)
            channel.log(f"Resolved {subject} to '{app_name}'")
            channel.progress(1, total, f"Searching bundles for '{app_name}'")

            results = await self.fetcher.fetch_text(
                self.settings.search_url_template.format(term=quote(app_name)),
                f"bundle search for '{app_name}'",
            )
        except ResourceUnavailable as e:
            self._report_failed_attempts(channel, e)
            channel.log(str(e), LogLevel.ERROR)
            raise

        channel.detail(f"Search response ({results.url})", results.text)
        channel.progress(2, total, "Parsing search results")

        self._enter(ResolutionStage.AGGREGATING)
        bundles = extract_bundles_for_subject(results.text, subject)

        self._enter(ResolutionStage.DONE)
        if bundles:
            channel.log(f"Found {len(bundles)} bundle(s) for {subject}", LogLevel.SUCCESS)
        else:
            channel.log(f"No bundles found for {subject}", LogLevel.WARNING)
        channel.progress(total, total, "Done")
        channel.bundles(bundles, is_final=True)
        return bundles

    @staticmethod
    def _parse_app_name(details: FetchResult, subject: str) -> str:
        """Pull the app name out of an app-details JSON response."""
        try:
            payload = json.loads(details.text)
        except json.JSONDecodeError as e:
            raise UnknownSubject(subject) from e

        entry = payload.get(subject) if isinstance(payload, dict) else None
        if not isinstance(entry, dict) or not entry.get("success"):
            raise UnknownSubject(subject)
        data = entry.get("data")
        name = data.get("name") if isinstance(data, dict) else None
        if not isinstance(name, str) or not name.strip():
            raise UnknownSubject(subject)
        return name.strip()
