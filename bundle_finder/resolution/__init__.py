"""
Bundle Finder Resolution Framework
==================================

This package provides the pipeline that resolves which store bundles
include a given app.

Pipeline Stages:
1. Discovery - Fetch the app's bundle list page, extract candidate bundle ids
2. Fetch - Fetcher tries the origin, then proxy relays, for every page
3. Parse - Extraction strategies read markup or markdown renderings
4. Aggregate - Deduplicate, filter and order bundle records
5. Report - Stream logs, progress and partial results to a reporter
"""

from bundle_finder.resolution.settings import (
    FALLBACK_PROXIES,
    FetchSettings,
    ResolverSettings,
    Settings,
    get_default_settings,
    load_settings,
    reset_default_settings,
)
from bundle_finder.resolution.fetcher import (
    FetchAttempt,
    FetchResult,
    ResilientFetcher,
)
from bundle_finder.resolution.limiter import (
    ConcurrencyLimiter,
    create_limiter,
)
from bundle_finder.resolution.reporting import (
    LoggingReporter,
    ReportChannel,
    Reporter,
)
from bundle_finder.resolution.resolver import (
    BundleResolver,
    finalize_bundles,
    sort_bundles,
)

__all__ = [
    # Settings
    "FALLBACK_PROXIES",
    "FetchSettings",
    "ResolverSettings",
    "Settings",
    "get_default_settings",
    "load_settings",
    "reset_default_settings",
    # Fetcher
    "FetchAttempt",
    "FetchResult",
    "ResilientFetcher",
    # Limiter
    "ConcurrencyLimiter",
    "create_limiter",
    # Reporting
    "LoggingReporter",
    "ReportChannel",
    "Reporter",
    # Resolver
    "BundleResolver",
    "finalize_bundles",
    "sort_bundles",
]
