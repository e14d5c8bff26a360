"""
Settings Module
===============

Manages fetcher and resolver settings loaded from a YAML file, with
environment overrides for the proxy chain. Settings are resolved once per
process and passed explicitly into the fetcher and resolver.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

LIST_URL_TEMPLATE = "https://store.steampowered.com/bundlelist/{subject_id}"
DETAIL_URL_TEMPLATE = "https://store.steampowered.com/bundle/{bundle_id}/?l=english&cc=us"
APP_DETAILS_URL_TEMPLATE = (
    "https://store.steampowered.com/api/appdetails?appids={subject_id}&cc=us&l=english"
)
SEARCH_URL_TEMPLATE = (
    "https://store.steampowered.com/search/results/?query&start=0&count=50"
    "&dynamic_data=&sort_by=_ASC&snr=1_7_7_230_7&category1=996&force_infinite=1"
    "&l=english&cc=us&term={term}"
)

# Relays tried after the direct URL, in order
FALLBACK_PROXIES: tuple[str, ...] = (
    "https://r.jina.ai/",
    "https://corsproxy.io/?",
    "https://api.allorigins.win/raw?url=",
)

CONFIG_PATH_ENV = "BUNDLE_FINDER_CONFIG_PATH"
PROXY_ENV = "BUNDLE_FINDER_PROXY"
CORS_RESTRICTED_ENV = "BUNDLE_FINDER_CORS_RESTRICTED"

_TRUE_VALUES = {"1", "true", "yes", "on"}


def normalize_proxy(proxy: str | None) -> str | None:
    """
    Normalize a proxy prefix.

    Blank values become None. Path-style prefixes get a trailing slash;
    query-style prefixes (ending in "?" or "=") are kept as they are.
    """
    if proxy is None:
        return None
    proxy = proxy.strip()
    if not proxy:
        return None
    if proxy.endswith(("/", "?", "=")):
        return proxy
    return f"{proxy}/"


@dataclass
class FetchSettings:
    """Settings for the resilient fetcher."""

    user_agent: str = "BundleFinder/0.1"
    request_timeout: float = 20.0
    cors_restricted: bool = False
    proxy_override: str | None = None
    extra_proxies: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> FetchSettings:
        """Create from dictionary, using defaults for missing values."""
        if data is None:
            return cls()
        return cls(
            user_agent=data.get("user_agent", "BundleFinder/0.1"),
            request_timeout=float(data.get("request_timeout", 20.0)),
            cors_restricted=bool(data.get("cors_restricted", False)),
            proxy_override=normalize_proxy(data.get("proxy")),
            extra_proxies=list(data.get("proxies", [])),
        )

    def proxy_chain(self) -> list[str]:
        """
        Get the ordered proxy prefixes to try after the direct URL.

        The override comes first, then the fixed fallbacks, then any extra
        proxies from the config file. Duplicates are removed.
        """
        chain: list[str] = []
        candidates = [self.proxy_override, *FALLBACK_PROXIES, *self.extra_proxies]
        for proxy in candidates:
            proxy = normalize_proxy(proxy)
            if proxy and proxy not in chain:
                chain.append(proxy)
        return chain


@dataclass
class ResolverSettings:
    """Settings for the bundle resolver."""

    concurrency: int = 4
    list_url_template: str = LIST_URL_TEMPLATE
    detail_url_template: str = DETAIL_URL_TEMPLATE
    app_details_url_template: str = APP_DETAILS_URL_TEMPLATE
    search_url_template: str = SEARCH_URL_TEMPLATE

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ResolverSettings:
        """Create from dictionary, using defaults for missing values."""
        if data is None:
            return cls()
        return cls(
            concurrency=int(data.get("concurrency", 4)),
            list_url_template=data.get("list_url_template", LIST_URL_TEMPLATE),
            detail_url_template=data.get("detail_url_template", DETAIL_URL_TEMPLATE),
            app_details_url_template=data.get(
                "app_details_url_template", APP_DETAILS_URL_TEMPLATE
            ),
            search_url_template=data.get("search_url_template", SEARCH_URL_TEMPLATE),
        )

    def list_url(self, subject_id: str) -> str:
        """Build the bundle list URL for a subject."""
        return self.list_url_template.format(subject_id=subject_id)

    def detail_url(self, bundle_id: str) -> str:
        """Build the bundle detail URL for a bundle id."""
        return self.detail_url_template.format(bundle_id=bundle_id)


@dataclass
class Settings:
    """Top-level settings."""

    fetch: FetchSettings = field(default_factory=FetchSettings)
    resolver: ResolverSettings = field(default_factory=ResolverSettings)
    config_path: Path | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Settings:
        """Create from dictionary."""
        if data is None:
            return cls()
        return cls(
            fetch=FetchSettings.from_dict(data.get("fetch")),
            resolver=ResolverSettings.from_dict(data.get("resolver")),
        )

    def apply_environment(self, environ: dict[str, str] | None = None) -> Settings:
        """
        Apply environment overrides in place.

        BUNDLE_FINDER_PROXY replaces the configured proxy override and
        BUNDLE_FINDER_CORS_RESTRICTED toggles proxying.
        """
        environ = os.environ if environ is None else environ

        proxy = normalize_proxy(environ.get(PROXY_ENV))
        if proxy:
            self.fetch.proxy_override = proxy

        cors = environ.get(CORS_RESTRICTED_ENV)
        if cors is not None and cors.strip():
            self.fetch.cors_restricted = cors.strip().lower() in _TRUE_VALUES

        return self


def load_settings(config_path: Path | str) -> Settings:
    """
    Load settings from a YAML file.

    Args:
        config_path: Path to the settings file

    Returns:
        Parsed settings (environment overrides not applied)
    """
    config_path = Path(config_path).expanduser().resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path) as f:
        data = yaml.safe_load(f) or {}

    settings = Settings.from_dict(data)
    settings.config_path = config_path
    return settings


# Global settings instance
_default_settings: Settings | None = None


def get_default_settings() -> Settings:
    """
    Get the process-wide settings instance.

    Loads configuration from the path in BUNDLE_FINDER_CONFIG_PATH, or
    falls back to config/bundle_finder.yaml, then applies environment
    overrides. Resolved once and cached.

    Returns:
        The global Settings instance
    """
    global _default_settings

    if _default_settings is None:
        config_path = os.environ.get(CONFIG_PATH_ENV)
        if config_path:
            path = Path(config_path)
        else:
            # Default to config/bundle_finder.yaml relative to project root
            module_dir = Path(__file__).parent
            project_root = module_dir.parent.parent
            path = project_root / "config" / "bundle_finder.yaml"

        settings = load_settings(path) if path.exists() else Settings()
        _default_settings = settings.apply_environment()

    return _default_settings


def reset_default_settings() -> None:
    """Reset the cached settings (useful for testing)."""
    global _default_settings
    _default_settings = None
