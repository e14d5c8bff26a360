"""
Strategy Registry Module
========================

Central registry for item extraction strategies, plus the page-level
extraction functions used by the resolver.
"""

from __future__ import annotations

from typing import Type

from bundle_finder.extraction.base import (
    ItemStrategy,
    decode_entities,
    dedupe_items,
    normalize_price,
)
from bundle_finder.extraction.markdown import MarkdownItemStrategy
from bundle_finder.extraction.markup import MarkupItemStrategy
from bundle_finder.extraction.pages import (
    extract_bundle_items,
    extract_bundle_name,
    extract_bundles_for_subject,
    extract_candidate_bundle_ids,
)


# Registry mapping strategy names to their classes
STRATEGY_REGISTRY: dict[str, Type[ItemStrategy]] = {
    "markup": MarkupItemStrategy,
    "markdown": MarkdownItemStrategy,
}


def get_strategy(name: str) -> ItemStrategy | None:
    """
    Get a strategy instance by name.

    Args:
        name: Name of the strategy (e.g., "markup")

    Returns:
        Strategy instance, or None if name not found
    """
    strategy_class = STRATEGY_REGISTRY.get(name)
    if strategy_class is None:
        return None
    return strategy_class()


def register_strategy(name: str, strategy_class: Type[ItemStrategy]) -> None:
    """
    Register a new strategy type.

    Args:
        name: Name to register the strategy under
        strategy_class: Strategy class (must inherit from ItemStrategy)
    """
    if not issubclass(strategy_class, ItemStrategy):
        raise TypeError(f"{strategy_class} must inherit from ItemStrategy")
    STRATEGY_REGISTRY[name] = strategy_class


def list_strategies() -> list[str]:
    """List all registered strategy names."""
    return list(STRATEGY_REGISTRY.keys())


__all__ = [
    # Registry functions
    "get_strategy",
    "register_strategy",
    "list_strategies",
    "STRATEGY_REGISTRY",
    # Base class and helpers
    "ItemStrategy",
    "decode_entities",
    "dedupe_items",
    "normalize_price",
    # Concrete strategies
    "MarkupItemStrategy",
    "MarkdownItemStrategy",
    # Page extraction
    "extract_bundle_items",
    "extract_bundle_name",
    "extract_bundles_for_subject",
    "extract_candidate_bundle_ids",
]
