"""Bundle Finder - resolve the store bundles that include a given app."""

__version__ = "0.1.0"
