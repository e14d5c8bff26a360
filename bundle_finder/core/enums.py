"""Enums shared across the bundle resolution pipeline."""

from enum import Enum


class LogLevel(str, Enum):
    """Severity of a pipeline log line shown to the user."""

    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class ResolveMode(str, Enum):
    """How bundles are discovered for a subject."""

    LIST = "list"
    SEARCH = "search"


class ResolutionStage(str, Enum):
    """States of a single resolution run."""

    IDLE = "idle"
    DISCOVERING_LIST = "discovering_list"
    FETCHING_DETAILS = "fetching_details"
    AGGREGATING = "aggregating"
    DONE = "done"
