"""
Error taxonomy for the feed core.

The evaluator and planner are pure and never raise; only the storage and
social-graph boundaries produce these.
"""


class FeedError(Exception):
    """Base class for feed errors."""


class FeedValidationError(FeedError):
    """Malformed request parameters, rejected before any query runs."""


class DependencyUnavailable(FeedError):
    """Storage or social-graph lookup failed; the caller may retry."""

    def __init__(self, component: str, message: str) -> None:
        super().__init__(f"{component} unavailable: {message}")
        self.component = component


class DataIntegrityError(FeedError):
    """Stored social data could not be interpreted (e.g. a corrupt friend list)."""


class PublicationNotFound(FeedError):
    """Raised alike for missing, inactive and hidden publications."""

    def __init__(self, publication_id: str) -> None:
        super().__init__("Publication not found")
        self.publication_id = publication_id
