"""Aggregation exceptions.

Only ``SubscriptionSourceError`` is fatal to a request; the web layer maps it
to HTTP 500. Feed-level failures are recorded on ``FeedOutcome`` instead of
being raised to callers.
"""

from typing import Optional


class AggregationError(Exception):
    """Base class for aggregation errors."""

    http_status_code = 500


class SubscriptionSourceError(AggregationError):
    """Raised when the subscription file cannot be opened or read."""

    def __init__(self, source: str, reason: str) -> None:
        self.source = source
        self.reason = reason
        super().__init__(f"Cannot read subscriptions from {source}: {reason}")


class SubscriptionParseError(AggregationError):
    """Raised by the strict loader when the OPML document is malformed."""

    def __init__(self, source: str, reason: str, parsed_count: int = 0) -> None:
        self.source = source
        self.reason = reason
        self.parsed_count = parsed_count
        super().__init__(f"Malformed OPML in {source}: {reason}")


class FeedFetchError(AggregationError):
    """Raised when a feed body cannot be retrieved."""

    def __init__(self, url: str, reason: str, http_status: Optional[int] = None) -> None:
        self.url = url
        self.reason = reason
        self.http_status = http_status
        super().__init__(reason)
