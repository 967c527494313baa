"""Core aggregation pipeline.

The web layer and the entry point talk to ``AggregationService``; the other
names are exported for type hints and tests.
"""

from rss_aggregation.core.aggregator import (
    AggregationReport,
    AggregationService,
    create_aggregation_service,
)
from rss_aggregation.core.cache import ResultCache
from rss_aggregation.core.fetcher import (
    FeedFetcher,
    FeedOutcome,
    FeedStatus,
    FetchCoordinator,
    FetchStats,
    create_coordinator,
)
from rss_aggregation.core.parser import FeedParser, FeedStateMachine, ParseResult, parse_feed
from rss_aggregation.core.subscriptions import load_subscriptions

__all__ = [
    "AggregationReport",
    "AggregationService",
    "create_aggregation_service",
    "ResultCache",
    "FeedFetcher",
    "FeedOutcome",
    "FeedStatus",
    "FetchCoordinator",
    "FetchStats",
    "create_coordinator",
    "FeedParser",
    "FeedStateMachine",
    "ParseResult",
    "parse_feed",
    "load_subscriptions",
]
