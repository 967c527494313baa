"""
Aggregation service combining subscriptions, fetching and caching.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Optional, Union

import httpx

from rss_aggregation.config import Config, get_config
from rss_aggregation.core.cache import ResultCache
from rss_aggregation.core.fetcher import (
    FeedFetcher,
    FeedOutcome,
    FetchCoordinator,
    FetchStats,
)
from rss_aggregation.core.parser import FeedParser
from rss_aggregation.core.subscriptions import load_subscriptions
from rss_aggregation.logger import FeedEvents, get_logger
from rss_aggregation.models import Article, FeedDescriptor

logger = get_logger(__name__)


@dataclass
class AggregationReport:
    """Articles of one aggregation run with per-feed outcomes."""

    articles: list[Article] = field(default_factory=list)
    outcomes: list[FeedOutcome] = field(default_factory=list)
    stats: FetchStats = field(default_factory=FetchStats)
    cutoff: Optional[datetime] = None

    def outcome_for(self, feed_title: str) -> Optional[FeedOutcome]:
        """Find the outcome recorded for a feed title."""
        for outcome in self.outcomes:
            if outcome.feed_title == feed_title:
                return outcome
        return None


class AggregationService:
    """Serves subscriptions and recent articles across all feeds."""

    def __init__(
        self,
        coordinator: FetchCoordinator,
        opml_path: Optional[Union[str, Path]] = None,
        recent_days: Optional[int] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize aggregation service.

        Args:
            coordinator: FetchCoordinator holding the shared cache
            opml_path: OPML file path (defaults to the configured path)
            recent_days: Recency window in days
            clock: Returns the current time (UTC-aware)
        """
        config = get_config()

        self.coordinator = coordinator
        self.opml_path = opml_path or config.subscriptions.opml_path
        self.recent_days = config.aggregator.recent_days if recent_days is None else recent_days
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def cache(self) -> ResultCache:
        return self.coordinator.cache

    def cutoff(self) -> datetime:
        """Instant before which articles are excluded."""
        return self.clock() - timedelta(days=self.recent_days)

    def get_subscriptions(self) -> list[FeedDescriptor]:
        """Load the subscription list.

        Raises:
            SubscriptionSourceError: If the OPML file cannot be opened
        """
        return load_subscriptions(self.opml_path)

    def aggregate(self) -> AggregationReport:
        """Run one aggregation and keep the per-feed outcomes.

        Raises:
            SubscriptionSourceError: If the OPML file cannot be opened
        """
        logger.info("Starting to fetch articles...")

        subscriptions = self.get_subscriptions()
        cutoff = self.cutoff()

        outcomes = self.coordinator.fetch_outcomes(subscriptions, cutoff)

        report = AggregationReport(outcomes=outcomes, cutoff=cutoff)
        for outcome in outcomes:
            report.stats.add_outcome(outcome)
            report.articles.extend(outcome.articles)

        FeedEvents.aggregation_completed(
            article_count=len(report.articles),
            cached=report.stats.cache_hits,
            fetched=report.stats.successful_fetches,
            partial=report.stats.partial_fetches,
            failed=report.stats.failed_fetches,
        )

        return report

    def get_articles(self) -> list[Article]:
        """Recent articles across every subscribed feed.

        Raises:
            SubscriptionSourceError: If the OPML file cannot be opened
        """
        return self.aggregate().articles

    def close(self) -> None:
        """Release the HTTP client."""
        self.coordinator.fetcher.close()


def create_aggregation_service(
    opml_path: Optional[Union[str, Path]] = None,
    cache: Optional[ResultCache] = None,
    transport: Optional[httpx.BaseTransport] = None,
    max_concurrent: Optional[int] = None,
    recent_days: Optional[int] = None,
    require_content_encoded: Optional[bool] = None,
    config: Optional[Config] = None,
) -> AggregationService:
    """Create a configured AggregationService instance.

    Every component is built from ``config`` (the global configuration by
    default); explicit arguments override it.

    Args:
        opml_path: OPML file path
        cache: Result cache (a fresh one by default)
        transport: Optional httpx transport for the fetcher
        max_concurrent: Override the concurrency ceiling
        recent_days: Override the recency window
        require_content_encoded: Override the content:encoded policy
        config: Configuration to build from

    Returns:
        Configured AggregationService instance
    """
    config = config or get_config()

    if require_content_encoded is None:
        require_content_encoded = config.aggregator.require_content_encoded

    fetcher = FeedFetcher(
        timeout_seconds=config.fetcher.timeout_seconds,
        user_agent=config.fetcher.user_agent,
        follow_redirects=config.fetcher.follow_redirects,
        max_redirects=config.fetcher.max_redirects,
        transport=transport,
    )
    coordinator = FetchCoordinator(
        fetcher=fetcher,
        cache=cache if cache is not None else ResultCache(),
        parser=FeedParser(require_content_encoded=require_content_encoded),
        max_concurrent=max_concurrent or config.fetcher.max_concurrent,
        max_workers=config.fetcher.max_workers,
    )
    return AggregationService(
        coordinator=coordinator,
        opml_path=opml_path or config.subscriptions.opml_path,
        recent_days=config.aggregator.recent_days if recent_days is None else recent_days,
    )
