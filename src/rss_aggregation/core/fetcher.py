"""
RSS/Atom feed fetching with a shared concurrency ceiling.

``FeedFetcher`` retrieves one feed body over HTTP. ``FetchCoordinator`` runs
one task per subscription: cache lookup first, then (holding one of a fixed
number of slots) fetch and parse, then cache write.
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Sequence
from urllib.parse import urlparse

import httpx

from rss_aggregation.config import get_config
from rss_aggregation.core.cache import ResultCache
from rss_aggregation.core.parser import FeedParser
from rss_aggregation.exceptions import FeedFetchError
from rss_aggregation.logger import FeedEvents, get_logger
from rss_aggregation.models import Article, FeedDescriptor

logger = get_logger(__name__)

NON_TEXT_CONTENT_TYPES = ("image/", "audio/", "video/")


class FeedStatus(str, Enum):
    """How a feed contributed to an aggregation run."""

    CACHED = "cached"
    FETCHED = "fetched"
    PARTIAL = "partial"
    FAILED = "failed"


@dataclass
class FeedOutcome:
    """Result of processing one subscription."""

    subscription: FeedDescriptor
    status: FeedStatus
    articles: list[Article] = field(default_factory=list)
    error: Optional[str] = None
    fetch_time_seconds: float = 0.0
    http_status: Optional[int] = None

    def __post_init__(self):
        """Validate the outcome."""
        if self.status in (FeedStatus.CACHED, FeedStatus.FETCHED) and self.error:
            raise ValueError("Successful outcome cannot have an error")
        if self.status in (FeedStatus.PARTIAL, FeedStatus.FAILED) and not self.error:
            self.error = "Unknown error"
        if self.status is FeedStatus.FAILED and self.articles:
            raise ValueError("Failed outcome cannot carry articles")

    @property
    def success(self) -> bool:
        return self.status in (FeedStatus.CACHED, FeedStatus.FETCHED)

    @property
    def feed_title(self) -> str:
        return self.subscription.title


@dataclass
class FetchStats:
    """Statistics for feed fetching operations."""

    total_feeds: int = 0
    cache_hits: int = 0
    successful_fetches: int = 0
    partial_fetches: int = 0
    failed_fetches: int = 0
    total_articles: int = 0
    total_time_seconds: float = 0.0
    errors_by_type: dict = field(default_factory=dict)

    def add_outcome(self, outcome: FeedOutcome) -> None:
        """Add a feed outcome to statistics.

        Args:
            outcome: FeedOutcome to add
        """
        self.total_feeds += 1
        self.total_time_seconds += outcome.fetch_time_seconds
        self.total_articles += len(outcome.articles)

        if outcome.status is FeedStatus.CACHED:
            self.cache_hits += 1
        elif outcome.status is FeedStatus.FETCHED:
            self.successful_fetches += 1
        else:
            if outcome.status is FeedStatus.PARTIAL:
                self.partial_fetches += 1
            else:
                self.failed_fetches += 1
            error_type = outcome.error.split(":")[0] if outcome.error else "unknown"
            self.errors_by_type[error_type] = self.errors_by_type.get(error_type, 0) + 1

    @property
    def success_rate(self) -> float:
        """Share of feeds served from cache or fetched completely."""
        if self.total_feeds == 0:
            return 0.0
        return (self.cache_hits + self.successful_fetches) / self.total_feeds

    @property
    def avg_time_seconds(self) -> float:
        """Calculate average fetch time."""
        if self.total_feeds == 0:
            return 0.0
        return self.total_time_seconds / self.total_feeds


@dataclass
class FetchedBody:
    """Raw feed document returned by the fetcher."""

    url: str
    content: bytes
    http_status: int
    content_type: str = ""
    encoding: Optional[str] = None


class FeedFetcher:
    """HTTP client for feed documents."""

    def __init__(
        self,
        timeout_seconds: Optional[int] = None,
        user_agent: Optional[str] = None,
        follow_redirects: Optional[bool] = None,
        max_redirects: Optional[int] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """Initialize feed fetcher.

        Args:
            timeout_seconds: Request timeout in seconds
            user_agent: User-Agent header for HTTP requests
            follow_redirects: Follow 3xx responses
            max_redirects: Redirect hops before giving up
            transport: Optional httpx transport (e.g. httpx.MockTransport in tests)
        """
        config = get_config()

        self.timeout_seconds = timeout_seconds or config.fetcher.timeout_seconds
        self.user_agent = user_agent or config.fetcher.user_agent
        self.follow_redirects = (
            config.fetcher.follow_redirects if follow_redirects is None else follow_redirects
        )
        self.max_redirects = config.fetcher.max_redirects if max_redirects is None else max_redirects

        self._client = httpx.Client(
            timeout=httpx.Timeout(self.timeout_seconds),
            follow_redirects=self.follow_redirects,
            max_redirects=self.max_redirects,
            headers={"User-Agent": self.user_agent},
            transport=transport,
        )

    def fetch(self, url: str) -> FetchedBody:
        """Fetch one feed document.

        Args:
            url: Feed URL

        Returns:
            FetchedBody with the raw response bytes

        Raises:
            FeedFetchError: On invalid URL, network error, timeout,
                non-success status or non-text body
        """
        is_valid, error = self.validate_url(url)
        if not is_valid:
            raise FeedFetchError(url, f"Invalid URL: {error}")

        try:
            response = self._client.get(url)
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise FeedFetchError(url, f"Timeout: {e}") from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise FeedFetchError(url, f"HTTP {status}: {e}", http_status=status) from e
        except (httpx.RequestError, httpx.InvalidURL) as e:
            raise FeedFetchError(url, f"Request error: {e}") from e

        content_type = response.headers.get("Content-Type", "")
        if content_type.lower().startswith(NON_TEXT_CONTENT_TYPES):
            raise FeedFetchError(
                url,
                f"Non-text body: {content_type}",
                http_status=response.status_code,
            )

        return FetchedBody(
            url=url,
            content=response.content,
            http_status=response.status_code,
            content_type=content_type,
            encoding=response.charset_encoding,
        )

    def validate_url(self, url: str) -> tuple[bool, Optional[str]]:
        """Validate a feed URL.

        Args:
            url: URL to validate

        Returns:
            Tuple of (is_valid, error_message)
        """
        result = urlparse(url)
        if not result.scheme or not result.netloc:
            return False, "Invalid URL format"

        if result.scheme not in ("http", "https"):
            return False, f"Unsupported scheme: {result.scheme}"

        return True, None

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()

    def __enter__(self) -> "FeedFetcher":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class FetchCoordinator:
    """Fetches many feeds concurrently behind a shared slot limit."""

    def __init__(
        self,
        fetcher: FeedFetcher,
        cache: ResultCache,
        parser: Optional[FeedParser] = None,
        max_concurrent: Optional[int] = None,
        max_workers: Optional[int] = None,
    ):
        """Initialize fetch coordinator.

        Args:
            fetcher: FeedFetcher used for network requests
            cache: ResultCache consulted before and written after each fetch
            parser: FeedParser for response bodies
            max_concurrent: Maximum simultaneous fetch-and-parse tasks
            max_workers: Thread pool size for one run
        """
        config = get_config()

        self.fetcher = fetcher
        self.cache = cache
        self.parser = parser or FeedParser()
        self.max_concurrent = max_concurrent or config.fetcher.max_concurrent
        self.max_workers = max_workers or config.fetcher.max_workers

        # Shared by every run so concurrent requests respect one ceiling
        self._slots = threading.BoundedSemaphore(self.max_concurrent)

        self.stats = FetchStats()
        self._stats_lock = threading.Lock()

    def fetch_one(self, subscription: FeedDescriptor, cutoff: datetime) -> FeedOutcome:
        """Process one subscription: cache lookup, else fetch, parse and cache.

        Args:
            subscription: Feed to process
            cutoff: Articles published before this instant are dropped

        Returns:
            FeedOutcome describing what the feed contributed
        """
        feed_title = subscription.title

        hit = self._lookup_cache(subscription)
        if hit is not None:
            return hit

        start_time = time.time()

        with self._slots:
            logger.debug(f"Fetching feed: {feed_title} ({subscription.feed_url})")
            try:
                body = self.fetcher.fetch(subscription.feed_url)
            except FeedFetchError as e:
                FeedEvents.feed_failed(feed_title, e.reason, http_status=e.http_status)
                return self._record(FeedOutcome(
                    subscription=subscription,
                    status=FeedStatus.FAILED,
                    error=e.reason,
                    fetch_time_seconds=time.time() - start_time,
                    http_status=e.http_status,
                ))

            result = self.parser.parse(body.content, feed_title, cutoff, encoding=body.encoding)

        fetch_time = time.time() - start_time

        if not result.complete:
            return self._record(FeedOutcome(
                subscription=subscription,
                status=FeedStatus.PARTIAL,
                articles=result.articles,
                error=result.error,
                fetch_time_seconds=fetch_time,
                http_status=body.http_status,
            ))

        self.cache.put(feed_title, result.articles)

        FeedEvents.feed_fetched(feed_title, len(result.articles), fetch_time)

        return self._record(FeedOutcome(
            subscription=subscription,
            status=FeedStatus.FETCHED,
            articles=result.articles,
            fetch_time_seconds=fetch_time,
            http_status=body.http_status,
        ))

    def fetch_outcomes(
        self,
        subscriptions: Sequence[FeedDescriptor],
        cutoff: datetime,
        max_concurrent: Optional[int] = None,
    ) -> list[FeedOutcome]:
        """Process every subscription concurrently.

        Args:
            subscriptions: Feeds to process
            cutoff: Articles published before this instant are dropped
            max_concurrent: Tighter ceiling for this run; the shared
                coordinator ceiling still applies

        Returns:
            One FeedOutcome per subscription, in completion order
        """
        outcomes = []
        pending = []

        # Cache hits are answered here so they never queue behind fetches
        for subscription in subscriptions:
            hit = self._lookup_cache(subscription)
            if hit is None:
                pending.append(subscription)
            else:
                outcomes.append(hit)

        if not pending:
            return outcomes

        workers = min(len(pending), self.max_workers)
        if max_concurrent is not None:
            if max_concurrent < 1:
                raise ValueError("max_concurrent must be at least 1")
            workers = min(workers, max_concurrent)

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="feed") as executor:
            futures = {
                executor.submit(self.fetch_one, subscription, cutoff): subscription
                for subscription in pending
            }

            for future in as_completed(futures):
                subscription = futures[future]
                try:
                    outcomes.append(future.result())
                except Exception as e:
                    logger.exception(f"Unexpected error processing {subscription.title}: {e}")
                    outcomes.append(self._record(FeedOutcome(
                        subscription=subscription,
                        status=FeedStatus.FAILED,
                        error=f"Unexpected error: {type(e).__name__}: {e}",
                    )))

        return outcomes

    def fetch_all(
        self,
        subscriptions: Sequence[FeedDescriptor],
        cutoff: datetime,
        max_concurrent: Optional[int] = None,
    ) -> list[Article]:
        """Fetch every subscription and flatten the articles.

        Failed feeds contribute nothing. Order across feeds follows task
        completion; within one feed it follows the document.
        """
        articles: list[Article] = []
        for outcome in self.fetch_outcomes(subscriptions, cutoff, max_concurrent):
            articles.extend(outcome.articles)
        return articles

    def _lookup_cache(self, subscription: FeedDescriptor) -> Optional[FeedOutcome]:
        cached = self.cache.get(subscription.title)
        if cached is None:
            return None
        logger.debug(f"Cache hit for feed: {subscription.title}")
        return self._record(FeedOutcome(
            subscription=subscription,
            status=FeedStatus.CACHED,
            articles=cached,
        ))

    def _record(self, outcome: FeedOutcome) -> FeedOutcome:
        with self._stats_lock:
            self.stats.add_outcome(outcome)
        return outcome


def create_coordinator(
    cache: Optional[ResultCache] = None,
    transport: Optional[httpx.BaseTransport] = None,
    max_concurrent: Optional[int] = None,
) -> FetchCoordinator:
    """Create a configured FetchCoordinator instance.

    Args:
        cache: Result cache to share (a fresh one by default)
        transport: Optional httpx transport for the fetcher
        max_concurrent: Override the configured concurrency ceiling

    Returns:
        Configured FetchCoordinator instance
    """
    return FetchCoordinator(
        fetcher=FeedFetcher(transport=transport),
        cache=cache if cache is not None else ResultCache(),
        max_concurrent=max_concurrent,
    )
