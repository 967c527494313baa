"""Data models for RSS aggregation."""

from rss_aggregation.models.article import Article
from rss_aggregation.models.subscription import FeedDescriptor

__all__ = [
    "Article",
    "FeedDescriptor",
]
