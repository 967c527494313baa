"""
Serializer functions for converting models to dictionaries.

Keys use the camelCase names the frontend reads.
"""

from typing import Iterable

from rss_aggregation.models import Article, FeedDescriptor


def subscription_to_dict(subscription: FeedDescriptor) -> dict:
    """Convert a FeedDescriptor to its OPML-style dictionary.

    Args:
        subscription: FeedDescriptor instance

    Returns:
        Dictionary representation
    """
    return {
        "title": subscription.title,
        "xmlUrl": subscription.feed_url,
        "htmlUrl": subscription.site_url,
    }


def article_to_dict(article: Article) -> dict:
    """Convert an Article to a dictionary.

    Args:
        article: Article instance

    Returns:
        Dictionary representation
    """
    return {
        "title": article.title,
        "link": article.link,
        "description": article.description,
        "pubDate": article.published_at,
        "feedTitle": article.feed_title,
        "contentEncoded": article.content_encoded,
    }


def subscriptions_to_list(subscriptions: Iterable[FeedDescriptor]) -> list[dict]:
    return [subscription_to_dict(s) for s in subscriptions]


def articles_to_list(articles: Iterable[Article]) -> list[dict]:
    return [article_to_dict(a) for a in articles]
