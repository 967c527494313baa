"""Shared fixtures for RSS aggregation tests."""

from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
from typing import Optional

import pytest

from rss_aggregation.config import set_config

NOW = datetime(2026, 10, 18, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def reset_config():
    """Give every test a fresh global configuration."""
    set_config(None)
    yield
    set_config(None)


def rfc2822(dt: datetime) -> str:
    """Format a datetime the way RSS pubDate carries it."""
    return format_datetime(dt)


def rss_item(
    title: str,
    published: Optional[datetime] = None,
    link: Optional[str] = None,
    description: str = "",
    content: Optional[str] = None,
    pub_date: Optional[str] = None,
) -> str:
    """Build one RSS <item> element."""
    parts = [f"<title>{title}</title>"]
    parts.append(f"<link>{link or 'https://example.com/' + title.lower().replace(' ', '-')}</link>")
    if description:
        parts.append(f"<description>{description}</description>")
    if pub_date is not None:
        parts.append(f"<pubDate>{pub_date}</pubDate>")
    elif published is not None:
        parts.append(f"<pubDate>{rfc2822(published)}</pubDate>")
    if content is not None:
        parts.append(f"<content:encoded><![CDATA[{content}]]></content:encoded>")
    return "<item>" + "".join(parts) + "</item>"


def rss_feed(*items: str, channel_title: str = "Example") -> bytes:
    """Wrap items in an RSS 2.0 document with the content namespace."""
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<rss version="2.0" xmlns:content="http://purl.org/rss/1.0/modules/content/">'
        f"<channel><title>{channel_title}</title><link>https://example.com/</link>"
        + "".join(items)
        + "</channel></rss>"
    ).encode("utf-8")


def opml(*outlines: str) -> str:
    """Build an OPML document from outline attribute strings."""
    body = "".join(f"<outline {attrs}/>" for attrs in outlines)
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        f'<opml version="2.0"><head><title>Subs</title></head><body>{body}</body></opml>'
    )


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def cutoff() -> datetime:
    return NOW - timedelta(days=5)
