"""
Article model produced from one feed item or entry.
"""

from pydantic import BaseModel, ConfigDict, Field


class Article(BaseModel):
    """An article extracted from a feed.

    ``published_at`` holds the date exactly as it appeared on the wire
    (usually RFC 2822); it may be empty when the item carried no date.
    """

    model_config = ConfigDict(frozen=True)

    title: str = ""
    link: str = ""
    description: str = ""
    published_at: str = Field(default="", description="Original pubDate text")
    feed_title: str = Field(default="", description="Title of the source subscription")
    content_encoded: str = Field(default="", description="Raw HTML from content:encoded")
