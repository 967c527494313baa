"""
Subscription model for feeds declared in an OPML file.
"""

from pydantic import BaseModel, ConfigDict, Field


class FeedDescriptor(BaseModel):
    """One OPML outline with a feed URL.

    ``title`` is the identity key used by the result cache, so titles are
    expected to be unique within a subscription file.
    """

    model_config = ConfigDict(frozen=True)

    title: str = Field(default="", description="Feed title")
    feed_url: str = Field(..., min_length=1, description="Feed XML URL (xmlUrl)")
    site_url: str = Field(default="", description="Site URL (htmlUrl)")

    def __repr__(self) -> str:
        return f"<FeedDescriptor(title='{self.title}', feed_url='{self.feed_url}')>"
