"""API blueprints."""

from rss_aggregation.web.blueprints.feeds import FeedBlueprint

__all__ = ["FeedBlueprint"]
