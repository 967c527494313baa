"""Flask web layer for RSS aggregation."""

from rss_aggregation.web.app import create_app

__all__ = ["create_app"]
