"""
Feed API blueprint.

This module contains the read-only subscription and article endpoints.
"""

from flask import Blueprint, Response, jsonify

from rss_aggregation.core import AggregationService
from rss_aggregation.exceptions import AggregationError
from rss_aggregation.logger import get_logger
from rss_aggregation.web.serializers import articles_to_list, subscriptions_to_list

logger = get_logger(__name__)


def _plain_error(message: str, status: int = 500) -> Response:
    return Response(message, status=status, mimetype="text/plain")


class FeedBlueprint:
    """Blueprint serving subscriptions and aggregated articles."""

    def __init__(self, service: AggregationService, url_prefix: str = ""):
        """Initialize the feed blueprint.

        Args:
            service: AggregationService shared by every request
            url_prefix: URL prefix for all routes in this blueprint
        """
        self.service = service
        self.blueprint = Blueprint("feeds", __name__, url_prefix=url_prefix)
        self._register_routes()

    def _register_routes(self):
        """Register the feed routes on the blueprint."""
        self.blueprint.add_url_rule(
            "/subscriptions", view_func=self._subscriptions, methods=["GET"]
        )
        # Older clients read the subscription list from /opml
        self.blueprint.add_url_rule(
            "/opml", endpoint="opml", view_func=self._subscriptions, methods=["GET"]
        )
        self.blueprint.add_url_rule(
            "/articles", view_func=self._articles, methods=["GET"]
        )

    def _subscriptions(self):
        """List the subscriptions declared in the OPML file."""
        try:
            subscriptions = self.service.get_subscriptions()
        except AggregationError as e:
            logger.error(f"Failed to open OPML file: {e}")
            return _plain_error("Failed to open OPML file", e.http_status_code)

        return jsonify(subscriptions_to_list(subscriptions))

    def _articles(self):
        """Aggregate recent articles across every subscribed feed."""
        try:
            articles = self.service.get_articles()
        except AggregationError as e:
            logger.error(f"Failed to get feeds: {e}")
            return _plain_error("Failed to get feeds", e.http_status_code)

        return jsonify(articles_to_list(articles))
