"""
Flask application serving aggregated feeds.
"""

from typing import Optional

from flask import Flask, Response, request

from rss_aggregation.config import Config, get_config
from rss_aggregation.core import AggregationService, create_aggregation_service
from rss_aggregation.logger import get_logger
from rss_aggregation.web.blueprints import FeedBlueprint

logger = get_logger(__name__)


def _register_cors(app: Flask, config: Config) -> None:
    """Add CORS headers for the configured origins."""
    web = config.web
    allowed_origins = set(web.cors_origins)
    allow_all = "*" in allowed_origins

    @app.after_request
    def add_cors_headers(response: Response) -> Response:
        origin = request.headers.get("Origin")
        if not origin or not (allow_all or origin in allowed_origins):
            return response

        response.headers["Access-Control-Allow-Origin"] = "*" if allow_all else origin
        response.vary.add("Origin")

        if request.method == "OPTIONS":
            response.headers["Access-Control-Allow-Methods"] = ", ".join(web.cors_methods)
            response.headers["Access-Control-Allow-Headers"] = ", ".join(web.cors_headers)
            response.headers["Access-Control-Max-Age"] = str(web.cors_max_age)

        return response


def create_app(
    config: Optional[Config] = None,
    service: Optional[AggregationService] = None,
) -> Flask:
    """Create and configure Flask application.

    The aggregation service, and with it the result cache, is created once
    here and lives as long as the application.

    Args:
        config: Configuration (defaults to the global one)
        service: Pre-built AggregationService (tests inject fakes here)

    Returns:
        Configured Flask application
    """
    config = config or get_config()

    app = Flask(__name__)
    app.config["DEBUG"] = config.debug or config.web.debug

    if service is None:
        service = create_aggregation_service(config=config)

    app.extensions["rss_aggregation"] = service

    feed_bp = FeedBlueprint(service).blueprint
    app.register_blueprint(feed_bp)

    _register_cors(app, config)

    @app.errorhandler(404)
    def not_found(e):
        """Handle 404 errors."""
        return Response("Not found", status=404, mimetype="text/plain")

    @app.errorhandler(500)
    def server_error(e):
        """Handle 500 errors."""
        logger.error(f"Server error: {e}")
        return Response("Internal server error", status=500, mimetype="text/plain")

    logger.info(f"Web app created with subscriptions from: {service.opml_path}")

    return app
