"""
Run the RSS aggregation web server.

    python -m rss_aggregation --port 8080 --opml public/rss.opml
"""

import argparse
from typing import Optional, Sequence

from rss_aggregation.config import load_config_from_yaml, reload_config, set_config
from rss_aggregation.logger import get_logger, setup_logger

logger = get_logger(__name__)


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Serve aggregated RSS/Atom articles as JSON")
    parser.add_argument("--config", help="YAML configuration file")
    parser.add_argument("--host", help="Bind address (default from config)")
    parser.add_argument("--port", type=int, help="Port (default from config)")
    parser.add_argument("--opml", help="OPML subscription file")
    parser.add_argument("--debug", action="store_true", help="Enable Flask debug mode")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Parse arguments, configure logging and start the server."""
    args = build_arg_parser().parse_args(argv)

    if args.config:
        config = load_config_from_yaml(args.config)
        set_config(config)
    else:
        # Picks up config/config.yaml when present
        config = reload_config()

    if args.opml:
        config.subscriptions.opml_path = args.opml
    if args.debug:
        config.web.debug = True

    setup_logger(log_config=config.logging)

    from rss_aggregation.web import create_app

    app = create_app(config)

    host = args.host or config.web.host
    port = args.port or config.web.port

    logger.info(f"Starting server on {host}:{port}...")
    app.run(host=host, port=port, debug=config.web.debug, threaded=True)


if __name__ == "__main__":
    main()
