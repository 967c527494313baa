"""
Logging for RSS aggregation.

loguru writes to the console and, when enabled, to a rotating file. Feed
processing reports through ``FeedEvents`` so every per-feed and per-run record
carries its fields in ``extra`` (``event``, ``feed``, ``articles``...); with
``logging.file_serialize`` the file sink writes them as JSON lines.
"""

import sys
from pathlib import Path
from typing import Any, Optional

from loguru import logger as _logger

from rss_aggregation.config import LoggingConfig, get_config


def setup_logger(
    level: Optional[str] = None,
    log_file: Optional[str] = None,
    rotation: Optional[str] = None,
    retention: Optional[str] = None,
    format: Optional[str] = None,
    log_config: Optional[LoggingConfig] = None,
) -> list[int]:
    """Replace all loguru handlers with the configured ones.

    Args:
        level: Minimum level for every handler
        log_file: Log file path; passing one turns file logging on
        rotation: When to rotate the file ("100 MB", "1 day")
        retention: How long rotated files are kept
        format: loguru format string
        log_config: Logging section to read (global configuration by default)

    Returns:
        Handler ids, console first
    """
    log_config = log_config or get_config().logging
    level = level or log_config.level
    format = format or log_config.format

    _logger.remove()
    handler_ids = []

    if log_config.console_enabled:
        handler_ids.append(_logger.add(
            sys.stderr,
            format=format,
            level=level,
            colorize=True,
            diagnose=False,
        ))

    if log_file is not None or log_config.file_enabled:
        path = Path(log_file or log_config.file_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        handler_ids.append(_logger.add(
            str(path),
            format=format,
            level=level,
            rotation=rotation or log_config.rotation,
            retention=retention or log_config.retention,
            compression="zip",
            encoding="utf-8",
            serialize=log_config.file_serialize,
            enqueue=True,  # Feed tasks log from worker threads
            diagnose=False,
        ))

    return handler_ids


def get_logger(name: Optional[str] = None):
    """Return the loguru logger, bound to ``name`` when one is given."""
    if name:
        return _logger.bind(name=name)
    return _logger


class FeedEvents:
    """Log records for feed processing with their fields bound as extra."""

    _log = _logger.bind(name="rss_aggregation.events")

    @classmethod
    def feed_fetched(cls, feed_title: str, article_count: int, seconds: float, **extra: Any) -> None:
        cls._log.bind(
            event="feed_fetched",
            feed=feed_title,
            articles=article_count,
            seconds=round(seconds, 3),
            **extra,
        ).info(f"Fetched {article_count} articles from {feed_title} in {seconds:.2f}s")

    @classmethod
    def feed_failed(
        cls,
        feed_title: str,
        reason: str,
        http_status: Optional[int] = None,
        **extra: Any,
    ) -> None:
        cls._log.bind(
            event="feed_failed",
            feed=feed_title,
            reason=reason,
            http_status=http_status,
            **extra,
        ).warning(f"Failed to fetch {feed_title}: {reason}")

    @classmethod
    def aggregation_completed(
        cls,
        article_count: int,
        cached: int,
        fetched: int,
        partial: int,
        failed: int,
        **extra: Any,
    ) -> None:
        cls._log.bind(
            event="aggregation_completed",
            articles=article_count,
            cached=cached,
            fetched=fetched,
            partial=partial,
            failed=failed,
            **extra,
        ).info(
            f"Finished fetching articles. Total articles fetched: {article_count} "
            f"({cached} cached, {fetched} fetched, {partial} partial, {failed} failed)"
        )


logger = _logger

__all__ = [
    "FeedEvents",
    "setup_logger",
    "get_logger",
    "logger",
]
