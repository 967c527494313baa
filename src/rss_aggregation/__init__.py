"""
RSS Aggregation - OPML-driven feed aggregator.

This package fetches the RSS/Atom feeds listed in an OPML subscription file,
keeps recent articles (including ``content:encoded`` HTML) and serves the
merged result as JSON.
"""

__version__ = "0.1.0"
