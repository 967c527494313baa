"""
OPML subscription loader.

Streams the document as start-element events and turns every ``outline``
element with a non-empty ``xmlUrl`` into a ``FeedDescriptor``.
"""

import codecs
import os
from pathlib import Path
from typing import BinaryIO, Callable, Iterator, Optional, Union
from xml.etree.ElementTree import ParseError, XMLPullParser

from rss_aggregation.config import get_config
from rss_aggregation.core.parser import declared_encoding
from rss_aggregation.exceptions import SubscriptionParseError, SubscriptionSourceError
from rss_aggregation.logger import get_logger
from rss_aggregation.models import FeedDescriptor

logger = get_logger(__name__)

SubscriptionSource = Union[str, os.PathLike, BinaryIO]

_CHUNK_SIZE = 64 * 1024


def _local_name(tag: str) -> str:
    """Strip the ``{namespace}`` prefix ElementTree puts on qualified names."""
    return tag.rsplit("}", 1)[-1]


def _read_chunks(stream: BinaryIO, source_name: str) -> Iterator[bytes]:
    while True:
        try:
            chunk = stream.read(_CHUNK_SIZE)
        except OSError as e:
            raise SubscriptionSourceError(source_name, str(e)) from e
        if not chunk:
            return
        yield chunk


def _descriptor_from_attributes(attrib: dict) -> Optional[FeedDescriptor]:
    attributes = {_local_name(key): value for key, value in attrib.items()}

    feed_url = (attributes.get("xmlUrl") or "").strip()
    if not feed_url:
        return None

    title = (attributes.get("title") or attributes.get("text") or "").strip()
    site_url = (attributes.get("htmlUrl") or "").strip()

    return FeedDescriptor(title=title, feed_url=feed_url, site_url=site_url)


def _decoder_for(head: bytes, source_name: str) -> Optional[Callable[..., str]]:
    """Incremental decoder for the encoding the XML declaration names, if any."""
    encoding = declared_encoding(head)
    if not encoding:
        return None
    try:
        return codecs.getincrementaldecoder(encoding)(errors="replace").decode
    except LookupError:
        logger.warning(f"Unknown encoding {encoding!r} in {source_name}, parsing raw bytes")
        return None


def _drain_outlines(parser: XMLPullParser, descriptors: list[FeedDescriptor]) -> None:
    for _, element in parser.read_events():
        if _local_name(element.tag) != "outline":
            continue
        descriptor = _descriptor_from_attributes(element.attrib)
        if descriptor is not None:
            descriptors.append(descriptor)


def parse_subscriptions(
    stream: BinaryIO,
    source_name: str = "<stream>",
    strict: bool = False,
) -> list[FeedDescriptor]:
    """Parse OPML from an open binary stream.

    Args:
        stream: Binary file object positioned at the start of the document
        source_name: Name used in log messages and errors
        strict: Raise SubscriptionParseError on malformed XML instead of
            returning the descriptors read so far

    Returns:
        Descriptors in document order
    """
    parser = XMLPullParser(events=("start",))
    descriptors: list[FeedDescriptor] = []
    decode = None

    try:
        for index, chunk in enumerate(_read_chunks(stream, source_name)):
            if index == 0:
                decode = _decoder_for(chunk, source_name)
            parser.feed(decode(chunk) if decode else chunk)
            _drain_outlines(parser, descriptors)

        if decode:
            parser.feed(decode(b"", True))
        parser.close()
        _drain_outlines(parser, descriptors)

    except (ParseError, ValueError) as e:
        if strict:
            raise SubscriptionParseError(source_name, str(e), len(descriptors)) from e
        logger.warning(
            f"Malformed OPML in {source_name} ({e}), "
            f"keeping {len(descriptors)} subscriptions parsed so far"
        )

    return descriptors


def load_subscriptions(
    source: Optional[SubscriptionSource] = None,
    strict: Optional[bool] = None,
) -> list[FeedDescriptor]:
    """Load feed subscriptions from an OPML file.

    Args:
        source: Path or binary file object (defaults to the configured OPML path)
        strict: Override the configured strictness for malformed documents

    Returns:
        Descriptors in document order, one per outline with a non-empty xmlUrl

    Raises:
        SubscriptionSourceError: If the source cannot be opened or read
        SubscriptionParseError: If strict and the document is malformed
    """
    config = get_config().subscriptions
    if source is None:
        source = config.opml_path
    if strict is None:
        strict = config.strict

    if hasattr(source, "read"):
        source_name = getattr(source, "name", "<stream>")
        descriptors = parse_subscriptions(source, source_name=str(source_name), strict=strict)
    else:
        path = Path(source)
        logger.debug(f"Reading feeds from OPML file {path}")
        try:
            stream = path.open("rb")
        except OSError as e:
            raise SubscriptionSourceError(str(path), str(e)) from e

        with stream:
            descriptors = parse_subscriptions(stream, source_name=str(path), strict=strict)

    logger.info(f"Total feeds found: {len(descriptors)}")
    return descriptors
