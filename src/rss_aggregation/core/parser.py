"""
Streaming feed parser.

Feed bodies are consumed as a sequence of parse events (start element, end
element, text). ``FeedStateMachine`` turns those events into ``Article``
records one ``<item>``/``<entry>`` at a time, so it can be driven by any XML
tokenizer or by a hand-built event list in tests. ``FeedParser`` drives it
from raw bytes with an incremental expat parser.

expat only decodes UTF-8, UTF-16, ISO-8859-1 and US-ASCII by itself. Bodies in
any other encoding (named by the HTTP charset or the XML declaration) are
decoded here first and handed to expat as text.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from enum import Enum
from typing import Callable, Mapping, Optional, Union
from xml.etree.ElementTree import ParseError, XMLParser

from feedparser.datetimes import _parse_date as feedparser_parse_date

from rss_aggregation.config import get_config
from rss_aggregation.logger import get_logger
from rss_aggregation.models import Article

logger = get_logger(__name__)

CONTENT_NS = "http://purl.org/rss/1.0/modules/content/"
ATOM_NS = "http://www.w3.org/2005/Atom"

# Vocabularies whose item-level elements map onto Article fields
FEED_NAMESPACES = frozenset({
    None,
    ATOM_NS,
    "http://purl.org/rss/1.0/",
    "http://my.netscape.com/rdf/simple/0.9/",
})

ITEM_TAGS = frozenset({"item", "entry"})
DATE_TAGS = frozenset({"pubDate", "published", "updated"})

_CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class StartElement:
    """An element was opened."""

    name: str
    namespace: Optional[str] = None
    attributes: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class EndElement:
    """An element was closed."""

    name: str
    namespace: Optional[str] = None


@dataclass(frozen=True)
class Text:
    """Character data or CDATA content."""

    content: str


ParseEvent = Union[StartElement, EndElement, Text]


class ParserState(Enum):
    OUTSIDE = "outside"
    IN_ITEM = "in_item"


def parse_date(date_str: Optional[str]) -> Optional[datetime]:
    """Parse a feed date string to an aware UTC datetime.

    Args:
        date_str: Date in RFC 2822, ISO 8601 or another format feedparser knows

    Returns:
        datetime in UTC or None if the string is empty or unparseable
    """
    if not date_str or not date_str.strip():
        return None

    date_str = date_str.strip()

    # feedparser's handlers normalize to a UTC struct_time
    try:
        parsed = feedparser_parse_date(date_str)
        if parsed:
            return datetime(*parsed[:6], tzinfo=timezone.utc)
    except (ValueError, TypeError, OverflowError):
        pass

    try:
        dt = parsedate_to_datetime(date_str)
    except (ValueError, TypeError, IndexError):
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class _Candidate:
    """Mutable field buffer for the item being read."""

    __slots__ = ("title", "link", "description", "published_at", "content_encoded")

    def __init__(self) -> None:
        self.title = ""
        self.link = ""
        self.description = ""
        self.published_at = ""
        self.content_encoded = ""


class FeedStateMachine:
    """Event-driven item extractor for one feed document."""

    def __init__(
        self,
        feed_title: str,
        cutoff: datetime,
        now: Optional[Callable[[], datetime]] = None,
        require_content_encoded: bool = False,
    ):
        """Initialize the state machine.

        Args:
            feed_title: Subscription title stamped on every article
            cutoff: Articles published before this instant are dropped
            now: Clock used when an item has no usable date
            require_content_encoded: Drop items without content:encoded HTML
        """
        self.feed_title = feed_title
        self.cutoff = cutoff
        self.now = now or _utc_now
        self.require_content_encoded = require_content_encoded

        self.state = ParserState.OUTSIDE
        self.in_content_encoded = False
        self._text: list[str] = []
        self._depth = 0
        self._candidate = _Candidate()

    def feed(self, event: ParseEvent) -> Optional[Article]:
        """Consume one event.

        Returns:
            The finished Article when the event closes an item that passes
            the filters, otherwise None
        """
        if isinstance(event, StartElement):
            self._on_start(event)
        elif isinstance(event, Text):
            self._on_text(event)
        elif isinstance(event, EndElement):
            return self._on_end(event)
        return None

    def _on_start(self, event: StartElement) -> None:
        if self.state is ParserState.OUTSIDE:
            if event.name in ITEM_TAGS and event.namespace in FEED_NAMESPACES:
                self.state = ParserState.IN_ITEM
                self._reset_item()
            return

        self._depth += 1

        # Only direct children of the item map onto fields; deeper elements
        # (Atom <source>, xhtml markup) just contribute text to their parent
        if self.in_content_encoded or self._depth != 1:
            return

        self._text.clear()

        if event.name == "encoded" and event.namespace == CONTENT_NS:
            self.in_content_encoded = True
        elif event.name == "link" and event.namespace in FEED_NAMESPACES:
            # Atom links carry the URL in href
            href = event.attributes.get("href", "").strip()
            rel = event.attributes.get("rel", "alternate")
            if href and rel == "alternate" and not self._candidate.link:
                self._candidate.link = href

    def _on_text(self, event: Text) -> None:
        if self.state is not ParserState.IN_ITEM:
            return
        if self.in_content_encoded:
            self._candidate.content_encoded += event.content
        else:
            self._text.append(event.content)

    def _on_end(self, event: EndElement) -> Optional[Article]:
        if self.state is not ParserState.IN_ITEM:
            return None

        if self._depth == 0:
            return self._finish_item()

        depth = self._depth
        self._depth -= 1

        if self.in_content_encoded:
            if depth == 1:
                self.in_content_encoded = False
            return None

        if depth != 1 or event.namespace not in FEED_NAMESPACES:
            return None

        text = "".join(self._text).strip()
        candidate = self._candidate

        if event.name == "title":
            candidate.title = text
        elif event.name == "link":
            if text:
                candidate.link = text
        elif event.name == "description":
            candidate.description = text
        elif event.name == "summary":
            if not candidate.description:
                candidate.description = text
        elif event.name in DATE_TAGS:
            # Atom <updated> only fills in when no publication date was seen
            if event.name != "updated" or not candidate.published_at:
                candidate.published_at = text
        else:
            return None

        self._text.clear()
        return None

    def _finish_item(self) -> Optional[Article]:
        candidate = self._candidate
        self.state = ParserState.OUTSIDE
        self.in_content_encoded = False
        self._reset_item()

        published = parse_date(candidate.published_at)
        if published is None:
            if candidate.published_at:
                logger.warning(
                    f"Unparseable date {candidate.published_at!r} in {self.feed_title}, "
                    f"treating '{candidate.title}' as published now"
                )
            else:
                logger.debug(f"No date on '{candidate.title}' in {self.feed_title}, using now")
            published = self.now()

        if published < self.cutoff:
            return None

        if self.require_content_encoded and not candidate.content_encoded:
            return None

        return Article(
            title=candidate.title,
            link=candidate.link,
            description=candidate.description,
            published_at=candidate.published_at,
            feed_title=self.feed_title,
            content_encoded=candidate.content_encoded,
        )

    def _reset_item(self) -> None:
        self._candidate = _Candidate()
        self._text.clear()
        self._depth = 0


_XML_DECLARATION = re.compile(
    rb"""^\s*<\?xml[^>]*?\bencoding\s*=\s*["']([A-Za-z][A-Za-z0-9._-]*)["']"""
)


def declared_encoding(head: bytes) -> Optional[str]:
    """Return the encoding named by a leading XML declaration, if any."""
    match = _XML_DECLARATION.match(head[:1024])
    if match is None:
        return None
    return match.group(1).decode("ascii")


def decode_document(
    raw: Union[bytes, str],
    encoding: Optional[str] = None,
    source_name: str = "<document>",
) -> Union[bytes, str]:
    """Decode an XML body to text when its encoding is known.

    The HTTP charset takes precedence over the XML declaration. Bodies with
    neither are returned unchanged so expat can detect UTF-8/UTF-16 itself.

    Args:
        raw: Document bytes (text is returned as is)
        encoding: Charset from the transport, if any
        source_name: Name used in log messages

    Returns:
        Decoded text, or the original bytes
    """
    if isinstance(raw, str):
        return raw

    encoding = encoding or declared_encoding(raw)
    if not encoding:
        return raw

    try:
        text = raw.decode(encoding, errors="replace")
    except LookupError:
        logger.warning(f"Unknown encoding {encoding!r} in {source_name}, parsing raw bytes")
        return raw

    return text.lstrip("\ufeff")


def _split_tag(tag: str) -> tuple[Optional[str], str]:
    """Split ElementTree's ``{namespace}local`` notation."""
    if tag.startswith("{"):
        namespace, _, name = tag[1:].partition("}")
        return namespace, name
    return None, tag


class _EventTarget:
    """ElementTree parser target forwarding callbacks to a state machine."""

    def __init__(self, machine: FeedStateMachine, articles: list[Article]):
        self.machine = machine
        self.articles = articles

    def _emit(self, event: ParseEvent) -> None:
        article = self.machine.feed(event)
        if article is not None:
            self.articles.append(article)

    def start(self, tag: str, attrib: dict) -> None:
        namespace, name = _split_tag(tag)
        attributes = {_split_tag(key)[1]: value for key, value in attrib.items()}
        self._emit(StartElement(name=name, namespace=namespace, attributes=attributes))

    def end(self, tag: str) -> None:
        namespace, name = _split_tag(tag)
        self._emit(EndElement(name=name, namespace=namespace))

    def data(self, content: str) -> None:
        self._emit(Text(content=content))

    def close(self) -> None:
        return None


@dataclass
class ParseResult:
    """Articles extracted from one feed body."""

    articles: list[Article] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def complete(self) -> bool:
        """Whether the whole document was consumed without a syntax error."""
        return self.error is None


class FeedParser:
    """Parser turning raw feed XML into recent articles."""

    def __init__(
        self,
        require_content_encoded: Optional[bool] = None,
        now: Optional[Callable[[], datetime]] = None,
        chunk_size: int = _CHUNK_SIZE,
    ):
        """Initialize feed parser.

        Args:
            require_content_encoded: Drop items without content:encoded HTML
            now: Clock used for items without a usable date
            chunk_size: Bytes handed to expat per feed() call
        """
        config = get_config()

        if require_content_encoded is None:
            require_content_encoded = config.aggregator.require_content_encoded

        self.require_content_encoded = require_content_encoded
        self.now = now
        self.chunk_size = chunk_size

    def parse(
        self,
        raw_xml: Union[bytes, str],
        feed_title: str,
        cutoff: datetime,
        encoding: Optional[str] = None,
    ) -> ParseResult:
        """Parse a feed body.

        Malformed XML stops parsing; the articles emitted before the error
        are kept and the error is reported on the result.

        Args:
            raw_xml: Feed document
            feed_title: Subscription title stamped on every article
            cutoff: Articles published before this instant are dropped
            encoding: Charset from the HTTP Content-Type, if any

        Returns:
            ParseResult with articles in document order
        """
        raw_xml = decode_document(raw_xml, encoding, source_name=feed_title)
        machine = FeedStateMachine(
            feed_title=feed_title,
            cutoff=cutoff,
            now=self.now,
            require_content_encoded=self.require_content_encoded,
        )
        result = ParseResult()
        parser = XMLParser(target=_EventTarget(machine, result.articles))

        try:
            for offset in range(0, len(raw_xml), self.chunk_size):
                parser.feed(raw_xml[offset:offset + self.chunk_size])
            parser.close()
        except (ParseError, ValueError) as e:
            # expat raises ValueError for encodings it cannot decode itself
            result.error = f"Malformed XML: {e}"
            logger.warning(
                f"Malformed XML in feed {feed_title}: {e} "
                f"(kept {len(result.articles)} articles)"
            )

        return result


def parse_feed(
    raw_xml: Union[bytes, str],
    feed_title: str,
    cutoff: datetime,
    require_content_encoded: bool = False,
) -> list[Article]:
    """Parse a feed body into the articles published at or after ``cutoff``.

    Args:
        raw_xml: Feed document
        feed_title: Subscription title stamped on every article
        cutoff: Articles published before this instant are dropped
        require_content_encoded: Drop items without content:encoded HTML

    Returns:
        Articles in document order
    """
    parser = FeedParser(require_content_encoded=require_content_encoded)
    return parser.parse(raw_xml, feed_title, cutoff).articles
