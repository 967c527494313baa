"""Unit tests for the OPML subscription loader."""

import io

import pytest

from conftest import opml
from rss_aggregation.core.subscriptions import load_subscriptions, parse_subscriptions
from rss_aggregation.exceptions import SubscriptionParseError, SubscriptionSourceError
from rss_aggregation.models import FeedDescriptor


@pytest.fixture
def opml_file(tmp_path):
    """Write an OPML document and return its path."""

    def _write(content: str):
        path = tmp_path / "rss.opml"
        path.write_text(content, encoding="utf-8")
        return path

    return _write


class TestLoadSubscriptions:
    """Tests for load_subscriptions."""

    def test_loads_in_document_order(self, opml_file):
        """Test every outline with xmlUrl is returned in order."""
        path = opml_file(opml(
            'title="A" xmlUrl="http://x/a.xml" htmlUrl="http://x/a"',
            'title="B" xmlUrl="http://x/b.xml" htmlUrl="http://x/b"',
            'title="C" xmlUrl="http://x/c.xml"',
        ))

        subscriptions = load_subscriptions(path)

        assert [s.title for s in subscriptions] == ["A", "B", "C"]
        assert subscriptions[0] == FeedDescriptor(
            title="A", feed_url="http://x/a.xml", site_url="http://x/a"
        )
        assert subscriptions[2].site_url == ""

    def test_outline_without_xml_url_skipped(self, opml_file):
        """Test category outlines and empty xmlUrl are not subscriptions."""
        path = opml_file(opml(
            'title="Folder" text="Folder"',
            'title="Empty" xmlUrl=""',
            'title="Blank" xmlUrl="   "',
            'title="Real" xmlUrl="http://x/real.xml"',
        ))

        subscriptions = load_subscriptions(path)

        assert [s.title for s in subscriptions] == ["Real"]

    def test_nested_outlines(self, opml_file):
        """Test outlines inside category outlines are found."""
        path = opml_file(
            '<opml version="2.0"><body>'
            '<outline text="Tech">'
            '<outline title="Inner" xmlUrl="http://x/inner.xml"/>'
            "</outline>"
            '<outline title="Outer" xmlUrl="http://x/outer.xml"/>'
            "</body></opml>"
        )

        subscriptions = load_subscriptions(path)

        assert [s.title for s in subscriptions] == ["Inner", "Outer"]

    def test_text_attribute_as_title_fallback(self, opml_file):
        """Test outlines exported without a title attribute."""
        path = opml_file(opml('text="Only text" xmlUrl="http://x/t.xml"'))

        subscriptions = load_subscriptions(path)

        assert subscriptions[0].title == "Only text"

    def test_no_deduplication(self, opml_file):
        """Test duplicate outlines are returned as-is."""
        path = opml_file(opml(
            'title="A" xmlUrl="http://x/a.xml"',
            'title="A" xmlUrl="http://x/a.xml"',
        ))

        assert len(load_subscriptions(path)) == 2

    def test_count_matches_outlines_with_url(self, opml_file):
        """Test K outlines with xmlUrl give exactly K descriptors."""
        outlines = [f'title="Feed {i}" xmlUrl="http://x/{i}.xml"' for i in range(25)]
        outlines.insert(5, 'text="Category"')
        path = opml_file(opml(*outlines))

        subscriptions = load_subscriptions(path)

        assert len(subscriptions) == 25
        assert [s.title for s in subscriptions] == [f"Feed {i}" for i in range(25)]

    def test_missing_file(self, tmp_path):
        """Test an unreadable source raises SubscriptionSourceError."""
        with pytest.raises(SubscriptionSourceError) as exc_info:
            load_subscriptions(tmp_path / "missing.opml")

        assert "missing.opml" in str(exc_info.value)

    def test_default_path_from_config(self, tmp_path, monkeypatch):
        """Test the configured OPML path is used when none is given."""
        monkeypatch.chdir(tmp_path)
        (tmp_path / "public").mkdir()
        (tmp_path / "public" / "rss.opml").write_text(opml('title="D" xmlUrl="http://x/d.xml"'))

        subscriptions = load_subscriptions()

        assert [s.title for s in subscriptions] == ["D"]

    def test_malformed_returns_partial(self, opml_file):
        """Test malformed XML keeps the descriptors read before the error."""
        path = opml_file(
            '<opml version="2.0"><body>'
            '<outline title="Good" xmlUrl="http://x/good.xml"/>'
            '<outline title="Bad" xmlUrl="http://x/bad.xml">'
            "</body></opml>"
        )

        subscriptions = load_subscriptions(path)

        assert [s.title for s in subscriptions] == ["Good", "Bad"]

    def test_malformed_before_any_outline(self, opml_file):
        """Test garbage input gives an empty list in permissive mode."""
        path = opml_file("this is not xml")

        assert load_subscriptions(path) == []

    def test_malformed_strict(self, opml_file):
        """Test strict mode raises SubscriptionParseError."""
        path = opml_file(
            '<opml><body><outline title="Good" xmlUrl="http://x/good.xml"/>'
            "<broken></body></opml>"
        )

        with pytest.raises(SubscriptionParseError) as exc_info:
            load_subscriptions(path, strict=True)

        assert exc_info.value.parsed_count == 1


class TestParseSubscriptions:
    """Tests for parse_subscriptions on streams."""

    def test_from_stream(self):
        """Test reading from an in-memory binary stream."""
        stream = io.BytesIO(opml('title="S" xmlUrl="http://x/s.xml"').encode("utf-8"))

        subscriptions = parse_subscriptions(stream)

        assert subscriptions == [FeedDescriptor(title="S", feed_url="http://x/s.xml")]

    def test_load_accepts_stream(self):
        """Test load_subscriptions accepts file objects."""
        stream = io.BytesIO(opml('title="S" xmlUrl="http://x/s.xml"').encode("utf-8"))

        assert len(load_subscriptions(stream)) == 1

    def test_read_error(self):
        """Test an OSError while reading becomes SubscriptionSourceError."""

        class BrokenStream(io.RawIOBase):
            def readable(self):
                return True

            def read(self, size=-1):
                raise OSError("disk on fire")

        with pytest.raises(SubscriptionSourceError):
            parse_subscriptions(BrokenStream(), source_name="broken")

    @pytest.mark.parametrize("encoding", ["shift_jis", "gbk", "euc-kr"])
    def test_declared_multibyte_encoding(self, encoding):
        """Test OPML in an encoding expat cannot decode by itself."""
        titles = {"shift_jis": "ニュース", "gbk": "新闻", "euc-kr": "뉴스"}
        document = (
            f'<?xml version="1.0" encoding="{encoding}"?>'
            '<opml version="2.0"><body>'
            f'<outline title="{titles[encoding]}" xmlUrl="http://x/a.xml"/>'
            '<outline title="B" xmlUrl="http://x/b.xml"/>'
            "</body></opml>"
        )

        subscriptions = parse_subscriptions(io.BytesIO(document.encode(encoding)))

        assert [s.title for s in subscriptions] == [titles[encoding], "B"]

    def test_multibyte_file_through_loader(self, tmp_path):
        """Test the path loader handles declared encodings too."""
        path = tmp_path / "jp.opml"
        path.write_bytes((
            '<?xml version="1.0" encoding="shift_jis"?>'
            '<opml version="2.0"><body><outline title="日本" xmlUrl="http://x/jp.xml"/></body></opml>'
        ).encode("shift_jis"))

        subscriptions = load_subscriptions(path)

        assert subscriptions == [FeedDescriptor(title="日本", feed_url="http://x/jp.xml")]
