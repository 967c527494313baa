"""Tests for the Flask web layer."""

from datetime import timedelta

import httpx
import pytest

from conftest import NOW, opml, rss_feed, rss_item
from rss_aggregation.config import Config
from rss_aggregation.core.aggregator import AggregationService
from rss_aggregation.core.cache import ResultCache
from rss_aggregation.core.fetcher import FeedFetcher, FetchCoordinator
from rss_aggregation.core.parser import FeedParser
from rss_aggregation.models import Article, FeedDescriptor
from rss_aggregation.web import create_app
from rss_aggregation.web.serializers import article_to_dict, subscription_to_dict

ORIGIN = "http://localhost:4321"


def feed_handler(request: httpx.Request) -> httpx.Response:
    body = rss_feed(
        rss_item("Fresh", published=NOW, description="D", content="<p>C</p>"),
        rss_item("Old", published=NOW - timedelta(days=10)),
    )
    return httpx.Response(200, content=body, headers={"Content-Type": "text/xml"})


@pytest.fixture
def service(tmp_path):
    path = tmp_path / "rss.opml"
    path.write_text(opml('title="A" xmlUrl="http://x/a.xml" htmlUrl="http://x/"'))
    coordinator = FetchCoordinator(
        fetcher=FeedFetcher(transport=httpx.MockTransport(feed_handler)),
        cache=ResultCache(),
        parser=FeedParser(now=lambda: NOW),
    )
    return AggregationService(coordinator, opml_path=path, clock=lambda: NOW)


@pytest.fixture
def client(service):
    app = create_app(config=Config(), service=service)
    app.config["TESTING"] = True
    return app.test_client()


class TestSerializers:
    """Tests for serializer functions."""

    def test_subscription_to_dict(self):
        """Test OPML attribute names are used."""
        data = subscription_to_dict(
            FeedDescriptor(title="A", feed_url="http://x/a.xml", site_url="http://x/")
        )

        assert data == {"title": "A", "xmlUrl": "http://x/a.xml", "htmlUrl": "http://x/"}

    def test_article_to_dict(self):
        """Test article keys."""
        data = article_to_dict(Article(
            title="T",
            link="L",
            description="D",
            published_at="Sun, 18 Oct 2026 12:00:00 +0000",
            feed_title="A",
            content_encoded="<p>C</p>",
        ))

        assert data == {
            "title": "T",
            "link": "L",
            "description": "D",
            "pubDate": "Sun, 18 Oct 2026 12:00:00 +0000",
            "feedTitle": "A",
            "contentEncoded": "<p>C</p>",
        }


class TestSubscriptionsEndpoint:
    """Tests for /subscriptions and /opml."""

    @pytest.mark.parametrize("url", ["/subscriptions", "/opml"])
    def test_list(self, client, url):
        """Test the subscription list is returned as JSON."""
        response = client.get(url)

        assert response.status_code == 200
        assert response.get_json() == [
            {"title": "A", "xmlUrl": "http://x/a.xml", "htmlUrl": "http://x/"}
        ]

    def test_missing_opml(self, service, tmp_path):
        """Test a missing OPML file gives a plain-text 500."""
        service.opml_path = tmp_path / "missing.opml"
        client = create_app(config=Config(), service=service).test_client()

        response = client.get("/subscriptions")

        assert response.status_code == 500
        assert response.mimetype == "text/plain"
        assert response.get_data(as_text=True) == "Failed to open OPML file"


class TestArticlesEndpoint:
    """Tests for /articles."""

    def test_articles(self, client):
        """Test recent articles are returned as JSON."""
        response = client.get("/articles")

        assert response.status_code == 200
        data = response.get_json()
        assert len(data) == 1
        assert data[0]["title"] == "Fresh"
        assert data[0]["feedTitle"] == "A"
        assert data[0]["contentEncoded"] == "<p>C</p>"
        assert data[0]["description"] == "D"

    def test_articles_cached_between_requests(self, client, service):
        """Test the cache survives across requests."""
        client.get("/articles")

        assert "A" in service.cache
        assert client.get("/articles").get_json()[0]["title"] == "Fresh"

    def test_missing_opml(self, service, tmp_path):
        """Test a missing OPML file gives a plain-text 500."""
        service.opml_path = tmp_path / "missing.opml"
        client = create_app(config=Config(), service=service).test_client()

        response = client.get("/articles")

        assert response.status_code == 500
        assert response.get_data(as_text=True) == "Failed to get feeds"

    def test_unknown_route(self, client):
        """Test 404 handling."""
        assert client.get("/nope").status_code == 404


class TestCors:
    """Tests for CORS headers."""

    def test_allowed_origin(self, client):
        """Test the configured origin is echoed back."""
        response = client.get("/subscriptions", headers={"Origin": ORIGIN})

        assert response.headers["Access-Control-Allow-Origin"] == ORIGIN
        assert "Origin" in response.headers["Vary"]

    def test_other_origin(self, client):
        """Test unknown origins get no CORS headers."""
        response = client.get("/subscriptions", headers={"Origin": "http://evil.test"})

        assert "Access-Control-Allow-Origin" not in response.headers

    def test_preflight(self, client):
        """Test OPTIONS preflight carries methods, headers and max age."""
        response = client.options(
            "/articles",
            headers={"Origin": ORIGIN, "Access-Control-Request-Method": "GET"},
        )

        assert response.status_code == 200
        assert response.headers["Access-Control-Allow-Methods"] == "GET, POST"
        assert response.headers["Access-Control-Allow-Headers"] == "Content-Type, Accept"
        assert response.headers["Access-Control-Max-Age"] == "3600"

    def test_wildcard_origin(self, service):
        """Test a "*" origin allows everyone."""
        config = Config()
        config.web.cors_origins = ["*"]
        client = create_app(config=config, service=service).test_client()

        response = client.get("/subscriptions", headers={"Origin": "http://any.test"})

        assert response.headers["Access-Control-Allow-Origin"] == "*"


class TestCreateApp:
    """Tests for create_app wiring."""

    def test_service_built_from_config(self, tmp_path):
        """Test the app's service uses the config passed in, not the global one."""
        config = Config()
        config.fetcher.user_agent = "Custom/2.0"
        config.fetcher.timeout_seconds = 7
        config.fetcher.max_concurrent = 3
        config.aggregator.recent_days = 1
        config.subscriptions.opml_path = str(tmp_path / "rss.opml")

        app = create_app(config=config)
        service = app.extensions["rss_aggregation"]

        assert service.coordinator.fetcher.user_agent == "Custom/2.0"
        assert service.coordinator.fetcher.timeout_seconds == 7
        assert service.coordinator.max_concurrent == 3
        assert service.recent_days == 1
        assert service.opml_path == str(tmp_path / "rss.opml")

        service.close()
