# tests/test_feeds.py
"""Tests for feed parsing, acquisition and discovery."""

import json
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer

import pytest

from hatsu.errors import NotFoundError, ParseError, TransportError
from hatsu.feeds.acquire import acquire, select_url
from hatsu.feeds.discovery import discover_feed, find_feed_links
from hatsu.feeds.fetch import HttpFetcher
from hatsu.feeds.json_feed import parse_json_feed, parse_json_feed_bytes
from hatsu.feeds.model import CanonicalFeed, CanonicalFeedItem, FeedDescriptor, is_absolute_uri, is_valid_url
from hatsu.feeds.xml_feed import parse_xml_feed, parse_xml_feed_bytes


class FakeFetch:
    """URL -> body mapping that records every request."""

    def __init__(self, responses=None):
        self.responses = responses or {}
        self.calls = []

    def __call__(self, url, accept=None):
        self.calls.append(url)
        response = self.responses.get(url)
        if response is None:
            raise TransportError(url, "HTTP 404")
        if isinstance(response, Exception):
            raise response
        return response


JSON_FEED = {
    "feed_url": "https://blog.example.com/feed.json",
    "next_url": None,
    "title": "Example Blog",
    "description": "Posts about things",
    "icon": "https://blog.example.com/icon.png",
    "language": "en",
    "items": [
        {
            "id": "https://blog.example.com/posts/2",
            "url": "https://blog.example.com/posts/2",
            "title": "Second",
            "summary": "The second post",
            "language": "en",
            "tags": ["python", None],
            "date_published": "2024-01-16T08:00:00Z",
            "date_modified": None,
        },
        {
            "id": "https://blog.example.com/posts/1",
            "url": None,
            "title": None,
            "summary": None,
            "language": None,
            "tags": [],
            "date_published": None,
            "date_modified": None,
        },
    ],
}

ATOM_FEED = b"""<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <id>https://atom.example.com/</id>
  <title>Atom Example</title>
  <subtitle>An Atom feed</subtitle>
  <icon>https://atom.example.com/icon.png</icon>
  <updated>2024-01-15T12:00:00Z</updated>
  <entry>
    <id>tag:atom.example.com,2024:1</id>
    <title>First entry</title>
    <link href="https://atom.example.com/1"/>
    <summary>Entry summary</summary>
    <category term="tech"/>
    <category term="news" label="Tech News"/>
    <published>2024-01-15T10:30:00Z</published>
    <updated>2024-01-15T12:00:00+01:00</updated>
  </entry>
  <entry>
    <id>tag:atom.example.com,2024:2</id>
    <title>Second entry</title>
    <updated>2024-01-16T09:00:00Z</updated>
  </entry>
</feed>
"""

RSS_FEED = b"""<?xml version="1.0" encoding="utf-8"?>
<rss version="2.0">
  <channel>
    <title>RSS Example</title>
    <link>https://rss.example.org/</link>
    <description>An RSS feed</description>
    <language>en</language>
    <item>
      <guid>https://rss.example.org/posts/1</guid>
      <title>Hello</title>
      <description>Hello world</description>
      <category>tech</category>
      <pubDate>Mon, 15 Jan 2024 10:30:00 GMT</pubDate>
    </item>
  </channel>
</rss>
"""

ATOM_WITHOUT_TITLE = b"""<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <id>https://atom.example.com/</id>
  <updated>2024-01-15T12:00:00Z</updated>
</feed>
"""


class TestCanonicalModel:
    """Tests for the canonical feed model."""

    def test_from_dict_matches_structure(self):
        """A canonical document decodes field by field."""
        feed = CanonicalFeed.from_dict(JSON_FEED)

        assert feed.feed_url == "https://blog.example.com/feed.json"
        assert feed.title == "Example Blog"
        assert feed.language == "en"
        assert feed.item_ids() == [
            "https://blog.example.com/posts/2",
            "https://blog.example.com/posts/1",
        ]
        assert feed.items[0].tags == ["python", None]

    def test_to_dict_reproduces_canonical_document(self):
        """to_dict() emits the same shape from_dict() accepts."""
        assert CanonicalFeed.from_dict(JSON_FEED).to_dict() == JSON_FEED

    def test_absent_optional_fields_are_none(self):
        """Missing optional fields stay None instead of empty strings."""
        item = CanonicalFeedItem.from_dict({"id": "x"})

        assert item.url is None
        assert item.title is None
        assert item.summary is None
        assert item.tags == []

    def test_integer_item_id_becomes_string(self):
        """Numeric ids are accepted as strings."""
        assert CanonicalFeedItem.from_dict({"id": 42}).id == "42"

    def test_item_without_id_fails(self):
        """Items need a stable identifier."""
        with pytest.raises(ParseError):
            CanonicalFeedItem.from_dict({"title": "no id"})

    def test_missing_title_fails(self):
        """A feed without a title is rejected."""
        data = dict(JSON_FEED)
        del data["title"]
        with pytest.raises(ParseError):
            CanonicalFeed.from_dict(data)

    def test_empty_title_fails(self):
        """An empty title is treated as missing."""
        with pytest.raises(ParseError):
            CanonicalFeed.from_dict(dict(JSON_FEED, title=""))

    def test_content_hash_tracks_content(self):
        """Editing an item changes its content hash, not its id."""
        a = CanonicalFeedItem(id="1", title="Before")
        b = CanonicalFeedItem(id="1", title="After")

        assert a.content_hash == CanonicalFeedItem(id="1", title="Before").content_hash
        assert a.content_hash != b.content_hash

    def test_is_valid_url(self):
        """Only absolute http(s) URLs are valid."""
        assert is_valid_url("https://example.com/feed")
        assert not is_valid_url("urn:uuid:1234")
        assert not is_valid_url("/relative")
        assert not is_valid_url(None)

    def test_is_absolute_uri(self):
        """Feed ids accept any scheme but still need one."""
        assert is_absolute_uri("https://example.com/feed")
        assert is_absolute_uri("urn:uuid:1234")
        assert is_absolute_uri("tag:example.com,2024:feed")
        assert not is_absolute_uri("not a url")
        assert not is_absolute_uri("/relative")
        assert not is_absolute_uri("urn:")
        assert not is_absolute_uri(None)


class TestJsonFeedParser:
    """Tests for the JSON Feed parser."""

    def test_round_trip(self):
        """Parsing a canonical body equals decoding it structurally."""
        body = json.dumps(JSON_FEED).encode()
        fetch = FakeFetch({"https://blog.example.com/feed.json": body})

        feed = parse_json_feed("https://blog.example.com/feed.json", fetch)

        assert feed == CanonicalFeed.from_dict(json.loads(body))

    def test_missing_feed_url_uses_source(self):
        """A document without feed_url is identified by where it came from."""
        data = dict(JSON_FEED)
        del data["feed_url"]
        feed = parse_json_feed_bytes(json.dumps(data).encode(), "https://blog.example.com/f.json")

        assert feed.feed_url == "https://blog.example.com/f.json"

    def test_invalid_json(self):
        """A malformed body is a ParseError."""
        with pytest.raises(ParseError):
            parse_json_feed_bytes(b"{not json", "https://blog.example.com/feed.json")

    def test_non_object_body(self):
        """A JSON array is not a feed."""
        with pytest.raises(ParseError):
            parse_json_feed_bytes(b"[]", "https://blog.example.com/feed.json")

    def test_missing_title(self):
        """A document without a title fails instead of producing an empty title."""
        data = dict(JSON_FEED)
        del data["title"]
        with pytest.raises(ParseError):
            parse_json_feed_bytes(json.dumps(data).encode(), "https://blog.example.com/feed.json")

    def test_items_must_be_list(self):
        """items must be a list."""
        data = dict(JSON_FEED, items={"id": "1"})
        with pytest.raises(ParseError):
            parse_json_feed_bytes(json.dumps(data).encode(), "https://blog.example.com/feed.json")

    def test_transport_error_propagates(self):
        """Fetch failures are not converted."""
        with pytest.raises(TransportError):
            parse_json_feed("https://blog.example.com/missing.json", FakeFetch())


class TestXmlFeedParser:
    """Tests for the Atom/RSS parser."""

    def test_atom_feed_fields(self):
        """Atom feed metadata maps onto the canonical feed."""
        feed = parse_xml_feed_bytes(ATOM_FEED, "https://atom.example.com/atom.xml")

        assert feed.feed_url == "https://atom.example.com/"
        assert feed.title == "Atom Example"
        assert feed.description == "An Atom feed"
        assert feed.icon == "https://atom.example.com/icon.png"
        assert feed.next_url is None

    def test_atom_entries(self):
        """Entries keep their ids and order; URLs are left unset."""
        feed = parse_xml_feed_bytes(ATOM_FEED, "https://atom.example.com/atom.xml")

        assert feed.item_ids() == ["tag:atom.example.com,2024:1", "tag:atom.example.com,2024:2"]
        first = feed.items[0]
        assert first.url is None
        assert first.title == "First entry"
        assert first.summary == "Entry summary"

    def test_tag_label_fallback(self):
        """Categories use their label, falling back to the term."""
        feed = parse_xml_feed_bytes(ATOM_FEED, "https://atom.example.com/atom.xml")

        assert feed.items[0].tags == ["tech", "Tech News"]
        assert feed.items[1].tags == []

    def test_timestamps_are_utc_seconds(self):
        """Dates are reformatted to ISO-8601 seconds in UTC."""
        feed = parse_xml_feed_bytes(ATOM_FEED, "https://atom.example.com/atom.xml")

        assert feed.items[0].date_published == "2024-01-15T10:30:00Z"
        assert feed.items[0].date_modified == "2024-01-15T11:00:00Z"
        assert feed.items[1].date_published is None
        assert feed.items[1].date_modified == "2024-01-16T09:00:00Z"

    def test_rss_feed(self):
        """RSS channels are identified by their link."""
        fetch = FakeFetch({"https://rss.example.org/rss.xml": RSS_FEED})
        feed = parse_xml_feed("https://rss.example.org/rss.xml", fetch)

        assert feed.feed_url == "https://rss.example.org/"
        assert feed.title == "RSS Example"
        assert feed.description == "An RSS feed"
        assert feed.language == "en"
        assert feed.icon is None

        item = feed.items[0]
        assert item.id == "https://rss.example.org/posts/1"
        assert item.summary == "Hello world"
        assert item.tags == ["tech"]
        assert item.date_published == "2024-01-15T10:30:00Z"

    def test_missing_title(self):
        """A feed without a title fails acquisition."""
        with pytest.raises(ParseError):
            parse_xml_feed_bytes(ATOM_WITHOUT_TITLE, "https://atom.example.com/atom.xml")

    @pytest.mark.parametrize("feed_id", [
        "urn:uuid:60a76c80-d399-11d9-b93C-0003939e0af6",
        "tag:blogger.com,1999:blog-123",
    ])
    def test_feed_id_may_be_any_uri(self, feed_id):
        """Atom ids are URIs, not necessarily fetchable URLs."""
        body = ATOM_FEED.replace(b"<id>https://atom.example.com/</id>", f"<id>{feed_id}</id>".encode())

        feed = parse_xml_feed_bytes(body, "https://atom.example.com/atom.xml")

        assert feed.feed_url == feed_id
        assert CanonicalFeed.from_dict(feed.to_dict()) == feed

    def test_feed_id_must_be_uri(self):
        """A feed id that is not an absolute URI is fatal."""
        body = ATOM_FEED.replace(b"<id>https://atom.example.com/</id>", b"<id>not a url</id>")
        with pytest.raises(ParseError):
            parse_xml_feed_bytes(body, "https://atom.example.com/atom.xml")

    def test_not_a_feed(self):
        """Garbage is a ParseError."""
        with pytest.raises(ParseError):
            parse_xml_feed_bytes(b"this is not a feed", "https://atom.example.com/atom.xml")


class TestAcquire:
    """Tests for the acquisition dispatcher."""

    def test_no_url_is_not_found(self):
        """An empty descriptor fails without touching the network."""
        fetch = FakeFetch()
        with pytest.raises(NotFoundError) as exc:
            acquire(FeedDescriptor(), "blog.example.com", fetch)

        assert "Feed Url" in str(exc.value)
        assert "blog.example.com" in str(exc.value)
        assert fetch.calls == []

    def test_json_has_priority(self):
        """The JSON Feed URL is fetched whenever it is present."""
        fetch = FakeFetch({"https://blog.example.com/feed.json": json.dumps(JSON_FEED).encode()})
        descriptor = FeedDescriptor(
            json="https://blog.example.com/feed.json",
            atom="https://atom.example.com/atom.xml",
            rss="https://rss.example.org/rss.xml",
        )

        feed = acquire(descriptor, "blog.example.com", fetch)

        assert feed.title == "Example Blog"
        assert fetch.calls == ["https://blog.example.com/feed.json"]

    def test_atom_before_rss(self):
        """Atom is preferred over RSS."""
        fetch = FakeFetch({"https://atom.example.com/atom.xml": ATOM_FEED})
        descriptor = FeedDescriptor(
            atom="https://atom.example.com/atom.xml",
            rss="https://rss.example.org/rss.xml",
        )

        feed = acquire(descriptor, "atom.example.com", fetch)

        assert feed.title == "Atom Example"
        assert fetch.calls == ["https://atom.example.com/atom.xml"]

    def test_rss_only(self):
        """RSS is used when it is the only URL."""
        fetch = FakeFetch({"https://rss.example.org/rss.xml": RSS_FEED})
        feed = acquire(FeedDescriptor(rss="https://rss.example.org/rss.xml"), "rss", fetch)

        assert feed.title == "RSS Example"

    def test_no_fallback_on_failure(self):
        """A failing JSON Feed does not fall back to Atom."""
        fetch = FakeFetch({"https://atom.example.com/atom.xml": ATOM_FEED})
        descriptor = FeedDescriptor(
            json="https://blog.example.com/feed.json",
            atom="https://atom.example.com/atom.xml",
        )

        with pytest.raises(TransportError):
            acquire(descriptor, "blog.example.com", fetch)
        assert fetch.calls == ["https://blog.example.com/feed.json"]

    def test_select_url(self):
        """select_url reports the chosen format."""
        assert select_url(FeedDescriptor(rss="https://r/")) == ("rss", "https://r/")
        assert select_url(FeedDescriptor()) is None


HOME_PAGE = b"""<!doctype html>
<html><head>
  <title>Blog</title>
  <link rel="stylesheet" href="/style.css">
  <link rel="alternate" type="application/rss+xml" href="/rss.xml">
  <link rel="alternate" type="application/atom+xml" href="https://blog.example.com/atom.xml">
  <link rel="alternate" type="application/feed+json" href="feed.json">
  <link rel="alternate" type="application/rss+xml" href="/other.xml">
</head><body></body></html>
"""


class TestDiscovery:
    """Tests for feed discovery."""

    def test_find_feed_links(self):
        """Links are resolved against the page and the first of each type wins."""
        feed = find_feed_links(HOME_PAGE, "https://blog.example.com/")

        assert feed.json == "https://blog.example.com/feed.json"
        assert feed.atom == "https://blog.example.com/atom.xml"
        assert feed.rss == "https://blog.example.com/rss.xml"

    def test_discover_feed(self):
        """The handle's home page is fetched."""
        fetch = FakeFetch({"https://blog.example.com/": HOME_PAGE})
        feed = discover_feed("blog.example.com", fetch)

        assert fetch.calls == ["https://blog.example.com/"]
        assert not feed.is_empty

    def test_no_links_is_not_found(self):
        """A page advertising no feed fails discovery."""
        fetch = FakeFetch({"https://plain.example.com/": b"<html><head></head></html>"})
        with pytest.raises(NotFoundError):
            discover_feed("plain.example.com", fetch)

    def test_unreachable_site(self):
        """Transport errors propagate."""
        with pytest.raises(TransportError):
            discover_feed("down.example.com", FakeFetch())


class _FeedHandler(BaseHTTPRequestHandler):
    seen_headers = []

    def do_GET(self):
        self.seen_headers.append(self.headers)
        if self.path != "/feed.json":
            self.send_error(404)
            return
        body = json.dumps(JSON_FEED).encode()
        self.send_response(200)
        self.send_header("Content-Type", "application/feed+json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args):
        pass


@pytest.fixture
def feed_server():
    """Serve JSON_FEED on a local port."""
    _FeedHandler.seen_headers = []
    server = HTTPServer(("127.0.0.1", 0), _FeedHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{server.server_address[1]}"
    server.shutdown()
    server.server_close()


class TestHttpFetcher:
    """Test the urllib-based fetcher."""

    def test_fetch(self, feed_server):
        """Bodies are returned with the configured headers sent."""
        fetch = HttpFetcher(timeout=5, user_agent="hatsu-test/1.0")

        body = fetch(f"{feed_server}/feed.json", accept="application/feed+json")

        assert json.loads(body)["title"] == "Example Blog"
        headers = _FeedHandler.seen_headers[0]
        assert headers["User-Agent"] == "hatsu-test/1.0"
        assert headers["Accept"] == "application/feed+json"

    def test_http_error(self, feed_server):
        """Non-2xx responses are transport errors."""
        with pytest.raises(TransportError) as exc_info:
            HttpFetcher(timeout=5)(f"{feed_server}/missing")
        assert exc_info.value.reason == "HTTP 404"

    def test_malformed_url(self):
        """URLs urllib cannot open are transport errors."""
        with pytest.raises(TransportError):
            HttpFetcher(timeout=5)("not-a-url")
