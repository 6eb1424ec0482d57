"""
Syndication feed adapter.

Handles RSS 2.0, Atom and RDF (RSS 1.0) documents. The shape is detected
from the root element; anything unrecognised yields no articles.
"""

import logging
from typing import Optional, Union
from xml.etree import ElementTree

from newsfilter.errors import SourceFetchError
from newsfilter.models.domain import FeedConfig, Source, SourceKind
from newsfilter.sources.base import RawArticle, SourceAdapter
from newsfilter.sources.text import parse_timestamp, resolve_url, strip_markup, truncate

logger = logging.getLogger(__name__)

# XML namespaces
ATOM_NS = "{http://www.w3.org/2005/Atom}"
RDF_NS = "{http://www.w3.org/1999/02/22-rdf-syntax-ns#}"
RSS1_NS = "{http://purl.org/rss/1.0/}"
DC_NS = "{http://purl.org/dc/elements/1.1/}"
CONTENT_NS = "{http://purl.org/rss/1.0/modules/content/}"

SUMMARY_LIMIT = 1000


def _inner_text(elem: Optional[ElementTree.Element]) -> str:
    if elem is None:
        return ""
    return "".join(elem.itertext()).strip()


def _first_text(elem: ElementTree.Element, *tags: str) -> str:
    """Text of the first listed child that has any."""
    for tag in tags:
        text = _inner_text(elem.find(tag))
        if text:
            return text
    return ""


class FeedAdapter(SourceAdapter):
    """Fetches a single syndication feed and maps its items to RawArticle."""

    @property
    def kind(self) -> SourceKind:
        return SourceKind.FEED

    async def fetch(self, source: Source) -> list[RawArticle]:
        config: FeedConfig = source.config
        async with self._client() as client:
            response = await client.get(config.feed_url, headers={
                "User-Agent": "newsfilter/0.1 (feed reader)",
            })

        if not response.is_success:
            raise SourceFetchError(
                f"Failed to fetch feed: {response.status_code} {response.reason_phrase}"
            )

        articles = self.parse_feed(response.content, config.feed_url)
        logger.debug(f"Parsed {len(articles)} items from {config.feed_url}")
        return articles

    def parse_feed(self, document: Union[str, bytes], feed_url: str) -> list[RawArticle]:
        """Detect the feed shape and parse every item."""
        try:
            root = ElementTree.fromstring(document)
        except ElementTree.ParseError as e:
            logger.warning(f"Failed to parse feed {feed_url}: {e}")
            return []

        if root.tag == "rss":
            channel = root.find("channel")
            if channel is None:
                return []
            return self._parse_items(channel.findall("item"), feed_url, ns="")

        if root.tag == f"{ATOM_NS}feed":
            articles = []
            for entry in root.findall(f"{ATOM_NS}entry"):
                try:
                    articles.append(self._parse_atom_entry(entry, feed_url))
                except Exception as e:
                    logger.warning(f"Skipping malformed Atom entry in {feed_url}: {e}")
            return articles

        if root.tag == f"{RDF_NS}RDF":
            items = root.findall(f"{RSS1_NS}item")
            if items:
                return self._parse_items(items, feed_url, ns=RSS1_NS)
            return self._parse_items(root.findall("item"), feed_url, ns="")

        logger.info(f"Unrecognised feed shape <{root.tag}> at {feed_url}")
        return []

    def _parse_items(
        self,
        items: list[ElementTree.Element],
        feed_url: str,
        ns: str,
    ) -> list[RawArticle]:
        articles = []
        for item in items:
            try:
                articles.append(self._parse_rss_item(item, feed_url, ns))
            except Exception as e:
                logger.warning(f"Skipping malformed item in {feed_url}: {e}")
        return articles

    def _parse_rss_item(
        self,
        item: ElementTree.Element,
        feed_url: str,
        ns: str,
    ) -> RawArticle:
        """Parse one RSS 2.0 or RSS 1.0 item."""
        guid = _first_text(item, f"{ns}guid") or item.get(f"{RDF_NS}about", "").strip()
        link = _first_text(item, f"{ns}link") or guid
        url = resolve_url(link, feed_url)
        raw_title = _first_text(item, f"{ns}title")

        summary = strip_markup(
            _first_text(item, f"{ns}description", f"{CONTENT_NS}encoded")
        )
        author = _first_text(item, f"{ns}author", f"{DC_NS}creator") or None
        published = _first_text(item, f"{ns}pubDate", "pubDate", f"{DC_NS}date")

        return RawArticle(
            external_id=guid or url or raw_title,
            title=strip_markup(raw_title) or "Untitled",
            url=url,
            summary=truncate(summary, SUMMARY_LIMIT),
            author=author,
            published_at=parse_timestamp(published),
        )

    def _parse_atom_entry(self, entry: ElementTree.Element, feed_url: str) -> RawArticle:
        """Parse one Atom entry."""
        links = entry.findall(f"{ATOM_NS}link")
        link = ""
        for link_elem in links:
            if link_elem.get("rel", "alternate") == "alternate" and link_elem.get("href"):
                link = link_elem.get("href")
                break
        if not link and links:
            link = links[0].get("href", "")

        url = resolve_url(link, feed_url)
        entry_id = _first_text(entry, f"{ATOM_NS}id")
        raw_title = _first_text(entry, f"{ATOM_NS}title")
        summary = strip_markup(
            _first_text(entry, f"{ATOM_NS}summary", f"{ATOM_NS}content")
        )

        author = None
        author_elem = entry.find(f"{ATOM_NS}author")
        if author_elem is not None:
            author = _first_text(author_elem, f"{ATOM_NS}name") or None

        published = _first_text(entry, f"{ATOM_NS}published", f"{ATOM_NS}updated")

        return RawArticle(
            external_id=entry_id or url or raw_title,
            title=strip_markup(raw_title) or "Untitled",
            url=url,
            summary=truncate(summary, SUMMARY_LIMIT),
            author=author,
            published_at=parse_timestamp(published),
        )
