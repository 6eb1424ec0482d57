"""
Web page adapter.

Harvests the links on a page and asks the model which of them are
articles. Used for sites that publish no feed.
"""
import logging
from typing import Optional

from bs4 import BeautifulSoup

from newsfilter.errors import SourceFetchError
from newsfilter.models.domain import PageConfig, Source, SourceKind
from newsfilter.services.llm import ModelClient, extract_json_array
from newsfilter.sources.base import RawArticle, SourceAdapter
from newsfilter.sources.text import (
    collapse_whitespace,
    is_http_url,
    parse_timestamp,
    resolve_url,
)

logger = logging.getLogger(__name__)

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}

SKIPPED_PREFIXES = ("mailto:", "javascript:", "tel:")
CONTEXT_BLOCKS = ["article", "li", "div", "section"]
MIN_LINK_TEXT = 5
CONTEXT_LIMIT = 500
PROMPT_CONTEXT_LIMIT = 300


class PageAdapter(SourceAdapter):
    """Extracts article links from a plain page with help from the model."""

    def __init__(self, model: ModelClient, **kwargs):
        super().__init__(**kwargs)
        self.model = model

    @property
    def kind(self) -> SourceKind:
        return SourceKind.PAGE

    async def fetch(self, source: Source) -> list[RawArticle]:
        config: PageConfig = source.config
        async with self._client(headers=BROWSER_HEADERS) as client:
            response = await client.get(config.page_url)

        if not response.is_success:
            raise SourceFetchError(
                f"Failed to fetch page: {response.status_code} {response.reason_phrase}"
            )

        links = extract_links(response.text, config.page_url)
        if not links:
            logger.info(f"No candidate links on {config.page_url}")
            return []

        reply = await self.model.complete(build_link_prompt(config.page_url, links))
        return parse_link_reply(reply, allowed_urls={link["href"] for link in links})


def extract_links(html: str, page_url: str) -> list[dict]:
    """Collect unique http(s) links with their text and surrounding block text."""
    soup = BeautifulSoup(html, "html.parser")
    links: list[dict] = []
    seen: set[str] = set()

    for anchor in soup.find_all("a", href=True):
        href = anchor["href"].strip()
        if not href or href == "#" or href.lower().startswith(SKIPPED_PREFIXES):
            continue

        text = collapse_whitespace(anchor.get_text(" "))
        if len(text) < MIN_LINK_TEXT:
            continue

        resolved = resolve_url(href, page_url)
        if not is_http_url(resolved) or resolved in seen:
            continue
        seen.add(resolved)

        block = anchor.find_parent(CONTEXT_BLOCKS)
        context = collapse_whitespace(block.get_text(" "))[:CONTEXT_LIMIT] if block else text
        links.append({"href": resolved, "text": text, "context": context or text})

    return links


def build_link_prompt(page_url: str, links: list[dict]) -> str:
    link_list = "\n\n".join(
        f"[{i}] URL: {link['href']}\n"
        f"    Link text: {link['text']}\n"
        f"    Context: {link['context'][:PROMPT_CONTEXT_LIMIT]}"
        for i, link in enumerate(links)
    )

    return f"""Below is a list of links extracted from {page_url}. Identify which ones are links to actual articles, blog posts, or news items (not navigation, category pages, author pages, social media, etc.).

For each article link, return a JSON object with:
- "index": the link index number
- "title": the article title (clean it up from the link text)
- "url": the URL exactly as shown
- "summary": extract a summary from the context if available, or null
- "published_at": extract the date in ISO 8601 format if visible in the context, or null

Return ONLY a JSON array. If no articles are found, return [].

Links:
{link_list}"""


def parse_link_reply(reply: str, allowed_urls: Optional[set[str]] = None) -> list[RawArticle]:
    """
    Map the model's selection to RawArticle. Unusable output gives [].

    Only http(s) URLs are kept, and when `allowed_urls` is given only the
    links that were actually harvested from the page.
    """
    try:
        items = extract_json_array(reply)
    except ValueError as e:
        logger.warning(f"Page extraction reply not usable: {e}")
        return []

    articles = []
    for item in items:
        if not isinstance(item, dict):
            continue
        title = _as_text(item.get("title"))
        url = _as_text(item.get("url"))
        if not title or not url or not is_http_url(url):
            continue
        if allowed_urls is not None and url not in allowed_urls:
            logger.debug(f"Dropping link not found on the page: {url}")
            continue
        articles.append(RawArticle(
            external_id=url,
            title=title,
            url=url,
            summary=_as_text(item.get("summary")) or None,
            published_at=parse_timestamp(_as_text(item.get("published_at"))),
        ))
    return articles


def _as_text(value) -> Optional[str]:
    if isinstance(value, str):
        return value.strip()
    return None
