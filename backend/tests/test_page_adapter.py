"""
Tests for the model-assisted page adapter.
"""
import asyncio
import json
from datetime import datetime

import httpx
import pytest

from helpers import StubModel
from newsfilter.errors import ModelCallError, SourceFetchError
from newsfilter.models.domain import PageConfig, Source, SourceKind
from newsfilter.sources.page import PageAdapter, extract_links, parse_link_reply


PAGE_URL = "https://news.example.com/blog/"

SAMPLE_PAGE = """<!doctype html>
<html><body>
  <nav>
    <a href="/">Home</a>
    <a href="#">Top of page</a>
    <a href="mailto:editor@example.com">Email the editor</a>
    <a href="javascript:void(0)">Open the menu</a>
  </nav>
  <ul>
    <li>
      <a href="/blog/rust-in-production">Rust in production, one year later</a>
      <span>March 3, 2024 - Lessons from running Rust services.</span>
    </li>
    <li>
      <a href="https://other.example.org/post">An external write-up</a>
    </li>
    <li>
      <a href="/blog/rust-in-production">Rust in production (again)</a>
    </li>
  </ul>
  <a href="ftp://files.example.com/archive">Archive on FTP</a>
</body></html>
"""


def page_source() -> Source:
    return Source(id=3, name="Blog", kind=SourceKind.PAGE, config=PageConfig(page_url=PAGE_URL))


def page_transport(status: int = 200, body: str = SAMPLE_PAGE) -> httpx.MockTransport:
    return httpx.MockTransport(lambda request: httpx.Response(status, text=body))


class TestLinkExtraction:
    """Tests for link harvesting."""

    def test_extract_links(self):
        links = extract_links(SAMPLE_PAGE, PAGE_URL)

        assert [link["href"] for link in links] == [
            "https://news.example.com/blog/rust-in-production",
            "https://other.example.org/post",
        ]

    def test_context_comes_from_enclosing_block(self):
        first = extract_links(SAMPLE_PAGE, PAGE_URL)[0]

        assert first["text"] == "Rust in production, one year later"
        assert "Lessons from running Rust services." in first["context"]

    def test_context_is_limited(self):
        page = f'<div><a href="/a">A long enough link</a> {"x" * 2000}</div>'

        link = extract_links(page, PAGE_URL)[0]

        assert len(link["context"]) == 500


class TestLinkReply:
    """Tests for reading the model's selection."""

    def test_parse_reply(self):
        reply = "Here you go:\n" + json.dumps([
            {"index": 0, "title": "Rust in production", "url": "https://news.example.com/blog/rust-in-production",
             "summary": "Lessons learned", "published_at": "2024-03-03"},
            {"index": 1, "title": "", "url": "https://other.example.org/post"},
            {"index": 2, "title": "No url"},
        ])

        articles = parse_link_reply(reply)

        assert len(articles) == 1
        article = articles[0]
        assert article.external_id == article.url
        assert article.summary == "Lessons learned"
        assert article.published_at == datetime(2024, 3, 3)

    def test_non_http_urls_are_dropped(self):
        reply = json.dumps([
            {"title": "Open the menu", "url": "javascript:void(0)"},
            {"title": "Email the editor", "url": "mailto:editor@example.com"},
            {"title": "Relative link", "url": "/blog/post"},
            {"title": "Kept", "url": "https://news.example.com/blog/kept"},
        ])

        assert [a.url for a in parse_link_reply(reply)] == ["https://news.example.com/blog/kept"]

    def test_only_harvested_urls_are_kept(self):
        reply = json.dumps([
            {"title": "Real", "url": "https://news.example.com/blog/real"},
            {"title": "Invented", "url": "https://news.example.com/blog/invented"},
        ])

        articles = parse_link_reply(reply, allowed_urls={"https://news.example.com/blog/real"})

        assert [a.title for a in articles] == ["Real"]

    def test_unusable_reply_gives_nothing(self):
        assert parse_link_reply("I could not find any articles.") == []
        assert parse_link_reply("[{not json}]") == []


class TestPageFetch:
    """Tests for the full page fetch."""

    def test_fetch_sends_links_to_model(self):
        model = StubModel(reply=json.dumps([
            {"index": 0, "title": "Rust in production", "url": "https://news.example.com/blog/rust-in-production"},
        ]))
        adapter = PageAdapter(model, transport=page_transport())

        articles = asyncio.run(adapter.fetch(page_source()))

        assert [a.title for a in articles] == ["Rust in production"]
        assert len(model.prompts) == 1
        assert "[0] URL: https://news.example.com/blog/rust-in-production" in model.prompts[0]
        assert "[1] URL: https://other.example.org/post" in model.prompts[0]

    def test_fetch_drops_links_not_on_page(self):
        model = StubModel(reply=json.dumps([
            {"index": 0, "title": "Rust in production", "url": "https://news.example.com/blog/rust-in-production"},
            {"index": 9, "title": "Made up", "url": "https://news.example.com/blog/made-up"},
        ]))
        adapter = PageAdapter(model, transport=page_transport())

        articles = asyncio.run(adapter.fetch(page_source()))

        assert [a.url for a in articles] == ["https://news.example.com/blog/rust-in-production"]

    def test_page_without_links_skips_model(self):
        model = StubModel()
        adapter = PageAdapter(model, transport=page_transport(body="<html><body><p>Nothing</p></body></html>"))

        assert asyncio.run(adapter.fetch(page_source())) == []
        assert model.prompts == []

    def test_http_error_is_fatal(self):
        adapter = PageAdapter(StubModel(), transport=page_transport(status=403))

        with pytest.raises(SourceFetchError, match="Failed to fetch page: 403"):
            asyncio.run(adapter.fetch(page_source()))

    def test_model_failure_is_fatal(self):
        adapter = PageAdapter(StubModel(reply=ModelCallError("boom")), transport=page_transport())

        with pytest.raises(ModelCallError):
            asyncio.run(adapter.fetch(page_source()))
