# File: tests/test_sitemap.py
from __future__ import annotations

from collections.abc import AsyncIterator
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from aiohttp import web

from html_cache.errors import SitemapError
from html_cache.parser.sitemap_parser import fetch_sitemap, parse_sitemap

SITEMAP = """<?xml version="1.0" encoding="UTF-8"?>
<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
  <url><loc>https://x/a</loc><lastmod>2024-01-01</lastmod></url>
  <url><loc> https://x/b </loc><lastmod>2024-03-05T10:20:30+00:00</lastmod></url>
  <url><loc>https://x/c</loc></url>
  <url><loc>https://x/d</loc><lastmod>yesterday</lastmod></url>
  <url><loc></loc><lastmod>2024-01-01</lastmod></url>
  <url><loc>https://x/a</loc><lastmod>2025-01-01</lastmod></url>
</urlset>
"""


def test_parse_sitemap_entries():
    before = datetime.now()
    entries = parse_sitemap(SITEMAP)

    assert [e.uri for e in entries] == ["https://x/a", "https://x/b", "https://x/c", "https://x/d"]
    assert entries[0].last_modified == datetime(2024, 1, 1)
    assert entries[1].last_modified == datetime(2024, 3, 5, 10, 20, 30, tzinfo=timezone.utc)
    for missing in entries[2:]:
        assert before - timedelta(seconds=1) <= missing.last_modified <= datetime.now()


def test_parse_sitemap_without_namespace():
    entries = parse_sitemap("<urlset><url><loc>https://x/a</loc></url></urlset>")
    assert [e.uri for e in entries] == ["https://x/a"]


def test_parse_empty_sitemap():
    assert parse_sitemap("") == []
    assert parse_sitemap(b"<urlset/>") == []


async def _serve_app(app: web.Application, port: int) -> AsyncIterator[str]:
    """Start *app* on *port*, yield base URL, ensure cleanup."""
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "localhost", port)
    await site.start()
    try:
        yield f"http://localhost:{port}"
    finally:
        await runner.cleanup()


@pytest_asyncio.fixture
async def sitemap_server(unused_tcp_port: int) -> AsyncIterator[str]:
    app = web.Application()

    async def handle_sitemap(_):
        return web.Response(text=SITEMAP, content_type="application/xml")

    app.router.add_get("/sitemap.xml", handle_sitemap)

    async for url in _serve_app(app, unused_tcp_port):
        yield url


@pytest.mark.asyncio()
async def test_fetch_sitemap(sitemap_server: str):
    entries = await fetch_sitemap(sitemap_server + "/", timeout=5)
    assert len(entries) == 4


@pytest.mark.asyncio()
async def test_fetch_missing_sitemap(unused_tcp_port: int):
    app = web.Application()
    async for base in _serve_app(app, unused_tcp_port):
        with pytest.raises(SitemapError, match="404"):
            await fetch_sitemap(base, timeout=5)
