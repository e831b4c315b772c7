# File: html_cache/parser/sitemap_parser.py
"""html_cache.parser.sitemap_parser: Модуль для загрузки sitemap.xml и извлечения URL с датами lastmod."""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import List, Optional, Union

from aiohttp import ClientError, ClientSession, ClientTimeout
from lxml import etree

from html_cache.errors import SitemapError
from html_cache.logger import logger
from html_cache.renderer.models import UrlEntry
from html_cache.utils import remove_duplicates

SITEMAP_NAME = "sitemap.xml"


def _parse_lastmod(value: Optional[str], fallback: datetime) -> datetime:
    if not value:
        return fallback
    try:
        return datetime.fromisoformat(value.strip())
    except ValueError:
        logger.debug("Unparsable lastmod %r, using current time", value)
        return fallback


def parse_sitemap(xml_content: Union[str, bytes]) -> List[UrlEntry]:
    """Разбирает XML content sitemap и возвращает список UrlEntry из тегов <url>.

    Args:
        xml_content: строка или байты с содержимым sitemap.xml.

    Returns:
        Список UrlEntry без дубликатов. Отсутствующий или нечитаемый <lastmod>
        заменяется текущим временем.

    Пример:
    ```python
    from html_cache.parser.sitemap_parser import parse_sitemap

    with open('sitemap.xml', encoding='utf-8') as f:
        entries = parse_sitemap(f.read())
    print(len(entries))
    ```
    """
    data = xml_content.encode("utf-8") if isinstance(xml_content, str) else xml_content
    if not data.strip():
        logger.warning(">> Sitemap not loaded properly (urlset not found or empty)")
        return []
    parser = etree.XMLParser(ns_clean=True, recover=True)
    try:
        root = etree.fromstring(data, parser=parser)
    except etree.XMLSyntaxError as exc:
        raise SitemapError(f"Invalid sitemap XML: {exc}") from exc
    if root is None:
        logger.warning(">> Sitemap not loaded properly (urlset not found or empty)")
        return []

    now = datetime.now()
    entries: List[UrlEntry] = []
    for url in root.iterfind(".//{*}url"):
        loc = url.findtext("{*}loc")
        if not loc or not loc.strip():
            continue
        entries.append(UrlEntry(uri=loc.strip(), last_modified=_parse_lastmod(url.findtext("{*}lastmod"), now)))
    return remove_duplicates(entries)


async def fetch_sitemap(base_uri: str, timeout: float = 60.0) -> List[UrlEntry]:
    """Загружает ``<base_uri>/sitemap.xml`` и разбирает его."""
    sitemap_url = f"{base_uri.rstrip('/')}/{SITEMAP_NAME}"
    logger.debug(">> Loading sitemap from url: %s", sitemap_url)
    try:
        async with ClientSession(timeout=ClientTimeout(total=timeout)) as session:
            async with session.get(sitemap_url) as resp:
                if resp.status != 200:
                    raise SitemapError(f"Sitemap {sitemap_url} -> HTTP {resp.status}")
                body = await resp.read()
    except (ClientError, asyncio.TimeoutError) as exc:
        raise SitemapError(f"Unable to load sitemap {sitemap_url}: {exc}") from exc
    return parse_sitemap(body)
