"""html_cache.parser: источники списка URL."""

from html_cache.parser.sitemap_parser import fetch_sitemap, parse_sitemap

__all__ = ["fetch_sitemap", "parse_sitemap"]
