# File: html_cache/report/__init__.py
"""html_cache.report: сохранение отчёта о прогоне."""

from html_cache.report.json_report import render_json

__all__ = ["render_json"]
