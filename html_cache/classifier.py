# File: html_cache/classifier.py
"""html_cache.classifier: определение типа страницы по упорядоченным правилам и группировка URL."""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Dict, Iterable, List, Sequence

from html_cache.config import PageTypeRule
from html_cache.renderer.models import UrlEntry

__all__ = ["UNDEFINED", "classify", "group_urls"]

UNDEFINED = "undefined"


@lru_cache(maxsize=256)
def _compiled(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern, re.IGNORECASE)


def classify(uri: str, rules: Sequence[PageTypeRule]) -> str:
    """Возвращает метку первого подходящего правила или ``"undefined"``."""
    for rule in rules:
        if _compiled(rule.regex).search(uri):
            return rule.type
    return UNDEFINED


def group_urls(
    entries: Iterable[UrlEntry], rules: Sequence[PageTypeRule]
) -> Dict[str, List[UrlEntry]]:
    """
    Раскладывает URL по группам типов страниц.

    Группа ``"undefined"`` присутствует всегда и идёт первой, затем группы
    в порядке объявления правил (в том числе пустые). Каждый URL попадает
    ровно в одну группу, порядок внутри группы совпадает с входным.
    """
    groups: Dict[str, List[UrlEntry]] = {UNDEFINED: []}
    for rule in rules:
        groups.setdefault(rule.type, [])
    for entry in entries:
        groups[classify(entry.uri, rules)].append(entry)
    return groups
