"""html_cache.aggregator: сводный отчёт о прогоне кэширования."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Sequence, TypedDict

from html_cache.renderer.models import RenderOutcome, RunCounters


class FailureInfo(TypedDict):
    """Информация о URL, который не удалось закэшировать."""

    url: str
    label: str
    error: str


@dataclass(slots=True)
class RunReport:
    """Итоги прогона: счётчики, группы и упавшие URL."""

    passed: int = 0
    total: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    render_time: float = 0.0
    wall_time: float = 0.0
    started_at: str = ""
    groups: Dict[str, int] = field(default_factory=dict)
    failures: List[FailureInfo] = field(default_factory=list)

    def summary(self) -> str:
        return f"Urls passed: {self.passed} of {self.total}"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def json(self, *, pretty: bool = False) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=2 if pretty else None)


def aggregate_results(
    counters: RunCounters,
    outcomes: Sequence[RenderOutcome],
    *,
    groups: Dict[str, int] | None = None,
    started_at: datetime | None = None,
    wall_time: float = 0.0,
) -> RunReport:
    """Собирает RunReport из счётчиков и результатов по URL."""
    return RunReport(
        passed=counters.passed,
        total=counters.total,
        updated=counters.updated,
        skipped=counters.skipped,
        failed=counters.failed,
        render_time=round(counters.elapsed, 3),
        wall_time=round(wall_time, 3),
        started_at=started_at.isoformat(timespec="seconds") if started_at else "",
        groups=dict(groups or {}),
        failures=[
            {"url": o.url, "label": o.label, "error": f"{type(o.error).__name__}: {o.error}"}
            for o in outcomes
            if not o.passed
        ],
    )
