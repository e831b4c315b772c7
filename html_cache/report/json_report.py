# html_cache/report/json_report.py

"""
Генерация JSON-отчёта для проекта HtmlCache.

Сериализация объекта RunReport в файл.
"""
import json
from pathlib import Path

from html_cache.aggregator import RunReport


def render_json(report: RunReport, output_path: Path | str) -> Path:
    """
    Сохраняет отчёт report в формате JSON по указанному пути.

    :param report: объект RunReport с итогами прогона
    :param output_path: путь к JSON-файлу
    :return: Path сохранённого файла
    """
    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)

    with output.open('w', encoding='utf-8') as f:
        json.dump(report.to_dict(), f, ensure_ascii=False, indent=2)

    return output
