# === FILE: html_cache/config.py ===
"""
Модуль для загрузки и валидации конфигурации HtmlCache.
Используется Pydantic для описания схемы и проверки данных.
"""
from __future__ import annotations

import errno
import json
import os
import re
from pathlib import Path
from typing import Any, List, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from html_cache.errors import ConfigurationError

DEFAULT_CONFIG_NAME = "html-cache-config.yaml"
DEFAULT_TIMEOUT_MS = 60000

_DEFAULT_STRIP_PATTERNS = [
    re.escape('<meta name="fragment" content="!">'),
    r'<script.+src="\/theme\/frontend\/app\/build\/main\.js\?ver=\d+"><\/script>',
]


def _check_regex(value: str) -> str:
    try:
        re.compile(value)
    except re.error as exc:
        raise ValueError(f"Неправильное регулярное выражение {value!r}: {exc}") from exc
    return value


class PageTypeRule(BaseModel):
    """Правило классификации: метка типа страницы и регулярное выражение для URL."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    type: str = Field(..., min_length=1)
    regex: str

    @field_validator("regex")
    @classmethod
    def _compile_regex(cls, v: str) -> str:
        return _check_regex(v)


class DbConfig(BaseModel):
    """Параметры подключения к хранилищу кэша."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    host: str = "localhost"
    port: Optional[int] = Field(None, gt=0)
    user: Optional[str] = None
    passwd: Optional[str] = None
    db: Union[str, int, None] = None
    collection: Optional[str] = None
    table: Optional[str] = None
    path: Optional[str] = None


class RenderConfig(BaseModel):
    """Настройки рендера одной страницы."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    prerender_param: str = "is_prerender=1"
    noindex_marker: str = '<meta name="robots" content="noindex">'
    strip_patterns: List[str] = Field(default_factory=lambda: list(_DEFAULT_STRIP_PATTERNS))
    opened_predicate: str = "(pageType) => AppCore.Pages.of(pageType).isOpened()"
    loaded_predicate: str = "(pageType) => AppCore.Pages.of(pageType).isLoaded()"
    state_predicate: str = "(pageType) => AppCore.Pages.of(pageType).getState()"
    screenshots_dir: str = "./pages"

    @field_validator("strip_patterns")
    @classmethod
    def _compile_patterns(cls, v: List[str]) -> List[str]:
        return [_check_regex(p) for p in v]


class BrowserConfig(BaseModel):
    """Параметры запуска headless Chromium."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    headless: bool = True
    channel: Optional[str] = None
    executable_path: Optional[str] = None
    auto_install: bool = True
    args: List[str] = Field(default_factory=list)


class AppConfig(BaseModel):
    """Конфигурация одного запуска кэширования."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    base_uri: str = Field(..., min_length=1, description="Корневой URL сайта (sitemap.xml берётся от него).")
    db_driver: str = Field("memory", description="Идентификатор хранилища: memory, redis, sqlite.")
    db: DbConfig = Field(default_factory=DbConfig)
    page_types: List[PageTypeRule] = Field(default_factory=list)
    timeout: int = Field(DEFAULT_TIMEOUT_MS, gt=0, description="Таймаут навигации и ожидания (мс).")
    verbose: bool = False
    multithread: bool = False
    group_urls: bool = False
    max_workers: int = Field(0, description="0 или отрицательное значение = все доступные ядра.")
    render: RenderConfig = Field(default_factory=RenderConfig)
    browser: BrowserConfig = Field(default_factory=BrowserConfig)

    @field_validator("base_uri", mode="before")
    def _strip_trailing_slash(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.rstrip("/")
        return v

    @field_validator("db_driver", mode="before")
    def _lower_driver(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower()
        return v


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Неправильный YAML в {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Верхний уровень YAML должен быть mapping, получено {type(data).__name__}")
    return data


def _read_json(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8")) or {}
    except json.JSONDecodeError as exc:
        raise ValueError(f"Неправильный JSON в {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Верхний уровень JSON должен быть mapping, получено {type(data).__name__}")
    return data


def resolve_config_path(path: Union[str, Path, None]) -> Path:
    """
    Превращает путь из CLI в путь к файлу конфига.
    Каталог означает ``<каталог>/html-cache-config.yaml``.
    """
    path_obj = Path(path if path is not None else ".").expanduser().resolve()
    if path_obj.is_dir():
        path_obj = path_obj / DEFAULT_CONFIG_NAME
    if not path_obj.is_file():
        raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(path_obj))
    return path_obj


def load_config(path: Union[str, Path, None]) -> AppConfig:
    """
    Читает YAML или JSON и возвращает проверенный объект AppConfig.
    При отсутствии файла конфига бросает FileNotFoundError.
    """
    path_obj = resolve_config_path(path)

    suffix = path_obj.suffix.lower()
    if suffix in (".yaml", ".yml"):
        data = _read_yaml(path_obj)
    elif suffix == ".json":
        data = _read_json(path_obj)
    else:
        raise ValueError(f"Неподдерживаемый формат конфига: {suffix}")

    return AppConfig(**data)


def load_config_or_fail(path: Union[str, Path, None]) -> AppConfig:
    """Как :func:`load_config`, но любые ошибки превращаются в ConfigurationError."""
    try:
        return load_config(path)
    except (OSError, ValueError, TypeError, ValidationError) as exc:
        raise ConfigurationError(str(exc)) from exc
