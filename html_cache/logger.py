"""Логгер HtmlCache: вывод в stdout или в файл с ротацией.

    from html_cache.logger import logger
    logger.info("Rendering started")

Уровень задаёт CLI (`--log-level`); флаг `--verbose` поднимает его до DEBUG.
"""
from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

LOGGER_NAME = "HtmlCache"
DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(message)s"

# 5 MiB x 3 backups
_MAX_BYTES = 5 * 1024 * 1024
_BACKUPS = 3


def init_logging(
    level: Union[int, str] = "INFO",
    log_file: Optional[Union[str, Path]] = None,
    log_format: str = DEFAULT_FORMAT,
) -> logging.Logger:
    """Заменяет обработчики логгера проекта и выставляет *level*.

    Без *log_file* пишем в stdout; с ним в файл, ротируемый по размеру.
    """
    lg = logging.getLogger(LOGGER_NAME)
    lg.setLevel(level)
    for old in list(lg.handlers):
        lg.removeHandler(old)
        old.close()
    lg.propagate = False

    if log_file is None:
        handler: logging.Handler = logging.StreamHandler(sys.stdout)
    else:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            str(log_file), maxBytes=_MAX_BYTES, backupCount=_BACKUPS, encoding="utf-8"
        )
    handler.setFormatter(logging.Formatter(log_format))
    lg.addHandler(handler)
    return lg


def set_verbose(verbose: bool) -> None:
    """Переключает на DEBUG при *verbose*; иначе уровень остаётся как был."""
    if verbose:
        logging.getLogger(LOGGER_NAME).setLevel(logging.DEBUG)


logger: logging.Logger = init_logging()

__all__ = ["logger", "init_logging", "set_verbose", "LOGGER_NAME", "DEFAULT_FORMAT"]
