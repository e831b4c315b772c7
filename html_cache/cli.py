# === FILE: html_cache/cli.py ===
#!/usr/bin/env python3
"""
Точка входа для запуска HtmlCache через командную строку.

Команды:
  render    Отрендерить страницы из sitemap и обновить кэш
  config    Показать текущую конфигурацию

Общие опции:
  --config PATH       Путь к конфигу или каталогу с html-cache-config.yaml (default: .)
  --log-level LEVEL   Уровень логирования (DEBUG, INFO, ...)
  --log-file PATH     Файл для логов (stdout, если не указан)
  --log-format FORMAT Формат логирования

Команда render опции:
  --verbose, -v       Подробный вывод
  --group-urls, -g    Кэшировать URL по группам типов страниц
  --multithread, -m   Параллельный режим
  --max-workers, -t   Макс. число воркеров (0 или отрицательное = все ядра)
  --browser-channel   Канал браузера Playwright вместо встроенного Chromium
  --json PATH         Сохранить JSON-отчёт о прогоне

Пример:
  html-cache --config /var/www/site render --multithread --max-workers 8
"""
import sys
import time
from datetime import datetime
from pathlib import Path

import click

from html_cache import __version__
from html_cache.config import load_config_or_fail
from html_cache.engine import run_pipeline
from html_cache.errors import ConfigurationError, RunInterrupted, SitemapError
from html_cache.logger import init_logging, logger, set_verbose
from html_cache.report.json_report import render_json
from html_cache.utils import format_elapsed

CONTEXT_SETTINGS = dict(help_option_names=["--help", "-h"])

EXIT_CONFIG_ERROR = 1
EXIT_SITEMAP_ERROR = 2
EXIT_UNHANDLED = 3
EXIT_INTERRUPTED = 130


def print_error(message: str, code: int = EXIT_CONFIG_ERROR):
    click.secho(message, fg='red', err=True)
    sys.exit(code)


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, '--version', message='HtmlCache, version %(version)s')
@click.option(
    '--config', '-c', 'config_path',
    default='.',
    show_default=True,
    type=click.Path(exists=True, path_type=Path),
    help='Путь к файлу конфигурации или каталогу с html-cache-config.yaml.'
)
@click.option(
    '--log-level', 'log_level',
    default='INFO', show_default=True,
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']),
    help='Уровень логирования'
)
@click.option(
    '--log-file', 'log_file',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Путь к файлу логов (stdout, если не указан)'
)
@click.option(
    '--log-format', 'log_format',
    default='%(asctime)s %(levelname)s %(message)s',
    show_default=True,
    help='Строка формата для логов'
)
@click.pass_context
def cli(ctx, config_path, log_level, log_file, log_format):
    """Группа команд HtmlCache CLI."""
    init_logging(
        level=log_level,
        log_file=str(log_file) if log_file else None,
        log_format=log_format
    )
    try:
        cfg = load_config_or_fail(config_path)
    except ConfigurationError as e:
        print_error(f'Ошибка загрузки конфигурации: {e}')
    ctx.ensure_object(dict)
    ctx.obj['config'] = cfg
    ctx.obj['config_path'] = config_path


@cli.command('render', context_settings=CONTEXT_SETTINGS)
@click.option('--verbose', '-v', is_flag=True, help='Подробный вывод')
@click.option('--group-urls', '-g', 'group_urls', is_flag=True, help='Кэшировать URL по группам')
@click.option('--multithread', '-m', is_flag=True, help='Параллельный режим')
@click.option(
    '--max-workers', '-t', 'max_workers',
    type=int,
    default=None,
    help='Макс. число воркеров в параллельном режиме (0 или отрицательное = все доступные)'
)
@click.option(
    '--browser-channel', 'browser_channel',
    default=None,
    help='Канал браузера Playwright (chrome, msedge, ...); по умолчанию встроенный Chromium'
)
@click.option(
    '--json', '-j', 'json_output',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Сохранить JSON-отчёт о прогоне в файл'
)
@click.pass_context
def render(ctx, verbose, group_urls, multithread, max_workers, browser_channel, json_output):
    """Отрендерить страницы из sitemap и обновить кэш."""
    cfg = ctx.obj['config']
    update = {
        'verbose': cfg.verbose or verbose,
        'group_urls': cfg.group_urls or group_urls,
        'multithread': cfg.multithread or multithread,
    }
    if max_workers is not None:
        update['max_workers'] = max_workers
    if browser_channel:
        update['browser'] = cfg.browser.model_copy(update={'channel': browser_channel})
    cfg = cfg.model_copy(update=update)
    set_verbose(cfg.verbose)

    started = time.monotonic()
    logger.info("HtmlCache started at %s", datetime.now().strftime("%Y-%m-%d %H:%M:%S"))
    logger.info("Init caching by config path: %s", ctx.obj['config_path'])
    logger.info("Verbose output: %s", cfg.verbose)
    logger.info("Group urls before caching: %s", cfg.group_urls)
    logger.info("Multithread mode: %s", cfg.multithread)
    logger.debug("App config:\n%s", cfg.model_dump_json(indent=2, exclude={'db': {'passwd'}}))

    try:
        report = run_pipeline(cfg)
    except ConfigurationError as e:
        print_error(f'Ошибка конфигурации: {e}', EXIT_CONFIG_ERROR)
    except SitemapError as e:
        print_error(f'Ошибка загрузки sitemap: {e}', EXIT_SITEMAP_ERROR)
    except RunInterrupted:
        print_error('Прогон прерван', EXIT_INTERRUPTED)
    except Exception as e:
        logger.exception("Unhandled error")
        print_error(f'Ошибка при рендеринге: {e}', EXIT_UNHANDLED)

    click.echo(report.summary())

    if json_output:
        try:
            saved_json = render_json(report, json_output)
            click.echo(f'JSON report: {saved_json}')
        except OSError as e:
            print_error(f'Ошибка при сохранении JSON: {e}', EXIT_UNHANDLED)

    logger.info("All tasks completed in %s", format_elapsed(time.monotonic() - started))


@cli.command('config', context_settings=CONTEXT_SETTINGS)
@click.pass_context
def show_config(ctx):
    """Показать текущую конфигурацию в JSON (без пароля БД)."""
    cfg = ctx.obj['config']
    click.echo(cfg.model_dump_json(indent=2, exclude={'db': {'passwd'}}))


if __name__ == "__main__":
    cli()
