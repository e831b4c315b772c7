# html_cache/renderer/browser.py
"""
Headless Chromium adapter: a driver owning the Playwright browser and
sessions wrapping one page each.
"""
from __future__ import annotations

import asyncio
import sys
import time
from pathlib import Path
from typing import Any, Optional

from playwright.async_api import Browser, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

from html_cache.config import BrowserConfig
from html_cache.errors import ConfigurationError
from html_cache.logger import logger
from html_cache.utils import format_elapsed

BLANK_URL = "about:blank"


class BrowserSession:
    """One browser page, reusable across navigations."""

    def __init__(self, page: Page) -> None:
        self.page = page

    async def navigate(self, url: str, timeout_ms: int) -> int:
        """Load *url* and return the HTTP status of the main response (0 if none)."""
        response = await self.page.goto(url, timeout=timeout_ms, wait_until="load")
        return response.status if response is not None else 0

    async def content(self) -> str:
        return await self.page.content()

    async def wait_for_condition(self, expression: str, arg: Any, timeout_ms: int) -> None:
        await self.page.wait_for_function(expression, arg=arg, timeout=timeout_ms)

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        return await self.page.evaluate(expression, arg)

    async def screenshot(self, path: str | Path) -> None:
        await self.page.screenshot(path=str(path), full_page=True)

    async def reset(self) -> None:
        await self.page.goto(BLANK_URL)

    async def close(self) -> None:
        if not self.page.is_closed():
            await self.page.close()


class BrowserDriver:
    """Starts Chromium once per run and opens sessions on demand.

    Before launch the bundled Chromium is checked and, with ``auto_install``,
    downloaded via ``playwright install``. Launch failures surface as
    :class:`ConfigurationError` so a run stops before the first URL.
    """

    def __init__(self, config: Optional[BrowserConfig] = None) -> None:
        self.config = config or BrowserConfig()
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None

    async def __aenter__(self) -> BrowserDriver:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def start(self) -> None:
        if self._browser is not None:
            return
        try:
            self._playwright = await async_playwright().start()
            await self._ensure_installed()
            self._browser = await self._playwright.chromium.launch(
                headless=self.config.headless,
                channel=self.config.channel,
                executable_path=self.config.executable_path,
                args=list(self.config.args),
            )
        except PlaywrightError as exc:
            await self.close()
            raise ConfigurationError(f"Unable to launch browser: {exc}") from exc
        except ConfigurationError:
            await self.close()
            raise
        logger.info("Browser launched: Chromium %s", self._browser.version)

    async def _ensure_installed(self) -> None:
        cfg = self.config
        if cfg.executable_path:
            if not Path(cfg.executable_path).is_file():
                raise ConfigurationError(f"Browser executable not found: {cfg.executable_path}")
            return
        if cfg.channel:
            # branded channels are installed system-wide, Playwright finds them itself
            return

        logger.info(">> Check installed browser...")
        executable = Path(self._playwright.chromium.executable_path)
        if executable.is_file():
            logger.info(">> Installed Chromium found: %s", executable)
            return
        if not cfg.auto_install:
            raise ConfigurationError(
                f"Chromium not found at {executable}; run `playwright install chromium` "
                "or enable browser.auto_install"
            )
        logger.info(">> Installed Chromium not found - need to download new one")
        await install_browser("chromium")
        if not executable.is_file():
            raise ConfigurationError(f"Chromium was not downloaded properly ({executable} is missing)")
        logger.info(">> Chromium downloading complete!")

    async def open_session(self) -> BrowserSession:
        if self._browser is None:
            raise RuntimeError("Browser not started")
        page = await self._browser.new_page()
        return BrowserSession(page)

    async def close(self) -> None:
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None


async def install_browser(name: str = "chromium") -> None:
    """Runs ``playwright install <name>`` with the current interpreter."""
    started = time.monotonic()
    proc = await asyncio.create_subprocess_exec(
        sys.executable, "-m", "playwright", "install", name,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.STDOUT,
    )
    output, _ = await proc.communicate()
    if proc.returncode != 0:
        tail = output.decode("utf-8", errors="replace").strip()[-500:]
        raise ConfigurationError(f"`playwright install {name}` failed with code {proc.returncode}: {tail}")
    logger.info("Browser %s installed (%s)", name, format_elapsed(time.monotonic() - started))
