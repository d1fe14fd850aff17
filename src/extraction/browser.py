"""Browser session management.

One Chromium instance is launched per shard process. Every unit attempt gets
its own browser context (cookies, history and storage isolated) and a single
page in it, closed as soon as the attempt finishes.

Usage:
    async with BrowserSession(headless=True) as browser:
        async with browser.new_page() as page:
            await page.goto(url)
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from playwright.async_api import Browser, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

from config import maps_config
from src.extraction.page import PlaywrightPage
from src.shared.constants import BROWSER
from src.shared.errors import AutomationError

__all__ = [
    'BrowserSession',
]


class BrowserSession:
    """Owns the Playwright driver and Chromium browser for a shard run."""

    def __init__(self, headless: bool = BROWSER.HEADLESS, timeout_ms: int = BROWSER.NAVIGATION_TIMEOUT_MS):
        self.headless = headless
        self.timeout_ms = timeout_ms
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None

    async def start(self) -> None:
        self._playwright = await async_playwright().start()
        try:
            self._browser = await self._playwright.chromium.launch(
                headless=self.headless,
                args=maps_config.LAUNCH_ARGS,
            )
        except PlaywrightError as e:
            await self._playwright.stop()
            self._playwright = None
            raise AutomationError(f"Failed to launch Chromium: {e}") from e
        logging.info(f"Browser launched (headless={self.headless})")

    async def close(self) -> None:
        if self._browser is not None:
            try:
                await self._browser.close()
            except PlaywrightError as e:
                logging.warning(f"Error closing browser: {e}")
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None

    async def __aenter__(self) -> 'BrowserSession':
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @asynccontextmanager
    async def new_page(self) -> AsyncIterator[PlaywrightPage]:
        """Open a page in a fresh, isolated browser context."""
        if self._browser is None:
            raise AutomationError('Browser session is not started')

        try:
            context = await self._browser.new_context(
                viewport=maps_config.VIEWPORT,
                user_agent=maps_config.USER_AGENT,
                locale=maps_config.LOCALE,
            )
        except PlaywrightError as e:
            raise AutomationError(f"Failed to open browser context: {e}") from e

        try:
            context.set_default_timeout(self.timeout_ms)
            page = await context.new_page()
            yield PlaywrightPage(page)
        except PlaywrightError as e:
            raise AutomationError(f"Browser context failed: {e}") from e
        finally:
            try:
                await context.close()
            except PlaywrightError as e:
                logging.debug(f"Error closing browser context: {e}")
