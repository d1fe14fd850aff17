"""Tests for browser session lifecycle (Playwright mocked)."""

from unittest.mock import AsyncMock, Mock, patch

import pytest
from playwright.async_api import Error as PlaywrightError

from config import maps_config
from src.extraction.browser import BrowserSession
from src.extraction.page import PlaywrightPage
from src.shared.errors import AutomationError


def mock_playwright(launch_error=None):
    context = Mock()
    context.new_page = AsyncMock(return_value=Mock())
    context.close = AsyncMock()

    browser = Mock()
    browser.new_context = AsyncMock(return_value=context)
    browser.close = AsyncMock()

    driver = Mock()
    driver.stop = AsyncMock()
    driver.chromium.launch = AsyncMock(return_value=browser, side_effect=launch_error)

    starter = Mock()
    starter.start = AsyncMock(return_value=driver)
    return starter, driver, browser, context


class TestBrowserSession:
    """Tests for BrowserSession."""

    @pytest.mark.asyncio
    async def test_launch_and_close(self):
        """Entering launches Chromium with the configured args; exiting stops the driver."""
        starter, driver, browser, _ = mock_playwright()

        with patch('src.extraction.browser.async_playwright', return_value=starter):
            async with BrowserSession(headless=True) as session:
                assert session.headless is True

        driver.chromium.launch.assert_awaited_once_with(headless=True, args=maps_config.LAUNCH_ARGS)
        browser.close.assert_awaited_once()
        driver.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_each_page_gets_isolated_context(self):
        """new_page opens a fresh context and closes it afterwards."""
        starter, _, browser, context = mock_playwright()

        with patch('src.extraction.browser.async_playwright', return_value=starter):
            async with BrowserSession(timeout_ms=1234) as session:
                async with session.new_page() as page:
                    assert isinstance(page, PlaywrightPage)
                async with session.new_page():
                    pass

        assert browser.new_context.await_count == 2
        browser.new_context.assert_awaited_with(
            viewport=maps_config.VIEWPORT,
            user_agent=maps_config.USER_AGENT,
            locale=maps_config.LOCALE,
        )
        context.set_default_timeout.assert_called_with(1234)
        assert context.close.await_count == 2

    @pytest.mark.asyncio
    async def test_launch_failure(self):
        """A failed launch stops the driver and raises AutomationError."""
        starter, driver, _, _ = mock_playwright(launch_error=PlaywrightError('no chromium'))

        with patch('src.extraction.browser.async_playwright', return_value=starter):
            with pytest.raises(AutomationError, match='Failed to launch Chromium'):
                await BrowserSession().start()

        driver.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_new_page_requires_start(self):
        """Pages cannot be opened before the session starts."""
        with pytest.raises(AutomationError):
            async with BrowserSession().new_page():
                pass
