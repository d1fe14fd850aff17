"""Page handles: the automation surface the extraction pipeline drives.

The pipeline only talks to ``PageHandle``/``ElementHandle``. Two
implementations are provided:

- ``PlaywrightPage``: wraps a live ``playwright.async_api.Page`` and turns
  library errors into ``NavigationError``/``AutomationError``
- ``HtmlSnapshotPage``: serves selectors from saved page HTML with
  BeautifulSoup, for replaying captured pages offline (navigation and clicks
  do nothing)
"""

import logging
from pathlib import Path
from typing import List, Optional, Protocol, Sequence

from bs4 import BeautifulSoup
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Locator, Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from src.shared.constants import BROWSER
from src.shared.errors import AutomationError, NavigationError

__all__ = [
    'ElementHandle',
    'HtmlSnapshotPage',
    'PageHandle',
    'PlaywrightElement',
    'PlaywrightPage',
]


class ElementHandle(Protocol):
    """A located element."""

    async def text_content(self) -> Optional[str]: ...

    async def get_attribute(self, name: str) -> Optional[str]: ...

    async def click(self, timeout: int = BROWSER.ELEMENT_TIMEOUT_MS) -> None: ...

    async def is_visible(self, timeout: int = 0) -> bool: ...


class PageHandle(Protocol):
    """A browser tab the pipeline can navigate and read."""

    url: str

    async def goto(self, url: str, wait_until: str = 'domcontentloaded',
                   timeout: int = BROWSER.NAVIGATION_TIMEOUT_MS) -> None: ...

    async def wait_for_any_selector(self, selectors: Sequence[str], timeout: int) -> str: ...

    async def locate_all(self, selector: str) -> List[ElementHandle]: ...

    async def all_texts(self, selector: str) -> List[str]: ...

    async def all_attributes(self, selector: str, name: str) -> List[Optional[str]]: ...

    async def button_with_text(self, text: str) -> Optional[ElementHandle]: ...

    async def go_back(self, timeout: int = BROWSER.NAVIGATION_TIMEOUT_MS) -> None: ...

    async def settle(self, milliseconds: int) -> None: ...

    async def screenshot(self, path: str) -> None: ...

    async def content(self) -> str: ...


# =============================================================================
# PLAYWRIGHT
# =============================================================================

class PlaywrightElement:
    """ElementHandle backed by a Playwright locator."""

    def __init__(self, locator: Locator):
        self._locator = locator

    async def text_content(self) -> Optional[str]:
        try:
            return await self._locator.text_content(timeout=BROWSER.ELEMENT_TIMEOUT_MS)
        except PlaywrightError as e:
            raise AutomationError(f"Failed to read element text: {e}") from e

    async def get_attribute(self, name: str) -> Optional[str]:
        try:
            return await self._locator.get_attribute(name, timeout=BROWSER.ELEMENT_TIMEOUT_MS)
        except PlaywrightError as e:
            raise AutomationError(f"Failed to read attribute {name}: {e}") from e

    async def click(self, timeout: int = BROWSER.ELEMENT_TIMEOUT_MS) -> None:
        try:
            await self._locator.click(timeout=timeout)
        except PlaywrightTimeoutError as e:
            raise NavigationError(f"Timed out clicking element: {e}") from e
        except PlaywrightError as e:
            raise AutomationError(f"Failed to click element: {e}") from e

    async def is_visible(self, timeout: int = 0) -> bool:
        if timeout <= 0:
            return await self._locator.is_visible()
        try:
            await self._locator.wait_for(state='visible', timeout=timeout)
            return True
        except PlaywrightTimeoutError:
            return False


class PlaywrightPage:
    """PageHandle backed by a live Playwright page."""

    def __init__(self, page: Page):
        self._page = page

    @property
    def url(self) -> str:
        return self._page.url

    async def goto(self, url: str, wait_until: str = 'domcontentloaded',
                   timeout: int = BROWSER.NAVIGATION_TIMEOUT_MS) -> None:
        try:
            await self._page.goto(url, wait_until=wait_until, timeout=timeout)
        except PlaywrightTimeoutError as e:
            raise NavigationError(f"Timed out loading {url} ({wait_until})") from e
        except PlaywrightError as e:
            raise NavigationError(f"Failed to load {url}: {e}") from e

    async def wait_for_any_selector(self, selectors: Sequence[str], timeout: int) -> str:
        """Wait until any selector matches; return the first one that does."""
        try:
            await self._page.wait_for_selector(', '.join(selectors), timeout=timeout)
        except PlaywrightTimeoutError as e:
            raise NavigationError(f"No results rendered within {timeout}ms") from e
        except PlaywrightError as e:
            raise AutomationError(f"Failed waiting for results: {e}") from e

        for selector in selectors:
            if await self._page.locator(selector).count():
                return selector
        return selectors[0]

    async def locate_all(self, selector: str) -> List[ElementHandle]:
        try:
            locators = await self._page.locator(selector).all()
        except PlaywrightError as e:
            raise AutomationError(f"Failed to locate {selector}: {e}") from e
        return [PlaywrightElement(locator) for locator in locators]

    async def all_texts(self, selector: str) -> List[str]:
        try:
            return await self._page.locator(selector).all_text_contents()
        except PlaywrightError as e:
            raise AutomationError(f"Failed to read texts of {selector}: {e}") from e

    async def all_attributes(self, selector: str, name: str) -> List[Optional[str]]:
        try:
            return await self._page.locator(selector).evaluate_all(
                '(elements, name) => elements.map(e => e.getAttribute(name))', name
            )
        except PlaywrightError as e:
            raise AutomationError(f"Failed to read {name} of {selector}: {e}") from e

    async def button_with_text(self, text: str) -> Optional[ElementHandle]:
        locator = self._page.get_by_role('button', name=text, exact=True)
        try:
            if await locator.count():
                return PlaywrightElement(locator.first)
        except PlaywrightError as e:
            logging.debug(f"Button lookup for {text!r} failed: {e}")
        return None

    async def go_back(self, timeout: int = BROWSER.NAVIGATION_TIMEOUT_MS) -> None:
        try:
            await self._page.go_back(wait_until='domcontentloaded', timeout=timeout)
        except PlaywrightTimeoutError as e:
            raise NavigationError(f"Timed out navigating back: {e}") from e
        except PlaywrightError as e:
            raise NavigationError(f"Failed to navigate back: {e}") from e

    async def settle(self, milliseconds: int) -> None:
        await self._page.wait_for_timeout(milliseconds)

    async def screenshot(self, path: str) -> None:
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        try:
            await self._page.screenshot(path=path, full_page=True)
        except PlaywrightError as e:
            raise AutomationError(f"Failed to save screenshot {path}: {e}") from e

    async def content(self) -> str:
        try:
            return await self._page.content()
        except PlaywrightError as e:
            raise AutomationError(f"Failed to read page content: {e}") from e


# =============================================================================
# HTML SNAPSHOT
# =============================================================================

class SnapshotElement:
    """ElementHandle backed by a parsed BeautifulSoup tag."""

    def __init__(self, tag, page: 'HtmlSnapshotPage'):
        self._tag = tag
        self._page = page

    async def text_content(self) -> Optional[str]:
        return self._tag.get_text(' ')

    async def get_attribute(self, name: str) -> Optional[str]:
        value = self._tag.get(name)
        if isinstance(value, list):
            return ' '.join(value)
        return value

    async def click(self, timeout: int = BROWSER.ELEMENT_TIMEOUT_MS) -> None:
        self._page.clicks.append(self._tag.name)

    async def is_visible(self, timeout: int = 0) -> bool:
        return True


class HtmlSnapshotPage:
    """PageHandle over saved HTML.

    Every selector is answered from the same document, so a saved place
    panel can be replayed through the extractor and orchestrator without a
    browser. Selectors BeautifulSoup cannot handle (e.g. ``xpath=``) raise
    ``AutomationError``. Playwright's ``:has-text()`` is answered with
    soupsieve's ``:-soup-contains()``.
    """

    def __init__(self, html: str, url: str = 'about:snapshot'):
        self._soup = BeautifulSoup(html, 'html.parser')
        self._html = html
        self.url = url
        self.visited: List[str] = []
        self.clicks: List[str] = []

    @classmethod
    def from_file(cls, filepath: str) -> 'HtmlSnapshotPage':
        path = Path(filepath)
        return cls(path.read_text(encoding='utf-8'), url=path.resolve().as_uri())

    def _select(self, selector: str):
        if selector.startswith('xpath='):
            raise AutomationError(f"Unsupported selector for HTML snapshots: {selector}")
        try:
            return self._soup.select(selector.replace(':has-text(', ':-soup-contains('))
        except (ValueError, NotImplementedError) as e:
            raise AutomationError(f"Unsupported selector {selector}: {e}") from e

    async def goto(self, url: str, wait_until: str = 'domcontentloaded',
                   timeout: int = BROWSER.NAVIGATION_TIMEOUT_MS) -> None:
        self.visited.append(url)

    async def wait_for_any_selector(self, selectors: Sequence[str], timeout: int) -> str:
        for selector in selectors:
            if self._select(selector):
                return selector
        raise NavigationError(f"No results rendered within {timeout}ms")

    async def locate_all(self, selector: str) -> List[ElementHandle]:
        return [SnapshotElement(tag, self) for tag in self._select(selector)]

    async def all_texts(self, selector: str) -> List[str]:
        return [tag.get_text(' ') for tag in self._select(selector)]

    async def all_attributes(self, selector: str, name: str) -> List[Optional[str]]:
        return [tag.get(name) for tag in self._select(selector)]

    async def button_with_text(self, text: str) -> Optional[ElementHandle]:
        for tag in self._soup.find_all('button'):
            if tag.get_text(' ', strip=True) == text:
                return SnapshotElement(tag, self)
        return None

    async def go_back(self, timeout: int = BROWSER.NAVIGATION_TIMEOUT_MS) -> None:
        return None

    async def settle(self, milliseconds: int) -> None:
        return None

    async def screenshot(self, path: str) -> None:
        raise AutomationError('Screenshots are not available for HTML snapshots')

    async def content(self) -> str:
        return self._html
