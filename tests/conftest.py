"""Pytest configuration and fixtures for extractor tests"""

import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Dict, List, Optional
from urllib.parse import unquote_plus

sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

from src.shared.errors import AutomationError, NavigationError


PLACE_PANEL = 'button[data-item-id="address"]'
RESULT_LIST = 'div[role="article"]'


class FakeElement:
    """Scriptable stand-in for a located element."""

    def __init__(self, page: 'FakePage', index: int, text: str = '', click_error: Optional[Exception] = None):
        self.page = page
        self.index = index
        self.text = text
        self.click_error = click_error

    async def text_content(self):
        return self.text

    async def get_attribute(self, name):
        return None

    async def click(self, timeout=0):
        if self.click_error:
            raise self.click_error
        self.page.open_entry = self.index
        self.page.clicked.append((self.page.term, self.index))

    async def is_visible(self, timeout=0):
        return True


class FakePage:
    """In-memory map page driven by search term.

    ``results`` maps a search term to the full address text shown for each
    result entry. Opening an entry exposes its text through the address
    button's aria-label, like the real place panel.
    """

    def __init__(
        self,
        results: Optional[Dict[str, List[str]]] = None,
        place: Optional[Dict[str, str]] = None,
        goto_error: Optional[Exception] = None,
        wait_error: Optional[Exception] = None,
        click_error: Optional[Exception] = None,
        consent: bool = False,
    ):
        self.results = results or {}
        self.place = place or {}
        self.goto_error = goto_error
        self.wait_error = wait_error
        self.click_error = click_error
        self.consent = consent
        self.url = 'about:blank'
        self.term = None
        self.open_entry = None
        self.visited: List[tuple] = []
        self.clicked: List[tuple] = []
        self.back_count = 0
        self.consent_clicked = False

    async def goto(self, url, wait_until='domcontentloaded', timeout=0):
        self.visited.append((url, wait_until))
        if self.goto_error:
            raise self.goto_error
        self.url = url
        query = unquote_plus(url.rsplit('/', 1)[-1])
        self.term = query.split(' in ')[0]
        self.open_entry = None

    async def wait_for_any_selector(self, selectors, timeout):
        if self.wait_error:
            raise self.wait_error
        return selectors[0]

    def _entries(self):
        return self.results.get(self.term, [])

    async def locate_all(self, selector):
        if selector == RESULT_LIST:
            return [
                FakeElement(self, i, text, self.click_error)
                for i, text in enumerate(self._entries())
            ]
        if selector == PLACE_PANEL and self.term in self.place:
            return [FakeElement(self, 0, self.place[self.term])]
        if selector.startswith('xpath='):
            raise AutomationError('xpath not supported')
        return []

    def _open_text(self):
        if self.open_entry is not None:
            return self._entries()[self.open_entry]
        return self.place.get(self.term)

    async def all_texts(self, selector):
        return []

    async def all_attributes(self, selector, name):
        text = self._open_text()
        if selector == PLACE_PANEL and name == 'aria-label' and text:
            return [f"Address: {text}"]
        return []

    async def button_with_text(self, text):
        if self.consent and not self.consent_clicked and text == 'Accept all':
            page = self

            class _Consent(FakeElement):
                async def click(self, timeout=0):
                    page.consent_clicked = True

            return _Consent(self, 0)
        return None

    async def go_back(self, timeout=0):
        self.back_count += 1
        self.open_entry = None

    async def settle(self, milliseconds):
        return None

    async def screenshot(self, path):
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        Path(path).write_bytes(b'png')

    async def content(self):
        return '<html></html>'


@pytest.fixture
def page_factory():
    """Build a page factory that hands out FakePages and records them.

    Usage:
        factory = page_factory(results={'post office': ['123 Main St, ...']})
        orchestrator = AddressOrchestrator(factory, ...)
        factory.pages  # every page opened, one per attempt
    """
    def _create(**page_kwargs):
        pages = []

        @asynccontextmanager
        async def factory():
            page = FakePage(**page_kwargs)
            pages.append(page)
            yield page

        factory.pages = pages
        return factory

    return _create


@pytest.fixture
def write_table(tmp_path):
    """Write a raw CSV table and return its path.

    Usage:
        path = write_table("zipcode,state\\n10001,NY\\n")
    """
    def _write(content: str, name: str = 'FinalZipcodeState.csv') -> str:
        path = tmp_path / name
        path.write_text(content, encoding='utf-8')
        return str(path)

    return _write


@pytest.fixture
def navigation_error():
    return NavigationError('Timed out loading page')
