"""Search-and-retry orchestration for one work unit.

For a (zipcode, state) unit the orchestrator walks the search policy:

    Searching(term) -> Evaluating(entry) -> Resolved(Valid | NotFound | Error)

Each search term is opened as a map-search URL; up to ``max_entries`` result
entries are clicked, extracted, validated and geo-checked against the unit.
The first accepted candidate resolves the unit as Valid. Running out of terms
resolves it as Not Found; a term whose search renders nothing counts as
exhausted. A failed page load, click or back navigation aborts the attempt
as Error, which the outer retry policy may re-run in a fresh browser context.
"""

import logging
from contextlib import AbstractAsyncContextManager
from pathlib import Path
from typing import Callable, Optional, Sequence

from config import maps_config
from src.extraction.extractor import AddressCandidate, extract_from_loaded_result
from src.extraction.page import ElementHandle, PageHandle
from src.extraction.retry import OuterRetryPolicy, SearchPolicy
from src.extraction.strategies import DEFAULT_STRATEGIES, LocatorStrategy
from src.shared.constants import BROWSER
from src.shared.errors import AutomationError, ExtractionError, NavigationError
from src.shared.record_schema import ExtractionOutcome, WorkUnit
from src.shared.validation import validate_address

__all__ = [
    'AddressOrchestrator',
    'PageFactory',
]


PageFactory = Callable[[], AbstractAsyncContextManager]


class AddressOrchestrator:
    """Resolve work units to outcomes using a page factory.

    Args:
        page_factory: Returns an async context manager yielding a fresh
            PageHandle (one isolated browser context per attempt)
        search_policy: Search terms and entries per term
        retry_policy: Outer retry policy applied on Error
        navigation_timeout_ms: Timeout for page loads
        results_wait_ms: Bounded wait for the result list to render
        strategies: Address locator strategies in priority order
        diagnostics_dir: Where to save screenshot/HTML of final errors (None = off)
        on_retry: Optional callback for outer retries (structured logging)
    """

    def __init__(
        self,
        page_factory: PageFactory,
        search_policy: SearchPolicy,
        retry_policy: Optional[OuterRetryPolicy] = None,
        navigation_timeout_ms: int = BROWSER.NAVIGATION_TIMEOUT_MS,
        results_wait_ms: int = BROWSER.RESULTS_WAIT_MS,
        strategies: Sequence[LocatorStrategy] = DEFAULT_STRATEGIES,
        diagnostics_dir: Optional[str] = None,
        on_retry: Optional[Callable] = None
    ):
        self.page_factory = page_factory
        self.search_policy = search_policy
        self.retry_policy = retry_policy or OuterRetryPolicy()
        self.navigation_timeout_ms = navigation_timeout_ms
        self.results_wait_ms = results_wait_ms
        self.strategies = strategies
        self.diagnostics_dir = diagnostics_dir
        self.on_retry = on_retry

    async def resolve(self, unit: WorkUnit) -> ExtractionOutcome:
        """Resolve a unit, re-running it on Error per the outer retry policy."""
        return await self.retry_policy.run(unit, self.resolve_once, self.on_retry)

    async def resolve_once(self, unit: WorkUnit, attempt: int = 1) -> ExtractionOutcome:
        """Run a single attempt in a fresh page; faults become an Error outcome."""
        try:
            async with self.page_factory() as page:
                try:
                    return await self.search_unit(page, unit)
                except ExtractionError:
                    if attempt >= self.retry_policy.attempts:
                        await self._save_diagnostics(page, unit)
                    raise
        except ExtractionError as e:
            logging.warning(f"[{unit}] Attempt {attempt} aborted: {e}")
            return ExtractionOutcome.error(unit, str(e))

    async def search_unit(self, page: PageHandle, unit: WorkUnit) -> ExtractionOutcome:
        """Walk search terms and result entries until a candidate is accepted.

        Raises:
            ExtractionError: On any navigation or automation fault
        """
        exhausted_term = None
        for search in self.search_policy.attempts():
            term = search.search_term
            if term == exhausted_term:
                continue

            if search.result_index == 0:
                logging.info(f"[{unit}] Searching for {term}")
                if not await self.open_search(page, unit, term):
                    exhausted_term = term
                    continue
            else:
                await page.go_back(timeout=self.navigation_timeout_ms)
                await page.settle(BROWSER.BACK_SETTLE_MS)
                await page.wait_for_any_selector(maps_config.RESULTS_READY_SELECTORS, self.results_wait_ms)

            entry = await self.pick_entry(page, search.result_index)
            if entry is None:
                if search.result_index == 0 and await self._has_place_panel(page):
                    # Search jumped straight to a single place
                    candidate = await extract_from_loaded_result(page, self.strategies)
                    if candidate and self.accept(unit, candidate):
                        return ExtractionOutcome.valid(unit, candidate.street_line, candidate.city, term)
                logging.debug(f"[{unit}] No result entry {search.result_index} for {term}")
                exhausted_term = term
                continue

            await entry.click()
            await page.settle(BROWSER.SETTLE_MS)

            candidate = await extract_from_loaded_result(page, self.strategies)
            if candidate is None:
                logging.debug(f"[{unit}] No address text in entry {search.result_index} for {term}")
                continue
            if self.accept(unit, candidate):
                logging.info(f"[{unit}] Found via {term} #{search.result_index}: {candidate.street_line}, {candidate.city}")
                return ExtractionOutcome.valid(unit, candidate.street_line, candidate.city, term)

        logging.info(f"[{unit}] No valid address found for any search term")
        return ExtractionOutcome.not_found(unit)

    async def open_search(self, page: PageHandle, unit: WorkUnit, term: str) -> bool:
        """Navigate to the search for one term and wait for results to render.

        Returns:
            False if the search shows no results, either through the
            no-results panel or because nothing renders within the wait

        Raises:
            NavigationError: If the page does not load
        """
        url = maps_config.build_search_url(term, unit.zipcode, unit.state)
        try:
            await page.goto(url, wait_until='domcontentloaded', timeout=self.navigation_timeout_ms)
        except NavigationError as e:
            logging.debug(f"[{unit}] domcontentloaded navigation failed ({e}), retrying with load")
            await page.goto(url, wait_until='load', timeout=self.navigation_timeout_ms)

        await self.dismiss_consent(page)
        try:
            matched = await page.wait_for_any_selector(
                maps_config.RESULTS_READY_SELECTORS + maps_config.NO_RESULTS_SELECTORS,
                self.results_wait_ms
            )
        except NavigationError as e:
            logging.info(f"[{unit}] No results for {term}: {e}")
            return False

        if matched in maps_config.NO_RESULTS_SELECTORS:
            logging.info(f"[{unit}] No results for {term}")
            return False
        return True

    async def dismiss_consent(self, page: PageHandle) -> bool:
        """Click a cookie consent button if one is showing."""
        for text in maps_config.CONSENT_BUTTON_TEXTS:
            try:
                button = await page.button_with_text(text)
                if button and await button.is_visible(timeout=BROWSER.CONSENT_VISIBLE_MS):
                    await button.click()
                    await page.settle(BROWSER.BACK_SETTLE_MS)
                    logging.debug(f"Dismissed consent dialog via '{text}'")
                    return True
            except AutomationError as e:
                logging.debug(f"Consent button '{text}' not usable: {e}")
        return False

    async def pick_entry(self, page: PageHandle, index: int) -> Optional[ElementHandle]:
        """Return result entry ``index`` from the first selector that has it."""
        for selector, indexed in maps_config.result_entry_selectors(index):
            try:
                elements = await page.locate_all(selector)
            except AutomationError as e:
                logging.debug(f"Result selector {selector} failed: {e}")
                continue

            if indexed and elements:
                return elements[0]
            if not indexed and len(elements) > index:
                return elements[index]
        return None

    def accept(self, unit: WorkUnit, candidate: AddressCandidate) -> bool:
        """Validate a candidate and check it lies in the unit's zipcode/state."""
        result = validate_address(candidate.street_line, candidate.city)
        if not result.is_valid:
            logging.debug(f"[{unit}] Rejected {candidate.text!r}: {'; '.join(result.errors)}")
            return False

        if candidate.region and candidate.region != (unit.state, unit.zipcode):
            found_state, found_zip = candidate.region
            logging.info(
                f"[{unit}] Address mismatch - expected {unit.zipcode}, {unit.state} | "
                f"found {found_zip}, {found_state}"
            )
            return False
        return True

    async def _has_place_panel(self, page: PageHandle) -> bool:
        try:
            return bool(await page.locate_all(maps_config.PLACE_PANEL_SELECTOR))
        except AutomationError:
            return False

    async def _save_diagnostics(self, page: PageHandle, unit: WorkUnit) -> None:
        if not self.diagnostics_dir:
            return

        stem = Path(self.diagnostics_dir) / f"{unit.zipcode}_{unit.state}"
        try:
            await page.screenshot(f"{stem}.png")
        except AutomationError as e:
            logging.warning(f"[{unit}] Could not save screenshot: {e}")
        try:
            html = await page.content()
            stem.parent.mkdir(parents=True, exist_ok=True)
            Path(f"{stem}.html").write_text(html, encoding='utf-8')
            logging.info(f"[{unit}] Saved diagnostics to {stem}.*")
        except (AutomationError, OSError) as e:
            logging.warning(f"[{unit}] Could not save page HTML: {e}")
