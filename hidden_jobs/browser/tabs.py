"""Tab lifecycle: one isolated browsing context per crawl job.

State machine per job::

    Created -> Loading -> (Loaded | TimedOut) -> Executing -> Closed

  - Loading -> TimedOut when the load signal misses the deadline; the
    context is force-closed and nothing is extracted.
  - The context is closed exactly once, whatever happened before. Close
    errors are logged and swallowed.
"""

import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any, Generic, TypeVar

from hidden_jobs.browser.actions import race_deadline
from hidden_jobs.browser.extract import snapshot_page
from hidden_jobs.core.schemas import PageSnapshot

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Produces a fresh, isolated browsing context (patchright BrowserContext).
ContextFactory = Callable[[], Awaitable[Any]]


class TabState(str, Enum):
    CREATED = "created"
    LOADING = "loading"
    LOADED = "loaded"
    TIMED_OUT = "timed_out"
    EXECUTING = "executing"
    CLOSED = "closed"


_TRANSITIONS: dict[TabState, frozenset[TabState]] = {
    TabState.CREATED: frozenset({TabState.LOADING, TabState.CLOSED}),
    TabState.LOADING: frozenset({TabState.LOADED, TabState.TIMED_OUT, TabState.CLOSED}),
    TabState.LOADED: frozenset({TabState.EXECUTING, TabState.CLOSED}),
    TabState.TIMED_OUT: frozenset({TabState.CLOSED}),
    TabState.EXECUTING: frozenset({TabState.CLOSED}),
    TabState.CLOSED: frozenset(),
}


class InvalidTransitionError(RuntimeError):
    """A tab was driven through a transition its state machine forbids."""


class Tab:
    """One browsing context opened for one URL."""

    def __init__(self, url: str, context_factory: ContextFactory) -> None:
        self.url = url
        self.state = TabState.CREATED
        self._context_factory = context_factory
        self._context: Any = None
        self._page: Any = None

    def _transition(self, new_state: TabState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            msg = f"Tab {self.url}: cannot go from {self.state.value} to {new_state.value}"
            raise InvalidTransitionError(msg)
        logger.debug("Tab %s: %s -> %s", self.url, self.state.value, new_state.value)
        self.state = new_state

    async def open(self, timeout_s: float) -> bool:
        """Create the context and load the URL. Returns False on timeout.

        Raises InvalidTransitionError if the tab is closed while opening; a
        context obtained after the close is released here.
        """
        self._transition(TabState.LOADING)
        context = await self._context_factory()
        if self.state is TabState.CLOSED:
            await self._close_context(context)
            msg = f"Tab {self.url}: closed while opening"
            raise InvalidTransitionError(msg)
        self._context = context
        self._page = await context.new_page()
        if self.state is TabState.CLOSED:
            msg = f"Tab {self.url}: closed while opening"
            raise InvalidTransitionError(msg)
        loaded = await race_deadline(
            self._page.goto(self.url, wait_until="load", timeout=0), timeout_s,
        )
        self._transition(TabState.LOADED if loaded else TabState.TIMED_OUT)
        return loaded

    def begin_execution(self) -> None:
        self._transition(TabState.EXECUTING)

    async def snapshot(self) -> PageSnapshot:
        """Extract the main page snapshot. Only valid while executing."""
        if self.state is not TabState.EXECUTING:
            msg = f"Tab {self.url}: snapshot requires executing state, not {self.state.value}"
            raise InvalidTransitionError(msg)
        return await snapshot_page(self._page)

    async def fetch_subpage(self, url: str, timeout_s: float) -> PageSnapshot | None:
        """Load ``url`` in a sub-page of this tab's context.

        Returns None if it does not load within ``timeout_s``. The sub-page
        is always closed.
        """
        page = await self._context.new_page()
        try:
            loaded = await race_deadline(
                page.goto(url, wait_until="load", timeout=0), timeout_s,
            )
            if not loaded:
                return None
            return await snapshot_page(page)
        finally:
            try:
                await page.close()
            except Exception as e:
                logger.debug("Error closing sub-page %s: %s", url, e)

    async def close(self) -> None:
        """Tear down the context. Idempotent; errors are logged, never raised."""
        if self.state is TabState.CLOSED:
            return
        self.state = TabState.CLOSED
        if self._context is not None:
            await self._close_context(self._context)

    async def _close_context(self, context: Any) -> None:
        try:
            await context.close()
        except Exception as e:
            logger.warning("Error closing tab for %s: %s", self.url, e)


class TabOutcome(Generic[T]):
    """How one tab run ended: timed out, failed, or produced a value."""

    def __init__(
        self,
        url: str,
        *,
        timed_out: bool = False,
        value: T | None = None,
        error: Exception | None = None,
    ) -> None:
        self.url = url
        self.timed_out = timed_out
        self.value = value
        self.error = error

    @property
    def ok(self) -> bool:
        return not self.timed_out and self.error is None


class TabLifecycleManager:
    """Runs work inside a freshly loaded, isolated tab and always closes it.

    Usage::

        tabs = TabLifecycleManager(session.new_context)
        outcome = await tabs.run(url, execute)
        if outcome.timed_out:
            ...
    """

    def __init__(
        self,
        context_factory: ContextFactory,
        *,
        load_timeout_s: float = 15.0,
        subpage_timeout_s: float = 5.0,
    ) -> None:
        self._context_factory = context_factory
        self._load_timeout_s = load_timeout_s
        self._subpage_timeout_s = subpage_timeout_s
        self._active: set[Tab] = set()

    @property
    def subpage_timeout_s(self) -> float:
        return self._subpage_timeout_s

    @property
    def active_count(self) -> int:
        return len(self._active)

    async def run(
        self,
        url: str,
        execute: Callable[[Tab], Awaitable[T]],
    ) -> TabOutcome[T]:
        """Open ``url``, run ``execute`` once it has loaded, then close.

        Never raises for load or execution failures; they come back as a
        TabOutcome with ``error`` set.
        """
        tab = Tab(url, self._context_factory)
        self._active.add(tab)
        try:
            if not await tab.open(self._load_timeout_s):
                logger.info(
                    "Timeout: %s took too long to load (> %.0fs)", url, self._load_timeout_s,
                )
                return TabOutcome(url, timed_out=True)
            tab.begin_execution()
            value = await execute(tab)
            return TabOutcome(url, value=value)
        except Exception as e:
            logger.warning("Failed to process %s: %s", url, e)
            return TabOutcome(url, error=e)
        finally:
            await tab.close()
            self._active.discard(tab)

    async def close_all(self) -> None:
        """Best-effort close of every tab still open."""
        for tab in list(self._active):
            await tab.close()
