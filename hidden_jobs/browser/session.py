"""Browser session management using patchright.

Rules:
  - One browser per run, one isolated BrowserContext per crawl job
  - Contexts are created on demand and owned by the tab lifecycle
  - patchright, not vanilla playwright
"""

import logging
from types import TracebackType

from patchright.async_api import Browser, BrowserContext, Playwright, async_playwright

from hidden_jobs.core.config import BrowserConfig

logger = logging.getLogger(__name__)


class BrowserSession:
    """Async context manager that owns one patchright browser.

    Usage::

        async with BrowserSession(config) as session:
            context = await session.new_context()
            page = await context.new_page()
    """

    def __init__(self, config: BrowserConfig) -> None:
        self._config = config
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None

    @property
    def browser(self) -> Browser:
        """The browser for this session. Raises if not entered."""
        if self._browser is None:
            msg = "BrowserSession not entered - use 'async with'"
            raise RuntimeError(msg)
        return self._browser

    async def new_context(self) -> BrowserContext:
        """Create a fresh, isolated browsing context (own cookies and storage)."""
        context = await self.browser.new_context()
        context.set_default_timeout(self._config.timeout_ms)
        return context

    async def __aenter__(self) -> "BrowserSession":
        pw = await async_playwright().start()
        self._playwright = pw
        self._browser = await pw.chromium.launch(headless=self._config.headless)
        logger.info("Browser started (headless=%s)", self._config.headless)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self._browser is not None:
            await self._browser.close()
        if self._playwright is not None:
            await self._playwright.stop()
