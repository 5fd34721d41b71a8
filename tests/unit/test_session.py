"""Tests for browser session: launch options and per-job contexts."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from hidden_jobs.browser.session import BrowserSession
from hidden_jobs.core.config import BrowserConfig


def _fake_playwright() -> tuple[MagicMock, MagicMock, MagicMock]:
    context = MagicMock()
    browser = MagicMock()
    browser.new_context = AsyncMock(return_value=context)
    browser.close = AsyncMock()
    pw = MagicMock()
    pw.chromium.launch = AsyncMock(return_value=browser)
    pw.stop = AsyncMock()
    starter = MagicMock()
    starter.start = AsyncMock(return_value=pw)
    return starter, browser, context


class TestBrowserSession:
    def test_browser_before_enter_raises(self) -> None:
        session = BrowserSession(BrowserConfig())
        with pytest.raises(RuntimeError, match="not entered"):
            _ = session.browser

    async def test_launch_and_teardown(self) -> None:
        starter, browser, _ = _fake_playwright()
        with patch("hidden_jobs.browser.session.async_playwright", return_value=starter):
            async with BrowserSession(BrowserConfig(headless=True)) as session:
                assert session.browser is browser

        pw = starter.start.return_value
        pw.chromium.launch.assert_awaited_once_with(headless=True)
        browser.close.assert_awaited_once()
        pw.stop.assert_awaited_once()

    async def test_new_context_sets_timeout(self) -> None:
        starter, browser, context = _fake_playwright()
        with patch("hidden_jobs.browser.session.async_playwright", return_value=starter):
            async with BrowserSession(BrowserConfig(timeout_ms=5000)) as session:
                assert await session.new_context() is context
                await session.new_context()

        assert browser.new_context.await_count == 2
        context.set_default_timeout.assert_called_with(5000)
