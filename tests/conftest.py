"""Shared fakes: a tiny in-memory web served through patchright-shaped objects."""

import asyncio
from typing import Any

import pytest


class FakePage:
    """Page double: goto() loads a canned URL, evaluate() returns its payload."""

    def __init__(self, context: "FakeContext") -> None:
        self._context = context
        self.url = "about:blank"
        self.closed = False

    async def goto(self, url: str, wait_until: str = "load", timeout: float = 0) -> None:
        web = self._context.web
        self.url = url
        if url in web.hanging:
            # Never signals load; only a context close releases it.
            await self._context.closed_event.wait()
            msg = "Target page, context or browser has been closed"
            raise RuntimeError(msg)
        if url not in web.pages:
            msg = f"net::ERR_NAME_NOT_RESOLVED at {url}"
            raise RuntimeError(msg)

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        payload = self._context.web.pages[self.url]
        if isinstance(payload, Exception):
            raise payload
        return payload

    async def close(self) -> None:
        self.closed = True


class FakeContext:
    def __init__(self, web: "FakeWeb") -> None:
        self.web = web
        self.pages: list[FakePage] = []
        self.close_calls = 0
        self.closed_event = asyncio.Event()

    async def new_page(self) -> FakePage:
        page = FakePage(self)
        self.pages.append(page)
        return page

    async def close(self) -> None:
        self.close_calls += 1
        self.closed_event.set()
        if self.web.fail_close:
            msg = "close failed"
            raise RuntimeError(msg)


class FakeWeb:
    """Canned pages by URL plus every context opened against them."""

    def __init__(self) -> None:
        self.pages: dict[str, Any] = {}
        self.hanging: set[str] = set()
        self.contexts: list[FakeContext] = []
        self.fail_close = False
        # When set, new_context() waits on it before handing out a context.
        self.context_gate: asyncio.Event | None = None

    def add(
        self,
        url: str,
        text: str = "",
        links: list[tuple[str, str]] | None = None,
        blocks: list[tuple[str, str]] | None = None,
    ) -> None:
        self.pages[url] = {
            "url": url,
            "title": "",
            "text": text,
            "links": [{"href": href, "text": t} for href, t in (links or [])],
            "blocks": [{"text": t, "heading": h} for t, h in (blocks or [])],
        }

    def hang(self, url: str) -> None:
        self.hanging.add(url)

    def fail_extraction(self, url: str) -> None:
        self.pages[url] = RuntimeError("script injection failed")

    async def new_context(self) -> FakeContext:
        if self.context_gate is not None:
            await self.context_gate.wait()
        context = FakeContext(self)
        self.contexts.append(context)
        return context


@pytest.fixture
def web() -> FakeWeb:
    return FakeWeb()
