"""Message broker between the crawl scheduler and its observers.

Events are a tagged union (``kind`` discriminator). Observers implement one
handler per event type; the broker dispatches on the event class. A failing
observer is logged and never disturbs the crawl.

Outbound, in order of occurrence::

    progress_update*, result_found*, (batch_complete | search_cancelled)
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from hidden_jobs.core.schemas import CrawlResult

logger = logging.getLogger(__name__)


class ProgressUpdate(BaseModel):
    kind: Literal["progress_update"] = "progress_update"
    status: str
    progress: float = Field(ge=0.0, le=100.0)


class ResultFound(BaseModel):
    kind: Literal["result_found"] = "result_found"
    result: CrawlResult


class BatchComplete(BaseModel):
    kind: Literal["batch_complete"] = "batch_complete"
    results: list[CrawlResult] = Field(default_factory=list)


class SearchCancelled(BaseModel):
    kind: Literal["search_cancelled"] = "search_cancelled"
    status: str = "Search cancelled"


BrokerEvent = Annotated[
    Union[ProgressUpdate, ResultFound, BatchComplete, SearchCancelled],
    Field(discriminator="kind"),
]


class StartAck(BaseModel):
    """Immediate answer to a batch request."""

    status: Literal["processing", "busy"]
    queued_count: int = 0


class EventObserver:
    """Base observer: override the handlers you care about."""

    def on_progress_update(self, event: ProgressUpdate) -> None:
        pass

    def on_result_found(self, event: ResultFound) -> None:
        pass

    def on_batch_complete(self, event: BatchComplete) -> None:
        pass

    def on_search_cancelled(self, event: SearchCancelled) -> None:
        pass


_HANDLERS: dict[type[BaseModel], str] = {
    ProgressUpdate: "on_progress_update",
    ResultFound: "on_result_found",
    BatchComplete: "on_batch_complete",
    SearchCancelled: "on_search_cancelled",
}


class MessageBroker:
    """Relays scheduler events to observers and cancellation to the scheduler."""

    def __init__(self) -> None:
        self._observers: list[EventObserver] = []
        self._cancel_handlers: list[Callable[[], Awaitable[None]]] = []

    def subscribe(self, observer: EventObserver) -> None:
        self._observers.append(observer)

    def unsubscribe(self, observer: EventObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def publish(self, event: BrokerEvent) -> None:
        handler_name = _HANDLERS[type(event)]
        for observer in list(self._observers):
            try:
                getattr(observer, handler_name)(event)
            except Exception:
                logger.warning(
                    "Observer %s failed on %s", type(observer).__name__, event.kind,
                    exc_info=True,
                )

    def on_cancel(self, handler: Callable[[], Awaitable[None]]) -> None:
        """Register a coroutine function to run when cancellation is requested."""
        self._cancel_handlers.append(handler)

    async def request_cancel(self) -> None:
        """Inbound control: forward a cancellation to every registered handler."""
        for handler in list(self._cancel_handlers):
            await handler()


class RecordingObserver(EventObserver):
    """Keeps every event in arrival order. Used by the CLI export and tests."""

    def __init__(self) -> None:
        self.events: list[BrokerEvent] = []

    def on_progress_update(self, event: ProgressUpdate) -> None:
        self.events.append(event)

    def on_result_found(self, event: ResultFound) -> None:
        self.events.append(event)

    def on_batch_complete(self, event: BatchComplete) -> None:
        self.events.append(event)

    def on_search_cancelled(self, event: SearchCancelled) -> None:
        self.events.append(event)

    def of_kind(self, kind: str) -> list[BaseModel]:
        return [e for e in self.events if e.kind == kind]
