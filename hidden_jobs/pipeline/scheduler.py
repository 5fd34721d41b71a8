"""Crawl scheduler: single-flight, in-order processing of one batch of sites.

Per job:
  1. Progress event (50-100% band; 0-50% belongs to candidate discovery)
  2. Cache read; a hit skips the browser
  3. Tab run: load (15s deadline) -> score main page -> career page crawl
  4. Cache write, then a result event if the job found anything

Scheduler state::

    Idle -> Running -> (Draining on cancel) -> Idle

Cancellation is cooperative: it is checked between jobs, and the result of a
job in flight when cancel() is called is discarded.
"""

import asyncio
import json
import logging
import sqlite3
from datetime import datetime
from enum import Enum

from hidden_jobs.browser.actions import random_sleep
from hidden_jobs.browser.tabs import Tab, TabLifecycleManager
from hidden_jobs.core.config import SearchConfig
from hidden_jobs.core.db import insert_crawl_run
from hidden_jobs.core.schemas import CandidateSite, CrawlResult, PageSignals
from hidden_jobs.pipeline.broker import (
    BatchComplete,
    MessageBroker,
    ProgressUpdate,
    ResultFound,
    SearchCancelled,
    StartAck,
)
from hidden_jobs.pipeline.cache import ResultCache
from hidden_jobs.pipeline.career_crawler import CareerPageCrawler
from hidden_jobs.pipeline.scorer import score_page

logger = logging.getLogger(__name__)

DISCOVERY_PROGRESS_SHARE = 50.0


class SchedulerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    DRAINING = "draining"


class CrawlJob:
    """One candidate's unit of work. Marked processed exactly once."""

    def __init__(self, site: CandidateSite) -> None:
        self.site = site
        self.processed = False
        self.result: CrawlResult | None = None

    def complete(self, result: CrawlResult | None) -> None:
        self.processed = True
        self.result = result


class CrawlRun:
    """State of one batch. Created by start(), dropped when the batch ends."""

    def __init__(self, jobs: list[CrawlJob], config: SearchConfig) -> None:
        self.jobs = jobs
        self.config = config
        self.results: list[CrawlResult] = []
        self.cancelled = False
        self.started_at = datetime.now()

    def next_job(self) -> CrawlJob | None:
        """First job not yet processed, in input order."""
        for job in self.jobs:
            if not job.processed:
                return job
        return None

    @property
    def processed_count(self) -> int:
        return sum(1 for job in self.jobs if job.processed)


class CrawlScheduler:
    """Processes one batch at a time, one site at a time.

    Usage::

        scheduler = CrawlScheduler(tabs, cache, broker)
        ack = scheduler.start(candidates, settings.search)
        await scheduler.wait()
    """

    def __init__(
        self,
        tabs: TabLifecycleManager,
        cache: ResultCache,
        broker: MessageBroker,
        *,
        conn: sqlite3.Connection | None = None,
        job_delay_min: float = 0.5,
        job_delay_max: float = 1.0,
    ) -> None:
        self._tabs = tabs
        self._cache = cache
        self._broker = broker
        self._conn = conn
        self._job_delay = (job_delay_min, job_delay_max)
        self._state = SchedulerState.IDLE
        self._run: CrawlRun | None = None
        self._task: asyncio.Task[None] | None = None
        broker.on_cancel(self.cancel)

    @property
    def state(self) -> SchedulerState:
        return self._state

    def start(self, candidates: list[CandidateSite], config: SearchConfig) -> StartAck:
        """Queue a batch and begin processing it in the background.

        Must be called from a running event loop. Returns a busy ack, and
        changes nothing, if a batch is already running.
        """
        if self._state is not SchedulerState.IDLE:
            logger.info("Crawl already running - rejecting batch of %d", len(candidates))
            return StartAck(status="busy")

        run = CrawlRun([CrawlJob(site) for site in candidates], config)
        self._run = run
        self._state = SchedulerState.RUNNING
        logger.info(
            "Received %d websites to process (max results %d)",
            len(run.jobs), config.max_results,
        )
        self._task = asyncio.get_running_loop().create_task(self._process_queue(run))
        return StartAck(status="processing", queued_count=len(run.jobs))

    async def wait(self) -> None:
        """Wait until the background task of the latest batch has exited."""
        if self._task is not None:
            await self._task

    async def cancel(self) -> None:
        """Stop the running batch. Idempotent when nothing is running."""
        run = self._run
        if self._state is not SchedulerState.RUNNING or run is None:
            logger.debug("Cancel requested with no running crawl - ignoring")
            return

        logger.info("Cancelling crawl (%d/%d processed)", run.processed_count, len(run.jobs))
        run.cancelled = True
        self._state = SchedulerState.DRAINING

        await self._tabs.close_all()
        for job in run.jobs:
            if not job.processed:
                job.complete(None)
        run.results.clear()

        self._finish(run, "cancelled")
        self._broker.publish(SearchCancelled())

    # --- Private helpers ---

    async def _process_queue(self, run: CrawlRun) -> None:
        while not run.cancelled:
            job = run.next_job()
            if job is None:
                break

            self._report_progress(run, job)
            try:
                result, from_cache = await self._process_job(job.site, run.config)
            except Exception:
                logger.exception("Unexpected error processing %s", job.site.website)
                result, from_cache = None, False

            if run.cancelled:
                logger.info("Discarding result for %s (crawl cancelled)", job.site.website)
                return

            job.complete(result)
            if result is not None and not from_cache:
                self._cache.put(job.site.website, result)
            if result is not None and (result.timed_out or result.has_signals):
                run.results.append(result)
                self._broker.publish(ResultFound(result=result))

            if run.next_job() is not None:
                await random_sleep(*self._job_delay)

        if run.cancelled:
            return

        logger.info(
            "All %d websites processed, %d results", len(run.jobs), len(run.results),
        )
        self._finish(run, "complete")
        self._broker.publish(BatchComplete(results=list(run.results)))

    async def _process_job(
        self, site: CandidateSite, config: SearchConfig,
    ) -> tuple[CrawlResult | None, bool]:
        """Resolve one site to (result, from_cache). The result is None if unusable."""
        cached = self._cache.get(site.website)
        if cached is not None:
            logger.info("Using cached result for %s", site.website)
            return cached, True
        return await self._visit(site, config), False

    async def _visit(self, site: CandidateSite, config: SearchConfig) -> CrawlResult | None:
        async def execute(tab: Tab) -> PageSignals:
            snapshot = await tab.snapshot()
            signals = score_page(snapshot, config)
            crawler = CareerPageCrawler(tab.fetch_subpage, self._tabs.subpage_timeout_s)
            return await crawler.augment(signals, config)

        logger.info("Processing website for %s: %s", site.business_name, site.website)
        outcome = await self._tabs.run(site.website, execute)
        if outcome.timed_out:
            return CrawlResult.timeout(site)
        if outcome.value is None:
            return None
        return CrawlResult.from_signals(site, outcome.value)

    def _report_progress(self, run: CrawlRun, job: CrawlJob) -> None:
        processed = run.processed_count
        target = min(len(run.jobs), run.config.max_results)
        share = 100.0 - DISCOVERY_PROGRESS_SHARE
        progress = min(100.0, DISCOVERY_PROGRESS_SHARE + (processed / target) * share)
        name = job.site.business_name or "Unknown Business"
        self._broker.publish(ProgressUpdate(
            status=f"Processing website {processed + 1} of {target}: {name}",
            progress=progress,
        ))

    def _finish(self, run: CrawlRun, status: str) -> None:
        """Back to Idle; record the batch if a database was given."""
        self._state = SchedulerState.IDLE
        self._run = None
        if self._conn is None:
            return
        try:
            insert_crawl_run(
                self._conn,
                queued_count=len(run.jobs),
                result_count=len(run.results),
                status=status,
                started_at=run.started_at,
                finished_at=datetime.now(),
            )
        except sqlite3.Error as e:
            logger.warning("Failed to record crawl run: %s", e)


def export_results_json(results: list[CrawlResult]) -> str:
    """Export crawl results as a JSON string, best score first."""
    ordered = sorted(results, key=lambda r: r.score if r.score is not None else -1, reverse=True)
    return json.dumps([r.model_dump(mode="json") for r in ordered], indent=2)
