"""Asynchronous driver: fetch every source page, aggregate, report.

The driver owns the run. It turns the add-on list into one FetchJob per
(add-on, source), puts them on a queue and lets ``num_workers`` workers drain
it. Each worker fetches the page, runs the matching extractor and hands the
count to the Aggregator, which calls back into the driver when an add-on is
complete.

Failures are per job: a bad status, an unreachable host or a page whose
layout changed is logged and recorded as a failed source for that add-on.
Other add-ons carry on.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from addon_fetcher.aggregator import Aggregator
from addon_fetcher.common.exceptions import (
    ScraperAssumptionException,
    TransientException,
)
from addon_fetcher.common.request_manager import AsyncRequestManager
from addon_fetcher.data_types import (
    AddonConfig,
    AddonTotal,
    FetchJob,
    ReportState,
)
from addon_fetcher.extractors import Extractor
from addon_fetcher.reporter import LogReporter, Reporter

logger = logging.getLogger(__name__)


@dataclass
class RunSummary:
    """What a run produced.

    Attributes:
        totals: Every completed total, in completion order.
        report_states: Final report state per add-on.
        failures: Number of fetch jobs that failed.
    """

    totals: list[AddonTotal] = field(default_factory=list)
    report_states: dict[str, ReportState] = field(default_factory=dict)
    failures: int = 0

    @property
    def complete(self) -> list[AddonTotal]:
        return [total for total in self.totals if not total.partial]

    @property
    def partial(self) -> list[AddonTotal]:
        return [total for total in self.totals if total.partial]


class AsyncDriver:
    """Runs the scrape, aggregate and report pipeline for a configuration.

    Example usage::

        config = load_addons("addons.json")
        driver = AsyncDriver(config, build_extractors(), LogReporter())
        summary = await driver.run()
    """

    def __init__(
        self,
        config: AddonConfig,
        extractors: dict[str, Extractor],
        reporter: Reporter | None = None,
        request_manager: AsyncRequestManager | None = None,
        on_total: Callable[[AddonTotal], Awaitable[None]] | None = None,
        num_workers: int = 4,
        completion_timeout: float | None = None,
        stop_event: asyncio.Event | None = None,
    ) -> None:
        """Initialize the driver.

        Args:
            config: Loaded add-on configuration.
            extractors: One extractor per source key.
            reporter: Reporter for completed totals. Defaults to LogReporter.
            request_manager: AsyncRequestManager for fetching pages. If not
                given, the driver creates one and closes it after the run.
            on_total: Optional async callback invoked with every completed
                total after the reporter has run (e.g. JSONL output).
            num_workers: Maximum number of pages fetched at the same time.
            completion_timeout: Seconds to wait for all pages before giving
                up and reporting pending add-ons as partial. None waits until
                every job has finished.
            stop_event: Optional asyncio.Event for graceful shutdown. When
                set, workers stop after their current job and pending add-ons
                are reported as partial.
        """
        if num_workers < 1:
            raise ValueError("num_workers must be at least 1")

        self.config = config
        self.extractors = extractors
        self.reporter = reporter or LogReporter()
        if request_manager is not None:
            self.request_manager = request_manager
            self._owns_request_manager = False
        else:
            self.request_manager = AsyncRequestManager()
            self._owns_request_manager = True
        self.on_total = on_total
        self.num_workers = num_workers
        self.completion_timeout = completion_timeout
        self.stop_event = stop_event

        self.aggregator = Aggregator(
            on_complete=self._handle_total, sources=tuple(extractors)
        )
        self.job_queue: asyncio.Queue[FetchJob] = asyncio.Queue()
        self.summary = RunSummary()

    def _build_jobs(self) -> list[FetchJob]:
        jobs: list[FetchJob] = []
        for addon in self.config.descriptors:
            for source, url in addon.source_urls.items():
                if source in self.extractors:
                    jobs.append(FetchJob(addon=addon, source=source, url=url))
        return jobs

    async def run(self) -> RunSummary:
        """Fetch every page, report every add-on, return the summary."""
        try:
            if self.stop_event and self.stop_event.is_set():
                return self.summary

            self.aggregator.expect(
                [addon.name for addon in self.config.descriptors]
            )
            for job in self._build_jobs():
                self.job_queue.put_nowait(job)
            logger.info(
                f"Fetching {self.job_queue.qsize()} page(s) for "
                f"{len(self.config.descriptors)} addon(s) "
                f"with {self.num_workers} worker(s)"
            )

            workers = [
                asyncio.create_task(self._worker(i))
                for i in range(self.num_workers)
            ]
            await self._wait_for_jobs(workers)

            for worker in workers:
                worker.cancel()
            results = await asyncio.gather(*workers, return_exceptions=True)

            pending = self.aggregator.pending()
            if pending:
                logger.warning(
                    f"{len(pending)} addon(s) did not hear from every source: "
                    f"{', '.join(pending)}"
                )
                await self.aggregator.flush_partial()

            for result in results:
                if isinstance(result, Exception):
                    raise result
        finally:
            if self._owns_request_manager:
                await self.request_manager.close()

        return self.summary

    async def _wait_for_jobs(self, workers: list[asyncio.Task]) -> None:
        """Block until the queue drains, the timeout passes or stop is set."""
        loop = asyncio.get_running_loop()
        deadline = (
            loop.time() + self.completion_timeout
            if self.completion_timeout is not None
            else None
        )
        while True:
            if self.stop_event and self.stop_event.is_set():
                logger.info("Stop requested, abandoning remaining pages")
                return
            if all(worker.done() for worker in workers):
                # Every worker died on an unexpected error; run() re-raises it.
                return

            wait = 0.1
            if deadline is not None:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    logger.warning(
                        f"Gave up waiting after {self.completion_timeout}s"
                    )
                    return
                wait = min(wait, remaining)

            try:
                await asyncio.wait_for(
                    asyncio.shield(self.job_queue.join()), timeout=wait
                )
                return
            except TimeoutError:
                continue

    async def _worker(self, worker_id: int) -> None:
        """Worker coroutine that processes jobs from the queue.

        Args:
            worker_id: Identifier for this worker (for debugging).
        """
        while True:
            if self.stop_event and self.stop_event.is_set():
                break

            try:
                job = await self.job_queue.get()
            except asyncio.CancelledError:
                break

            try:
                await self._process_job(job)
            finally:
                self.job_queue.task_done()

    async def _process_job(self, job: FetchJob) -> None:
        name = job.addon.name
        try:
            response = await self.request_manager.fetch(job.url)
            count = self.extractors[job.source].extract(
                response.text, name, job.url
            )
        except TransientException as e:
            logger.error(f"Error: {e} (addon={name}, source={job.source})")
            await self._record_failure(job, e)
            return
        except ScraperAssumptionException as e:
            logger.error(
                f"Could not read the download count for {name} "
                f"from {job.source}: {e}"
            )
            await self._record_failure(job, e)
            return

        logger.debug(f"{name}: {count} downloads on {job.source}")
        await self.aggregator.record_count(name, count, job.source)

    async def _record_failure(self, job: FetchJob, error: Exception) -> None:
        self.summary.failures += 1
        await self.aggregator.record_failure(job.addon.name, job.source, error)

    async def _handle_total(self, total: AddonTotal) -> None:
        self.summary.totals.append(total)
        try:
            state = await self.reporter.report(total)
        except asyncio.CancelledError:
            logger.warning(f"Report for {total.name} interrupted by shutdown")
            self.summary.report_states[total.name] = ReportState.FAILED
            raise
        self.summary.report_states[total.name] = state
        if self.on_total:
            await self.on_total(total)
