"""Lifecycle of the pipeline on one page load."""

from __future__ import annotations

import asyncio
import logging

from .context import EngineContext
from .frames import TabDocument
from .models import ResolutionOutcome
from .pipeline import ConsentExecutor

logger = logging.getLogger(__name__)


class PageSession:
    """Runs the executor on document-ready and again after quiet DOM changes.

    At most one run is in flight; mutations that arrive while a run is
    active, or after the page was resolved, are ignored. ``reapply``
    cancels any in-flight run and starts over.
    """

    def __init__(self, tab: TabDocument, executor: ConsentExecutor, ctx: EngineContext):
        self.tab = tab
        self.executor = executor
        self.ctx = ctx
        self.outcome: ResolutionOutcome | None = None
        self.resolved = False
        self.runs = 0
        self._run_task: asyncio.Task | None = None
        self._token: asyncio.Event | None = None
        self._debounce_task: asyncio.Task | None = None
        self._delayed: set[asyncio.Task] = set()
        self._retry_delays: set[int] = set()
        self._closed = False
        if executor.reschedule is None:
            executor.reschedule = self.schedule_retry

    @property
    def busy(self) -> bool:
        return self._run_task is not None and not self._run_task.done()

    async def start(self) -> ResolutionOutcome:
        """Resolve once now and start watching the document for late prompts."""
        if self.ctx.coordinator is not None:
            self.ctx.coordinator.attach(self)
        watch = getattr(self.tab, "watch_mutations", None)
        if watch is not None:
            try:
                await watch(self.notify_mutation)
            except Exception as e:
                logger.debug("Mutation watch unavailable on %s: %s", self.tab.url, e)
        return await self._run_now()

    # ─── Triggers ────────────────────────────────────────────────────────

    def notify_mutation(self, *_args) -> None:
        """DOM changed; run again once the page has been quiet for a while."""
        if self._closed or self.resolved or self.busy:
            return
        if self._debounce_task is not None:
            self._debounce_task.cancel()
        self._debounce_task = asyncio.get_running_loop().create_task(self._debounced())

    async def _debounced(self) -> None:
        await self.ctx.sleep(self.ctx.settings.mutation_debounce_ms / 1000)
        if self._closed or self.resolved or self.busy:
            return
        await self._run_now()

    async def reapply(self) -> ResolutionOutcome | None:
        """Forget the previous result and run immediately."""
        if not self.ctx.features.enabled("MANUAL_REAPPLY_BUTTON"):
            logger.debug("Manual re-apply disabled")
            return None
        if self._token is not None:
            self._token.set()
        if self.busy:
            # The run stops at its next step once the token is set.
            await asyncio.gather(self._run_task, return_exceptions=True)
        self.resolved = False
        self.outcome = None
        logger.info("Re-applying consent on %s", self.tab.url)
        return await self._run_now()

    def schedule_retry(self, delay_ms: int) -> None:
        """Run again after delay_ms unless resolved by then.

        Each delay is scheduled once per page load, so failed re-attempts
        do not schedule further ones.
        """
        if self._closed or delay_ms in self._retry_delays:
            return
        self._retry_delays.add(delay_ms)
        task = asyncio.get_running_loop().create_task(self._delayed_run(delay_ms))
        self._delayed.add(task)
        task.add_done_callback(self._delayed.discard)

    async def _delayed_run(self, delay_ms: int) -> None:
        await self.ctx.sleep(delay_ms / 1000)
        if self._closed or self.resolved or self.busy:
            return
        logger.debug("Delayed re-attempt on %s", self.tab.url)
        await self._run_now()

    # ─── Running ─────────────────────────────────────────────────────────

    async def _run_now(self) -> ResolutionOutcome:
        token = asyncio.Event()
        self._token = token
        self._run_task = asyncio.get_running_loop().create_task(self.executor.run(self.tab, token))
        self.runs += 1
        outcome = await self._run_task
        if self._token is token:
            self.outcome = outcome
            if outcome.success:
                self.resolved = True
        return outcome

    async def wait_idle(self) -> None:
        """Wait for pending debounce and in-flight runs (not delayed re-attempts)."""
        while True:
            pending = [t for t in (self._debounce_task, self._run_task) if t is not None and not t.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def close(self) -> None:
        self._closed = True
        if self._token is not None:
            self._token.set()
        tasks = [t for t in (self._debounce_task, self._run_task, *self._delayed) if t is not None and not t.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        if self.ctx.coordinator is not None:
            self.ctx.coordinator.detach(self)
