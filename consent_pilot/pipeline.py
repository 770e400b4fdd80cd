"""Per-page resolution pipeline.

One run walks an explicit state machine

    IDLE → DETECTING → DECIDING → APPLYING → VERIFYING
         → (DONE | RETRYING | ESCALATING) → TERMINAL

bounded by ``max_attempts``, a wall-clock deadline of ``give_up_ms`` and an
optional cancellation token. Collaborator failures never abort a run.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Protocol

from .context import EngineContext
from .frames import TabDocument, capture_view
from .handlers.base import CmpHandler
from .models import (
    ESSENTIAL_ONLY,
    ConsentPolicy,
    DetectionResult,
    LogEntry,
    PipelineState,
    ResolutionOutcome,
)
from .utils import extract_hostname, host_matches, now_iso

logger = logging.getLogger(__name__)


class PreferenceStore(Protocol):
    async def get_policy_for_domain(self, domain: str) -> ConsentPolicy | None: ...

    async def record_applied_policy(self, domain: str, policy: ConsentPolicy) -> None: ...


class ActionLog(Protocol):
    async def append_log(self, entry: LogEntry) -> None: ...


# Called with (delay_ms,) for each delayed re-attempt of a slow site.
Rescheduler = Callable[[int], None]


class ConsentExecutor:
    """Detect → decide → apply → verify, with retries and escalation."""

    def __init__(
        self,
        ctx: EngineContext,
        preferences: PreferenceStore | None = None,
        log: ActionLog | None = None,
        reschedule: Rescheduler | None = None,
    ):
        self.ctx = ctx
        self.preferences = preferences
        self.log = log
        self.reschedule = reschedule

    # ─── Collaborators ───────────────────────────────────────────────────

    def default_policy(self) -> ConsentPolicy:
        if self.ctx.features.enabled("GLOBAL_REJECT_NON_ESSENTIAL"):
            return ESSENTIAL_ONLY
        try:
            return ConsentPolicy.from_name(self.ctx.settings.default_policy)
        except ValueError:
            logger.warning("Bad default_policy %r, using essential", self.ctx.settings.default_policy)
            return ESSENTIAL_ONLY

    async def policy_for(self, domain: str) -> ConsentPolicy:
        if self.preferences is None:
            return self.default_policy()
        try:
            policy = await self.preferences.get_policy_for_domain(domain)
        except Exception as e:
            logger.warning("Preference lookup failed for %s: %s", domain, e)
            return self.default_policy()
        return policy or self.default_policy()

    async def _record(self, domain: str, outcome: ResolutionOutcome, policy: ConsentPolicy) -> None:
        if self.log is not None and self.ctx.features.enabled("CONSENT_HISTORY_LOG"):
            entry = LogEntry(
                domain=domain,
                cmp_name=outcome.cmp_name,
                policy=policy,
                success=outcome.success,
                timestamp=now_iso(),
            )
            try:
                await self.log.append_log(entry)
            except Exception as e:
                logger.warning("Could not log action for %s: %s", domain, e)

        if (
            outcome.success
            and self.preferences is not None
            and self.ctx.features.enabled("PER_SITE_REMEMBER_LAST")
        ):
            try:
                await self.preferences.record_applied_policy(domain, policy)
            except Exception as e:
                logger.warning("Could not remember policy for %s: %s", domain, e)

    # ─── Steps ───────────────────────────────────────────────────────────

    def is_skipped(self, hostname: str) -> bool:
        return host_matches(hostname, self.ctx.known_sites.skip)

    async def _apply(self, handler: CmpHandler, tab: TabDocument, policy: ConsentPolicy) -> bool:
        try:
            view = await capture_view(tab)
            return bool(await handler.apply_consent(view, policy))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.debug("%s apply failed on %s: %s", handler.name, tab.url, e)
            return False

    async def _verify(self, handler: CmpHandler, tab: TabDocument) -> bool:
        try:
            return bool(await handler.verify(tab))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.debug("%s verify failed on %s: %s", handler.name, tab.url, e)
            return False

    async def _detect(self, tab: TabDocument) -> DetectionResult | None:
        registry = self.ctx.registry
        if registry is None:
            return None
        view = await capture_view(tab)
        return registry.detect_gated(view)

    async def _escalate(self, tab: TabDocument, hostname: str, policy: ConsentPolicy) -> ResolutionOutcome | None:
        coordinator = self.ctx.coordinator
        features = self.ctx.features
        if coordinator is not None:
            if features.enabled("CROSS_FRAME_ESCALATION"):
                if await coordinator.run_click_across_all_frames(tab, policy.essential_only):
                    return ResolutionOutcome(applied=True, cmp_name="Generic", success=True)
            if features.enabled("VENDOR_API_ESCALATION"):
                vendor = await coordinator.invoke_any_vendor_api(tab, policy.essential_only)
                if vendor:
                    return ResolutionOutcome(applied=True, cmp_name=self._vendor_label(vendor), success=True)

        if self.reschedule is not None and host_matches(hostname, self.ctx.known_sites.slow):
            for delay_ms in self.ctx.known_sites.delayed_retry_ms:
                self.reschedule(delay_ms)
            logger.info("Scheduled %d delayed re-attempts for %s",
                        len(self.ctx.known_sites.delayed_retry_ms), hostname)
        return None

    def _vendor_label(self, vendor: str) -> str:
        for handler in self.ctx.registry or ():
            if handler.kind.value == vendor:
                return handler.name
        return vendor

    # ─── State machine ───────────────────────────────────────────────────

    async def run(self, tab: TabDocument, token: asyncio.Event | None = None) -> ResolutionOutcome:
        """Resolve the consent prompt on tab once. Never raises except on cancellation."""
        ctx = self.ctx
        settings = ctx.settings
        hostname = extract_hostname(tab.url)
        outcome = ResolutionOutcome()
        state = PipelineState.IDLE
        deadline = ctx.clock() + settings.give_up_ms / 1000
        attempts = 0
        detection: DetectionResult | None = None
        policy: ConsentPolicy | None = None
        acting: CmpHandler | None = None
        detected_any = False

        def cancelled() -> bool:
            return token is not None and token.is_set()

        while state is not PipelineState.TERMINAL:
            if cancelled():
                logger.debug("Run cancelled on %s in state %s", tab.url, state.value)
                return outcome

            if state is PipelineState.IDLE:
                if not ctx.features.enabled("AUTO_ENFORCE_ON_LOAD"):
                    return outcome
                state = PipelineState.DETECTING

            elif state is PipelineState.DETECTING:
                attempts += 1
                try:
                    detection = await self._detect(tab)
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    logger.debug("Detection failed on %s: %s", tab.url, e)
                    detection = None
                if detection is None and outcome.applied:
                    # Prompt went away after an earlier click, just later than verify looked.
                    outcome.success = True
                    state = PipelineState.DONE
                elif detection is not None:
                    detected_any = True
                    outcome.cmp_name = detection.name
                    state = PipelineState.DECIDING
                else:
                    state = PipelineState.RETRYING

            elif state is PipelineState.DECIDING:
                if self.is_skipped(hostname):
                    logger.info("Skipping %s (skip list)", hostname)
                    return ResolutionOutcome(applied=False)
                if policy is None:
                    policy = await self.policy_for(hostname)
                state = PipelineState.APPLYING

            elif state is PipelineState.APPLYING:
                assert detection is not None and policy is not None
                acting = detection.handler
                applied = await self._apply(acting, tab, policy)
                generic = ctx.registry.generic if ctx.registry is not None else None
                if (
                    not applied
                    and generic is not None
                    and acting is not generic
                    and ctx.registry.is_enabled(generic)
                ):
                    logger.debug("%s did not act on %s, trying Generic", acting.name, tab.url)
                    acting = generic
                    applied = await self._apply(generic, tab, policy)
                if applied:
                    outcome.applied = True
                    state = PipelineState.VERIFYING
                else:
                    state = PipelineState.RETRYING

            elif state is PipelineState.VERIFYING:
                assert acting is not None
                outcome.success = await self._verify(acting, tab)
                state = PipelineState.DONE if outcome.success else PipelineState.RETRYING

            elif state is PipelineState.DONE:
                logger.info("Consent resolved on %s by %s (%s)",
                            hostname, acting.name if acting else "?", policy.label if policy else "?")
                state = PipelineState.TERMINAL

            elif state is PipelineState.RETRYING:
                remaining = deadline - ctx.clock()
                if attempts >= settings.max_attempts or remaining <= 0:
                    state = PipelineState.ESCALATING
                    continue
                await ctx.sleep(min(settings.retry_interval_ms / 1000, remaining))
                state = PipelineState.DETECTING

            elif state is PipelineState.ESCALATING:
                if self.is_skipped(hostname):
                    logger.info("Skipping %s (skip list)", hostname)
                    return ResolutionOutcome(applied=False)
                if policy is None:
                    policy = await self.policy_for(hostname)
                if cancelled():
                    return outcome
                escalated = await self._escalate(tab, hostname, policy)
                if escalated is not None:
                    outcome = escalated
                    detected_any = True
                state = PipelineState.TERMINAL

        if policy is not None and (detected_any or outcome.applied):
            await self._record(hostname, outcome, policy)
        return outcome
