"""Playwright driver for resolving consent on a single site.

Each site gets a fresh browser context: navigate, let the page session
resolve the consent prompt (watching for late banners until the watch
window closes or the prompt is resolved), then report a SiteResult.
"""

from __future__ import annotations

import asyncio
import logging

from playwright.async_api import Browser, Dialog

from .config import PilotConfig
from .context import create_context
from .frames import PlaywrightTab
from .models import ConsentPolicy, LogEntry, ResolutionOutcome, ResolveStatus, SiteInfo, SiteResult
from .pipeline import ActionLog, ConsentExecutor, PreferenceStore
from .session import PageSession
from .utils import now_iso

logger = logging.getLogger(__name__)

_WATCH_CHUNK_S = 0.5


class PolicyOverride:
    """Preference store that answers every lookup with one fixed policy.

    Writes go to the wrapped store when there is one.
    """

    def __init__(self, policy: ConsentPolicy, store=None):
        self.policy = policy
        self.store = store

    async def get_policy_for_domain(self, domain: str) -> ConsentPolicy | None:
        return self.policy

    async def record_applied_policy(self, domain: str, policy: ConsentPolicy) -> None:
        if self.store is not None:
            await self.store.record_applied_policy(domain, policy)

    async def append_log(self, entry: LogEntry) -> None:
        if self.store is not None:
            await self.store.append_log(entry)


async def resolve_site(
    browser: Browser,
    site: SiteInfo,
    config: PilotConfig,
    preferences: PreferenceStore | None = None,
    log: ActionLog | None = None,
) -> SiteResult:
    """Open site in a fresh context and resolve its consent prompt."""
    started_at = now_iso()
    ctx = create_context(config)
    executor = ConsentExecutor(ctx, preferences, log)
    policy = await executor.policy_for(site.domain)

    context = None
    session: PageSession | None = None
    try:
        context = await browser.new_context(
            locale=config.browser.locale,
            timezone_id=config.browser.timezone,
            viewport={
                "width": config.browser.viewport.width,
                "height": config.browser.viewport.height,
            },
            user_agent=config.browser.user_agent or None,
        )
        page = await context.new_page()

        # Auto-dismiss JavaScript dialogs (alerts, confirms, prompts)
        async def _handle_dialog(dialog: Dialog) -> None:
            logger.debug("Auto-dismissing %s dialog on %s", dialog.type, site.domain)
            try:
                await dialog.dismiss()
            except Exception as e:
                logger.debug("Dialog dismiss failed on %s: %s", site.domain, e)

        page.on("dialog", _handle_dialog)

        try:
            await page.goto(
                site.url,
                timeout=config.run.page_timeout_ms,
                wait_until="domcontentloaded",
            )
        except Exception as e:
            error_str = str(e)
            if "timeout" in error_str.lower():
                logger.warning("Timeout loading %s", site.url)
                return SiteResult(
                    site=site,
                    policy=policy,
                    status=ResolveStatus.TIMEOUT,
                    started_at=started_at,
                    completed_at=now_iso(),
                    error=error_str,
                )
            raise

        tab = PlaywrightTab(
            page,
            max_nodes=config.engine.snapshot_max_nodes,
            timeout_ms=config.engine.snapshot_timeout_ms,
        )
        session = PageSession(tab, executor, ctx)
        outcome = await session.start()

        # Keep watching for late banners until resolved or the window closes
        remaining = config.run.watch_ms / 1000
        while not session.resolved and remaining > 0:
            wait = min(_WATCH_CHUNK_S, remaining)
            await asyncio.sleep(wait)
            remaining -= wait
        await session.wait_idle()
        outcome = session.outcome or outcome or ResolutionOutcome()

        page_title = None
        final_url = None
        try:
            page_title = await page.title()
            final_url = page.url
        except Exception as e:
            logger.debug("Could not read title of %s: %s", site.url, e)

        return SiteResult(
            site=site,
            policy=policy,
            status=ResolveStatus.SUCCESS,
            started_at=started_at,
            completed_at=now_iso(),
            final_url=final_url,
            page_title=page_title,
            outcome=outcome,
        )

    except Exception as e:
        logger.error("Error resolving %s: %s", site.url, e)
        return SiteResult(
            site=site,
            policy=policy,
            status=ResolveStatus.ERROR,
            started_at=started_at,
            completed_at=now_iso(),
            error=str(e),
        )
    finally:
        if session is not None:
            await session.close()
        if context:
            try:
                await context.close()
            except Exception as e:
                logger.debug("Context close failed for %s: %s", site.domain, e)
