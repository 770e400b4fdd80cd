"""CLI entry point and run orchestration."""

from __future__ import annotations

import argparse
import asyncio
import csv
import logging
import sys
import time
from pathlib import Path

from .config import PilotConfig, load_config
from .context import create_context
from .db import Database
from .dom import label_text
from .frames import StaticFrame, StaticTab, capture_view
from .handlers import find_banner_root
from .matching import choose_button, decide, find_paywall_accept
from .models import CATEGORIES, ConsentPolicy, ResolveStatus, SiteInfo, SiteResult
from .utils import extract_hostname, normalize_url

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="consent-pilot",
        description="consent-pilot: automatic cookie consent resolution",
    )
    parser.add_argument(
        "--config", type=str, default="config.yaml",
        help="Path to config.yaml (default: ./config.yaml)",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true",
        help="Enable verbose (DEBUG) logging",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Open sites and resolve their consent prompts")
    run.add_argument("urls", nargs="*", help="Site URLs or hostnames")
    run.add_argument("--sites", type=str, default=None, help="CSV file with a 'url' column")
    run.add_argument("--policy", type=str, default=None,
                     help="Policy for this run: essential, accept-all or a category list")
    run.add_argument("--headed", action="store_true", help="Run with visible browser windows")
    run.add_argument("--concurrency", type=int, default=None,
                     help="Override number of concurrent browser contexts")
    run.add_argument("--watch-ms", type=int, default=None,
                     help="How long to watch each page for late banners")
    run.add_argument("--limit", type=int, default=None, help="Only run the first N sites")

    policy = sub.add_parser("policy", help="Show or change stored policies")
    policy.add_argument("action", choices=["show", "set", "clear"])
    policy.add_argument("value", nargs="?", default=None,
                        help="essential, accept-all or a category list (for 'set')")
    policy.add_argument("--domain", type=str, default=None, help="Per-domain override")

    history = sub.add_parser("history", help="Print the consent action log")
    history.add_argument("--domain", type=str, default=None)
    history.add_argument("--limit", type=int, default=50)

    status = sub.add_parser("status", help="Last action and stored policy for a domain")
    status.add_argument("domain")

    inspect = sub.add_parser("inspect", help="Analyze a saved HTML page without a browser")
    inspect.add_argument("file", help="Saved HTML file")
    inspect.add_argument("--url", type=str, default="https://example.com/",
                         help="URL the page was saved from")
    inspect.add_argument("--policy", type=str, default="essential")

    return parser.parse_args(argv)


def load_sites_csv(path: Path) -> list[SiteInfo]:
    """Load sites from a CSV file."""
    sites: list[SiteInfo] = []
    with open(path, newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        for row in reader:
            url = normalize_url(row["url"])
            domain = (row.get("domain") or "").strip() or extract_hostname(url)
            category = (row.get("category") or "").strip() or None
            sites.append(SiteInfo(url=url, domain=domain, category=category))
    return sites


def _site_from_arg(arg: str) -> SiteInfo:
    url = normalize_url(arg)
    return SiteInfo(url=url, domain=extract_hostname(url))


def _parse_policy(value: str) -> ConsentPolicy:
    try:
        return ConsentPolicy.from_name(value)
    except ValueError as e:
        logger.error("%s (choose essential, accept-all or any of: %s)", e, ", ".join(CATEGORIES[1:]))
        sys.exit(1)


def _format_duration(seconds: float) -> str:
    if seconds < 60:
        return f"{int(seconds)}s"
    if seconds < 3600:
        return f"{int(seconds // 60)}m {int(seconds % 60)}s"
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    return f"{hours}h {minutes}m"


def _result_line(index: int, total: int, result: SiteResult) -> str:
    status_icon = "OK" if result.status == ResolveStatus.SUCCESS else result.status.value.upper()
    outcome = result.outcome
    if not outcome.applied:
        consent_str = "no prompt handled"
    else:
        consent_str = f"[CMP:{outcome.cmp_name or '?'} ok:{'Y' if outcome.success else 'N'}]"
    return (
        f"[{index:>4}/{total}] {status_icon:<7} "
        f"{result.site.domain:<30} ({result.policy.label:<10}) | {consent_str}"
    )


# ─── Commands ────────────────────────────────────────────────────────────


async def cmd_run(args: argparse.Namespace, config: PilotConfig) -> int:
    from playwright.async_api import async_playwright

    from .engine import PolicyOverride, resolve_site

    if args.concurrency:
        config.run.concurrency = args.concurrency
    if args.headed:
        config.browser.headless = False
    if args.watch_ms is not None:
        config.run.watch_ms = args.watch_ms

    sites = [_site_from_arg(u) for u in args.urls]
    sites_file = args.sites or config.run.sites_file
    if sites_file:
        sites_path = config.resolve_path(sites_file)
        if not sites_path.exists():
            logger.error("Sites file not found: %s", sites_path)
            return 1
        sites.extend(load_sites_csv(sites_path))
    if args.limit:
        sites = sites[: args.limit]
    if not sites:
        logger.error("No sites given")
        return 1

    db = Database(config.resolve_path(config.database.path))
    await db.connect()
    preferences = PolicyOverride(_parse_policy(args.policy), db) if args.policy else db

    total = len(sites)
    logger.info("Resolving consent on %d sites, concurrency: %d", total, config.run.concurrency)

    completed = 0
    resolved = 0
    errors = 0
    run_start = time.monotonic()
    async with async_playwright() as pw:
        browser = await pw.chromium.launch(headless=config.browser.headless)
        logger.info("Browser launched (headless=%s)", config.browser.headless)
        sem = asyncio.Semaphore(config.run.concurrency)

        async def run_task(site: SiteInfo) -> None:
            nonlocal completed, resolved, errors
            async with sem:
                result = await resolve_site(browser, site, config, preferences, preferences)
                completed += 1
                if result.status != ResolveStatus.SUCCESS:
                    errors += 1
                elif result.outcome.success:
                    resolved += 1
                print(_result_line(completed, total, result))
                await asyncio.sleep(config.run.inter_site_delay_ms / 1000)

        await asyncio.gather(*(run_task(s) for s in sites))
        await browser.close()

    elapsed = time.monotonic() - run_start
    stats = await db.get_stats()
    await db.close()

    print("\n" + "=" * 70)
    print("RUN COMPLETE")
    print("=" * 70)
    print(f"  Duration:           {_format_duration(elapsed)}")
    print(f"  Sites:              {completed}/{total} ({errors} errors)")
    print(f"  Prompts resolved:   {resolved}")
    print(f"  Log entries:        {stats.get('log_entries', 0):,}")
    print(f"  Database:           {db.db_path}")
    print("=" * 70)
    return 0


async def cmd_policy(args: argparse.Namespace, config: PilotConfig) -> int:
    async with Database(config.resolve_path(config.database.path)) as db:
        if args.action == "show":
            if args.domain:
                policy = await db.get_policy_for_domain(args.domain)
                override = await db.get_domain_policy(args.domain)
                source = "override" if override else ("global" if policy else "default")
                label = policy.label if policy else config.engine.default_policy
                print(f"{args.domain}: {label} ({source})")
            else:
                policy = await db.get_global_policy()
                print(f"global: {policy.label if policy else config.engine.default_policy}")
                for domain, p in (await db.list_domain_policies()).items():
                    print(f"  {domain:<30} {p.label}")
            return 0

        if args.action == "set":
            if not args.value:
                logger.error("'policy set' needs a value")
                return 1
            policy = _parse_policy(args.value)
            if args.domain:
                await db.set_domain_policy(args.domain, policy)
                print(f"{args.domain}: {policy.label}")
            else:
                await db.set_global_policy(policy)
                print(f"global: {policy.label}")
            return 0

        if not args.domain:
            logger.error("'policy clear' needs --domain")
            return 1
        removed = await db.clear_domain_policy(args.domain)
        print(f"{args.domain}: {'override removed' if removed else 'no override'}")
        return 0


async def cmd_history(args: argparse.Namespace, config: PilotConfig) -> int:
    async with Database(config.resolve_path(config.database.path)) as db:
        entries = await db.get_log_entries(limit=args.limit, domain=args.domain)
    if not entries:
        print("No actions logged.")
        return 0
    for e in entries:
        mark = "OK  " if e.success else "FAIL"
        print(f"{e.timestamp[:19]}  {mark} {e.domain:<30} {e.cmp_name or '-':<14} {e.policy.label}")
    return 0


async def cmd_status(args: argparse.Namespace, config: PilotConfig) -> int:
    async with Database(config.resolve_path(config.database.path)) as db:
        last = await db.get_last_action(args.domain)
        policy = await db.get_policy_for_domain(args.domain)
        entries = await db.get_log_entries(limit=1, domain=args.domain)

    print(f"Domain:       {args.domain}")
    print(f"Policy:       {policy.label if policy else config.engine.default_policy}")
    if last:
        print(f"Last applied: {last.policy.label} at {last.applied_at[:19]}")
    else:
        print("Last applied: never")
    if entries:
        e = entries[0]
        print(f"Last attempt: {e.cmp_name or '?'} ({'success' if e.success else 'failed'})")
    return 0


async def cmd_inspect(args: argparse.Namespace, config: PilotConfig) -> int:
    path = Path(args.file)
    if not path.exists():
        logger.error("File not found: %s", path)
        return 1
    html = path.read_text(encoding="utf-8", errors="replace")
    policy = _parse_policy(args.policy)
    viewport = (config.browser.viewport.width, config.browser.viewport.height)
    tab = StaticTab(StaticFrame(html, url=args.url, viewport=viewport))

    ctx = create_context(config)
    view = await capture_view(tab)
    detection = ctx.registry.detect_gated(view) if ctx.registry is not None else None
    print(f"Page:      {args.url}")
    print(f"Policy:    {policy.label}")
    print(f"Detected:  {detection.name if detection else 'nothing'}")
    if detection and detection.handler.get_categories():
        print(f"Categories: {', '.join(detection.handler.get_categories())}")

    root = find_banner_root(view, config.engine.max_container_height_ratio)
    if root is None:
        print("Banner:    no banner root found")
    else:
        dom = root.frame_view.dom
        print(f"Banner:    <{root.element.name}> via {root.stage} stage")
        paywall = find_paywall_accept(dom)
        decision, forced = decide(policy.essential_only, dom.text_of(root.element))
        button, how = choose_button(dom, root.element, decision)
        if button is None:
            button, how = choose_button(dom, None, decision)
        print(f"Decision:  {decision.value}{' (forced)' if forced else ''}")
        if paywall is not None:
            print(f"Paywall:   would continue via \"{label_text(paywall)}\"")
        if button is not None:
            print(f"Click:     \"{label_text(button)}\" ({how})")
        else:
            print("Click:     no matching control")

    if detection and detection.handler is not ctx.registry.generic:
        applied = await detection.handler.apply_consent(view, policy)
        print(f"{detection.name} would act: {'yes' if applied else 'no'}")
    return 0


COMMANDS = {
    "run": cmd_run,
    "policy": cmd_policy,
    "history": cmd_history,
    "status": cmd_status,
    "inspect": cmd_inspect,
}


async def main(args: argparse.Namespace) -> int:
    """Dispatch the selected sub-command."""
    # Set up logging
    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    # Quiet noisy loggers
    logging.getLogger("playwright").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)

    config_path = Path(args.config).resolve()
    config = load_config(config_path)
    return await COMMANDS[args.command](args, config)


def run() -> None:
    """Console-script entry point."""
    args = parse_args(sys.argv[1:])
    sys.exit(asyncio.run(main(args)))
