"""In-memory stand-ins for browser frames, the clock and the preference store."""

from __future__ import annotations

import asyncio
from typing import Any

from consent_pilot.dom import DomSnapshot, normalized_text
from consent_pilot.frames import StaticFrame, StaticTab
from consent_pilot.models import ConsentPolicy, LogEntry


class FakeFrame(StaticFrame):
    """A static frame whose clicks can swap the document, with scripted page APIs.

    ``api`` maps "path.method" to the value the call returns; an Exception
    instance is raised instead, and "hang" never returns.
    """

    def __init__(
        self,
        html: str,
        url: str = "https://news.example.com/",
        after_click: str | None = None,
        api: dict[str, Any] | None = None,
    ):
        super().__init__(html, url=url)
        self.after_click = after_click
        self.api = api or {}
        self.api_calls: list[str] = []
        self.clicked_labels: list[str] = []
        self.snapshots = 0

    async def snapshot(self) -> DomSnapshot | None:
        self.snapshots += 1
        return await super().snapshot()

    async def click(self, ref: int) -> bool:
        el = DomSnapshot.from_html(self.html, url=self.url, viewport=self.viewport).element(ref)
        self.clicked_labels.append(normalized_text(el) if el is not None else "")
        await super().click(ref)
        if self.after_click is not None:
            self.html = self.after_click
        return True

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        if isinstance(arg, list) and len(arg) == 3:
            key = f"{arg[0]}.{arg[1]}"
            self.api_calls.append(key)
            result = self.api.get(key, False)
            if isinstance(result, Exception):
                raise result
            if result == "hang":
                await asyncio.sleep(3600)
            return result
        return None


def make_tab(main: FakeFrame, *children: FakeFrame) -> StaticTab:
    return StaticTab(main, list(children))


class FakeClock:
    """Seconds clock advanced only by its own sleep."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


class MemoryStore:
    """Preference store and action log kept in lists."""

    def __init__(self, policy: ConsentPolicy | None = None, fail: bool = False):
        self.policy = policy
        self.fail = fail
        self.entries: list[LogEntry] = []
        self.applied: dict[str, ConsentPolicy] = {}

    async def get_policy_for_domain(self, domain: str) -> ConsentPolicy | None:
        if self.fail:
            raise RuntimeError("store offline")
        return self.policy

    async def record_applied_policy(self, domain: str, policy: ConsentPolicy) -> None:
        self.applied[domain] = policy

    async def append_log(self, entry: LogEntry) -> None:
        self.entries.append(entry)


# ─── Pages ───────────────────────────────────────────────────────────────

PLAIN_PAGE = """
<html><body>
  <h1>Morning briefing</h1>
  <p>Top stories today.</p>
  <a href="/world">World</a>
</body></html>
"""

ACCEPT_REJECT_BANNER = """
<html><body>
  <h1>Morning briefing</h1>
  <div id="cookie-banner" style="height: 200px">
    <p>We use cookies to improve your experience.</p>
    <button>Accept All</button>
    <button>Reject All</button>
  </div>
</body></html>
"""

SUBSCRIBE_ACCEPT_BANNER = """
<html><body>
  <div class="cookie-notice">
    <p>By subscribing you accept cookies.</p>
    <button>Accept</button>
  </div>
</body></html>
"""

QUANTCAST_BANNER = """
<html><body>
  <div id="qc-cmp2-main">
    <p>We value your privacy</p>
    <div class="qc-cmp2-summary-buttons">
      <button mode="secondary" data-action="reject-all">Reject all</button>
      <button mode="primary" data-action="accept-all">Accept all</button>
    </div>
  </div>
</body></html>
"""

FRAMED_BANNER = """
<html><body>
  <div class="message">
    <p>We value your privacy and use cookies.</p>
    <button>Accept all</button>
    <button>Reject all</button>
  </div>
</body></html>
"""

NEWSLETTER_FOOTER_BANNER = """
<html><body>
  <h1>Morning briefing</h1>
  <div id="cookie-banner" style="height: 200px">
    <p>We use cookies to improve your experience.</p>
    <button>Accept All</button>
    <button>Reject All</button>
  </div>
  <footer>
    <p>Subscribe to our newsletter for daily updates.</p>
  </footer>
</body></html>
"""
