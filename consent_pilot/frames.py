"""Frame and tab access.

The engine sees a page through two small protocols so that the same
heuristics run against a live Playwright page or an in-memory document.
The primary context (``accessible_frames``) is the main frame plus child
frames of the same origin; only the escalation coordinator walks every
frame of the tab.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol

from playwright.async_api import Frame, JSHandle, Page

from .dom import DomSnapshot
from .utils import extract_origin

logger = logging.getLogger(__name__)


class FrameDocument(Protocol):
    @property
    def url(self) -> str: ...

    async def snapshot(self) -> DomSnapshot | None: ...

    async def click(self, ref: int) -> bool: ...

    async def evaluate(self, script: str, arg: Any = None) -> Any: ...


class TabDocument(Protocol):
    @property
    def url(self) -> str: ...

    @property
    def main_frame(self) -> FrameDocument: ...

    def frames(self) -> list[FrameDocument]: ...

    def accessible_frames(self) -> list[FrameDocument]: ...


@dataclass
class FrameView:
    frame: FrameDocument
    dom: DomSnapshot


@dataclass
class PageView:
    """Snapshots of every frame the primary context can see, main frame first."""
    tab: TabDocument
    documents: list[FrameView] = field(default_factory=list)

    @property
    def main(self) -> FrameView | None:
        return self.documents[0] if self.documents else None

    @property
    def url(self) -> str:
        return self.tab.url


async def capture_view(tab: TabDocument) -> PageView:
    """Snapshot the tab's accessible frames. Frames that fail are skipped."""
    view = PageView(tab=tab)
    for frame in tab.accessible_frames():
        try:
            dom = await frame.snapshot()
        except Exception as e:
            logger.debug("Snapshot failed for %s: %s", frame.url, e)
            continue
        if dom is not None:
            view.documents.append(FrameView(frame=frame, dom=dom))
    return view


# ─── In-page scripts ─────────────────────────────────────────────────────

# Walks the document (open shadow roots inlined under their host) and returns
# {payload, els}: the JSON tree for DomSnapshot.from_payload and the element
# array that click references index into.
SNAPSHOT_JS = """
(maxNodes) => {
    const LEAF = new Set(['SCRIPT', 'STYLE', 'NOSCRIPT', 'TEMPLATE']);
    const els = [];
    const root = document.documentElement;
    if (!root) return {payload: null, els};

    const record = (el) => {
        const i = els.length;
        els.push(el);
        const attrs = {};
        for (const a of el.attributes || []) attrs[a.name] = a.value;
        let b = [0, 0, 0, 0];
        let s = ['block', 'visible', 1];
        try {
            const r = el.getBoundingClientRect();
            b = [r.left, r.top, r.width, r.height];
            const cs = getComputedStyle(el);
            s = [cs.display, cs.visibility, parseFloat(cs.opacity)];
        } catch (e) {}
        return {i, t: el.tagName.toLowerCase(), a: attrs, b, s, c: []};
    };

    const tree = record(root);
    const stack = [[root, tree]];
    while (stack.length && els.length < maxNodes) {
        const [el, node] = stack.pop();
        const kids = [];
        if (el.shadowRoot) kids.push(...el.shadowRoot.childNodes);
        kids.push(...el.childNodes);
        const pending = [];
        for (const k of kids) {
            if (k.nodeType === Node.TEXT_NODE) {
                const t = k.nodeValue;
                if (t && t.trim()) node.c.push(t.length > 500 ? t.slice(0, 500) : t);
            } else if (k.nodeType === Node.ELEMENT_NODE) {
                if (els.length >= maxNodes) break;
                const child = record(k);
                node.c.push(child);
                if (!LEAF.has(k.tagName)) pending.push([k, child]);
            }
        }
        for (let j = pending.length - 1; j >= 0; j--) stack.push(pending[j]);
    }

    const body = document.body;
    return {
        payload: {
            tree,
            url: location.href,
            vw: window.innerWidth,
            vh: window.innerHeight,
            bodyText: body ? (body.innerText || '').slice(0, 20000) : '',
        },
        els,
    };
}
"""

# Native click plus a synthesized bubbling click, for handlers bound to either.
CLICK_JS = """
([els, i]) => {
    const el = els[i];
    if (!el || !el.isConnected) return false;
    el.click();
    el.dispatchEvent(new MouseEvent('click', {bubbles: true, cancelable: true, view: window}));
    return true;
}
"""

# Reports DOM changes back to Python, at most every 250 ms.
MUTATION_OBSERVER_JS = """
(binding) => {
    if (window.__consentPilotObserver) return;
    let pending = false;
    const notify = () => {
        if (pending) return;
        pending = true;
        setTimeout(() => { pending = false; try { window[binding](); } catch (e) {} }, 250);
    };
    const obs = new MutationObserver(notify);
    obs.observe(document.documentElement || document, {childList: true, subtree: true});
    window.__consentPilotObserver = obs;
}
"""


# ─── Playwright adapters ─────────────────────────────────────────────────


class PlaywrightFrame:
    """FrameDocument over a Playwright frame."""

    def __init__(self, frame: Frame, max_nodes: int = 6000, timeout_ms: int = 5000):
        self._frame = frame
        self._max_nodes = max_nodes
        self._timeout = timeout_ms / 1000
        self._elements: JSHandle | None = None

    @property
    def url(self) -> str:
        return self._frame.url

    @property
    def raw(self) -> Frame:
        return self._frame

    async def snapshot(self) -> DomSnapshot | None:
        if self._frame.is_detached():
            return None
        handle = await asyncio.wait_for(
            self._frame.evaluate_handle(SNAPSHOT_JS, self._max_nodes), self._timeout,
        )
        try:
            payload = await (await handle.get_property("payload")).json_value()
            if not payload:
                return None
            elements = await handle.get_property("els")
        finally:
            await handle.dispose()
        if self._elements is not None:
            try:
                await self._elements.dispose()
            except Exception as e:
                logger.debug("Dispose failed for %s: %s", self.url, e)
        self._elements = elements
        return DomSnapshot.from_payload(payload)

    async def click(self, ref: int) -> bool:
        if self._elements is None:
            return False
        return bool(await asyncio.wait_for(
            self._frame.evaluate(CLICK_JS, [self._elements, ref]), self._timeout,
        ))

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        return await self._frame.evaluate(script, arg)


class PlaywrightTab:
    """TabDocument over a Playwright page. Frame adapters are cached per frame."""

    def __init__(self, page: Page, max_nodes: int = 6000, timeout_ms: int = 5000):
        self._page = page
        self._max_nodes = max_nodes
        self._timeout_ms = timeout_ms
        self._adapters: dict[int, PlaywrightFrame] = {}

    @property
    def url(self) -> str:
        return self._page.url

    @property
    def page(self) -> Page:
        return self._page

    def _adapt(self, frame: Frame) -> PlaywrightFrame:
        key = id(frame)
        if key not in self._adapters:
            self._adapters[key] = PlaywrightFrame(frame, self._max_nodes, self._timeout_ms)
        return self._adapters[key]

    @property
    def main_frame(self) -> PlaywrightFrame:
        return self._adapt(self._page.main_frame)

    def frames(self) -> list[FrameDocument]:
        main = self._page.main_frame
        others = [f for f in self._page.frames if f is not main and not f.is_detached()]
        return [self._adapt(main)] + [self._adapt(f) for f in others]

    def accessible_frames(self) -> list[FrameDocument]:
        origin = extract_origin(self._page.url)
        out: list[FrameDocument] = []
        for frame in self.frames():
            if frame is self.main_frame:
                out.append(frame)
                continue
            child_origin = extract_origin(frame.url)
            # about:blank and srcdoc frames inherit the parent's origin
            if not child_origin or child_origin == origin:
                out.append(frame)
        return out

    async def watch_mutations(self, callback: Callable[[], None]) -> None:
        """Call callback (throttled) whenever the main document changes."""
        binding = "__consentPilotMutated"
        await self._page.expose_function(binding, callback)
        await self._page.evaluate(MUTATION_OBSERVER_JS, binding)


# ─── Static documents ────────────────────────────────────────────────────


class StaticFrame:
    """FrameDocument over fixed HTML. Clicks are recorded, not performed."""

    def __init__(self, html: str, url: str = "about:blank", viewport: tuple[int, int] = (1280, 800)):
        self.html = html
        self._url = url
        self.viewport = viewport
        self.clicked: list[int] = []

    @property
    def url(self) -> str:
        return self._url

    async def snapshot(self) -> DomSnapshot | None:
        return DomSnapshot.from_html(self.html, url=self._url, viewport=self.viewport)

    async def click(self, ref: int) -> bool:
        self.clicked.append(ref)
        return True

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        return None


class StaticTab:
    """TabDocument over a list of static frames, main frame first."""

    def __init__(self, main: StaticFrame, children: list[StaticFrame] | None = None):
        self._frames = [main, *(children or [])]

    @property
    def url(self) -> str:
        return self._frames[0].url

    @property
    def main_frame(self) -> StaticFrame:
        return self._frames[0]

    def frames(self) -> list[FrameDocument]:
        return list(self._frames)

    def accessible_frames(self) -> list[FrameDocument]:
        origin = extract_origin(self.url)
        return [
            f for i, f in enumerate(self._frames)
            if i == 0 or not extract_origin(f.url) or extract_origin(f.url) == origin
        ]
