"""Escalation across frame and origin boundaries.

The coordinator is the only component that reaches every frame of a tab
and the page's own consent APIs. Requests are typed messages; every call
is time boxed and fails closed. Nothing here retries; retrying is the
pipeline's job.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ClassVar, Union

from .frames import TabDocument
from .universal import UniversalClicker

if TYPE_CHECKING:
    from .context import EngineContext
    from .session import PageSession

logger = logging.getLogger(__name__)


# ─── Messages ────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ReapplyRequest:
    type: ClassVar[str] = "reapply"


@dataclass(frozen=True)
class ClickAllFramesRequest:
    type: ClassVar[str] = "click_all_frames"
    essential_only: bool = True


@dataclass(frozen=True)
class VendorApiRequest:
    type: ClassVar[str] = "vendor_api"
    vendor: str = ""
    essential_only: bool = True


@dataclass(frozen=True)
class CoordinatorResponse:
    ok: bool
    detail: str | None = None


Message = Union[ReapplyRequest, ClickAllFramesRequest, VendorApiRequest]


def parse_message(data: dict[str, Any]) -> Message | None:
    """Typed message for a dict like {"type": "vendor_api", "vendor": "didomi"}.

    Unknown or malformed messages give None.
    """
    if not isinstance(data, dict):
        return None
    kind = data.get("type")
    essential = bool(data.get("essential_only", True))
    if kind == ReapplyRequest.type:
        return ReapplyRequest()
    if kind == ClickAllFramesRequest.type:
        return ClickAllFramesRequest(essential_only=essential)
    if kind == VendorApiRequest.type and data.get("vendor"):
        return VendorApiRequest(vendor=str(data["vendor"]).lower(), essential_only=essential)
    return None


# ─── Vendor page APIs ────────────────────────────────────────────────────


@dataclass(frozen=True)
class ApiShape:
    """window.<path>.<method>(*args)"""
    path: str
    method: str
    args: tuple = ()


# Documented consent APIs, tried in order. Later shapes cover older releases.
VENDOR_APIS: dict[str, dict[str, tuple[ApiShape, ...]]] = {
    "didomi": {
        "reject": (ApiShape("Didomi", "setUserDisagreeToAll"),),
        "accept": (ApiShape("Didomi", "setUserAgreeToAll"),),
    },
    "iubenda": {
        "reject": (
            ApiShape("_iub.cs.api", "rejectAll"),
            ApiShape("_iub.cs.api", "storeConsent", ({"consent": False},)),
        ),
        "accept": (
            ApiShape("_iub.cs.api", "acceptAll"),
            ApiShape("_iub.cs.api", "storeConsent", ({"consent": True},)),
        ),
    },
    "onetrust": {
        "reject": (ApiShape("OneTrust", "RejectAll"), ApiShape("Optanon", "RejectAll")),
        "accept": (ApiShape("OneTrust", "AllowAll"), ApiShape("Optanon", "AllowAll")),
    },
    "cookiebot": {
        "reject": (
            ApiShape("Cookiebot", "submitCustomConsent", (False, False, False)),
            ApiShape("Cookiebot", "withdraw"),
        ),
        "accept": (
            ApiShape("Cookiebot", "submitCustomConsent", (True, True, True)),
            ApiShape("Cookiebot", "submitConsent"),
        ),
    },
}

CALL_API_JS = """
([path, method, args]) => {
    let obj = window;
    for (const key of path.split('.')) {
        if (obj == null) return false;
        obj = obj[key];
    }
    if (!obj || typeof obj[method] !== 'function') return false;
    obj[method](...args);
    return true;
}
"""


class Coordinator:
    def __init__(self, ctx: EngineContext):
        self.ctx = ctx
        self.clicker = UniversalClicker(ctx.cooldown)
        self._session: PageSession | None = None

    @property
    def _timeout(self) -> float:
        return self.ctx.settings.coordinator_timeout_ms / 1000

    @property
    def _api_timeout(self) -> float:
        return self.ctx.settings.vendor_api_timeout_ms / 1000

    def attach(self, session: PageSession) -> None:
        """Route re-apply requests to this page session."""
        self._session = session

    def detach(self, session: PageSession) -> None:
        if self._session is session:
            self._session = None

    # ─── Strategies ──────────────────────────────────────────────────────

    async def run_click_across_all_frames(self, tab: TabDocument, essential_only: bool) -> bool:
        """Run the universal click routine in every frame of the tab."""

        async def _all_frames() -> bool:
            frames = tab.frames()
            results = await asyncio.gather(
                *(self.clicker.try_click(f, essential_only) for f in frames),
                return_exceptions=True,
            )
            for frame, result in zip(frames, results):
                if isinstance(result, BaseException):
                    logger.debug("Cross-frame click failed in %s: %s", frame.url, result)
            return any(r is True for r in results)

        try:
            clicked = await asyncio.wait_for(_all_frames(), self._timeout)
        except asyncio.TimeoutError:
            logger.debug("Cross-frame click timed out on %s", tab.url)
            return False
        except Exception as e:
            logger.debug("Cross-frame click failed on %s: %s", tab.url, e)
            return False
        if clicked:
            logger.info("Cross-frame click succeeded on %s", tab.url)
        return clicked

    async def invoke_vendor_api(self, tab: TabDocument, vendor: str, essential_only: bool) -> bool:
        """Call the vendor's documented consent API in the page's main frame."""
        shapes = VENDOR_APIS.get(vendor.lower(), {}).get("reject" if essential_only else "accept", ())
        if not shapes:
            logger.debug("No page API known for %s", vendor)
            return False

        frame = tab.main_frame
        for shape in shapes:
            try:
                ok = await asyncio.wait_for(
                    frame.evaluate(CALL_API_JS, [shape.path, shape.method, list(shape.args)]),
                    self._api_timeout,
                )
            except asyncio.TimeoutError:
                logger.debug("%s API timed out on %s", vendor, tab.url)
                return False
            except Exception as e:
                logger.debug("%s.%s failed on %s: %s", shape.path, shape.method, tab.url, e)
                continue
            if ok:
                logger.info("Applied consent via %s.%s on %s", shape.path, shape.method, tab.url)
                return True
        return False

    async def invoke_any_vendor_api(self, tab: TabDocument, essential_only: bool) -> str | None:
        """Try every known vendor API; name of the first that answered."""
        for vendor in VENDOR_APIS:
            if await self.invoke_vendor_api(tab, vendor, essential_only):
                return vendor
        return None

    # ─── Message transport ───────────────────────────────────────────────

    async def dispatch(self, tab: TabDocument, message: Message | dict[str, Any]) -> CoordinatorResponse | None:
        if isinstance(message, dict):
            message = parse_message(message)

        if isinstance(message, ReapplyRequest):
            if self._session is None:
                return CoordinatorResponse(ok=False, detail="no active page")
            await self._session.reapply()
            return CoordinatorResponse(ok=True)
        if isinstance(message, ClickAllFramesRequest):
            ok = await self.run_click_across_all_frames(tab, message.essential_only)
            return CoordinatorResponse(ok=ok)
        if isinstance(message, VendorApiRequest):
            ok = await self.invoke_vendor_api(tab, message.vendor, message.essential_only)
            return CoordinatorResponse(ok=ok, detail=message.vendor)

        logger.debug("Ignoring unknown message: %r", message)
        return None
