"""Ordered, capability-gated collection of consent handlers."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import TYPE_CHECKING

from .config import FeatureSet
from .frames import PageView
from .handlers import (
    VENDOR_PROFILES,
    CmpHandler,
    DidomiHandler,
    GenericHandler,
    HandlerKind,
    IubendaHandler,
    SiteRuleHandler,
    VendorHandler,
)
from .models import DetectionResult

if TYPE_CHECKING:
    from .context import EngineContext

logger = logging.getLogger(__name__)


class HandlerRegistry:
    """Handlers in registration order; the first that detects wins."""

    def __init__(self, features: FeatureSet | None = None):
        self.features = features or FeatureSet()
        self._handlers: list[CmpHandler] = []

    def register(self, handler: CmpHandler) -> CmpHandler:
        if not isinstance(handler, CmpHandler):
            raise TypeError(f"Not a consent handler: {handler!r}")
        if not isinstance(getattr(handler, "kind", None), HandlerKind):
            raise TypeError(f"Handler {handler!r} has no HandlerKind")
        if not callable(getattr(handler, "detect", None)) or not callable(getattr(handler, "apply_consent", None)):
            raise TypeError(f"Handler {handler!r} lacks detect/apply_consent")
        if not handler.name:
            raise ValueError(f"Handler {handler!r} has no name")
        if self.get(handler.name) is not None:
            raise ValueError(f"Handler already registered: {handler.name}")
        self._handlers.append(handler)
        return handler

    def get(self, name: str) -> CmpHandler | None:
        for h in self._handlers:
            if h.name == name:
                return h
        return None

    @property
    def generic(self) -> CmpHandler | None:
        for h in self._handlers:
            if h.kind is HandlerKind.GENERIC:
                return h
        return None

    def __iter__(self) -> Iterator[CmpHandler]:
        return iter(self._handlers)

    def __len__(self) -> int:
        return len(self._handlers)

    def is_enabled(self, handler: CmpHandler) -> bool:
        return handler.feature is None or self.features.enabled(handler.feature)

    def detect_gated(self, view: PageView) -> DetectionResult | None:
        """First enabled handler that detects a prompt, or None."""
        if not self.features.enabled("AUTO_DETECT_CMP"):
            return None
        for handler in self._handlers:
            if not self.is_enabled(handler):
                continue
            try:
                found = handler.detect(view)
            except Exception as e:
                logger.debug("%s detect failed: %s", handler.name, e)
                continue
            if found:
                logger.info("Detected CMP: %s on %s", handler.name, view.url)
                return DetectionResult(name=handler.name, handler=handler)
        return None


def default_registry(ctx: EngineContext) -> HandlerRegistry:
    """Platforms first, then site rules, Generic last."""
    registry = HandlerRegistry(ctx.features)
    for profile in VENDOR_PROFILES:
        registry.register(VendorHandler(ctx, profile))
    registry.register(DidomiHandler(ctx))
    registry.register(IubendaHandler(ctx))
    if ctx.features.enabled("PER_SITE_CUSTOM_RULES"):
        for rule in ctx.known_sites.site_rules:
            registry.register(SiteRuleHandler(ctx, rule))
    registry.register(GenericHandler(ctx))
    return registry
