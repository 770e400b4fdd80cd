"""Shared engine state for one browsing session."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .config import EngineSettings, FeatureSet, KnownSites, PilotConfig
from .cooldown import CooldownGuard

if TYPE_CHECKING:
    from .coordinator import Coordinator
    from .registry import HandlerRegistry


@dataclass
class EngineContext:
    """Settings, capability flags and the session-wide collaborators.

    ``clock`` returns seconds and ``sleep`` takes seconds; tests swap both
    for a fake clock.
    """
    settings: EngineSettings = field(default_factory=EngineSettings)
    features: FeatureSet = field(default_factory=FeatureSet)
    known_sites: KnownSites = field(default_factory=KnownSites)
    clock: Callable[[], float] = time.monotonic
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    cooldown: CooldownGuard | None = None
    coordinator: Coordinator | None = None
    registry: HandlerRegistry | None = None

    def now_ms(self) -> float:
        return self.clock() * 1000


def create_context(
    config: PilotConfig | None = None,
    *,
    clock: Callable[[], float] | None = None,
    sleep: Callable[[float], Awaitable[None]] | None = None,
) -> EngineContext:
    """Wire up a context with cooldown guard, coordinator and default handlers."""
    from .coordinator import Coordinator
    from .registry import default_registry

    config = config or PilotConfig()
    ctx = EngineContext(
        settings=config.engine,
        features=config.feature_set(),
        known_sites=config.known_sites,
    )
    if clock is not None:
        ctx.clock = clock
    if sleep is not None:
        ctx.sleep = sleep
    ctx.cooldown = CooldownGuard(config.engine.cooldown_ms, clock=ctx.now_ms)
    ctx.coordinator = Coordinator(ctx)
    ctx.registry = default_registry(ctx)
    return ctx
