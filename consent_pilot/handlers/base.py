"""Common interface for consent-prompt handlers."""

from __future__ import annotations

import abc
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..context import EngineContext
    from ..frames import PageView, TabDocument
    from ..models import ConsentPolicy


class HandlerKind(str, Enum):
    ONETRUST = "onetrust"
    COOKIEBOT = "cookiebot"
    QUANTCAST = "quantcast"
    COOKIEYES = "cookieyes"
    DIDOMI = "didomi"
    IUBENDA = "iubenda"
    SITE_SPECIFIC = "site_specific"
    GENERIC = "generic"


class CmpHandler(abc.ABC):
    """A strategy that recognizes one kind of consent prompt and answers it.

    ``detect`` is a cheap, side-effect free look at the current snapshots.
    ``apply_consent`` returns True only if a control was found and a click
    (or documented consent API call) was attempted. ``verify`` decides
    whether the prompt is actually gone; vendors with stable markup trust
    the click.
    """

    name: str = ""
    kind: HandlerKind
    # Capability flag gating this handler; None means always on.
    feature: str | None = None

    def __init__(self, ctx: EngineContext):
        self.ctx = ctx

    @abc.abstractmethod
    def detect(self, view: PageView) -> bool:
        ...

    @abc.abstractmethod
    async def apply_consent(self, view: PageView, policy: ConsentPolicy) -> bool:
        ...

    async def verify(self, tab: TabDocument) -> bool:
        return True

    def get_categories(self) -> list[str] | None:
        return None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"
