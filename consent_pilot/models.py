"""Data models for consent-pilot."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .handlers.base import CmpHandler


class PolicyPreset(str, Enum):
    ESSENTIAL = "essential"
    ACCEPT_ALL = "accept-all"


class PipelineState(str, Enum):
    IDLE = "idle"
    DETECTING = "detecting"
    DECIDING = "deciding"
    APPLYING = "applying"
    VERIFYING = "verifying"
    DONE = "done"
    RETRYING = "retrying"
    ESCALATING = "escalating"
    TERMINAL = "terminal"


class ResolveStatus(str, Enum):
    SUCCESS = "success"
    TIMEOUT = "timeout"
    ERROR = "error"


CATEGORIES = ("essential", "functional", "analytics", "marketing")


@dataclass(frozen=True)
class ConsentPolicy:
    """The user's wishes for a site. Essential cookies are always allowed."""
    essential: bool = True
    functional: bool = False
    analytics: bool = False
    marketing: bool = False

    def __post_init__(self) -> None:
        if not self.essential:
            object.__setattr__(self, "essential", True)

    @property
    def essential_only(self) -> bool:
        return not (self.functional or self.analytics or self.marketing)

    @property
    def accept_all(self) -> bool:
        return self.functional and self.analytics and self.marketing

    @property
    def label(self) -> str:
        if self.essential_only:
            return PolicyPreset.ESSENTIAL.value
        if self.accept_all:
            return PolicyPreset.ACCEPT_ALL.value
        enabled = [c for c in CATEGORIES if getattr(self, c)]
        return "custom(" + ",".join(enabled) + ")"

    def as_dict(self) -> dict[str, bool]:
        return {c: getattr(self, c) for c in CATEGORIES}

    @classmethod
    def from_mapping(cls, data: dict[str, Any] | None) -> ConsentPolicy:
        if not data:
            return ESSENTIAL_ONLY
        return cls(
            essential=True,
            functional=bool(data.get("functional", False)),
            analytics=bool(data.get("analytics", False)),
            marketing=bool(data.get("marketing", False)),
        )

    @classmethod
    def from_name(cls, name: str) -> ConsentPolicy:
        """Build a policy from a preset name or a comma list of categories.

        'essential', 'accept-all', or e.g. 'functional,analytics'.
        """
        key = name.strip().lower()
        if key in (PolicyPreset.ESSENTIAL.value, "essential-only", "reject"):
            return ESSENTIAL_ONLY
        if key in (PolicyPreset.ACCEPT_ALL.value, "accept", "all"):
            return ACCEPT_ALL
        parts = {p.strip() for p in key.split(",") if p.strip()}
        unknown = parts - set(CATEGORIES)
        if unknown:
            raise ValueError(f"Unknown consent category: {', '.join(sorted(unknown))}")
        return cls.from_mapping({p: True for p in parts})


ESSENTIAL_ONLY = ConsentPolicy()
ACCEPT_ALL = ConsentPolicy(functional=True, analytics=True, marketing=True)


@dataclass
class DetectionResult:
    name: str
    handler: CmpHandler


@dataclass
class ResolutionOutcome:
    applied: bool = False
    cmp_name: str | None = None
    success: bool = False


@dataclass
class CooldownRecord:
    timestamp_ms: float
    origin_key: str


@dataclass
class LogEntry:
    domain: str
    cmp_name: str | None
    policy: ConsentPolicy
    success: bool
    timestamp: str = ""


@dataclass
class LastAction:
    domain: str
    policy: ConsentPolicy
    applied_at: str


@dataclass
class SiteInfo:
    url: str
    domain: str
    category: str | None = None


@dataclass
class SiteResult:
    site: SiteInfo
    policy: ConsentPolicy
    status: ResolveStatus
    started_at: str = ""
    completed_at: str = ""
    final_url: str | None = None
    page_title: str | None = None
    outcome: ResolutionOutcome = field(default_factory=ResolutionOutcome)
    error: str | None = None
