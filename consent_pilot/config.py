"""Configuration loading and typed config dataclasses."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import get_type_hints

import yaml


@dataclass
class EngineSettings:
    max_attempts: int = 5
    retry_interval_ms: int = 800
    give_up_ms: int = 15000
    verify_delay_ms: int = 500
    mutation_debounce_ms: int = 2500
    cooldown_ms: int = 12000
    coordinator_timeout_ms: int = 3000
    vendor_api_timeout_ms: int = 2500
    snapshot_timeout_ms: int = 5000
    snapshot_max_nodes: int = 6000
    max_container_height_ratio: float = 0.95
    default_policy: str = "essential"


# Capabilities the engine knows about. Anything not listed here is off.
DEFAULT_FEATURES: dict[str, bool] = {
    "GLOBAL_REJECT_NON_ESSENTIAL": True,
    "AUTO_DETECT_CMP": True,
    "AUTO_ENFORCE_ON_LOAD": True,
    "MANUAL_REAPPLY_BUTTON": True,
    "PER_SITE_REMEMBER_LAST": True,
    "CMP_ONETRUST": True,
    "CMP_COOKIEBOT": True,
    "CMP_QUANTCAST": True,
    "CMP_COOKIEYES": True,
    "CMP_DIDOMI": True,
    "CMP_IUBENDA": True,
    "CMP_SITE_SPECIFIC": True,
    "CMP_GENERIC": True,
    "CROSS_FRAME_ESCALATION": True,
    "VENDOR_API_ESCALATION": True,
    "CONSENT_HISTORY_LOG": True,
    "PER_SITE_CUSTOM_RULES": True,
}


class FeatureSet:
    """Read-only capability flags. Unknown keys are disabled."""

    def __init__(self, flags: Mapping[str, bool] | None = None):
        merged = dict(DEFAULT_FEATURES)
        for key, val in (flags or {}).items():
            merged[str(key)] = bool(val)
        self._flags = merged

    def enabled(self, key: str) -> bool:
        return self._flags.get(key, False)

    def __contains__(self, key: str) -> bool:
        return self.enabled(key)

    def as_dict(self) -> dict[str, bool]:
        return dict(self._flags)


@dataclass
class SiteRule:
    """Phrase table for a family of sites with their own banner wording."""
    name: str
    hosts: list[str] = field(default_factory=list)
    reject_phrases: list[str] = field(default_factory=list)
    accept_phrases: list[str] = field(default_factory=list)
    accept_all_phrases: list[str] = field(default_factory=list)
    reject_exclude: list[str] = field(default_factory=lambda: ["purchase", "subscribe"])
    force_accept_pattern: str = r"reject.*(purchase|buy|pay|subscription|subscribe)"
    max_text_length: int = 60


def _default_site_rules() -> list[SiteRule]:
    return [
        SiteRule(
            name="UK news",
            hosts=[
                "telegraph.co.uk", "independent.co.uk", "theguardian.com",
                "thetimes.co.uk", "thesun.co.uk", "mirror.co.uk",
                "express.co.uk", "standard.co.uk",
            ],
            reject_phrases=[
                "essential cookies only", "essential only", "necessary only",
                "reject all", "refuse all", "reject", "decline",
            ],
            accept_phrases=["i accept", "accept all", "allow all", "accept", "agree", "i agree"],
        ),
        SiteRule(
            name="French news",
            hosts=[
                "lefigaro.fr", "lemonde.fr", "leparisien.fr",
                "liberation.fr", "france24.com", "lexpress.fr",
            ],
            reject_phrases=[
                "refuse all", "tout refuser", "refuser tout", "essential only",
                "essential cookies only", "reject all", "continuer sans accepter", "refuser",
            ],
            accept_phrases=[
                "accept all", "tout accepter", "accepter tout", "accepter et continuer",
                "i accept", "j'accepte", "accept", "accepter", "agree",
            ],
            accept_all_phrases=["accept all", "tout accepter", "accepter tout", "allow all"],
            reject_exclude=[
                "subscribe", "suscripción", "suscripcion", "s'abonner",
                "abonnement", "abbonamento", "pagar", "comprar",
            ],
            force_accept_pattern=(
                r"(reject|refuse|rechazar|rifiuta|refuser|ablehnen).*"
                r"(subscribe|suscripción|suscripcion|abonnement|s'abonner|abbonamento|pagar|\bpay\b|purchase|buy|comprar)"
                r"|obligatoire|accéder gratuitement|free.*by accepting"
            ),
            max_text_length=80,
        ),
        SiteRule(
            name="Daily Mail",
            hosts=["dailymail.co.uk"],
            reject_phrases=["reject", "refuse"],
            accept_phrases=["accept"],
            reject_exclude=["purchase", "subscribe", "buy"],
            force_accept_pattern=(
                r"reject.*(purchase|buy|\bpay\b|subscription|subscribe)"
                r"|(purchase|buy|\bpay\b|subscription).*reject"
            ),
        ),
    ]


@dataclass
class KnownSites:
    """Hostnames that need special treatment."""
    skip: list[str] = field(default_factory=list)
    slow: list[str] = field(default_factory=lambda: [
        "dailymail.co.uk", "telegraph.co.uk", "lefigaro.fr", "lemonde.fr",
    ])
    delayed_retry_ms: list[int] = field(default_factory=lambda: [20000, 45000])
    site_rules: list[SiteRule] = field(default_factory=_default_site_rules)


@dataclass
class Viewport:
    width: int = 1280
    height: int = 800


@dataclass
class BrowserSettings:
    locale: str = "en-GB"
    timezone: str = "Europe/London"
    viewport: Viewport = field(default_factory=Viewport)
    user_agent: str | None = None
    headless: bool = True


@dataclass
class DatabaseSettings:
    path: str = "data/consent.db"


@dataclass
class RunSettings:
    concurrency: int = 4
    page_timeout_ms: int = 45000
    watch_ms: int = 20000
    inter_site_delay_ms: int = 1000
    sites_file: str | None = None


@dataclass
class PilotConfig:
    project_root: Path = field(default_factory=lambda: Path.cwd())
    engine: EngineSettings = field(default_factory=EngineSettings)
    features: dict[str, bool] = field(default_factory=dict)
    known_sites: KnownSites = field(default_factory=KnownSites)
    browser: BrowserSettings = field(default_factory=BrowserSettings)
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    run: RunSettings = field(default_factory=RunSettings)

    def resolve_path(self, relative_path: str) -> Path:
        """Resolve a relative path against the project root."""
        p = Path(relative_path)
        if p.is_absolute():
            return p
        return self.project_root / p

    def feature_set(self) -> FeatureSet:
        return FeatureSet(self.features)


def _build_nested(cls, data: dict):
    """Recursively build a dataclass from a dict, ignoring unknown keys."""
    if data is None:
        return cls()
    hints = get_type_hints(cls)
    filtered = {}
    for key, val in data.items():
        if key not in cls.__dataclass_fields__:
            continue
        ftype = hints.get(key)
        # If the field type is itself a dataclass, recurse
        if isinstance(ftype, type) and hasattr(ftype, "__dataclass_fields__"):
            filtered[key] = _build_nested(ftype, val) if isinstance(val, dict) else val
        else:
            filtered[key] = val
    return cls(**filtered)


def _build_known_sites(data: dict | None) -> KnownSites:
    if not data:
        return KnownSites()
    defaults = KnownSites()
    rules = defaults.site_rules
    if "site_rules" in data:
        rules = [_build_nested(SiteRule, r) for r in (data.get("site_rules") or []) if isinstance(r, dict)]
    return KnownSites(
        skip=list(data.get("skip", defaults.skip) or []),
        slow=list(data.get("slow", defaults.slow) or []),
        delayed_retry_ms=[int(v) for v in data.get("delayed_retry_ms", defaults.delayed_retry_ms) or []],
        site_rules=rules,
    )


def load_config(path: str | Path) -> PilotConfig:
    """Load configuration from a YAML file, falling back to defaults."""
    config_path = Path(path)
    project_root = config_path.parent

    if config_path.exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}
    else:
        raw = {}

    config = PilotConfig(
        project_root=project_root,
        engine=_build_nested(EngineSettings, raw.get("engine")),
        features={str(k): bool(v) for k, v in (raw.get("features") or {}).items()},
        known_sites=_build_known_sites(raw.get("known_sites")),
        browser=_build_nested(BrowserSettings, raw.get("browser")),
        database=_build_nested(DatabaseSettings, raw.get("database")),
        run=_build_nested(RunSettings, raw.get("run")),
    )

    return config
