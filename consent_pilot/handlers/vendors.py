"""Handlers for consent platforms with known markup."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from bs4 import Tag

from .. import phrases
from ..dom import DomSnapshot, is_clickable, is_visible, normalized_text, safe_click
from ..frames import PageView
from ..matching import MAX_LABEL_LENGTH, candidate_buttons
from ..models import CATEGORIES, ConsentPolicy
from .base import CmpHandler, HandlerKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VendorProfile:
    """Markup signature and controls of one consent platform."""
    name: str
    kind: HandlerKind
    feature: str
    detect_selector: str
    reject_selectors: tuple[str, ...] = ()
    accept_selectors: tuple[str, ...] = ()
    reject_phrases: tuple[str, ...] = ()
    accept_phrases: tuple[str, ...] = ()
    # Search for controls inside the first visible match only.
    scoped: bool = False
    categories: tuple[str, ...] | None = None


# ─── Known platforms ─────────────────────────────────────────────────────

ONETRUST = VendorProfile(
    name="OneTrust",
    kind=HandlerKind.ONETRUST,
    feature="CMP_ONETRUST",
    detect_selector='#onetrust-banner-sdk, [id^="onetrust-banner"], .onetrust-pc-dark-filter',
    reject_selectors=("#onetrust-reject-all-handler", ".ot-pc-refuse-all-handler"),
    accept_selectors=("#onetrust-accept-btn-handler", "#accept-recommended-btn-handler"),
    reject_phrases=(
        "reject all", "reject", "only essential", "essential only", "necessary only",
        "decline", "no thanks", "alle ablehnen", "tout refuser", "rechazar", "avvisa",
        "endast nödvändiga", "nej tack", "afvis alle", "afvis", "weiger", "rifiuta",
        "rejeitar", "odmítnout",
    ),
    accept_phrases=(
        "accept all", "accept all cookies", "allow all", "agree to all", "accept", "allow",
        "alle akzeptieren", "tout accepter", "aceptar todo", "acceptera alla", "acceptera",
        "godkänn", "tillåt alla", "godta alle", "hyväksy kaikki", "accepteer", "accetta",
        "aceitar", "přijmout",
    ),
    categories=CATEGORIES,
)

COOKIEBOT = VendorProfile(
    name="Cookiebot",
    kind=HandlerKind.COOKIEBOT,
    feature="CMP_COOKIEBOT",
    detect_selector='#CybotCookiebotDialog, [class*="CybotCookiebotDialog"]',
    reject_selectors=(
        "#CybotCookiebotDialogBodyButtonDecline",
        "#CybotCookiebotDialogBodyLevelButtonLevelOptinDeclineAll",
        "a[data-cb-decline]",
    ),
    accept_selectors=(
        "#CybotCookiebotDialogBodyLevelButtonLevelOptinAllowAll",
        "#CybotCookiebotDialogBodyButtonAccept",
        "a[data-cb-accept]",
    ),
    reject_phrases=("use necessary cookies only", "necessary only", "deny", "decline", "reject"),
    accept_phrases=("allow all", "accept all", "allow selection", "accept", "allow"),
    scoped=True,
    categories=CATEGORIES,
)

QUANTCAST = VendorProfile(
    name="Quantcast",
    kind=HandlerKind.QUANTCAST,
    feature="CMP_QUANTCAST",
    detect_selector='#qc-cmp2-main, .qc-cmp2-container, [id*="qc-cmp"], [class*="qc-cmp2"]',
    reject_selectors=('[data-action="reject-all"]', "[data-testid='GDPR-CTA-refuse']", '[mode="secondary"]'),
    accept_selectors=('[data-action="accept-all"]', "[data-testid='GDPR-CTA-accept']", '[mode="primary"]'),
    reject_phrases=("reject all", "disagree", "reject", "decline"),
    accept_phrases=("accept all", "agree", "accept"),
    scoped=True,
    categories=CATEGORIES,
)

COOKIEYES = VendorProfile(
    name="CookieYes",
    kind=HandlerKind.COOKIEYES,
    feature="CMP_COOKIEYES",
    detect_selector='.cky-consent-bar, .cky-consent-container, [class*="cky-consent"], [id*="cookieyes"]',
    reject_selectors=(".cky-btn-reject", '[class*="cky-btn-reject"]', '[data-action="reject"]'),
    accept_selectors=(".cky-btn-accept", '[class*="cky-btn-accept"]', '[data-action="accept_all"]'),
    reject_phrases=("reject all", "reject", "necessary only", "decline", "alle ablehnen", "tout refuser", "rechazar"),
    accept_phrases=("accept all", "accept", "allow all", "alle akzeptieren", "tout accepter", "aceptar todo"),
    scoped=True,
    categories=CATEGORIES,
)

VENDOR_PROFILES: tuple[VendorProfile, ...] = (ONETRUST, COOKIEBOT, QUANTCAST, COOKIEYES)


class VendorHandler(CmpHandler):
    """Answers a platform's banner by its known selectors, then by wording."""

    def __init__(self, ctx, profile: VendorProfile):
        super().__init__(ctx)
        self.profile = profile
        self.name = profile.name
        self.kind = profile.kind
        self.feature = profile.feature

    def _banner(self, dom: DomSnapshot) -> Tag | None:
        for el in dom.select(self.profile.detect_selector):
            if is_visible(dom, el):
                return el
        return None

    def detect(self, view: PageView) -> bool:
        main = view.main
        return main is not None and self._banner(main.dom) is not None

    def get_categories(self) -> list[str] | None:
        return list(self.profile.categories) if self.profile.categories else None

    async def apply_consent(self, view: PageView, policy: ConsentPolicy) -> bool:
        main = view.main
        if main is None:
            return False
        dom = main.dom
        scope = self._banner(dom) if self.profile.scoped else None
        if self.profile.scoped and scope is None:
            return False

        reject = policy.essential_only
        if reject:
            el = self._by_selector(dom, scope, self.profile.reject_selectors)
            if el is None:
                el = self._by_phrase(dom, scope, self.profile.reject_phrases, reject=True)
        else:
            el = self._by_selector(dom, scope, self.profile.accept_selectors)
            if el is None:
                el = self._by_phrase(dom, scope, self.profile.accept_phrases, reject=False)

        if el is None:
            logger.debug("%s: no %s control found on %s",
                         self.name, "reject" if reject else "accept", dom.url)
            return False
        return await safe_click(main.frame, dom, el)

    @staticmethod
    def _by_selector(dom: DomSnapshot, scope: Tag | None, selectors: tuple[str, ...]) -> Tag | None:
        for selector in selectors:
            for el in dom.select(selector, scope):
                if is_clickable(dom, el):
                    return el
        return None

    @staticmethod
    def _by_phrase(
        dom: DomSnapshot,
        scope: Tag | None,
        wording: tuple[str, ...],
        reject: bool,
    ) -> Tag | None:
        if not wording:
            return None
        labelled = [(el, normalized_text(el)) for el in candidate_buttons(dom, scope)]
        labelled = [(el, t) for el, t in labelled if t and len(t) < MAX_LABEL_LENGTH]
        for phrase in wording:
            for el, text in labelled:
                if not phrases.matches_phrase(text, phrase):
                    continue
                if reject and phrases.mentions_subscription(text):
                    continue
                if not reject and phrases.match_any(text, phrases.REJECT):
                    continue
                return el
        return None


class VendorApiHandler(CmpHandler):
    """Platforms answered through their documented page API via the coordinator."""

    vendor: str = ""
    detect_selector: str = ""

    def _markup_present(self, view: PageView) -> bool:
        return any(
            is_visible(fv.dom, el)
            for fv in view.documents
            for el in fv.dom.select(self.detect_selector)
        )

    def detect(self, view: PageView) -> bool:
        return self._markup_present(view)

    async def apply_consent(self, view: PageView, policy: ConsentPolicy) -> bool:
        coordinator = self.ctx.coordinator
        if coordinator is None:
            return False
        return await coordinator.invoke_vendor_api(view.tab, self.vendor, policy.essential_only)


class DidomiHandler(VendorApiHandler):
    name = "Didomi"
    kind = HandlerKind.DIDOMI
    feature = "CMP_DIDOMI"
    vendor = "didomi"
    detect_selector = '[class*="didomi"], [id*="didomi"]'


class IubendaHandler(VendorApiHandler):
    name = "Iubenda"
    kind = HandlerKind.IUBENDA
    feature = "CMP_IUBENDA"
    vendor = "iubenda"
    detect_selector = 'iframe[src*="iubenda"], [class*="iubenda"], [id*="iubenda"]'

    def detect(self, view: PageView) -> bool:
        if self._markup_present(view):
            return True
        # Loader script alone counts only while a consent prompt is on screen.
        main = view.main
        if main is None or main.dom.select_one('script[src*="iubenda"]') is None:
            return False
        return phrases.has_consent_like_text(main.dom.body_text)
