"""Heuristic handler for consent prompts of unknown origin.

Root discovery runs in stages, cheapest and most reliable first, over the
main document and then same-origin frames:

a. a structural container (role=dialog, cookie/consent ids and classes)
   holding at least two visible controls, or a single marked one;
b. the smallest visible container around a control whose label matches
   reject/accept/save/settings wording;
c. the common ancestor of a short Yes/No pair;
d. an element whose own text names cookies or consent and which contains
   a matching pair of controls.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from bs4 import Tag

from .. import phrases
from ..dom import (
    DomSnapshot,
    ancestors,
    is_document_level,
    is_visible,
    lowest_common_ancestor,
    normalized_text,
    own_text,
    safe_click,
)
from ..frames import FrameView, PageView, TabDocument, capture_view
from ..matching import (
    MAX_LABEL_LENGTH,
    candidate_buttons,
    choose_button,
    decide,
    find_paywall_accept,
    offers_choice,
)
from ..models import ConsentPolicy
from ..structure import CONTAINER_SELECTOR, has_consent_hint, has_explicit_marker, is_container
from .base import CmpHandler, HandlerKind

logger = logging.getLogger(__name__)

_ANY_CHOICE = phrases.REJECT + phrases.ACCEPT + phrases.SAVE + phrases.SETTINGS
_MAX_CONTAINER_WALK = 10
_MAX_KEYWORD_WALK = 4


@dataclass
class BannerRoot:
    frame_view: FrameView
    element: Tag
    stage: str


def _looks_like_consent(el: Tag) -> bool:
    return has_consent_hint(el) or phrases.has_consent_like_text(el.get_text(" "))


def _structural_root(dom: DomSnapshot, max_height: float) -> Tag | None:
    for el in dom.select(CONTAINER_SELECTOR):
        if is_document_level(el) or not is_visible(dom, el):
            continue
        if not _looks_like_consent(el):
            continue
        buttons = candidate_buttons(dom, el)
        if len(buttons) >= 2 and offers_choice(buttons):
            return el
        if len(buttons) == 1 and has_explicit_marker(buttons[0]):
            return el
    return None


def _banner_container(dom: DomSnapshot, el: Tag, max_height: float) -> Tag | None:
    for depth, node in enumerate(ancestors(el)):
        if depth >= _MAX_CONTAINER_WALK or is_document_level(node):
            break
        if not is_container(node) or not is_visible(dom, node):
            continue
        if dom.box(node).height > max_height:
            continue
        if _looks_like_consent(node):
            return node
    return None


def _phrase_root(dom: DomSnapshot, max_height: float) -> Tag | None:
    for el in candidate_buttons(dom):
        text = normalized_text(el)
        if not text or len(text) >= MAX_LABEL_LENGTH:
            continue
        if not phrases.match_any(text, _ANY_CHOICE):
            continue
        container = _banner_container(dom, el, max_height)
        if container is not None:
            return container
    return None


def _yes_no_root(dom: DomSnapshot, max_height: float) -> Tag | None:
    buttons = candidate_buttons(dom)
    yes = [b for b in buttons if phrases.is_yes_button(normalized_text(b))]
    if not yes:
        return None
    no = [b for b in buttons if phrases.is_no_button(normalized_text(b))]
    for y in yes:
        for n in no:
            common = lowest_common_ancestor(y, n)
            if not is_document_level(common) and is_visible(dom, common):
                return common
    return None


def _has_decision_pair(dom: DomSnapshot, el: Tag) -> bool:
    has_accept = has_reject = has_settings = False
    for b in candidate_buttons(dom, el):
        text = normalized_text(b)
        if not text or len(text) >= MAX_LABEL_LENGTH:
            continue
        if phrases.match_any(text, phrases.REJECT):
            has_reject = True
        elif phrases.match_any(text, phrases.ACCEPT):
            has_accept = True
        elif phrases.match_any(text, phrases.SETTINGS):
            has_settings = True
    return has_accept and (has_reject or has_settings)


def _keyword_root(dom: DomSnapshot, max_height: float) -> Tag | None:
    for el in dom.elements():
        if is_document_level(el) or not is_visible(dom, el):
            continue
        if not phrases.has_consent_like_text(own_text(el)):
            continue
        node: Tag | None = el
        for _ in range(_MAX_KEYWORD_WALK):
            if node is None or is_document_level(node):
                break
            if is_visible(dom, node) and _has_decision_pair(dom, node):
                return node
            node = node.parent
    return None


_STAGES = (
    ("structural", _structural_root),
    ("phrase", _phrase_root),
    ("yes-no", _yes_no_root),
    ("keyword", _keyword_root),
)


def find_banner_root(view: PageView, max_height_ratio: float = 0.95) -> BannerRoot | None:
    """First banner root found, searching the main document before frames."""
    for fv in view.documents:
        max_height = fv.dom.viewport_height * max_height_ratio
        for stage, finder in _STAGES:
            el = finder(fv.dom, max_height)
            if el is not None:
                return BannerRoot(frame_view=fv, element=el, stage=stage)
    return None


class GenericHandler(CmpHandler):
    name = "Generic"
    kind = HandlerKind.GENERIC
    feature = "CMP_GENERIC"

    def find_root(self, view: PageView) -> BannerRoot | None:
        return find_banner_root(view, self.ctx.settings.max_container_height_ratio)

    def detect(self, view: PageView) -> bool:
        return self.find_root(view) is not None

    async def apply_consent(self, view: PageView, policy: ConsentPolicy) -> bool:
        # A subscription wall that offers "continue with cookies" is answered
        # with that control whatever the policy.
        for fv in view.documents:
            if not phrases.is_subscription_paywall(fv.dom.body_text, fv.dom.url):
                continue
            button = find_paywall_accept(fv.dom)
            if button is not None and await safe_click(fv.frame, fv.dom, button):
                logger.info("Subscription wall on %s: continued with cookies", fv.dom.url)
                return True

        root = self.find_root(view)
        if root is None:
            return False

        dom = root.frame_view.dom
        decision, forced = decide(policy.essential_only, dom.text_of(root.element))
        if forced:
            logger.info("Reject unavailable or tied to payment on %s; accepting", dom.url)

        button, how = choose_button(dom, root.element, decision)
        if button is None:
            button, how = choose_button(dom, None, decision)
        if button is None:
            logger.debug("Banner root (%s) on %s has no %s control",
                         root.stage, dom.url, decision.value)
            return False

        logger.debug("Generic %s via %s signal (root stage %s)", decision.value, how, root.stage)
        return await safe_click(root.frame_view.frame, dom, button)

    async def verify(self, tab: TabDocument) -> bool:
        await self.ctx.sleep(self.ctx.settings.verify_delay_ms / 1000)
        view = await capture_view(tab)
        return self.find_root(view) is None
