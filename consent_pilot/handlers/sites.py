"""Handlers for site families whose banners need their own wording."""

from __future__ import annotations

import logging
import re

from bs4 import Tag

from .. import phrases
from ..config import SiteRule
from ..dom import DomSnapshot, label_text, safe_click
from ..frames import PageView
from ..matching import candidate_buttons
from ..models import ConsentPolicy
from ..utils import extract_hostname, host_matches
from .base import CmpHandler, HandlerKind

logger = logging.getLogger(__name__)


class SiteRuleHandler(CmpHandler):
    kind = HandlerKind.SITE_SPECIFIC
    feature = "CMP_SITE_SPECIFIC"

    def __init__(self, ctx, rule: SiteRule):
        super().__init__(ctx)
        self.rule = rule
        self.name = rule.name
        self._reject = phrases.phrase_table(*rule.reject_phrases)
        self._accept = phrases.phrase_table(*rule.accept_phrases)
        self._accept_all = phrases.phrase_table(*rule.accept_all_phrases)
        self._exclude = tuple(x.lower() for x in rule.reject_exclude)
        self._force = re.compile(rule.force_accept_pattern, re.IGNORECASE) \
            if rule.force_accept_pattern else None

    def applies_to(self, url: str) -> bool:
        return host_matches(extract_hostname(url), self.rule.hosts)

    def detect(self, view: PageView) -> bool:
        main = view.main
        if main is None or not self.applies_to(main.dom.url or view.url):
            return False
        wording = self._reject + self._accept
        return any(phrases.match_any(label_text(el), wording) for el in candidate_buttons(main.dom))

    def _pick(self, dom: DomSnapshot, accept_mode: bool) -> Tag | None:
        buttons = [(el, label_text(el)) for el in candidate_buttons(dom)]
        if not accept_mode:
            for el, text in buttons:
                if phrases.match_any(text, self._reject) and not any(x in text for x in self._exclude):
                    return el
            return None

        passes = (self._accept_all, self._accept) if self._accept_all else (self._accept,)
        for wording in passes:
            for el, text in buttons:
                if len(text) >= self.rule.max_text_length:
                    continue
                if phrases.match_any(text, wording) and phrases.match_any(text, self._accept):
                    return el
        return None

    async def apply_consent(self, view: PageView, policy: ConsentPolicy) -> bool:
        main = view.main
        if main is None:
            return False
        dom = main.dom
        essential = policy.essential_only
        forced = bool(essential and self._force and self._force.search(dom.body_text.lower()))
        if forced:
            logger.info("%s: reject is tied to payment on %s; accepting", self.name, dom.url)

        el = self._pick(dom, accept_mode=forced or not essential)
        if el is None:
            return False
        return await safe_click(main.frame, dom, el)
