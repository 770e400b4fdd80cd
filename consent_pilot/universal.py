"""The button-clicking routine run in every frame during escalation.

Unlike the handlers it works on one frame at a time, including frames
of other origins, and it records a cooldown per origin so that sibling
frames of the same origin do not click twice.
"""

from __future__ import annotations

import logging

from bs4 import Tag

from . import phrases
from .cooldown import CooldownGuard
from .dom import DomSnapshot, can_click, is_visible, safe_click
from .frames import FrameDocument
from .matching import (
    candidate_buttons,
    decide,
    find_paywall_accept,
    offers_choice,
    pick_by_phrase,
    pick_by_position,
    pick_structural,
)
from .structure import CONTAINER_SELECTOR, has_consent_hint

logger = logging.getLogger(__name__)


def _consent_containers(dom: DomSnapshot) -> list[Tag]:
    out = []
    for el in dom.select(CONTAINER_SELECTOR):
        if not is_visible(dom, el):
            continue
        if has_consent_hint(el) or phrases.has_consent_like_text(el.get_text(" ")):
            out.append(el)
    return out


class UniversalClicker:
    def __init__(self, guard: CooldownGuard):
        self.guard = guard

    async def try_click(self, frame: FrameDocument, essential_only: bool) -> bool:
        """Answer a consent prompt in this frame. Returns True if a click was made."""
        key = self.guard.key_for(frame.url)
        if key and self.guard.is_cooling(key):
            logger.debug("Cooling down, skipping %s", key)
            return False

        try:
            dom = await frame.snapshot()
        except Exception as e:
            logger.debug("Snapshot failed for %s: %s", frame.url, e)
            return False
        if dom is None:
            return False

        body = dom.body_text
        if phrases.is_subscription_paywall(body, dom.url):
            el = find_paywall_accept(dom)
            if el is not None:
                return await self._click(frame, dom, el, key)

        containers = _consent_containers(dom)
        if not containers and not phrases.has_consent_like_text(body):
            return False

        for container in containers:
            buttons = candidate_buttons(dom, container)
            if len(buttons) < 2 or not offers_choice(buttons):
                continue
            decision, _ = decide(essential_only, dom.text_of(container))
            target = pick_structural(buttons, decision) or pick_by_position(dom, buttons, decision)
            if target is not None:
                return await self._click(frame, dom, target, key)

        decision, _ = decide(essential_only, body)
        target = pick_by_phrase(candidate_buttons(dom), decision)
        if target is not None:
            return await self._click(frame, dom, target, key)
        return False

    async def _click(self, frame: FrameDocument, dom: DomSnapshot, el: Tag, key: str) -> bool:
        if not can_click(dom, el):
            return False
        # The record stays even if the click errors in the page.
        if key and not self.guard.try_acquire(key):
            return False
        return await safe_click(frame, dom, el)
