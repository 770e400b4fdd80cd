"""Choosing which control to press inside a consent prompt."""

from __future__ import annotations

from enum import Enum

from bs4 import Tag

from . import phrases
from .dom import DomSnapshot, is_button_like, is_clickable, normalized_text
from .structure import (
    CANDIDATE_SELECTOR,
    buttons_by_position,
    has_explicit_marker,
    is_accept_by_attributes,
    is_reject_by_attributes,
)

# Longer labels are sentences, not buttons.
MAX_LABEL_LENGTH = 80
PAYWALL_LABEL_RANGE = (10, 120)


class Decision(str, Enum):
    ACCEPT = "accept"
    REJECT = "reject"


def decide(essential_only: bool, body_text: str) -> tuple[Decision, bool]:
    """Return (decision, forced).

    Essential-only normally means reject, unless rejecting is tied to
    subscribing or paying, or there is no reject option at all; then the
    prompt is accepted so the page becomes usable (forced).
    """
    text = (body_text or "").lower()
    forced = essential_only and (
        phrases.reject_tied_to_subscription(text) or phrases.no_reject_option(text)
    )
    if essential_only and not forced:
        return Decision.REJECT, False
    return Decision.ACCEPT, forced


def candidate_buttons(dom: DomSnapshot, scope: Tag | None = None) -> list[Tag]:
    return [
        el for el in dom.select(CANDIDATE_SELECTOR, scope)
        if is_button_like(el) and is_clickable(dom, el)
    ]


_CHOICE_WORDING = phrases.REJECT + phrases.ACCEPT + phrases.SAVE + phrases.SETTINGS


def offers_choice(candidates: list[Tag]) -> bool:
    """Whether the controls read as a consent choice.

    Link-only groups (footer links, menus) qualify only through a marker
    or consent wording on one of the links.
    """
    if any(el.name != "a" for el in candidates):
        return True
    return any(
        has_explicit_marker(el) or phrases.match_any(normalized_text(el), _CHOICE_WORDING)
        for el in candidates
    )


def pick_structural(candidates: list[Tag], decision: Decision) -> Tag | None:
    for el in candidates:
        if decision is Decision.ACCEPT:
            if is_accept_by_attributes(el) and not is_reject_by_attributes(el):
                return el
        elif is_reject_by_attributes(el) and not phrases.mentions_subscription(normalized_text(el)):
            return el
    return None


def pick_by_phrase(candidates: list[Tag], decision: Decision) -> Tag | None:
    labelled = [(el, normalized_text(el)) for el in candidates]
    labelled = [(el, t) for el, t in labelled if t and len(t) < MAX_LABEL_LENGTH]

    if decision is Decision.ACCEPT:
        # Accept-all wording first, then any accept wording.
        for tier in (phrases.ACCEPT_ALL, phrases.ACCEPT):
            for el, text in labelled:
                if phrases.match_any(text, phrases.REJECT):
                    continue
                if phrases.match_any(text, tier):
                    return el
        return None

    for el, text in labelled:
        if phrases.mentions_subscription(text):
            continue
        if phrases.match_any(text, phrases.REJECT):
            return el
    return None


def pick_yes_no(candidates: list[Tag], decision: Decision) -> Tag | None:
    test = phrases.is_yes_button if decision is Decision.ACCEPT else phrases.is_no_button
    for el in candidates:
        if test(normalized_text(el)):
            return el
    return None


def pick_by_position(dom: DomSnapshot, candidates: list[Tag], decision: Decision) -> Tag | None:
    if len(candidates) != 2 or any(has_explicit_marker(el) for el in candidates):
        return None
    accept, reject = buttons_by_position(dom, candidates)
    return accept if decision is Decision.ACCEPT else reject


def choose_button(
    dom: DomSnapshot,
    scope: Tag | None,
    decision: Decision,
) -> tuple[Tag | None, str | None]:
    """Pick the control for decision inside scope: structural, phrase, yes/no, position."""
    candidates = candidate_buttons(dom, scope)
    if not candidates:
        return None, None

    el = pick_structural(candidates, decision)
    if el is not None:
        return el, "structural"
    el = pick_by_phrase(candidates, decision)
    if el is not None:
        return el, "phrase"
    el = pick_yes_no(candidates, decision)
    if el is not None:
        return el, "yes-no"
    el = pick_by_position(dom, candidates, decision)
    if el is not None:
        return el, "position"
    return None, None


def find_paywall_accept(dom: DomSnapshot) -> Tag | None:
    """A 'continue by accepting cookies' control on a subscription wall."""
    low, high = PAYWALL_LABEL_RANGE
    for el in candidate_buttons(dom):
        text = normalized_text(el)
        if low <= len(text) <= high and phrases.match_any(text, phrases.PAYWALL_ACCEPT):
            return el
    return None
