"""Structural (attribute and layout) signals for consent controls.

Structural signals are checked before phrase signals: a ``data-action``
value, an id or a class is more stable than visible wording.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from bs4 import Tag

from .dom import class_string

if TYPE_CHECKING:
    from .dom import DomSnapshot

ACCEPT_ACTIONS = ("accept-all", "accept_all", "acceptall", "accept-all-cookies", "accept")
REJECT_ACTIONS = ("reject-all", "reject_all", "rejectall", "reject-all-cookies", "reject", "decline", "decline-all")

ACCEPT_ID_PATTERNS = ("accept", "allow", "allowall", "optin", "agree")
REJECT_ID_PATTERNS = ("reject", "decline", "refuse", "deny", "optout", "essential")

ACCEPT_CLASS_PATTERNS = ("accept", "allow", "optin", "agree", "consent-all")
REJECT_CLASS_PATTERNS = ("reject", "decline", "refuse", "deny", "optout", "essential-only")

# Containers that typically hold consent prompts.
CONTAINER_SELECTORS = (
    '[role="dialog"]',
    '[role="alertdialog"]',
    '[id*="cookie"]', '[class*="cookie"]',
    '[id*="consent"]', '[class*="consent"]',
    '[id*="gdpr"]', '[class*="gdpr"]',
    '[id*="privacy"]', '[class*="privacy"]',
    '[class*="banner"]', '[class*="modal"]', '[class*="popup"]',
    '[id*="onetrust"]', '[class*="onetrust"]',
    '[id*="Cookiebot"]', '[class*="Cookiebot"]',
    '[id*="didomi"]', '[class*="didomi"]',
    '[id*="termly"]', '[class*="termly"]',
    '[id*="cookieyes"]', '[class*="cky-consent"]',
    '[id*="qc-cmp"]', '[class*="qc-cmp"]',
    '[id*="truste"]', '[class*="truste"]',
    '[id*="sp_message"]', '[class*="sp_message"]',
    '[id*="sp_cc"]', '[class*="sourcepoint"]',
    '[class*="cookie-banner"]', '[class*="cookie-notice"]', '[class*="cc-banner"]',
    '[id*="kakor"]', '[class*="kakor"]',
    '[id*="integritet"]', '[class*="integritet"]',
    '[id*="samtycke"]', '[class*="samtycke"]',
    '[id*="ciasteczka"]', '[class*="ciasteczka"]',
    '[id*="eväste"]', '[class*="eväste"]',
    '[id*="koekjes"]', '[class*="koekjes"]',
)
CONTAINER_SELECTOR = ", ".join(CONTAINER_SELECTORS)

# class/id fragments that put an element inside a consent prompt.
CONSENT_CONTEXT_HINTS = (
    "cookie", "consent", "gdpr", "privacy", "ccpa", "onetrust", "cookiebot", "didomi",
    "termly", "cookieyes", "cky-", "qc-cmp", "truste", "sp_message", "sp_cc",
    "sourcepoint", "iubenda", "kakor", "integritet", "samtycke", "ciasteczka",
    "eväste", "koekjes", "données", "partenaires",
)

# Tags that can hold a banner when walking up from a control.
CONTAINER_TAGS = frozenset({"div", "section", "aside", "dialog", "form", "footer", "header", "article"})

# Anything a user could press.
CANDIDATE_SELECTOR = 'button, [role="button"], input[type="button"], input[type="submit"], a'


def _action(el: Tag) -> str:
    return str(el.get("data-action") or "").strip().lower()


def _id(el: Tag) -> str:
    return str(el.get("id") or "").lower()


def is_accept_by_attributes(el: Tag) -> bool:
    """data-action decides alone when present; otherwise id, then class."""
    action = _action(el)
    if action:
        return action in ACCEPT_ACTIONS
    el_id = _id(el)
    if el_id and any(p in el_id for p in ACCEPT_ID_PATTERNS):
        return True
    classes = class_string(el).lower()
    return bool(classes) and any(p in classes for p in ACCEPT_CLASS_PATTERNS)


def is_reject_by_attributes(el: Tag) -> bool:
    action = _action(el)
    if action:
        return action in REJECT_ACTIONS
    el_id = _id(el)
    if el_id and any(p in el_id for p in REJECT_ID_PATTERNS):
        return True
    classes = class_string(el).lower()
    return bool(classes) and any(p in classes for p in REJECT_CLASS_PATTERNS)


def has_explicit_marker(el: Tag) -> bool:
    return is_accept_by_attributes(el) or is_reject_by_attributes(el)


def has_consent_hint(el: Tag) -> bool:
    marker = f"{class_string(el)} {el.get('id') or ''}".lower()
    return any(h in marker for h in CONSENT_CONTEXT_HINTS)


def is_container(el: Tag) -> bool:
    if el.name in CONTAINER_TAGS or "-" in (el.name or ""):
        return True
    return str(el.get("role", "")).lower() in ("dialog", "alertdialog")


def buttons_by_position(dom: DomSnapshot, buttons: list[Tag]) -> tuple[Tag | None, Tag | None]:
    """(accept, reject) for a pair of buttons: rightmost accepts, leftmost rejects.

    Only a pair gives a positional answer; any other count returns (None, None).
    """
    if len(buttons) != 2:
        return None, None
    ordered = sorted(buttons, key=lambda b: dom.box(b).x)
    return ordered[-1], ordered[0]
