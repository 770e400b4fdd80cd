"""Tests for consent_pilot.matching: decisions and control selection."""

from __future__ import annotations

from consent_pilot.dom import DomSnapshot, normalized_text
from consent_pilot.matching import (
    Decision,
    choose_button,
    decide,
    find_paywall_accept,
    offers_choice,
    pick_by_phrase,
    pick_by_position,
)


def _dom(body: str) -> DomSnapshot:
    return DomSnapshot.from_html(f"<html><body>{body}</body></html>")


def _label(el) -> str | None:
    return normalized_text(el) if el is not None else None


class TestDecide:
    def test_essential_rejects(self) -> None:
        assert decide(True, "We use cookies. Accept or Reject.") == (Decision.REJECT, False)

    def test_accept_policy_accepts(self) -> None:
        assert decide(False, "We use cookies. Accept or Reject.") == (Decision.ACCEPT, False)

    def test_reject_tied_to_paying_forces_accept(self) -> None:
        assert decide(True, "Reject and subscribe for 2 € a month") == (Decision.ACCEPT, True)

    def test_no_reject_option_forces_accept(self) -> None:
        assert decide(True, "By browsing you accept cookies.") == (Decision.ACCEPT, True)

    def test_accept_policy_is_never_forced(self) -> None:
        assert decide(False, "Reject and subscribe") == (Decision.ACCEPT, False)


class TestChooseButton:
    def test_structural_beats_phrase(self) -> None:
        dom = _dom(
            '<div><button>Reject all</button>'
            '<button data-action="reject-all">Nope</button></div>'
        )
        el, how = choose_button(dom, None, Decision.REJECT)
        assert how == "structural"
        assert _label(el) == "nope"

    def test_data_action_decides_alone(self) -> None:
        dom = _dom('<button id="accept-btn" data-action="reject">X</button>')
        assert choose_button(dom, None, Decision.ACCEPT) == (None, None)

    def test_phrase_prefers_accept_all(self) -> None:
        dom = _dom("<button>Accept</button><button>Accept all</button><button>Reject</button>")
        el, how = choose_button(dom, None, Decision.ACCEPT)
        assert how == "phrase"
        assert _label(el) == "accept all"

    def test_reject_skips_subscription_offers(self) -> None:
        dom = _dom("<button>Reject and subscribe</button><button>Decline</button>")
        el, how = choose_button(dom, None, Decision.REJECT)
        assert _label(el) == "decline"

    def test_long_labels_are_not_buttons(self) -> None:
        long_label = "reject " + "x" * 90
        el = pick_by_phrase(_dom(f"<button>{long_label}</button>").select("button"), Decision.REJECT)
        assert el is None

    def test_yes_no(self) -> None:
        dom = _dom("<button>Yes</button><button>No</button>")
        el, how = choose_button(dom, None, Decision.REJECT)
        assert how == "yes-no"
        assert _label(el) == "no"

    def test_position_needs_exactly_two(self) -> None:
        dom = _dom(
            '<button style="left: 10px">Left</button>'
            '<button style="left: 200px">Middle</button>'
            '<button style="left: 400px">Right</button>'
        )
        assert pick_by_position(dom, dom.select("button"), Decision.REJECT) is None

    def test_position_pair(self) -> None:
        dom = _dom('<button style="left: 400px">Right</button><button style="left: 10px">Left</button>')
        el, how = choose_button(dom, None, Decision.ACCEPT)
        assert how == "position"
        assert _label(el) == "right"

    def test_scope_limits_candidates(self) -> None:
        dom = _dom('<div id="a"><button>Reject</button></div><div id="b"><button>Accept</button></div>')
        el, _ = choose_button(dom, dom.select_one("#b"), Decision.REJECT)
        assert el is None

    def test_hidden_controls_ignored(self) -> None:
        dom = _dom('<button style="display:none">Reject</button>')
        assert choose_button(dom, None, Decision.REJECT) == (None, None)


class TestPaywallAccept:
    def test_finds_continue_with_cookies(self) -> None:
        dom = _dom("<button>Subscribe</button><button>Continue with cookies</button>")
        assert _label(find_paywall_accept(dom)) == "continue with cookies"

    def test_short_labels_ignored(self) -> None:
        assert find_paywall_accept(_dom("<button>OK</button>")) is None


class TestOffersChoice:
    def test_buttons_always_qualify(self) -> None:
        dom = _dom("<button>One</button><a href='#'>Two</a>")
        assert offers_choice(dom.select("button, a"))

    def test_plain_links_do_not(self) -> None:
        dom = _dom("<a href='#'>Terms</a><a href='#'>Imprint</a>")
        assert not offers_choice(dom.select("a"))

    def test_links_with_wording_or_marker(self) -> None:
        assert offers_choice(_dom("<a href='#'>Terms</a><a href='#'>Reject</a>").select("a"))
        assert offers_choice(_dom("<a href='#'>Terms</a><a href='#' id='optout'>Later</a>").select("a"))
