"""Tests for consent_pilot.dom and consent_pilot.utils."""

from __future__ import annotations

import asyncio

from bs4 import BeautifulSoup

from consent_pilot.dom import (
    DomSnapshot,
    is_button_like,
    is_visible,
    lowest_common_ancestor,
    normalized_text,
    own_text,
    safe_click,
    would_navigate,
)
from consent_pilot.frames import StaticFrame
from consent_pilot.utils import (
    cooldown_key,
    extract_hostname,
    extract_origin,
    extract_registered_domain,
    host_matches,
    normalize_url,
)


def _tag(html: str):
    return BeautifulSoup(html, "html.parser").find(True)


class TestFromHtml:
    def test_display_none_hides_subtree(self) -> None:
        dom = DomSnapshot.from_html('<div style="display:none"><button>Accept</button></div>')
        assert not is_visible(dom, dom.select_one("button"))

    def test_hidden_attribute(self) -> None:
        dom = DomSnapshot.from_html("<section hidden><p>Hi</p></section>")
        assert not is_visible(dom, dom.select_one("p"))

    def test_visibility_is_inherited_but_overridable(self) -> None:
        dom = DomSnapshot.from_html(
            '<div style="visibility:hidden"><span id="a">A</span>'
            '<span id="b" style="visibility: visible">B</span></div>'
        )
        assert not is_visible(dom, dom.select_one("#a"))
        assert is_visible(dom, dom.select_one("#b"))

    def test_zero_opacity(self) -> None:
        dom = DomSnapshot.from_html('<button style="opacity: 0">Accept</button>')
        assert not is_visible(dom, dom.select_one("button"))

    def test_geometry_from_inline_style(self) -> None:
        dom = DomSnapshot.from_html('<div style="left: 40px; top: 5px; width: 300px; height: 90px">x</div>')
        box = dom.box(dom.select_one("div"))
        assert (box.x, box.y, box.width, box.height) == (40, 5, 300, 90)

    def test_refs_round_trip(self) -> None:
        dom = DomSnapshot.from_html("<div><button>One</button><button>Two</button></div>")
        second = dom.select("button")[1]
        assert dom.element(dom.ref(second)) is second

    def test_body_text_skips_hidden_text(self) -> None:
        dom = DomSnapshot.from_html(
            '<html><body><p>Shown</p><p style="display:none">Gone</p>'
            "<script>var x = 1;</script></body></html>"
        )
        assert dom.body_text == "Shown"

    def test_body_text_breaks_lines_at_blocks(self) -> None:
        dom = DomSnapshot.from_html(
            "<html><body><div><p>We use <b>cookies</b>.</p><button>Reject</button> <button>Accept</button></div>"
            "<footer>Subscribe today</footer></body></html>"
        )
        assert dom.body_text == "We use cookies .\nReject Accept\nSubscribe today"

    def test_text_of_scopes_to_element(self) -> None:
        dom = DomSnapshot.from_html(
            '<div id="banner"><p>Cookies?</p><button>Reject</button></div><footer>Subscribe</footer>'
        )
        assert dom.text_of(dom.select_one("#banner")) == "Cookies?\nReject"


class TestFromPayload:
    PAYLOAD = {
        "url": "https://news.example.com/",
        "vw": 1024,
        "vh": 700,
        "bodyText": "Accept",
        "tree": {
            "i": 0, "t": "html", "c": [{
                "i": 1, "t": "body", "b": [0, 0, 1024, 700], "c": [
                    {"i": 2, "t": "button", "a": {"id": "ok"}, "b": [10, 10, 80, 20], "c": ["Accept"]},
                    {"i": 3, "t": "div", "b": [0, 0, 100, 100], "s": ["none", "visible", 1], "c": ["Hidden"]},
                ],
            }],
        },
    }

    def test_builds_tree_with_layout(self) -> None:
        dom = DomSnapshot.from_payload(self.PAYLOAD)
        button = dom.element(2)
        assert button.name == "button"
        assert button.get("id") == "ok"
        assert dom.box(button).x == 10
        assert is_visible(dom, button)
        assert not is_visible(dom, dom.element(3))
        assert dom.viewport_width == 1024

    def test_body_text_from_payload(self) -> None:
        assert DomSnapshot.from_payload(self.PAYLOAD).body_text == "Accept"

    def test_empty_tree(self) -> None:
        dom = DomSnapshot.from_payload({"tree": None})
        assert list(dom.elements()) == []


class TestElementHelpers:
    def test_would_navigate(self) -> None:
        assert would_navigate(_tag('<a href="/privacy">Policy</a>'))
        assert not would_navigate(_tag('<a href="#">Accept</a>'))
        assert not would_navigate(_tag('<a href="javascript:void(0)">Accept</a>'))
        assert not would_navigate(_tag("<a>Accept</a>"))
        assert not would_navigate(_tag('<button href="/x">Accept</button>'))

    def test_is_button_like(self) -> None:
        assert is_button_like(_tag("<button>Go</button>"))
        assert is_button_like(_tag('<div role="button">Go</div>'))
        assert is_button_like(_tag('<input type="submit" value="Go">'))
        assert is_button_like(_tag('<a href="#">Go</a>'))
        assert is_button_like(_tag('<a onclick="go()">Go</a>'))
        assert not is_button_like(_tag("<a>Go</a>"))
        assert not is_button_like(_tag('<input type="text">'))
        assert not is_button_like(_tag('<a href="https://elsewhere.example/">Go</a>'))
        assert not is_button_like(_tag("<span>Go</span>"))

    def test_normalized_text_fallbacks(self) -> None:
        assert normalized_text(_tag("<button>  Accept\n  ALL </button>")) == "accept all"
        assert normalized_text(_tag('<input type="button" value="OK">')) == "ok"
        assert normalized_text(_tag('<button aria-label="Close"></button>')) == "close"
        assert normalized_text(_tag('<button title="Dismiss"></button>')) == "dismiss"

    def test_own_text(self) -> None:
        assert own_text(_tag("<div>We use <b>cookies</b> here</div>")) == "we use here"

    def test_lowest_common_ancestor(self) -> None:
        soup = BeautifulSoup('<div id="p"><span><i id="a"></i></span><b id="b"></b></div>', "html.parser")
        lca = lowest_common_ancestor(soup.select_one("#a"), soup.select_one("#b"))
        assert lca.get("id") == "p"


class TestSafeClick:
    def _click(self, html: str):
        frame = StaticFrame(html)

        async def scenario():
            dom = await frame.snapshot()
            return await safe_click(frame, dom, dom.select_one("a, button"))

        return frame, asyncio.run(scenario())

    def test_clicks_buttons(self) -> None:
        frame, clicked = self._click("<button>Reject</button>")
        assert clicked is True
        assert len(frame.clicked) == 1

    def test_refuses_navigating_anchor(self) -> None:
        frame, clicked = self._click('<a href="/cookie-policy">Reject</a>')
        assert clicked is False
        assert frame.clicked == []

    def test_refuses_disabled(self) -> None:
        frame, clicked = self._click("<button disabled>Reject</button>")
        assert clicked is False
        assert frame.clicked == []

    def test_click_errors_are_swallowed(self) -> None:
        class BrokenFrame(StaticFrame):
            async def click(self, ref: int) -> bool:
                raise RuntimeError("detached")

        frame = BrokenFrame("<button>Reject</button>")

        async def scenario():
            dom = await frame.snapshot()
            return await safe_click(frame, dom, dom.select_one("button"))

        assert asyncio.run(scenario()) is False


class TestUrlHelpers:
    def test_registered_domain(self) -> None:
        assert extract_registered_domain("https://www.telegraph.co.uk/news") == "telegraph.co.uk"
        assert extract_registered_domain("consent.cmp.example.com") == "example.com"

    def test_hostname_and_origin(self) -> None:
        assert extract_hostname("https://Www.Example.com:8080/a") == "www.example.com"
        assert extract_origin("https://www.example.com:8080/a?b=1") == "https://www.example.com:8080"
        assert extract_origin("about:blank") == ""
        assert cooldown_key("https://a.example/x") == "https://a.example"

    def test_host_matches_subdomains(self) -> None:
        assert host_matches("www.dailymail.co.uk", ["dailymail.co.uk"])
        assert host_matches("dailymail.co.uk", ["DailyMail.co.uk"])
        assert not host_matches("notdailymail.co.uk", ["dailymail.co.uk"])
        assert not host_matches("", ["dailymail.co.uk"])

    def test_normalize_url(self) -> None:
        assert normalize_url(" example.com/ ") == "https://example.com"
        assert normalize_url("http://example.com/a/") == "http://example.com/a"
