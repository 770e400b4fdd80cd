"""Tests for consent_pilot.handlers: vendor, site-rule and generic handlers."""

from __future__ import annotations

import asyncio

from consent_pilot.frames import capture_view
from consent_pilot.handlers import (
    DidomiHandler,
    GenericHandler,
    IubendaHandler,
    SiteRuleHandler,
    VendorHandler,
    find_banner_root,
)
from consent_pilot.handlers.vendors import COOKIEBOT, COOKIEYES, ONETRUST, QUANTCAST
from consent_pilot.models import ACCEPT_ALL, CATEGORIES, ESSENTIAL_ONLY

from fakes import ACCEPT_REJECT_BANNER, NEWSLETTER_FOOTER_BANNER, PLAIN_PAGE, FakeFrame, make_tab

COOKIEBOT_DIALOG = """
<html><body>
  <div id="CybotCookiebotDialog">
    <p>This website uses cookies</p>
    <button id="CybotCookiebotDialogBodyButtonDecline">Use necessary cookies only</button>
    <button id="CybotCookiebotDialogBodyLevelButtonLevelOptinAllowAll">Allow all</button>
  </div>
</body></html>
"""

ONETRUST_PHRASES_ONLY = """
<html><body>
  <div id="onetrust-banner-sdk">
    <p>We use cookies</p>
    <button class="ot-btn-a">Reject All</button>
    <button class="ot-btn-b">Accept All Cookies</button>
  </div>
</body></html>
"""


def _view(frame):
    return asyncio.run(capture_view(make_tab(frame)))


class TestVendorHandler:
    def test_detects_own_markup_only(self, ctx) -> None:
        view = _view(FakeFrame(COOKIEBOT_DIALOG))
        assert VendorHandler(ctx, COOKIEBOT).detect(view) is True
        assert VendorHandler(ctx, ONETRUST).detect(view) is False
        assert VendorHandler(ctx, QUANTCAST).detect(view) is False

    def test_hidden_banner_not_detected(self, ctx) -> None:
        html = COOKIEBOT_DIALOG.replace('id="CybotCookiebotDialog"', 'id="CybotCookiebotDialog" style="display:none"')
        assert VendorHandler(ctx, COOKIEBOT).detect(_view(FakeFrame(html))) is False

    def test_reject_by_selector(self, ctx) -> None:
        frame = FakeFrame(COOKIEBOT_DIALOG)
        handler = VendorHandler(ctx, COOKIEBOT)
        assert asyncio.run(handler.apply_consent(_view(frame), ESSENTIAL_ONLY)) is True
        assert frame.clicked_labels == ["use necessary cookies only"]

    def test_accept_by_selector(self, ctx) -> None:
        frame = FakeFrame(COOKIEBOT_DIALOG)
        handler = VendorHandler(ctx, COOKIEBOT)
        assert asyncio.run(handler.apply_consent(_view(frame), ACCEPT_ALL)) is True
        assert frame.clicked_labels == ["allow all"]

    def test_phrase_fallback(self, ctx) -> None:
        frame = FakeFrame(ONETRUST_PHRASES_ONLY)
        handler = VendorHandler(ctx, ONETRUST)
        assert asyncio.run(handler.apply_consent(_view(frame), ESSENTIAL_ONLY)) is True
        assert frame.clicked_labels == ["reject all"]

    def test_no_control_returns_false(self, ctx) -> None:
        html = '<html><body><div class="cky-consent-bar"><p>Cookies!</p></div></body></html>'
        frame = FakeFrame(html)
        handler = VendorHandler(ctx, COOKIEYES)
        assert handler.detect(_view(frame)) is True
        assert asyncio.run(handler.apply_consent(_view(frame), ESSENTIAL_ONLY)) is False
        assert frame.clicked_labels == []

    def test_categories(self, ctx) -> None:
        for profile in (ONETRUST, COOKIEBOT, QUANTCAST, COOKIEYES):
            assert VendorHandler(ctx, profile).get_categories() == list(CATEGORIES)

    def test_cookieyes_phrase_fallback(self, ctx) -> None:
        html = """
        <html><body>
          <div class="cky-consent-container">
            <div class="cky-consent-bar">
              <p>We value your privacy</p>
              <button>Accept All</button>
              <button>Reject All</button>
            </div>
          </div>
        </body></html>
        """
        handler = VendorHandler(ctx, COOKIEYES)
        rejecting = FakeFrame(html)
        assert asyncio.run(handler.apply_consent(_view(rejecting), ESSENTIAL_ONLY)) is True
        assert rejecting.clicked_labels == ["reject all"]
        accepting = FakeFrame(html)
        assert asyncio.run(handler.apply_consent(_view(accepting), ACCEPT_ALL)) is True
        assert accepting.clicked_labels == ["accept all"]


class TestVendorApiHandlers:
    def test_didomi_delegates_to_page_api(self, ctx) -> None:
        html = '<html><body><div id="didomi-host"><p>Cookies</p><button>Agree</button></div></body></html>'
        frame = FakeFrame(html, api={"Didomi.setUserDisagreeToAll": True})
        handler = DidomiHandler(ctx)
        view = _view(frame)
        assert handler.detect(view) is True
        assert asyncio.run(handler.apply_consent(view, ESSENTIAL_ONLY)) is True
        assert frame.api_calls == ["Didomi.setUserDisagreeToAll"]
        assert frame.clicked_labels == []

    def test_iubenda_script_needs_consent_text(self, ctx) -> None:
        with_text = '<html><head><script src="https://cdn.iubenda.com/cs/iubenda_cs.js"></script></head>' \
                    '<body><p>We use cookies.</p></body></html>'
        without_text = '<html><head><script src="https://cdn.iubenda.com/cs/iubenda_cs.js"></script></head>' \
                       '<body><p>Hello.</p></body></html>'
        handler = IubendaHandler(ctx)
        assert handler.detect(_view(FakeFrame(with_text))) is True
        assert handler.detect(_view(FakeFrame(without_text))) is False


class TestSiteRuleHandler:
    DAILY = """
    <html><body>
      <div class="consent">
        <p>{text}</p>
        <button>Accept</button>
        <button>Reject</button>
      </div>
    </body></html>
    """

    def _handler(self, ctx, name):
        rule = next(r for r in ctx.known_sites.site_rules if r.name == name)
        return SiteRuleHandler(ctx, rule)

    def test_applies_to_listed_hosts(self, ctx) -> None:
        handler = self._handler(ctx, "Daily Mail")
        assert handler.applies_to("https://www.dailymail.co.uk/news")
        assert not handler.applies_to("https://example.com/")

    def test_rejects(self, ctx) -> None:
        frame = FakeFrame(self.DAILY.format(text="We use cookies."), url="https://www.dailymail.co.uk/")
        handler = self._handler(ctx, "Daily Mail")
        view = _view(frame)
        assert handler.detect(view) is True
        assert asyncio.run(handler.apply_consent(view, ESSENTIAL_ONLY)) is True
        assert frame.clicked_labels == ["reject"]

    def test_forced_accept_when_reject_means_paying(self, ctx) -> None:
        text = "Reject cookies and purchase a subscription, or accept."
        frame = FakeFrame(self.DAILY.format(text=text), url="https://www.dailymail.co.uk/")
        handler = self._handler(ctx, "Daily Mail")
        assert asyncio.run(handler.apply_consent(_view(frame), ESSENTIAL_ONLY)) is True
        assert frame.clicked_labels == ["accept"]

    def test_payment_words_on_other_lines_do_not_force(self, ctx) -> None:
        html = self.DAILY.format(text="We use cookies.").replace(
            "</body>", "<footer><p>Buy tickets for our reader events.</p></footer></body>"
        )
        frame = FakeFrame(html, url="https://www.dailymail.co.uk/")
        handler = self._handler(ctx, "Daily Mail")
        assert asyncio.run(handler.apply_consent(_view(frame), ESSENTIAL_ONLY)) is True
        assert frame.clicked_labels == ["reject"]

    def test_other_hosts_not_detected(self, ctx) -> None:
        frame = FakeFrame(self.DAILY.format(text="We use cookies."), url="https://example.com/")
        assert self._handler(ctx, "Daily Mail").detect(_view(frame)) is False


class TestGenericHandler:
    def test_structural_root(self, ctx) -> None:
        root = find_banner_root(_view(FakeFrame(ACCEPT_REJECT_BANNER)))
        assert root is not None
        assert root.stage == "structural"
        assert root.element.get("id") == "cookie-banner"

    def test_phrase_root(self) -> None:
        html = """
        <html><body>
          <section>
            <p>We and our partners store cookies on your device.</p>
            <button>Manage settings</button>
            <button>Accept</button>
          </section>
        </body></html>
        """
        root = find_banner_root(_view(FakeFrame(html)))
        assert root is not None
        assert root.stage == "phrase"
        assert root.element.name == "section"

    def test_yes_no_root(self) -> None:
        html = """
        <html><body>
          <div><span>Is that fine?</span>
            <p><button>Yes</button><button>No</button></p>
          </div>
        </body></html>
        """
        root = find_banner_root(_view(FakeFrame(html)))
        assert root is not None
        assert root.stage == "yes-no"
        assert root.element.name == "p"

    def test_nothing_found(self) -> None:
        assert find_banner_root(_view(FakeFrame(PLAIN_PAGE))) is None

    def test_footer_links_are_not_a_banner(self, ctx) -> None:
        html = """
        <html><body>
          <p>Top stories today.</p>
          <footer>
            <div class="privacy-links">
              <a href="#">Terms</a>
              <a href="#">Imprint</a>
            </div>
          </footer>
        </body></html>
        """
        frame = FakeFrame(html)
        assert find_banner_root(_view(frame)) is None
        assert asyncio.run(GenericHandler(ctx).apply_consent(_view(frame), ESSENTIAL_ONLY)) is False
        assert frame.clicked_labels == []

    def test_link_controls_with_consent_wording(self) -> None:
        html = """
        <html><body>
          <div class="cc-banner">
            <p>We use cookies.</p>
            <a href="#">Decline</a>
            <a href="#">Allow cookies</a>
          </div>
        </body></html>
        """
        root = find_banner_root(_view(FakeFrame(html)))
        assert root is not None
        assert root.stage == "structural"

    def test_tall_container_rejected(self) -> None:
        html = """
        <html><body>
          <div style="height: 4000px">
            <p>Cookie recipes from around the world.</p>
            <button>Accept</button>
          </div>
        </body></html>
        """
        assert find_banner_root(_view(FakeFrame(html))) is None

    def test_apply_and_verify(self, ctx) -> None:
        frame = FakeFrame(ACCEPT_REJECT_BANNER, after_click=PLAIN_PAGE)
        handler = GenericHandler(ctx)
        tab = make_tab(frame)

        async def scenario():
            view = await capture_view(tab)
            applied = await handler.apply_consent(view, ESSENTIAL_ONLY)
            return applied, await handler.verify(tab)

        applied, verified = asyncio.run(scenario())
        assert applied is True
        assert verified is True
        assert frame.clicked_labels == ["reject all"]

    def test_decision_reads_banner_text_only(self, ctx) -> None:
        frame = FakeFrame(NEWSLETTER_FOOTER_BANNER)
        handler = GenericHandler(ctx)
        assert asyncio.run(handler.apply_consent(_view(frame), ESSENTIAL_ONLY)) is True
        assert frame.clicked_labels == ["reject all"]

    def test_verify_fails_while_banner_visible(self, ctx) -> None:
        frame = FakeFrame(ACCEPT_REJECT_BANNER)
        assert asyncio.run(GenericHandler(ctx).verify(make_tab(frame))) is False

    def test_paywall_accept_regardless_of_policy(self, ctx) -> None:
        html = """
        <html><body>
          <div class="paywall-box">
            <p>Choose your plan: 4,99 € monthly, or continue with cookies.</p>
            <button>Subscribe</button>
            <button>Continue with cookies</button>
          </div>
        </body></html>
        """
        frame = FakeFrame(html)
        applied = asyncio.run(GenericHandler(ctx).apply_consent(_view(frame), ESSENTIAL_ONLY))
        assert applied is True
        assert frame.clicked_labels == ["continue with cookies"]
