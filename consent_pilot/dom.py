"""DOM snapshots and element inspection helpers.

A ``DomSnapshot`` is one frame's document as a BeautifulSoup tree, with
the computed layout of every element kept on the side. Heuristics run
over the snapshot in Python; only the final click goes back to the page,
through the integer reference each element carries.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from bs4 import BeautifulSoup, NavigableString, Tag

if TYPE_CHECKING:
    from .frames import FrameDocument

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Box:
    """Bounding rect plus the computed style bits that decide visibility."""
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0
    display: str = "block"
    visibility: str = "visible"
    opacity: float = 1.0


HIDDEN_BOX = Box(display="none")

# Elements that never render, whatever their style says.
_NEVER_RENDERED = frozenset({
    "head", "script", "style", "template", "noscript", "meta", "link", "title",
})

# Text inside these stays on the line of the enclosing block.
_INLINE_TAGS = frozenset({
    "a", "abbr", "b", "bdi", "button", "cite", "code", "em", "font", "i", "kbd", "label",
    "mark", "q", "s", "small", "span", "strong", "sub", "sup", "time", "u",
})

_JAVASCRIPT_HREF = re.compile(r"^javascript\s*:", re.IGNORECASE)
_NUMBER = re.compile(r"-?\d+(?:\.\d+)?")

# Default size of an element in a static HTML snapshot without inline geometry.
_DEFAULT_WIDTH = 200.0
_DEFAULT_HEIGHT = 30.0


def _parse_style(style: Any) -> dict[str, str]:
    out: dict[str, str] = {}
    if not style:
        return out
    for decl in str(style).split(";"):
        if ":" not in decl:
            continue
        prop, _, val = decl.partition(":")
        out[prop.strip().lower()] = val.replace("!important", "").strip().lower()
    return out


def _number(val: str | None, default: float) -> float:
    if not val:
        return default
    m = _NUMBER.search(val)
    return float(m.group()) if m else default


class DomSnapshot:
    """Parsed document of a single frame plus per-element layout."""

    def __init__(
        self,
        soup: BeautifulSoup,
        *,
        url: str = "about:blank",
        viewport_width: float = 1280,
        viewport_height: float = 800,
        body_text: str | None = None,
    ):
        self.soup = soup
        self.url = url
        self.viewport_width = viewport_width
        self.viewport_height = viewport_height
        self._body_text = body_text
        self._boxes: dict[int, Box] = {}
        self._refs: dict[int, int] = {}
        self._by_ref: dict[int, Tag] = {}

    # ─── Construction ────────────────────────────────────────────────────

    def _register(self, el: Tag, box: Box, ref: int | None) -> None:
        self._boxes[id(el)] = box
        if ref is not None:
            self._refs[id(el)] = ref
            self._by_ref[ref] = el

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> DomSnapshot:
        """Build a snapshot from the in-page walker's JSON tree.

        Element nodes are ``{"i": ref, "t": tag, "a": attrs, "b": [x, y, w, h],
        "s": [display, visibility, opacity], "c": children}``; text nodes are
        plain strings.
        """
        soup = BeautifulSoup("", "html.parser")
        snap = cls(
            soup,
            url=payload.get("url") or "about:blank",
            viewport_width=payload.get("vw") or 1280,
            viewport_height=payload.get("vh") or 800,
            body_text=payload.get("bodyText"),
        )
        tree = payload.get("tree")
        if not tree:
            return snap

        stack: list[tuple[Tag, Any]] = [(soup, tree)]
        while stack:
            parent, node = stack.pop()
            if isinstance(node, str):
                parent.append(NavigableString(node))
                continue
            attrs = {str(k): str(v) for k, v in (node.get("a") or {}).items()}
            tag = soup.new_tag(node.get("t") or "div", attrs=attrs)
            parent.append(tag)
            x, y, w, h = (list(node.get("b") or []) + [0, 0, 0, 0])[:4]
            display, visibility, opacity = (list(node.get("s") or []) + ["block", "visible", 1])[:3]
            box = Box(
                x=float(x), y=float(y), width=float(w), height=float(h),
                display=str(display), visibility=str(visibility), opacity=float(opacity),
            )
            snap._register(tag, box, node.get("i"))
            for child in reversed(node.get("c") or []):
                stack.append((tag, child))
        return snap

    @classmethod
    def from_html(
        cls,
        html: str,
        url: str = "about:blank",
        viewport: tuple[int, int] = (1280, 800),
    ) -> DomSnapshot:
        """Build a snapshot from static HTML, deriving layout from inline styles.

        ``display``, ``visibility``, ``opacity``, ``left``, ``top``, ``width``
        and ``height`` are read from the ``style`` attribute. ``display: none``
        and the ``hidden`` attribute hide the whole subtree; visibility is
        inherited. Elements without geometry get a small default box.
        """
        soup = BeautifulSoup(html, "html.parser")
        snap = cls(soup, url=url, viewport_width=viewport[0], viewport_height=viewport[1])

        ref = 0
        stack: list[tuple[Tag, bool, str]] = [
            (el, False, "visible") for el in reversed(soup.find_all(True, recursive=False))
        ]
        while stack:
            el, hidden, visibility = stack.pop()
            style = _parse_style(el.get("style"))
            display = style.get("display", "block")
            if el.name in _NEVER_RENDERED or el.has_attr("hidden") or display == "none":
                hidden = True
            visibility = style.get("visibility", visibility)
            if visibility not in ("hidden", "collapse"):
                visibility = "visible"
            opacity = _number(style.get("opacity"), 1.0)
            if hidden:
                box = Box(display="none", visibility=visibility, opacity=opacity)
            else:
                box = Box(
                    x=_number(style.get("left"), 0.0),
                    y=_number(style.get("top"), 0.0),
                    width=_number(style.get("width"), _DEFAULT_WIDTH),
                    height=_number(style.get("height"), _DEFAULT_HEIGHT),
                    display=display,
                    visibility=visibility,
                    opacity=opacity,
                )
            snap._register(el, box, ref)
            ref += 1
            for child in reversed(el.find_all(True, recursive=False)):
                stack.append((child, hidden, visibility))
        return snap

    # ─── Queries ─────────────────────────────────────────────────────────

    @property
    def body(self) -> Tag:
        return self.soup.body or self.soup

    @property
    def body_text(self) -> str:
        """Rendered text of the body, one line per block."""
        if self._body_text is None:
            self._body_text = self.text_of(self.body)
        return self._body_text

    def text_of(self, el: Tag) -> str:
        """Visible text under el. Blocks break lines, runs inside a block are joined."""
        lines: list[list[str]] = []
        last_block = None
        for s in el.find_all(string=True):
            if type(s) is not NavigableString:
                continue
            parent = s.parent
            if parent is not None and parent is not self.soup and not is_visible(self, parent):
                continue
            block = parent
            while block is not None and block is not el and block.name in _INLINE_TAGS:
                block = block.parent
            if block is not last_block or not lines:
                lines.append([])
                last_block = block
            lines[-1].append(str(s))
        joined = (" ".join(" ".join(parts).split()) for parts in lines)
        return "\n".join(line for line in joined if line)

    def box(self, el: Tag) -> Box:
        return self._boxes.get(id(el), HIDDEN_BOX)

    def ref(self, el: Tag) -> int | None:
        return self._refs.get(id(el))

    def element(self, ref: int) -> Tag | None:
        return self._by_ref.get(ref)

    def select(self, selector: str, scope: Tag | None = None) -> list[Tag]:
        root = scope if scope is not None else self.soup
        try:
            return root.select(selector)
        except Exception as e:
            logger.debug("Selector failed (%s): %s", selector, e)
            return []

    def select_one(self, selector: str, scope: Tag | None = None) -> Tag | None:
        found = self.select(selector, scope)
        return found[0] if found else None

    def elements(self, scope: Tag | None = None) -> Iterator[Tag]:
        root = scope if scope is not None else self.body
        yield from root.find_all(True)


# ─── Element inspection ──────────────────────────────────────────────────


def class_string(el: Tag) -> str:
    val = el.get("class")
    if not val:
        return ""
    if isinstance(val, (list, tuple)):
        return " ".join(val)
    return str(val)


def is_visible(dom: DomSnapshot, el: Tag) -> bool:
    b = dom.box(el)
    if b.display == "none" or b.visibility in ("hidden", "collapse") or b.opacity == 0:
        return False
    return b.width > 0 and b.height > 0


def is_clickable(dom: DomSnapshot, el: Tag) -> bool:
    if el.has_attr("disabled") or str(el.get("aria-disabled", "")).lower() == "true":
        return False
    return is_visible(dom, el)


def would_navigate(el: Tag) -> bool:
    """An anchor whose href leaves the page."""
    if el.name != "a":
        return False
    href = str(el.get("href") or "").strip()
    if not href or href.startswith("#"):
        return False
    return not _JAVASCRIPT_HREF.match(href)


def is_button_like(el: Tag) -> bool:
    if would_navigate(el):
        return False
    if el.name == "button" or str(el.get("role", "")).lower() == "button":
        return True
    if el.name == "input":
        return str(el.get("type", "")).lower() in ("button", "submit")
    # A bare <a> counts only with a click handler.
    return el.name == "a" and (el.has_attr("href") or el.has_attr("onclick"))


def normalized_text(el: Tag) -> str:
    """Lower-cased, whitespace-collapsed text; aria-label then title when empty."""
    text = " ".join(el.get_text(" ").split()).lower()
    if not text and el.name == "input":
        text = " ".join(str(el.get("value") or "").split()).lower()
    if not text:
        text = " ".join(str(el.get("aria-label") or "").split()).lower()
    if not text:
        text = " ".join(str(el.get("title") or "").split()).lower()
    return text


def label_text(el: Tag) -> str:
    """Text plus aria-label or title, for matching icon-only controls."""
    extra = el.get("aria-label") or el.get("title") or ""
    return " ".join(f"{el.get_text(' ')} {extra}".split()).lower()


def own_text(el: Tag) -> str:
    """Text of the element's direct text nodes only."""
    parts = [str(s) for s in el.find_all(string=True, recursive=False) if type(s) is NavigableString]
    return " ".join(" ".join(parts).split()).lower()


def ancestors(el: Tag) -> Iterator[Tag]:
    for parent in el.parents:
        if isinstance(parent, BeautifulSoup):
            break
        yield parent


def lowest_common_ancestor(a: Tag, b: Tag) -> Tag | None:
    chain = {id(a): a}
    for p in ancestors(a):
        chain[id(p)] = p
    if id(b) in chain:
        return b
    for p in ancestors(b):
        if id(p) in chain:
            return p
    return None


def is_document_level(el: Tag | None) -> bool:
    return el is None or isinstance(el, BeautifulSoup) or el.name in ("html", "body")


def can_click(dom: DomSnapshot, el: Tag) -> bool:
    return is_clickable(dom, el) and is_button_like(el) and dom.ref(el) is not None


async def safe_click(frame: FrameDocument, dom: DomSnapshot, el: Tag) -> bool:
    """Click el in the live frame if it is a visible, non-navigating button.

    Returns whether a click was attempted. Never raises.
    """
    if not can_click(dom, el):
        return False
    ref = dom.ref(el)
    try:
        clicked = bool(await frame.click(ref))
    except Exception as e:
        logger.debug("Click failed in %s: %s", frame.url, e)
        return False
    if clicked:
        logger.info("Clicked '%s' in %s", normalized_text(el)[:60], frame.url)
    return clicked
