"""
beck-online HTML -> structured documents

Statute pages, court decisions and commentaries use different layouts, so
content roots and inline markers are matched against small ordered lists
of known variants.
"""
import re
from dataclasses import dataclass
from typing import Callable, List, Optional
from urllib.parse import parse_qs, urljoin, urlparse

from bs4 import BeautifulSoup, Tag
from markdownify import ATX, MarkdownConverter

from german_legal_mcp.models.documents import (
    ContextInfo,
    NormalizedDocument,
    Reference,
    SearchHit,
    Siblings,
)
from german_legal_mcp.utils.logger import get_logger

logger = get_logger(__name__)


DEFAULT_ORIGIN = "https://beck-online.beck.de"

ACCESS_DENIED_PHRASES = (
    "nicht über die notwendigen rechte verfügen",
    "dokument kann nicht angezeigt werden",
    "keine berechtigung zum aufruf",
)

TITLE_SELECTORS = ("h2.paragr", "h1", "title")

# print view, alternate id, generic class
CONTENT_ROOT_SELECTORS = ("#printcontent .dokcontent", "#dokcontent", ".dokcontent")

# breadcrumbs, prev/next bar, footer, title heading, jump anchors
STRIP_SELECTORS = ".breadcrumb, .dk2, .vkstandfooter, h2.paragr, a[name]"

ICON_TYPE_LOOKUPS = (("i", "title"), ("svg", "title"), ("i", "data-original-title"))

RE_MARGIN_NUMBER = re.compile(r"(^|\n)\[(\d+)\]")
# blank lines may carry the two-space hard breaks of <br>
RE_EXCESS_NEWLINES = re.compile(r"(?:[ \t]*\n){3,}")
NULL_LINK_ARTIFACT = "[](null)"


def _has_class(el: Tag, name: str, cls: str) -> bool:
    return el.name == name and cls in (el.get("class") or [])


def vpath_from_url(url: str, base: str = DEFAULT_ORIGIN) -> Optional[str]:
    """Read the ``vpath`` query parameter of a (possibly relative) URL"""
    if not url:
        return None
    query = urlparse(urljoin(base + "/", url)).query
    values = parse_qs(query).get("vpath")
    if not values or not values[0]:
        return None
    return values[0]


@dataclass(frozen=True)
class ConversionRule:
    """(predicate, transform) pair; the first matching rule renders the node"""

    name: str
    matches: Callable[[Tag], bool]
    render: Callable[[Tag, str], str]


def _render_margin_number(el: Tag, text: str) -> str:
    randnr = el.select_one(".randnr")
    if randnr is None:
        return ""
    return f"\n\n**[Rn. {randnr.get_text().strip()}]** "


def default_rules(origin: str = DEFAULT_ORIGIN) -> List[ConversionRule]:
    def render_link(el: Tag, text: str) -> str:
        href = el.get("href")
        # Disabled links render upstream as <a href="null">
        if not href or href == "null":
            return text
        if href.startswith("/"):
            href = origin + href
        return f"[{text}]({href})"

    return [
        ConversionRule(
            "paragraph_number",
            lambda el: _has_class(el, "span", "absnr"),
            lambda el, text: f"\n**{text.strip()}**",
        ),
        ConversionRule(
            "sentence",
            lambda el: _has_class(el, "span", "satz"),
            lambda el, text: text,
        ),
        ConversionRule(
            "enumeration_number",
            lambda el: _has_class(el, "span", "aufz"),
            lambda el, text: f"\n{text} ",
        ),
        # court decisions
        ConversionRule(
            "margin_number_inside",
            lambda el: _has_class(el, "span", "sidebar-inside"),
            _render_margin_number,
        ),
        # commentaries
        ConversionRule(
            "margin_number_outside",
            lambda el: _has_class(el, "span", "sidebar-outside"),
            _render_margin_number,
        ),
        ConversionRule("link", lambda el: el.name == "a", render_link),
        ConversionRule(
            "empty_paragraph",
            lambda el: el.name == "p" and not el.get_text().strip(),
            lambda el, text: "",
        ),
    ]


class BeckMarkdownConverter(MarkdownConverter):
    """markdownify converter that consults the rule list before its defaults"""

    def __init__(self, rules: List[ConversionRule], **options):
        options.setdefault("heading_style", ATX)
        options.setdefault("escape_misc", False)
        super().__init__(**options)
        self.rules = rules

    def _apply_rules(self, el: Tag, text: str) -> Optional[str]:
        for rule in self.rules:
            if rule.matches(el):
                return rule.render(el, text)
        return None

    def convert_span(self, el, text, parent_tags):
        rendered = self._apply_rules(el, text)
        return text if rendered is None else rendered

    def convert_a(self, el, text, parent_tags):
        rendered = self._apply_rules(el, text)
        if rendered is None:
            return super().convert_a(el, text, parent_tags)
        return rendered

    def convert_p(self, el, text, parent_tags):
        rendered = self._apply_rules(el, text)
        if rendered is None:
            return super().convert_p(el, text, parent_tags)
        return rendered


def postprocess_markdown(body: str) -> str:
    # [12] at line start -> **[Rn. 12]** (margin numbers the span rules missed)
    body = RE_MARGIN_NUMBER.sub(r"\1**[Rn. \2]**", body)
    body = RE_EXCESS_NEWLINES.sub("\n\n", body)
    body = body.replace(NULL_LINK_ARTIFACT, "")
    return body.strip()


class BeckConverter:
    """Normalizer for beck-online pages"""

    def __init__(self, origin: str = DEFAULT_ORIGIN, rules: Optional[List[ConversionRule]] = None):
        self.origin = origin.rstrip("/")
        self.rules = rules if rules is not None else default_rules(self.origin)
        self.markdown = BeckMarkdownConverter(self.rules)

    @staticmethod
    def _soup(html: str) -> BeautifulSoup:
        return BeautifulSoup(html or "", "html.parser")

    def is_access_denied(self, html: str) -> bool:
        h = (html or "").lower()
        return any(phrase in h for phrase in ACCESS_DENIED_PHRASES)

    def _title(self, soup: BeautifulSoup) -> str:
        for selector in TITLE_SELECTORS:
            el = soup.select_one(selector)
            if el is not None:
                text = el.get_text().strip()
                if text:
                    return text
        return ""

    def _content_root(self, soup: BeautifulSoup) -> Optional[Tag]:
        for selector in CONTENT_ROOT_SELECTORS:
            el = soup.select_one(selector)
            if el is not None:
                return el
        return None

    def to_document(self, html: str) -> NormalizedDocument:
        soup = self._soup(html)
        title = self._title(soup)

        root = self._content_root(soup)
        if root is None:
            logger.debug("No content root found")
            return NormalizedDocument(title=title, body="")

        for el in root.select(STRIP_SELECTORS):
            el.extract()

        body = self.markdown.convert(str(root))
        return NormalizedDocument(title=title, body=postprocess_markdown(body))

    def html_to_markdown(self, html: str) -> NormalizedDocument:
        return self.to_document(html)

    def extract_context(self, html: str) -> ContextInfo:
        soup = self._soup(html)
        breadcrumbs = [li.get_text().strip() for li in soup.select(".breadcrumb li")]

        def href_of(element_id: str) -> Optional[str]:
            el = soup.find(id=element_id)
            if el is None:
                return None
            return el.get("href") or None

        return ContextInfo(
            breadcrumbs=breadcrumbs,
            siblings=Siblings(previous=href_of("dk2prev"), next=href_of("dk2next")),
        )

    def extract_references(self, html: str) -> List[Reference]:
        soup = self._soup(html)
        refs: List[Reference] = []
        for a in soup.select('a[href*="vpath="]'):
            text = a.get_text().strip()
            vpath = vpath_from_url(a.get("href", ""), self.origin)
            if text and vpath:
                refs.append(Reference(text=text, vpath=vpath))
        return refs

    def parse_search_results(self, html: str) -> List[SearchHit]:
        soup = self._soup(html)
        hits: List[SearchHit] = []

        for row in soup.select(".treffer-wrapper"):
            title_el = row.select_one(".treffer-firstline-text a")
            if title_el is None:
                continue
            title = title_el.get_text().strip()
            href = title_el.get("href")
            if not title or not href:
                continue

            vpath = vpath_from_url(href, self.origin)
            if not vpath:
                continue

            hits.append(
                SearchHit(title=title, type=self._hit_type(row), vpath=vpath, link=href)
            )

        return hits

    @staticmethod
    def _hit_type(row: Tag) -> str:
        icon = row.select_one(".icon-container")
        if icon is None:
            return "Unknown"
        for tag_name, attr in ICON_TYPE_LOOKUPS:
            el = icon.select_one(tag_name)
            if el is not None and el.get(attr):
                return el.get(attr)
        return "Unknown"

    def extract_body_text(self, html: str) -> str:
        """Raw text of <body>; JSON endpoints arrive wrapped in a rendered page"""
        soup = self._soup(html)
        node = soup.body if soup.body is not None else soup
        return node.get_text()
