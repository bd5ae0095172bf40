"""Host-specific DOM cleanups applied to reader documents before display."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable

from bs4 import BeautifulSoup, NavigableString, Tag

from reader_mode.services.html_utils import collapse_cjk_spaces, has_cjk
from reader_mode.services.reader_urls import url_host

LOGGER = logging.getLogger("reader_mode.site_rules")

SiteRule = Callable[[BeautifulSoup, str], None]

SITE_RULES: dict[str, SiteRule] = {}


def register_site_rule(host: str) -> Callable[[SiteRule], SiteRule]:
    def _register(rule: SiteRule) -> SiteRule:
        SITE_RULES[host.strip().lower()] = rule
        return rule

    return _register


def apply_site_rules(soup: BeautifulSoup, url: str) -> bool:
    """Run the rule registered for the URL host. Returns True when a rule ran cleanly."""
    host = url_host(url)
    if host is None:
        return False
    rule = SITE_RULES.get(host)
    if rule is None:
        return False
    try:
        rule(soup, url)
    except Exception:
        LOGGER.warning("site rule failed host=%s url=%s", host, url, exc_info=True)
        return False
    return True


def fix_titles_containing_pipe_character(title: str) -> str:
    """Keep the CJK side of the last `|`, otherwise the text before it."""
    if "|" not in title:
        return title
    before, _, after = title.rpartition("|")
    if has_cjk(after):
        return after.strip()
    return before.strip()


def fix_annoying_titles_with_pipes(soup: BeautifulSoup, *, is_ebook: bool = False) -> None:
    """Shorten the reader heading; the document `<title>` is left as published."""
    if is_ebook:
        return
    heading = soup.select_one("#reader-title")
    if heading is None:
        return
    text = heading.get_text()
    if "|" in text:
        heading.string = fix_titles_containing_pipe_character(text)


def rewrite_view_original_links(soup: BeautifulSoup, url: str) -> None:
    for anchor in soup.select("a.reader-view-original"):
        anchor["href"] = url


def _reader_content(soup: BeautifulSoup) -> Tag | None:
    return soup.select_one("#reader-content")


def _own_text(element: Tag) -> str:
    return "".join(
        str(child) for child in element.children if isinstance(child, NavigableString)
    ).strip()


def _collapse_cjk_text_nodes(root: Tag | BeautifulSoup) -> None:
    for node in list(root.find_all(string=True)):
        if not isinstance(node, NavigableString) or node.parent is None:
            continue
        if node.parent.name in {"script", "style"}:
            continue
        text = str(node)
        collapsed = collapse_cjk_spaces(text)
        if collapsed != text:
            node.replace_with(NavigableString(collapsed))


def _collapse_title_spaces(soup: BeautifulSoup) -> None:
    title = soup.select_one("#reader-title")
    if title is not None:
        title.string = collapse_cjk_spaces(title.get_text())


def _remove_all(soup: BeautifulSoup | Tag, selector: str) -> None:
    for element in soup.select(selector):
        if not element.decomposed:
            element.decompose()


def _unwrap_all(soup: BeautifulSoup | Tag, selector: str) -> None:
    for element in soup.select(selector):
        element.unwrap()


@register_site_rule("matcha-jp.com")
def _matcha_jp(soup: BeautifulSoup, _url: str) -> None:
    _collapse_title_spaces(soup)
    for page in soup.select("#reader-content .page"):
        _collapse_cjk_text_nodes(page)


_WATANOC_TITLE_SUFFIX = " – free web magazine"
_WATANOC_NEXT_MARKERS: tuple[str, ...] = ("次(next)⇒", "つぎ(next)")


@register_site_rule("watanoc.com")
def _watanoc(soup: BeautifulSoup, _url: str) -> None:
    for selector in ("#reader-title", "title"):
        element = soup.select_one(selector)
        if element is None:
            continue
        text = element.get_text().replace(_WATANOC_TITLE_SUFFIX, "")
        element.string = re.sub(r"\)(?=\S)", ") ", text)

    _remove_all(soup, "#reader-content header")
    reply_title = soup.select_one("#reply-title")
    if reply_title is not None and isinstance(reply_title.parent, Tag):
        reply_title.parent.decompose()
    _remove_all(soup, "#content-bottom-widget")
    for image in soup.select('img[src*="kigoo-"]'):
        parent = image.parent
        grandparent = parent.parent if isinstance(parent, Tag) else None
        if isinstance(grandparent, Tag) and grandparent.name not in {"body", "html"}:
            grandparent.decompose()
        else:
            image.decompose()
    _unwrap_all(soup, "span[title] strong")
    for paragraph in soup.select("#reader-content p"):
        if "[label " in paragraph.get_text():
            paragraph.decompose()
    _remove_all(soup, "#reader-content br")
    _unwrap_all(soup, "[data-tipso]")
    _collapse_title_spaces(soup)
    content = _reader_content(soup)
    if content is not None:
        _collapse_cjk_text_nodes(content)
    for paragraph in soup.select("#reader-content p"):
        text = paragraph.get_text()
        if any(marker in text for marker in _WATANOC_NEXT_MARKERS):
            paragraph.decompose()


def _is_hukumusume_breadcrumb(paragraph: Tag) -> bool:
    if " > " not in paragraph.get_text():
        return False
    anchors = paragraph.find_all("a")
    if not anchors:
        return False
    for anchor in anchors:
        href = str(anchor.get("href", ""))
        if "../" not in href and "hukumusume.com/douwa/" not in href:
            return False
    return True


@register_site_rule("hukumusume.com")
def _hukumusume(soup: BeautifulSoup, _url: str) -> None:
    _remove_all(soup, "table")
    for element in soup.select("p, font"):
        if element.decomposed:
            continue
        text = element.get_text()
        if "←" not in text or "→" not in text:
            continue
        sibling = element.previous_sibling
        while sibling is not None:
            previous = sibling.previous_sibling
            if isinstance(sibling, Tag) and sibling.name == "br":
                sibling.decompose()
            elif isinstance(sibling, NavigableString) and not sibling.strip():
                pass
            else:
                break
            sibling = previous
        element.decompose()
    _remove_all(soup, 'a[href="javascript:history.back();"]')
    _remove_all(soup, 'img[src$="spacer.gif"]')
    for paragraph in soup.find_all("p"):
        if paragraph.decomposed:
            continue
        if _is_hukumusume_breadcrumb(paragraph):
            paragraph.decompose()
            continue
        _strip_edge_line_breaks(paragraph)
        if not paragraph.get_text(strip=True) and paragraph.find("img") is None:
            paragraph.decompose()


def _strip_edge_line_breaks(paragraph: Tag) -> None:
    for from_end in (False, True):
        while True:
            children = [
                child
                for child in paragraph.contents
                if not (isinstance(child, NavigableString) and not child.strip())
            ]
            if not children:
                return
            edge = children[-1] if from_end else children[0]
            if not (isinstance(edge, Tag) and edge.name == "br"):
                break
            edge.decompose()


@register_site_rule("www.hiraganatimes.com")
def _hiragana_times(soup: BeautifulSoup, _url: str) -> None:
    first_paragraph = soup.select_one("#reader-content p")
    if first_paragraph is not None:
        first_paragraph.decompose()


_CNN_TITLE_PREFIX = "CNN.co.jp : "


@register_site_rule("www.cnn.co.jp")
def _cnn_japan(soup: BeautifulSoup, _url: str) -> None:
    for selector in ("#reader-title", "title"):
        element = soup.select_one(selector)
        if element is None:
            continue
        text = element.get_text()
        if text.startswith(_CNN_TITLE_PREFIX):
            element.string = text[len(_CNN_TITLE_PREFIX):]


@register_site_rule("slow-communication.jp")
def _slow_communication(soup: BeautifulSoup, _url: str) -> None:
    _remove_all(soup, "#reader-content audio")
    for paragraph in soup.select("#reader-content p"):
        if paragraph.get_text().strip().startswith("(音声"):
            paragraph.decompose()
    _remove_all(soup, "br")


@register_site_rule("www3.nhk.or.jp")
def _nhk_easy(soup: BeautifulSoup, _url: str) -> None:
    for link in soup.select("a.dicWin"):
        surface = link.select_one("span.under")
        text = _own_text(surface) if surface is not None else link.get_text()
        link.replace_with(NavigableString(text))


_HYPEBEAST_PROMO_TEXT = "『HYPEBEAST』がお届けするもお見逃しなく。"


@register_site_rule("hypebeast.com")
def _hypebeast(soup: BeautifulSoup, _url: str) -> None:
    for paragraph in soup.find_all("p"):
        if _own_text(paragraph) == _HYPEBEAST_PROMO_TEXT:
            paragraph.decompose()
    _remove_all(soup, "#post-feed")
