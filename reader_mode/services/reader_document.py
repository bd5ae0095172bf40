"""Assembly and post-processing of reader documents.

A reader document is plain HTML with a fixed structural contract that other
parts of the app look for: a `readability-mode` body carrying
`data-manabi-reader-mode-available*` attributes, a `#reader-header` with the
title and byline block, and the article body under `#reader-content`.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable
from html import escape

from bs4 import BeautifulSoup, NavigableString, Tag

from reader_mode.services.html_utils import build_body_style, escape_html_text, strip_html_tags
from reader_mode.services.readability_extractor import ExtractionSuccess
from reader_mode.services.reader_dates import format_publication_date
from reader_mode.services.reader_urls import is_ebook_url, is_internal_url, matches_reader_url
from reader_mode.services.sanitizer import sanitize
from reader_mode.services.site_rules import (
    apply_site_rules,
    fix_annoying_titles_with_pipes,
    rewrite_view_original_links,
)

READER_MODE_BODY_CLASS = "readability-mode"
AVAILABLE_ATTRIBUTE = "data-manabi-reader-mode-available"
AVAILABLE_FOR_ATTRIBUTE = "data-manabi-reader-mode-available-for"
LIGHT_THEME_ATTRIBUTE = "data-manabi-light-theme"
DARK_THEME_ATTRIBUTE = "data-manabi-dark-theme"
EBOOK_ATTRIBUTE = "data-is-ebook"
MAX_DERIVED_TITLE_LENGTH = 36
VIEW_ORIGINAL_LABEL = "View Original"
META_DIVIDER_TEXT = " | "

_BYLINE_PREFIX_PATTERN = re.compile(r"^\s*(?:by|par)\s+", re.IGNORECASE)

READER_STYLES = """
body.readability-mode {
  margin: 0 auto;
  max-width: 42em;
  padding: 1.5em 1.25em 4em;
  line-height: 1.6;
  word-wrap: break-word;
}
#reader-header { margin-bottom: 1.5em; }
#reader-title { font-size: 1.6em; line-height: 1.25; margin: 0 0 0.4em; }
#reader-byline-container { font-size: 0.85em; opacity: 0.75; }
#reader-byline-line, #reader-meta-line { display: block; }
#reader-content img, #reader-content video { max-width: 100%; height: auto; }
#reader-content pre { white-space: pre-wrap; }
.reader-meta-divider { padding: 0 0.25em; }
"""

READY_PROBE_SCRIPT = """
(function () {
  function announceReaderDocument() {
    document.body.setAttribute("data-manabi-reader-document-ready", "true");
    document.dispatchEvent(new CustomEvent("reader-mode-ready", {
      detail: { url: document.body.getAttribute("data-manabi-reader-mode-available-for") }
    }));
  }
  if (document.readyState === "loading") {
    document.addEventListener("DOMContentLoaded", announceReaderDocument, { once: true });
  } else {
    announceReaderDocument();
  }
})();
"""


def strip_byline_prefix(byline: str) -> str:
    return _BYLINE_PREFIX_PATTERN.sub("", byline, count=1).strip()


def build_reader_html(
    title: str,
    byline: str | None,
    published_time: str | None,
    content_html: str,
    url: str,
) -> str:
    """Build a self-contained reader document from extracted parts."""
    title_html = escape_html_text(title.strip())
    byline_text = strip_byline_prefix(byline or "")
    publication_date = format_publication_date(published_time)

    byline_container = _byline_container_html(
        byline_text=byline_text,
        publication_date=publication_date,
        url=url,
    )
    url_attr = escape(url, quote=True)
    return (
        "<!DOCTYPE html>\n"
        "<html>\n"
        "<head>\n"
        '<meta content="text/html; charset=UTF-8" http-equiv="content-type">\n'
        '<meta name="viewport" content="width=device-width, user-scalable=no">\n'
        '<meta name="referrer" content="never">\n'
        f'<style id="reader-mode-styles">{READER_STYLES}</style>\n'
        f"<title>{title_html}</title>\n"
        "</head>\n"
        f'<body class="{READER_MODE_BODY_CLASS}" {AVAILABLE_ATTRIBUTE}="true" '
        f'{AVAILABLE_FOR_ATTRIBUTE}="{url_attr}">\n'
        '<div id="reader-header" class="header">\n'
        f'<h1 id="reader-title">{title_html}</h1>\n'
        f"{byline_container}"
        "</div>\n"
        f'<div id="reader-content">{content_html}</div>\n'
        f"<script>{READY_PROBE_SCRIPT}</script>\n"
        "</body>\n"
        "</html>\n"
    )


def _byline_container_html(*, byline_text: str, publication_date: str | None, url: str) -> str:
    parts: list[str] = []
    if byline_text:
        parts.append(
            '<span id="reader-byline-line" class="byline-line">'
            f'<span id="reader-byline" class="byline">{escape_html_text(byline_text)}</span>'
            "</span>"
        )

    meta_parts: list[str] = []
    if publication_date:
        meta_parts.append(
            f'<span id="reader-publication-date">{escape_html_text(publication_date)}</span>'
        )
    if not is_internal_url(url):
        meta_parts.append(
            f'<a class="reader-view-original" href="{escape(url, quote=True)}">'
            f"{VIEW_ORIGINAL_LABEL}</a>"
        )
    if meta_parts:
        divider = f'<span class="reader-meta-divider">{META_DIVIDER_TEXT}</span>'
        parts.append(f'<div id="reader-meta-line" class="byline-meta-line">{divider.join(meta_parts)}</div>')

    if not parts:
        return ""
    return '<div id="reader-byline-container" class="byline-container">' + "".join(parts) + "</div>\n"


def assemble_reader_document(
    extraction: ExtractionSuccess,
    url: str,
    *,
    sanitizer: Callable[[str], str] = sanitize,
) -> str:
    """Sanitize title, byline and body independently, then build the reader document."""
    title = strip_html_tags(sanitizer(extraction.title))
    byline = strip_html_tags(sanitizer(extraction.byline)) if extraction.byline else None
    content_html = sanitizer(extraction.content_html)
    return build_reader_html(title, byline, extraction.published_time, content_html, url)


def parse_document(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "lxml")


def serialize_document(soup: BeautifulSoup) -> str:
    return str(soup)


def process_for_reader_mode(
    soup: BeautifulSoup,
    url: str,
    *,
    is_ebook: bool,
    default_title: str | None,
    image_url: str | None,
    inject_header_image: bool,
    font_size_px: int,
    is_cache_warmer: bool = False,
    light_theme: str = "white",
    dark_theme: str = "black",
) -> None:
    """Generic DOM post-processing applied to every reader document before display."""
    _migrate_legacy_reader_content(soup)

    body = soup.body
    if body is not None:
        if is_ebook:
            body[EBOOK_ATTRIBUTE] = "true"
        if not is_cache_warmer:
            existing_style = body.get("style")
            body["style"] = build_body_style(
                font_size_px,
                existing_style if isinstance(existing_style, str) else None,
            )
            body[LIGHT_THEME_ATTRIBUTE] = light_theme
            body[DARK_THEME_ATTRIBUTE] = dark_theme

    title_element = soup.select_one("#reader-title")
    if title_element is not None and not title_element.get_text(strip=True) and default_title:
        title_element.string = default_title.strip()

    fix_annoying_titles_with_pipes(soup, is_ebook=is_ebook)

    if image_url and (inject_header_image or soup.find("img") is None):
        _inject_header_image(soup, image_url)


def render_reader_document(
    html: str,
    url: str,
    *,
    font_size_px: int,
    default_title: str | None = None,
    image_url: str | None = None,
    inject_header_image: bool = False,
    publication_date_text: str | None = None,
    is_cache_warmer: bool = False,
    light_theme: str = "white",
    dark_theme: str = "black",
) -> str:
    """Run site rules, generic post-processing and byline cleanup over a reader document."""
    soup = parse_document(html)
    apply_site_rules(soup, url)
    rewrite_view_original_links(soup, url)
    process_for_reader_mode(
        soup,
        url,
        is_ebook=is_ebook_url(url),
        default_title=default_title,
        image_url=image_url,
        inject_header_image=inject_header_image,
        font_size_px=font_size_px,
        is_cache_warmer=is_cache_warmer,
        light_theme=light_theme,
        dark_theme=dark_theme,
    )
    update_byline_section(soup, publication_date_text)
    return serialize_document(soup)


def _migrate_legacy_reader_content(soup: BeautifulSoup) -> None:
    legacy = soup.select_one(".reader-content")
    if legacy is None:
        return
    if soup.select_one("#reader-content") is None:
        legacy["id"] = "reader-content"
    classes = [name for name in (legacy.get("class") or []) if name != "reader-content"]
    if classes:
        legacy["class"] = classes
    else:
        del legacy["class"]


def _inject_header_image(soup: BeautifulSoup, image_url: str) -> None:
    header = soup.select_one("#reader-header")
    if header is None:
        return
    for image in soup.find_all("img"):
        if image.get("src") == image_url:
            return
    image = soup.new_tag("img", attrs={"src": image_url})
    header.insert(0, image)


def derive_title(soup: BeautifulSoup) -> str | None:
    candidates: list[Callable[[], str | None]] = [
        lambda: _element_text(soup.select_one("#reader-title")),
        lambda: _element_text(soup.find("h1")),
        lambda: _element_text(soup.find("title")),
        lambda: _body_text_outside_reader_content(soup),
    ]
    for candidate in candidates:
        text = candidate()
        if text is None:
            continue
        truncated = text.strip()[:MAX_DERIVED_TITLE_LENGTH].strip()
        if truncated:
            return truncated
    return None


def _element_text(element: Tag | NavigableString | None) -> str | None:
    if not isinstance(element, Tag):
        return None
    text = " ".join(element.get_text(" ").split())
    return text or None


def _body_text_outside_reader_content(soup: BeautifulSoup) -> str | None:
    body = soup.body
    if body is None:
        return None
    pieces: list[str] = []
    for node in body.find_all(string=True):
        parent = node.parent
        if parent is None or parent.name in {"script", "style", "template"}:
            continue
        if any(ancestor.get("id") == "reader-content" for ancestor in node.parents if isinstance(ancestor, Tag)):
            continue
        pieces.append(str(node))
    text = " ".join(" ".join(pieces).split())
    return text or None


def update_byline_section(soup: BeautifulSoup, publication_date_text: str | None) -> None:
    byline_line = soup.select_one("#reader-byline-line")
    if byline_line is not None and not byline_line.get_text(strip=True):
        byline_line.decompose()

    meta_line = soup.select_one("#reader-meta-line")
    date_element = soup.select_one("#reader-publication-date")
    date_text = (publication_date_text or "").strip()
    if date_text:
        if date_element is None and meta_line is not None:
            date_element = soup.new_tag("span", attrs={"id": "reader-publication-date"})
            meta_line.insert(0, date_element)
            if meta_line.select_one(".reader-view-original") is not None:
                divider = soup.new_tag("span", attrs={"class": "reader-meta-divider"})
                divider.string = META_DIVIDER_TEXT
                date_element.insert_after(divider)
        if date_element is not None:
            date_element.string = date_text
    elif date_element is not None:
        date_element.decompose()

    if meta_line is not None:
        has_date = meta_line.select_one("#reader-publication-date") is not None
        has_link = meta_line.select_one(".reader-view-original") is not None
        if not (has_date and has_link):
            for divider in meta_line.select(".reader-meta-divider"):
                divider.decompose()
        if not meta_line.find(True):
            meta_line.decompose()

    container = soup.select_one("#reader-byline-container")
    if container is not None and not container.find(True):
        container.decompose()


def has_readability_markers(html: str, url: str) -> bool:
    """True when the HTML is already a rendered reader document for this URL."""
    if not any(marker in html for marker in ("reader-content", READER_MODE_BODY_CLASS, AVAILABLE_FOR_ATTRIBUTE)):
        return False
    soup = parse_document(html)
    if soup.select_one("#reader-content") is not None:
        return True
    body = soup.body
    if body is None:
        return False
    if READER_MODE_BODY_CLASS in (body.get("class") or []):
        return True
    available_for = body.get(AVAILABLE_FOR_ATTRIBUTE)
    return isinstance(available_for, str) and matches_reader_url(url, available_for)


def strip_readability_markers(html: str) -> str:
    """Remove reader-mode body markers so the HTML loads as an ordinary page."""
    if READER_MODE_BODY_CLASS not in html and AVAILABLE_ATTRIBUTE not in html:
        return html
    soup = parse_document(html)
    body = soup.body
    if body is None:
        return html
    classes = [name for name in (body.get("class") or []) if name != READER_MODE_BODY_CLASS]
    if classes:
        body["class"] = classes
    elif body.has_attr("class"):
        del body["class"]
    for attribute in (AVAILABLE_ATTRIBUTE, AVAILABLE_FOR_ATTRIBUTE):
        if body.has_attr(attribute):
            del body[attribute]
    return serialize_document(soup)


def frame_replacement_script(html: str) -> str:
    """Script that swaps a sub-frame's document for the given reader HTML."""
    return (
        "(function (html) {\n"
        "  document.open();\n"
        "  document.write(html);\n"
        "  document.close();\n"
        f"}})({json.dumps(html)});"
    )
