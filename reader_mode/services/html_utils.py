from __future__ import annotations

import logging
import re
from collections.abc import Callable

from bs4 import BeautifulSoup, NavigableString, Tag

LOGGER = logging.getLogger("reader_mode.html_utils")

RUBY_ANNOTATION_TAGS: tuple[str, ...] = ("rp", "rt", "rtc")

_HIDING_STYLE_DECLARATION_PATTERN = re.compile(
    r"(?:^|;)\s*(?:content-visibility|visibility|opacity|font-size)\s*:[^;]*",
    re.IGNORECASE,
)
_ENTITY_SAFE_AMPERSAND_PATTERN = re.compile(
    r"&(?!(?:[a-zA-Z][a-zA-Z0-9]*|#[0-9]+|#[xX][0-9a-fA-F]+);)"
)
_TAG_PATTERN = re.compile(r"<[^>]*>")
_CJK_PATTERN = re.compile(
    r"[぀-ゟ゠-ヿ㐀-䶿一-鿿豈-﫿ｦ-ﾟ가-힯]"
)
_CJK_SPACE_PATTERN = re.compile(r"[ 　]+")


def escape_html_text(text: str) -> str:
    """Escape markup characters, leaving existing entity references intact."""
    escaped = _ENTITY_SAFE_AMPERSAND_PATTERN.sub("&amp;", text)
    return escaped.replace("<", "&lt;").replace(">", "&gt;").replace('"', "&quot;")


def convert_plain_text_to_html(
    text: str,
    *,
    force_raw: bool = False,
    escape: Callable[[str], str] = escape_html_text,
) -> str:
    """
    Render plain text as paragraphs of HTML.

    Blank lines start a new `<p>`; consecutive non-blank lines inside a paragraph
    are joined with `<br>`. Unless `force_raw` is set, input that already carries
    real markup is returned unchanged, and a lone top-level `<pre>` is unwrapped
    and converted like plain text.
    """
    normalized = _normalize_newlines(text)
    if force_raw:
        return _paragraphs_to_html(normalized, escape=escape)

    plain_text = _plain_text_candidate(normalized)
    if plain_text is None:
        return text
    return _paragraphs_to_html(plain_text, escape=escape)


def _normalize_newlines(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def _plain_text_candidate(text: str) -> str | None:
    if "<" not in text:
        return text
    soup = BeautifulSoup(text, "html.parser")
    container: Tag | BeautifulSoup = soup.body or soup
    elements = [child for child in container.children if isinstance(child, Tag)]
    if not elements:
        return container.get_text()
    if len(elements) != 1 or elements[0].name != "pre":
        return None
    loose_text = "".join(
        str(child) for child in container.children if isinstance(child, NavigableString)
    )
    if loose_text.strip():
        return None
    return elements[0].get_text()


def _paragraphs_to_html(text: str, *, escape: Callable[[str], str]) -> str:
    paragraphs: list[list[str]] = []
    current: list[str] = []
    for line in text.split("\n"):
        if not line.strip():
            if current:
                paragraphs.append(current)
                current = []
            continue
        current.append(escape(line))
    if current:
        paragraphs.append(current)
    return "\n\n".join(f"<p>{'<br>'.join(lines)}</p>" for lines in paragraphs)


def collapse_ruby_tags(
    soup: BeautifulSoup | Tag,
    *,
    restrict_to_reader_content: bool = False,
) -> None:
    """Replace each `<ruby>` with its surface text, dropping furigana annotations."""
    roots: list[Tag | BeautifulSoup]
    if restrict_to_reader_content:
        roots = list(soup.select("#reader-content .page"))
    else:
        roots = [soup]
    for root in roots:
        for ruby in list(root.find_all("ruby")):
            if ruby.parent is None:
                continue
            for annotation in ruby.find_all(RUBY_ANNOTATION_TAGS):
                annotation.decompose()
            ruby.replace_with(NavigableString(ruby.get_text()))


def strip_html_tags(text: str) -> str:
    if "<" not in text:
        return text
    try:
        soup = BeautifulSoup(text, "html.parser")
        collapse_ruby_tags(soup)
        return " ".join(soup.get_text().split())
    except (AssertionError, ValueError, TypeError):
        LOGGER.debug("html parse failed while stripping tags; using regex fallback", exc_info=True)
        return " ".join(_TAG_PATTERN.sub("", text).split())


def has_cjk(text: str) -> bool:
    return _CJK_PATTERN.search(text) is not None


def collapse_cjk_spaces(text: str) -> str:
    """Drop ASCII and full-width spaces that sit between CJK characters."""
    if not has_cjk(text):
        return text

    def _replace(match: re.Match[str]) -> str:
        start, end = match.span()
        before = text[start - 1] if start > 0 else ""
        after = text[end] if end < len(text) else ""
        if (not before or has_cjk(before)) and (not after or has_cjk(after)):
            return ""
        return match.group(0)

    return _CJK_SPACE_PATTERN.sub(_replace, text)


def build_body_style(font_size_px: int, existing_style: str | None) -> str:
    kept = _HIDING_STYLE_DECLARATION_PATTERN.sub("", existing_style or "")
    kept = "; ".join(part.strip() for part in kept.split(";") if part.strip())
    if kept:
        return f"font-size: {font_size_px}px; {kept}"
    return f"font-size: {font_size_px}px"
