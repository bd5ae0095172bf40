from __future__ import annotations

from collections.abc import Iterable, Mapping

import bleach
from bs4 import BeautifulSoup

INVISIBLE_CONTAINER_TAGS: tuple[str, ...] = (
    "template",
    "script",
    "style",
    "noscript",
    "iframe",
    "object",
    "embed",
)

ALLOWED_TAGS: frozenset[str] = frozenset(
    bleach.sanitizer.ALLOWED_TAGS.union(
        {
            "article",
            "section",
            "header",
            "footer",
            "main",
            "aside",
            "figure",
            "figcaption",
            "picture",
            "source",
            "img",
            "div",
            "span",
            "h1",
            "h2",
            "h3",
            "h4",
            "h5",
            "h6",
            "p",
            "pre",
            "code",
            "hr",
            "br",
            "sup",
            "sub",
            "small",
            "mark",
            "time",
            "dl",
            "dt",
            "dd",
            "table",
            "thead",
            "tbody",
            "tfoot",
            "tr",
            "th",
            "td",
            "caption",
            "ruby",
            "rb",
            "rp",
            "rt",
            "rtc",
            "u",
            "s",
        }
    )
)

ALLOWED_ATTRIBUTES: dict[str, list[str]] = {
    **bleach.sanitizer.ALLOWED_ATTRIBUTES,
    "*": ["class", "id", "lang", "dir", "title"],
    "a": ["href", "title", "rel", "name"],
    "img": ["src", "srcset", "sizes", "alt", "width", "height"],
    "source": ["src", "srcset", "sizes", "type", "media"],
    "time": ["datetime"],
    "td": ["colspan", "rowspan"],
    "th": ["colspan", "rowspan", "scope"],
}

ALLOWED_PROTOCOLS: tuple[str, ...] = ("http", "https", "mailto", "data")


class HTMLSanitizer:
    """Allow-list sanitizer for markup extracted from third-party pages."""

    def __init__(
        self,
        *,
        tags: Iterable[str] = ALLOWED_TAGS,
        attributes: Mapping[str, list[str]] = ALLOWED_ATTRIBUTES,
        protocols: Iterable[str] = ALLOWED_PROTOCOLS,
    ) -> None:
        self._cleaner = bleach.sanitizer.Cleaner(
            tags=frozenset(tags),
            attributes=dict(attributes),
            protocols=frozenset(protocols),
            strip=True,
            strip_comments=True,
        )

    def sanitize(self, html: str) -> str:
        if not html:
            return ""
        return self._cleaner.clean(remove_invisible_containers(html))


def remove_invisible_containers(html: str) -> str:
    """Drop `<template>`, `<script>` and similar subtrees, contents included."""
    lowered = html.lower()
    if not any(f"<{tag}" in lowered for tag in INVISIBLE_CONTAINER_TAGS):
        return html
    soup = BeautifulSoup(html, "html.parser")
    for element in soup.find_all(INVISIBLE_CONTAINER_TAGS):
        if not element.decomposed:
            element.decompose()
    return str(soup)


_DEFAULT_SANITIZER = HTMLSanitizer()


def sanitize(html: str) -> str:
    return _DEFAULT_SANITIZER.sanitize(html)
