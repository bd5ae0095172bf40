from __future__ import annotations

import json
import logging
import math
import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import Any

from bs4 import BeautifulSoup, Tag
from readability import Document
from readability.readability import Unparseable

from reader_mode.services.errors import ExtractionError
from reader_mode.services.reader_urls import (
    is_about_url,
    is_blob_url,
    is_ebook_url,
    url_host,
)
from reader_mode.telemetry import TelemetryClient

LOGGER = logging.getLogger("reader_mode.readability")

READABILITY_PAGE_ID = "readability-page-1"

EXCLUDED_DOMAINS: frozenset[str] = frozenset(
    {
        "x.com",
        "twitter.com",
        "facebook.com",
        "instagram.com",
        "youtube.com",
        "web.whatsapp.com",
        "mail.google.com",
        "outlook.live.com",
        "discord.com",
        "teams.microsoft.com",
        "docs.google.com",
        "drive.google.com",
        "calendar.google.com",
        "slack.com",
        "notion.so",
        "linkedin.com",
        "reddit.com",
        "messenger.com",
        "meet.google.com",
        "tiktok.com",
        "amazon.com",
        "line.me",
        "mail.yahoo.co.jp",
    }
)

CLASSES_TO_PRESERVE: tuple[str, ...] = (
    "caption",
    "emoji",
    "hidden",
    "invisible",
    "sr-only",
    "visually-hidden",
    "visuallyhidden",
    "wp-caption",
    "wp-caption-text",
    "wp-smiley",
)

UNAVAILABLE_ABOUT_SCHEME = "aboutScheme"
UNAVAILABLE_EXCLUDED_DOMAIN = "excludedDomain"
UNAVAILABLE_EBOOK_OR_BLOB = "ebookOrBlob"
UNAVAILABLE_NOT_READERABLE = "readerableFalse"
FAILED_EMPTY_CONTENT = "emptyContent"
FAILED_PARSER_ERROR = "parserError"

_ARTICLE_JSON_LD_TYPES: frozenset[str] = frozenset(
    {
        "article",
        "advertisercontentarticle",
        "blogposting",
        "newsarticle",
        "opinionnewsarticle",
        "reportagenewsarticle",
        "report",
        "scholarlyarticle",
        "socialmediaposting",
        "techarticle",
        "webpage",
    }
)
_TITLE_META_KEYS: tuple[str, ...] = ("og:title", "twitter:title", "dc.title", "title")
_AUTHOR_META_KEYS: tuple[str, ...] = (
    "author",
    "article:author",
    "parsely-author",
    "dc.creator",
    "dcterms.creator",
    "twitter:creator",
)
_PUBLISHED_META_KEYS: tuple[str, ...] = (
    "article:published_time",
    "og:published_time",
    "parsely-pub-date",
    "publish_date",
    "pubdate",
    "datepublished",
    "dc.date",
    "dcterms.created",
    "date",
)
_BYLINE_HINT_PATTERN = re.compile(r"byline|author|dateline|writtenby|p-author", re.IGNORECASE)
_UNLIKELY_CANDIDATES_PATTERN = re.compile(
    r"-ad-|ai2html|banner|breadcrumbs|combx|comment|community|cover-wrap|disqus|extra|footer|"
    r"gdpr|header|legends|menu|related|remark|replies|rss|shoutbox|sidebar|skyscraper|social|"
    r"sponsor|supplemental|ad-break|agegate|pagination|pager|popup|yom-remote",
    re.IGNORECASE,
)
_MAYBE_CANDIDATE_PATTERN = re.compile(r"and|article|body|column|content|main|shadow", re.IGNORECASE)
_MAX_BYLINE_LENGTH = 100


@dataclass(frozen=True)
class ExtractionSuccess:
    title: str
    byline: str | None
    published_time: str | None
    content_html: str
    readerable: bool = True


@dataclass(frozen=True)
class ExtractionUnavailable:
    reason: str


@dataclass(frozen=True)
class ExtractionFailed:
    reason: str


ExtractionResult = ExtractionSuccess | ExtractionUnavailable | ExtractionFailed


@dataclass(frozen=True)
class _PageMetadata:
    title: str | None
    byline: str | None
    published_time: str | None


class ReadabilityExtractor:
    def __init__(
        self,
        *,
        extra_excluded_domains: Iterable[str] = (),
        classes_to_preserve: Iterable[str] = CLASSES_TO_PRESERVE,
        telemetry: TelemetryClient | None = None,
    ) -> None:
        self._excluded_domains = EXCLUDED_DOMAINS.union(
            domain.strip().lower() for domain in extra_excluded_domains if domain.strip()
        )
        self._classes_to_preserve = frozenset(classes_to_preserve)
        self._telemetry = telemetry if telemetry is not None else TelemetryClient.disabled()

    def unavailable_reason(self, url: str) -> str | None:
        """Reason reader mode is never offered for this URL, or None when extraction may run."""
        if is_about_url(url):
            return UNAVAILABLE_ABOUT_SCHEME
        if is_ebook_url(url) or is_blob_url(url):
            return UNAVAILABLE_EBOOK_OR_BLOB
        if self.is_excluded_domain(url):
            return UNAVAILABLE_EXCLUDED_DOMAIN
        return None

    def is_excluded_domain(self, url: str) -> bool:
        host = url_host(url)
        if host is None:
            return False
        return any(host == domain or host.endswith(f".{domain}") for domain in self._excluded_domains)

    def extract(
        self,
        html: str,
        url: str,
        *,
        meaningful_content_min_length: int = 0,
        require_readerable: bool = False,
    ) -> ExtractionResult:
        result = self._extract(
            html,
            url,
            meaningful_content_min_length=meaningful_content_min_length,
            require_readerable=require_readerable,
        )
        self._telemetry.emit_for_url(
            "reader.extraction.finish",
            url,
            outcome=type(result).__name__,
            reason=getattr(result, "reason", None),
        )
        return result

    def _extract(
        self,
        html: str,
        url: str,
        *,
        meaningful_content_min_length: int,
        require_readerable: bool,
    ) -> ExtractionResult:
        reason = self.unavailable_reason(url)
        if reason is not None:
            LOGGER.debug("readability skipped reason=%s url=%s", reason, url)
            return ExtractionUnavailable(reason)

        char_threshold = max(meaningful_content_min_length, 1)
        soup = normalize_document(html)
        if require_readerable and not is_probably_readerable(soup):
            LOGGER.info("page failed the readerable pre-check url=%s", url)
            return ExtractionUnavailable(UNAVAILABLE_NOT_READERABLE)
        metadata = extract_page_metadata(soup)
        try:
            summary_html, short_title = _run_readability(str(soup), url, char_threshold)
        except ExtractionError as exc:
            LOGGER.info("readability parse failed url=%s error=%s", url, exc)
            return ExtractionFailed(f"{FAILED_PARSER_ERROR}: {exc}")

        page = self._build_page(summary_html)
        text_length = len(" ".join(page.get_text(" ").split()))
        if text_length == 0:
            LOGGER.info("readability produced empty content url=%s", url)
            return ExtractionFailed(FAILED_EMPTY_CONTENT)
        if text_length < char_threshold:
            LOGGER.info(
                "readability content below threshold url=%s length=%s threshold=%s",
                url,
                text_length,
                char_threshold,
            )
            return ExtractionUnavailable(UNAVAILABLE_NOT_READERABLE)

        LOGGER.debug("readability extracted url=%s length=%s", url, text_length)
        return ExtractionSuccess(
            title=metadata.title or _normalize_optional_text(short_title) or "",
            byline=metadata.byline,
            published_time=metadata.published_time,
            content_html=str(page),
        )

    def _build_page(self, summary_html: str) -> Tag:
        summary = BeautifulSoup(summary_html, "lxml")
        container: Tag | BeautifulSoup = summary.body or summary
        page = summary.new_tag("div", attrs={"id": READABILITY_PAGE_ID, "class": "page"})
        for child in list(container.children):
            page.append(child.extract())
        _unwrap_single_anonymous_div(page)
        strip_unpreserved_classes(page, self._classes_to_preserve)
        return page


def _run_readability(html: str, url: str, char_threshold: int) -> tuple[str, str]:
    try:
        document = Document(html, url=url, retry_length=char_threshold)
        return document.summary(html_partial=True), document.short_title()
    except (Unparseable, ValueError) as exc:
        raise ExtractionError(str(exc)) from exc


def normalize_document(html: str) -> BeautifulSoup:
    """Parse HTML into a full document, wrapping bare fragments in `<body>`."""
    soup = BeautifulSoup(html, "lxml")
    if soup.html is None:
        soup.append(soup.new_tag("html"))
    assert soup.html is not None
    if soup.body is None:
        body = soup.new_tag("body")
        for child in [child for child in soup.html.children if not _is_head(child)]:
            body.append(child.extract())
        soup.html.append(body)
    return soup


def _is_head(node: Any) -> bool:
    return isinstance(node, Tag) and node.name == "head"


def _unwrap_single_anonymous_div(page: Tag) -> None:
    children = [child for child in page.children if not (isinstance(child, str) and not child.strip())]
    if len(children) != 1:
        return
    only = children[0]
    if isinstance(only, Tag) and only.name in {"div", "body"} and not only.attrs.get("id"):
        only.unwrap()


def strip_unpreserved_classes(root: Tag, classes_to_preserve: Iterable[str]) -> None:
    preserved = frozenset(classes_to_preserve)
    for element in root.find_all(True):
        if element is root:
            continue
        classes = element.get("class")
        if not classes:
            continue
        if isinstance(classes, str):
            classes = classes.split()
        kept = [name for name in classes if name in preserved]
        if kept:
            element["class"] = kept
        else:
            del element["class"]


def extract_page_metadata(soup: BeautifulSoup) -> _PageMetadata:
    json_ld = _json_ld_article(soup)
    meta = _meta_values(soup)

    title = _normalize_optional_text(json_ld.get("headline")) if json_ld else None
    if title is None:
        title = _first_meta(meta, _TITLE_META_KEYS)

    byline = _json_ld_author(json_ld) if json_ld else None
    if byline is None:
        byline = _first_meta(meta, _AUTHOR_META_KEYS)
    if byline is None:
        byline = _byline_from_elements(soup)

    published = _normalize_optional_text(json_ld.get("datePublished")) if json_ld else None
    if published is None:
        published = _first_meta(meta, _PUBLISHED_META_KEYS)
    if published is None:
        published = _published_from_time_elements(soup)

    return _PageMetadata(title=title, byline=byline, published_time=published)


def _meta_values(soup: BeautifulSoup) -> dict[str, str]:
    values: dict[str, str] = {}
    for element in soup.find_all("meta"):
        key = element.get("property") or element.get("name") or element.get("itemprop")
        content = _normalize_optional_text(element.get("content"))
        if not isinstance(key, str) or content is None:
            continue
        for part in key.split():
            lowered = part.strip().lower()
            if lowered and lowered not in values:
                values[lowered] = content
    return values


def _first_meta(values: dict[str, str], keys: Iterable[str]) -> str | None:
    for key in keys:
        value = values.get(key)
        if value is not None:
            return value
    return None


def _json_ld_article(soup: BeautifulSoup) -> dict[str, Any] | None:
    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        raw = script.string or script.get_text()
        try:
            payload = json.loads(raw)
        except (TypeError, ValueError):
            continue
        for candidate in _iter_json_ld_objects(payload):
            raw_type = candidate.get("@type")
            types = raw_type if isinstance(raw_type, list) else [raw_type]
            if any(isinstance(item, str) and item.lower() in _ARTICLE_JSON_LD_TYPES for item in types):
                return candidate
    return None


def _iter_json_ld_objects(payload: Any) -> Iterator[dict[str, Any]]:
    if isinstance(payload, list):
        for item in payload:
            yield from _iter_json_ld_objects(item)
        return
    if not isinstance(payload, dict):
        return
    graph = payload.get("@graph")
    if isinstance(graph, list):
        yield from _iter_json_ld_objects(graph)
    yield payload


def _json_ld_author(article: dict[str, Any]) -> str | None:
    author = article.get("author")
    authors = author if isinstance(author, list) else [author]
    names: list[str] = []
    for item in authors:
        if isinstance(item, dict):
            name = _normalize_optional_text(item.get("name"))
        else:
            name = _normalize_optional_text(item)
        if name is not None and name not in names:
            names.append(name)
    if not names:
        return None
    return ", ".join(names)


def _byline_from_elements(soup: BeautifulSoup) -> str | None:
    body = soup.body
    if body is None:
        return None
    for element in body.find_all(True):
        rel = " ".join(element.get("rel") or [])
        itemprop = str(element.get("itemprop") or "")
        match_string = " ".join(element.get("class") or []) + " " + str(element.get("id") or "")
        if not (
            rel == "author"
            or "author" in itemprop
            or _BYLINE_HINT_PATTERN.search(match_string)
        ):
            continue
        text = " ".join(element.get_text(" ").split())
        if 0 < len(text) < _MAX_BYLINE_LENGTH:
            return text
    return None


def _published_from_time_elements(soup: BeautifulSoup) -> str | None:
    for element in soup.find_all("time"):
        value = _normalize_optional_text(element.get("datetime"))
        if value is not None:
            return value
    return None


def is_probably_readerable(
    soup: BeautifulSoup,
    *,
    min_content_length: int = 140,
    min_score: float = 20,
) -> bool:
    """Quick check for whether a page looks like an article, before full extraction."""
    nodes: list[Tag] = list(soup.select("p, pre, article"))
    for line_break in soup.select("div > br"):
        parent = line_break.parent
        if isinstance(parent, Tag) and parent not in nodes:
            nodes.append(parent)

    score = 0.0
    for node in nodes:
        if not _is_node_visible(node):
            continue
        match_string = " ".join(node.get("class") or []) + " " + str(node.get("id") or "")
        if _UNLIKELY_CANDIDATES_PATTERN.search(match_string) and not _MAYBE_CANDIDATE_PATTERN.search(
            match_string
        ):
            continue
        if node.name == "p" and node.find_parent("li") is not None:
            continue
        text_length = len(node.get_text().strip())
        if text_length < min_content_length:
            continue
        score += math.sqrt(text_length - min_content_length)
        if score > min_score:
            return True
    return False


def _is_node_visible(node: Tag) -> bool:
    style = str(node.get("style") or "").replace(" ", "").lower()
    if "display:none" in style:
        return False
    if node.has_attr("hidden"):
        return False
    if node.get("aria-hidden") == "true" and "fallback-image" not in (node.get("class") or []):
        return False
    return True


def _normalize_optional_text(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    normalized = " ".join(value.split())
    return normalized or None
