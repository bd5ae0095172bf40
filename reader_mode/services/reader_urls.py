"""URL conventions shared by the reader pipeline.

Reader content travels through a few reserved URL shapes:

- `internal://local/load/reader?reader-url=<percent-encoded-url>` is a loader
  (trampoline) URL that puts a history entry in front of already-processed
  content without a network load.
- `internal://local/snippet?key=<key>` identifies ephemeral pasted content.
- `about:blank` is the empty/home document and the native reader view.
"""

from __future__ import annotations

from urllib.parse import parse_qs, quote, urlsplit

INTERNAL_URL_PREFIX = "internal://local/"
LOADER_URL_PREFIX = "internal://local/load/reader"
LOADER_URL_QUERY_PREFIX = f"{LOADER_URL_PREFIX}?reader-url="
SNIPPET_URL_PREFIX = "internal://local/snippet"
SNIPPET_URL_QUERY_PREFIX = f"{SNIPPET_URL_PREFIX}?key="
ABOUT_BLANK = "about:blank"

EBOOK_URL_SCHEMES: frozenset[str] = frozenset({"file", "http", "https", "ebook", "ebook-url"})


def url_scheme(url: str) -> str:
    return urlsplit(url).scheme.lower()


def url_host(url: str) -> str | None:
    host = urlsplit(url).hostname
    if not isinstance(host, str):
        return None
    return host.lower() or None


def is_internal_url(url: str) -> bool:
    return url.startswith(INTERNAL_URL_PREFIX)


def is_reader_loader_url(url: str) -> bool:
    return url.startswith(LOADER_URL_PREFIX)


def is_snippet_url(url: str) -> bool:
    return url.startswith(SNIPPET_URL_QUERY_PREFIX)


def is_about_url(url: str) -> bool:
    return url_scheme(url) == "about"


def is_native_reader_view(url: str) -> bool:
    return url == ABOUT_BLANK


def is_blob_url(url: str) -> bool:
    return url_scheme(url) == "blob"


def is_file_url(url: str) -> bool:
    return url_scheme(url) == "file"


def is_reader_file_url(url: str) -> bool:
    return url_scheme(url) == "reader-file"


def is_http_url(url: str) -> bool:
    return url_scheme(url) in {"http", "https"}


def is_ebook_url(url: str) -> bool:
    parts = urlsplit(url)
    if parts.scheme.lower() not in EBOOK_URL_SCHEMES:
        return False
    return parts.path.lower().endswith(".epub")


def reader_loader_url(content_url: str) -> str:
    return LOADER_URL_QUERY_PREFIX + quote(content_url, safe="")


def snippet_url(key: str) -> str:
    return SNIPPET_URL_QUERY_PREFIX + quote(key, safe="")


def loader_target_url(url: str) -> str | None:
    """Return the content URL a loader URL points at, or None for any other URL."""
    if not is_reader_loader_url(url):
        return None
    values = parse_qs(urlsplit(url).query).get("reader-url")
    if not values:
        return None
    target = values[0].strip()
    return target or None


def snippet_key(url: str) -> str | None:
    if is_snippet_url(url):
        values = parse_qs(urlsplit(url).query).get("key")
        if not values:
            return None
        return values[0].strip() or None
    target = loader_target_url(url)
    if target is not None and is_snippet_url(target):
        return snippet_key(target)
    return None


def canonical_reader_content_url(url: str) -> str:
    """Resolve loader-trampoline URLs to the content URL they load."""
    target = loader_target_url(url)
    if target is None:
        return url
    return target


def matches_reader_url(url: str, other: str | None) -> bool:
    """Loose comparison that treats a loader URL and its target as the same page."""
    if other is None:
        return False
    if url == other:
        return True
    return canonical_reader_content_url(url) == canonical_reader_content_url(other)


def http_scheme_variants(url: str) -> tuple[str, ...]:
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    if scheme == "https":
        return (url, "http" + url[len(parts.scheme):])
    if scheme == "http":
        return (url, "https" + url[len(parts.scheme):])
    return (url,)
