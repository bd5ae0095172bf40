from __future__ import annotations

import logging
import os
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import pytest

from reader_mode.config import ReaderSettings, load_settings
from reader_mode.dependencies import reset_cached_dependencies
from reader_mode.repositories.content_record_repository import (
    RECORD_KIND_HISTORY,
    ContentRecord,
    ContentRecordRepository,
    compress_html,
)
from reader_mode.repositories.database import Database
from reader_mode.services.browser_surface import FrameRef
from reader_mode.services.content_store import SQLiteContentStore
from reader_mode.services.readability_extractor import ReadabilityExtractor
from reader_mode.services.reader_mode_controller import ReaderModeController
from reader_mode.services.reconciliation import ReaderModeReconciler

ARTICLE_URL = "https://example.com/articles/quiet-rivers"

ARTICLE_PARAGRAPHS = (
    "The river behind the old mill runs slowly in late summer, and the water is clear "
    "enough that you can count the stones on the bottom, one by one, from the bridge.",
    "Fishermen arrive before dawn, set their folding chairs along the bank, and wait for "
    "the mist to lift, talking quietly about the weather, their families and the catch.",
    "By noon the heat settles over the valley, the birds go silent, and only the sound of "
    "the water remains, steady and patient, carrying leaves toward the distant sea.",
    "In the evening the children come down to swim, shouting and laughing, while their "
    "parents sit on the warm rocks and watch the light turn gold over the hills.",
)

ARTICLE_HTML = (
    "<html><head><title>Quiet Rivers | Example Site</title>"
    '<meta property="article:published_time" content="2024-03-05T08:30:00Z">'
    '<meta name="author" content="Jane Doe">'
    "</head><body>"
    '<nav class="menu"><a href="/">Home</a> <a href="/about">About</a></nav>'
    "<article><h1>Quiet Rivers</h1>"
    + "".join(f"<p>{paragraph}</p>" for paragraph in ARTICLE_PARAGRAPHS)
    + "</article>"
    '<footer class="footer">Copyright Example Site</footer>'
    "</body></html>"
)


def make_record(
    compound_key: str,
    url: str,
    *,
    kind: str = RECORD_KIND_HISTORY,
    html: str | None = None,
    **changes: Any,
) -> ContentRecord:
    now = datetime(2024, 1, 1, 9, 0, tzinfo=UTC)
    return ContentRecord(
        compound_key=compound_key,
        kind=kind,
        url=url,
        created_at=now,
        updated_at=now,
        content=compress_html(html),
        **changes,
    )


@dataclass
class FakeBrowserSurface:
    current_url: str | None = None
    document_html: str | None = None
    requests: list[str] = field(default_factory=list)
    loaded_html: list[tuple[str, str]] = field(default_factory=list)
    scripts: list[tuple[str, FrameRef | None]] = field(default_factory=list)

    async def load_request(self, url: str) -> None:
        self.requests.append(url)
        self.current_url = url

    async def load_html(
        self,
        html: str,
        *,
        base_url: str,
        mime_type: str = "text/html",
        encoding: str = "UTF-8",
    ) -> None:
        self.loaded_html.append((base_url, html))
        self.current_url = base_url

    async def evaluate_script(
        self,
        script: str,
        *,
        frame: FrameRef | None = None,
        arguments: Mapping[str, Any] | None = None,
    ) -> Any:
        self.scripts.append((script, frame))
        return None

    async def read_document_html(self, frame: FrameRef | None = None) -> str | None:
        return self.document_html


@pytest.fixture(autouse=True)
def _isolated_reader_env(  # pyright: ignore[reportUnusedFunction]
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> Iterator[None]:
    for name in list(os.environ):
        if name.startswith("READER_MODE_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.setenv("READER_MODE_DATA_DIR", str(tmp_path / "runtime-data"))
    monkeypatch.setenv("READER_MODE_LOG_LEVEL", "ERROR")
    reset_cached_dependencies()

    yield

    reset_cached_dependencies()
    reader_logger = logging.getLogger("reader_mode")
    for handler in list(reader_logger.handlers):
        reader_logger.removeHandler(handler)
        handler.close()
    reader_logger.propagate = True
    telemetry_logger = logging.getLogger("reader_mode.telemetry")
    for handler in list(telemetry_logger.handlers):
        telemetry_logger.removeHandler(handler)
        handler.close()
    telemetry_logger.propagate = True


@pytest.fixture
def settings() -> ReaderSettings:
    return load_settings()


@pytest.fixture
def repository(tmp_path: Path) -> ContentRecordRepository:
    db = Database(tmp_path / "reader.db")
    db.initialize()
    return ContentRecordRepository(db)


@pytest.fixture
def store(repository: ContentRecordRepository) -> SQLiteContentStore:
    return SQLiteContentStore(repository)


@pytest.fixture
def browser() -> FakeBrowserSurface:
    return FakeBrowserSurface()


@pytest.fixture
def completions() -> list[str]:
    return []


@pytest.fixture
def make_controller(
    store: SQLiteContentStore,
    browser: FakeBrowserSurface,
    settings: ReaderSettings,
    completions: list[str],
) -> Callable[..., ReaderModeController]:
    def _make(**overrides: Any) -> ReaderModeController:
        options: dict[str, Any] = {
            "store": store,
            "browser": browser,
            "extractor": ReadabilityExtractor(),
            "reconciler": ReaderModeReconciler(store=store),
            "settings": settings,
            "on_load_complete": completions.append,
        }
        options.update(overrides)
        return ReaderModeController(**options)

    return _make


@pytest.fixture
def controller(make_controller: Callable[..., ReaderModeController]) -> ReaderModeController:
    return make_controller()

