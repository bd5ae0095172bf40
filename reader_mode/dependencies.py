from __future__ import annotations

from functools import lru_cache

from reader_mode.config import ReaderSettings, load_settings
from reader_mode.repositories.content_record_repository import ContentRecordRepository
from reader_mode.repositories.database import Database
from reader_mode.services.browser_surface import BrowserSurface
from reader_mode.services.content_store import SQLiteContentStore
from reader_mode.services.readability_extractor import ReadabilityExtractor
from reader_mode.services.reader_content import ReaderFileReader
from reader_mode.services.reader_mode_controller import LoadCompleteCallback, ReaderModeController
from reader_mode.services.reconciliation import ReaderModeReconciler
from reader_mode.telemetry import TelemetryClient, build_telemetry_client


@lru_cache(maxsize=1)
def get_settings() -> ReaderSettings:
    return load_settings()


@lru_cache(maxsize=1)
def get_database() -> Database:
    database = Database(get_settings().db_path)
    database.initialize()
    return database


@lru_cache(maxsize=1)
def get_content_record_repository() -> ContentRecordRepository:
    return ContentRecordRepository(get_database())


@lru_cache(maxsize=1)
def get_content_store() -> SQLiteContentStore:
    return SQLiteContentStore(get_content_record_repository())


@lru_cache(maxsize=1)
def get_extractor() -> ReadabilityExtractor:
    return ReadabilityExtractor(
        extra_excluded_domains=get_settings().excluded_domains_extra,
        telemetry=get_telemetry(),
    )


@lru_cache(maxsize=1)
def get_reconciler() -> ReaderModeReconciler:
    return ReaderModeReconciler(store=get_content_store(), telemetry=get_telemetry())


def build_controller(
    browser: BrowserSurface,
    *,
    file_reader: ReaderFileReader | None = None,
    on_load_complete: LoadCompleteCallback | None = None,
) -> ReaderModeController:
    """Controllers hold per-surface load state, so each browser surface gets its own."""
    return ReaderModeController(
        store=get_content_store(),
        browser=browser,
        extractor=get_extractor(),
        reconciler=get_reconciler(),
        settings=get_settings(),
        file_reader=file_reader,
        on_load_complete=on_load_complete,
        telemetry=get_telemetry(),
    )


@lru_cache(maxsize=1)
def get_telemetry() -> TelemetryClient:
    settings = get_settings()
    return build_telemetry_client(
        enabled=settings.telemetry_enabled,
        sink=settings.telemetry_sink,
    )


def reset_cached_dependencies() -> None:
    get_reconciler.cache_clear()
    get_extractor.cache_clear()
    get_content_store.cache_clear()
    get_content_record_repository.cache_clear()
    get_database.cache_clear()
    get_telemetry.cache_clear()
    get_settings.cache_clear()
