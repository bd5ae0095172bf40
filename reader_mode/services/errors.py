from __future__ import annotations


class ReaderModeError(Exception):
    pass


class ContentRecordNotFoundError(ReaderModeError):
    def __init__(self, compound_key: str) -> None:
        super().__init__(f"content record not found: {compound_key}")
        self.compound_key = compound_key


class LoadCancelledError(ReaderModeError):
    """Raised inside a load step once its load token has been superseded or cancelled."""

    def __init__(self, url: str | None, *, reason: str) -> None:
        super().__init__(f"load cancelled url={url} reason={reason}")
        self.url = url
        self.reason = reason


class ExtractionError(ReaderModeError):
    """Readability could not parse a document; reported to callers as an `ExtractionFailed`."""
