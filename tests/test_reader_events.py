from __future__ import annotations

import pytest
from pydantic import ValidationError

from reader_mode.models.reader_events import (
    ImageUpdated,
    NavigationCommitted,
    NavigationFailed,
    PageMetadataUpdated,
    ReadabilityModeUnavailable,
    ReadabilityParsed,
    parse_reader_event,
)


def test_readability_parsed_accepts_browser_field_names() -> None:
    event = parse_reader_event(
        {
            "type": "readabilityParsed",
            "windowURL": "https://example.com/a",
            "content": "<p>Body</p>",
            "title": "Title",
            "byline": "By Jane",
            "publishedTime": "  ",
            "frameIsMain": False,
            "frameId": " frame-2 ",
            "dir": "ltr",
        }
    )

    assert isinstance(event, ReadabilityParsed)
    assert event.window_url == "https://example.com/a"
    assert event.published_time is None
    assert event.frame_is_main is False
    assert event.frame_id == "frame-2"


def test_navigation_and_image_events() -> None:
    committed = parse_reader_event({"type": "navigationCommitted", "url": "https://example.com/a"})
    failed = parse_reader_event({"type": "navigationFailed", "url": "https://example.com/a"})
    image = parse_reader_event(
        {
            "type": "imageUpdated",
            "mainDocumentURL": "https://example.com/a",
            "newImageURLString": "https://example.com/a.png",
        }
    )
    unavailable = parse_reader_event(
        {"type": "readabilityModeUnavailable", "windowURL": "https://example.com/a"}
    )

    assert isinstance(committed, NavigationCommitted)
    assert isinstance(failed, NavigationFailed) and failed.error is None
    assert isinstance(image, ImageUpdated)
    assert image.image_url == "https://example.com/a.png"
    assert isinstance(unavailable, ReadabilityModeUnavailable)
    assert unavailable.frame_is_main is True


def test_page_metadata_blank_values_become_none() -> None:
    event = parse_reader_event(
        {"type": "pageMetadataUpdated", "url": "https://example.com/a", "title": " ", "author": " Jane "}
    )

    assert isinstance(event, PageMetadataUpdated)
    assert event.title is None
    assert event.author == "Jane"


def test_unknown_event_type_and_empty_url_are_rejected() -> None:
    with pytest.raises(ValidationError):
        parse_reader_event({"type": "somethingElse", "url": "https://example.com/a"})
    with pytest.raises(ValidationError):
        parse_reader_event({"type": "navigationCommitted", "url": ""})


def test_events_are_immutable() -> None:
    event = NavigationCommitted(url="https://example.com/a")

    with pytest.raises(ValidationError):
        event.url = "https://example.com/b"  # type: ignore[misc]
