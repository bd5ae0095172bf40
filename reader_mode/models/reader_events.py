from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator


def _normalize_optional_text(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    normalized = value.strip()
    if not normalized:
        return None
    return normalized


class _ReaderEventBase(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)


class NavigationCommitted(_ReaderEventBase):
    type: Literal["navigationCommitted"] = "navigationCommitted"
    url: str = Field(min_length=1, max_length=8192)


class NavigationFinished(_ReaderEventBase):
    type: Literal["navigationFinished"] = "navigationFinished"
    url: str = Field(min_length=1, max_length=8192)


class NavigationFailed(_ReaderEventBase):
    type: Literal["navigationFailed"] = "navigationFailed"
    url: str = Field(min_length=1, max_length=8192)
    error: str | None = None


class ReadabilityParsed(_ReaderEventBase):
    """Readability output posted back from a page that ran extraction in the browser."""

    type: Literal["readabilityParsed"] = "readabilityParsed"
    window_url: str = Field(alias="windowURL", min_length=1, max_length=8192)
    content: str
    title: str = ""
    byline: str = ""
    published_time: str | None = Field(default=None, alias="publishedTime")
    frame_is_main: bool = Field(default=True, alias="frameIsMain")
    frame_id: str | None = Field(default=None, alias="frameId")

    @field_validator("published_time", "frame_id", mode="before")
    @classmethod
    def _normalize_optional_fields(cls, value: object) -> str | None:
        return _normalize_optional_text(value)


class ReadabilityModeUnavailable(_ReaderEventBase):
    type: Literal["readabilityModeUnavailable"] = "readabilityModeUnavailable"
    window_url: str = Field(alias="windowURL", min_length=1, max_length=8192)
    frame_is_main: bool = Field(default=True, alias="frameIsMain")


class ImageUpdated(_ReaderEventBase):
    type: Literal["imageUpdated"] = "imageUpdated"
    main_document_url: str = Field(alias="mainDocumentURL", min_length=1, max_length=8192)
    image_url: str = Field(alias="newImageURLString", min_length=1, max_length=8192)


class PageMetadataUpdated(_ReaderEventBase):
    type: Literal["pageMetadataUpdated"] = "pageMetadataUpdated"
    url: str = Field(min_length=1, max_length=8192)
    title: str | None = None
    author: str | None = None

    @field_validator("title", "author", mode="before")
    @classmethod
    def _normalize_optional_fields(cls, value: object) -> str | None:
        return _normalize_optional_text(value)


ReaderEvent = Annotated[
    NavigationCommitted
    | NavigationFinished
    | NavigationFailed
    | ReadabilityParsed
    | ReadabilityModeUnavailable
    | ImageUpdated
    | PageMetadataUpdated,
    Field(discriminator="type"),
]

_READER_EVENT_ADAPTER: TypeAdapter[ReaderEvent] = TypeAdapter(ReaderEvent)


def parse_reader_event(payload: dict[str, Any]) -> ReaderEvent:
    """Validate a raw message posted by the browser surface into a typed event."""
    return _READER_EVENT_ADAPTER.validate_python(payload)
