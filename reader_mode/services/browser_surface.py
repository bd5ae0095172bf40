from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol


@dataclass(frozen=True)
class FrameRef:
    """Handle for a frame inside the browser surface's current page."""

    frame_id: str
    is_main: bool = False


class BrowserSurface(Protocol):
    """The web view the controller drives.

    Navigation notifications travel the other way: the host forwards them to
    `ReaderModeController.handle` as typed reader events.
    """

    @property
    def current_url(self) -> str | None:
        ...

    async def load_request(self, url: str) -> None:
        ...

    async def load_html(
        self,
        html: str,
        *,
        base_url: str,
        mime_type: str = "text/html",
        encoding: str = "UTF-8",
    ) -> None:
        ...

    async def evaluate_script(
        self,
        script: str,
        *,
        frame: FrameRef | None = None,
        arguments: Mapping[str, Any] | None = None,
    ) -> Any:
        ...

    async def read_document_html(self, frame: FrameRef | None = None) -> str | None:
        ...
