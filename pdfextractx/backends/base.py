"""Backend protocols for document rendering and text recognition."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Protocol, Sequence, Union

from PIL import Image

DocumentSource = Union[str, Path, bytes]


class BackendDocument(Protocol):
    """An opened document, owned by the pipeline for the duration of a run."""

    @property
    def page_count(self) -> int:
        """Number of pages in the document."""

    @property
    def has_form_data(self) -> bool:
        """Whether the document embeds XFA form data."""

    def extract_text(self, page_number: int) -> str:
        """Return the embedded text of a 1-based page."""

    def render_page(self, page_number: int, dpi: int) -> Image.Image:
        """Rasterize a 1-based page at ``dpi``."""

    def extract_form_xml(self) -> Optional[List[bytes]]:
        """Return the XFA XML streams in source order, or ``None`` if absent."""

    def close(self) -> None:
        """Release native resources held by the document."""


class RenderingBackend(Protocol):
    """Opens documents and hands out :class:`BackendDocument` handles."""

    def open(self, source: DocumentSource, password: Optional[str] = None) -> BackendDocument:
        """Open ``source`` (a path or raw bytes)."""


class RecognitionBackend(Protocol):
    """Turns raster images into text."""

    def recognize(self, image: Image.Image, languages: Sequence[str], dpi: int) -> str:
        """Return the text recognized in ``image``."""
