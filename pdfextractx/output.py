"""Streaming writer for the delimited extraction output.

Output layout::

    === BEGIN XFA (clean) ===
    {...}
    === END XFA ===

    === BEGIN PAGE 1 ===
    --- BEGIN TEXT LAYER ---
    ...
    --- END TEXT LAYER ---

    --- BEGIN OCR LAYER ---
    ...
    --- END OCR LAYER ---
    === END PAGE 1 ===

Sections are written as soon as they are available and the stream is
flushed whenever a section closes, so the output is well formed at every
page boundary.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Optional, TextIO

from .exceptions import OutputProtocolError
from .types import XfaResult

LOGGER = logging.getLogger(__name__)

XFA_BEGIN = "=== BEGIN XFA ({mode}) ==="
XFA_END = "=== END XFA ==="
PAGE_BEGIN = "=== BEGIN PAGE {page} ==="
PAGE_END = "=== END PAGE {page} ==="
LAYER_BEGIN = "--- BEGIN {layer} ---"
LAYER_END = "--- END {layer} ---"
LAYER_ERROR = "--- {layer} ERROR: {reason} ---"


class Layer(str, Enum):
    TEXT = "TEXT LAYER"
    OCR = "OCR LAYER"


def _single_line(reason: str) -> str:
    return " ".join(reason.split()) or "unknown error"


class OutputFormatter:
    """Write XFA and page sections to ``stream`` in a single forward pass."""

    def __init__(self, stream: TextIO) -> None:
        self._stream = stream
        self._sections_written = 0
        self._current_page: Optional[int] = None
        self._last_page = 0
        self._layers_in_page = 0

    @property
    def sections_written(self) -> int:
        return self._sections_written

    @property
    def page_open(self) -> bool:
        return self._current_page is not None

    # ------------------------------------------------------------------
    def _line(self, text: str) -> None:
        self._stream.write(text + "\n")

    def _payload(self, payload: str) -> None:
        if not payload:
            return
        self._stream.write(payload)
        if not payload.endswith("\n"):
            self._stream.write("\n")

    def _begin_top_level(self) -> None:
        if self._current_page is not None:
            raise OutputProtocolError(
                f"Cannot open a new section while page {self._current_page} is open."
            )
        if self._sections_written:
            self._stream.write("\n")

    def _end_top_level(self) -> None:
        self._sections_written += 1
        self._stream.flush()

    def _begin_layer(self) -> None:
        if self._current_page is None:
            raise OutputProtocolError("Layer sections must be written inside a page section.")
        if self._layers_in_page:
            self._stream.write("\n")

    # ------------------------------------------------------------------
    def write_xfa(self, result: XfaResult) -> None:
        """Write the XFA section; absent results write nothing."""
        if result.is_absent:
            return
        if self._last_page:
            raise OutputProtocolError("The XFA section must precede all page sections.")
        self._begin_top_level()
        self._line(XFA_BEGIN.format(mode=result.mode.value))
        self._payload(result.payload)
        self._line(XFA_END)
        self._end_top_level()

    def begin_page(self, page_number: int) -> None:
        self._begin_top_level()
        if page_number <= self._last_page:
            raise OutputProtocolError(
                f"Page {page_number} written after page {self._last_page}; pages must ascend."
            )
        self._line(PAGE_BEGIN.format(page=page_number))
        self._current_page = page_number
        self._last_page = page_number
        self._layers_in_page = 0

    def write_layer(self, layer: Layer, payload: str) -> None:
        self._begin_layer()
        self._line(LAYER_BEGIN.format(layer=layer.value))
        self._payload(payload)
        self._line(LAYER_END.format(layer=layer.value))
        self._layers_in_page += 1

    def write_layer_error(self, layer: Layer, reason: str) -> None:
        self._begin_layer()
        self._line(LAYER_ERROR.format(layer=layer.value, reason=_single_line(reason)))
        self._layers_in_page += 1

    def end_page(self) -> None:
        if self._current_page is None:
            raise OutputProtocolError("No page section is open.")
        self._line(PAGE_END.format(page=self._current_page))
        self._current_page = None
        self._end_top_level()

    def abort(self) -> None:
        """Close any open page section so the stream stays well formed."""
        if self._current_page is not None:
            LOGGER.debug("Closing page %d on abort", self._current_page)
            self.end_page()
        else:
            self._stream.flush()


__all__ = ["Layer", "OutputFormatter"]
