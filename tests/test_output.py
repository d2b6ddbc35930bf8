from __future__ import annotations

import io

import pytest

from pdfextractx.exceptions import OutputProtocolError
from pdfextractx.output import Layer, OutputFormatter
from pdfextractx.types import XfaMode, XfaResult


def _formatter() -> tuple[OutputFormatter, io.StringIO]:
    stream = io.StringIO()
    return OutputFormatter(stream), stream


def test_sections_layout() -> None:
    formatter, stream = _formatter()

    formatter.write_xfa(XfaResult(present=True, mode=XfaMode.CLEAN, payload="{}"))
    formatter.begin_page(1)
    formatter.write_layer(Layer.TEXT, "hello")
    formatter.write_layer(Layer.OCR, "world\n")
    formatter.end_page()
    formatter.begin_page(3)
    formatter.write_layer_error(Layer.OCR, "boom")
    formatter.end_page()

    assert stream.getvalue() == (
        "=== BEGIN XFA (clean) ===\n"
        "{}\n"
        "=== END XFA ===\n"
        "\n"
        "=== BEGIN PAGE 1 ===\n"
        "--- BEGIN TEXT LAYER ---\n"
        "hello\n"
        "--- END TEXT LAYER ---\n"
        "\n"
        "--- BEGIN OCR LAYER ---\n"
        "world\n"
        "--- END OCR LAYER ---\n"
        "=== END PAGE 1 ===\n"
        "\n"
        "=== BEGIN PAGE 3 ===\n"
        "--- OCR LAYER ERROR: boom ---\n"
        "=== END PAGE 3 ===\n"
    )
    assert formatter.sections_written == 3


def test_empty_layer_has_no_body() -> None:
    formatter, stream = _formatter()

    formatter.begin_page(1)
    formatter.write_layer(Layer.TEXT, "")
    formatter.end_page()

    assert stream.getvalue() == (
        "=== BEGIN PAGE 1 ===\n"
        "--- BEGIN TEXT LAYER ---\n"
        "--- END TEXT LAYER ---\n"
        "=== END PAGE 1 ===\n"
    )


def test_error_reason_is_a_single_line() -> None:
    formatter, stream = _formatter()

    formatter.begin_page(2)
    formatter.write_layer_error(Layer.TEXT, "bad\n  things\thappened")
    formatter.end_page()

    assert "--- TEXT LAYER ERROR: bad things happened ---\n" in stream.getvalue()


def test_absent_xfa_writes_nothing() -> None:
    formatter, stream = _formatter()

    formatter.write_xfa(XfaResult.absent())

    assert stream.getvalue() == ""
    assert formatter.sections_written == 0


def test_pages_must_ascend() -> None:
    formatter, _ = _formatter()
    formatter.begin_page(2)
    formatter.end_page()

    with pytest.raises(OutputProtocolError):
        formatter.begin_page(2)
    with pytest.raises(OutputProtocolError):
        formatter.begin_page(1)


def test_xfa_must_precede_pages() -> None:
    formatter, _ = _formatter()
    formatter.begin_page(1)
    formatter.end_page()

    with pytest.raises(OutputProtocolError):
        formatter.write_xfa(XfaResult(present=True, mode=XfaMode.RAW, payload="<xdp/>"))


def test_sections_cannot_nest() -> None:
    formatter, _ = _formatter()

    with pytest.raises(OutputProtocolError):
        formatter.write_layer(Layer.TEXT, "orphan")
    with pytest.raises(OutputProtocolError):
        formatter.end_page()

    formatter.begin_page(1)
    with pytest.raises(OutputProtocolError):
        formatter.begin_page(2)


def test_abort_closes_open_page() -> None:
    formatter, stream = _formatter()
    formatter.begin_page(4)
    formatter.write_layer(Layer.TEXT, "partial")

    formatter.abort()

    assert stream.getvalue().endswith("--- END TEXT LAYER ---\n=== END PAGE 4 ===\n")
    assert not formatter.page_open

    formatter.abort()
    assert stream.getvalue().count("=== END PAGE 4 ===") == 1
