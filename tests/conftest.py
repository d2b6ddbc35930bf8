from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple
import sys

import fitz  # PyMuPDF
import pytest
from pypdf import PdfWriter
from pypdf.generic import ArrayObject, DecodedStreamObject, DictionaryObject, NameObject, TextStringObject

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from pdfextractx.exceptions import PageRecognitionError, PageRenderError  # noqa: E402


SAMPLE_XDP = b"""<?xml version="1.0" encoding="UTF-8"?>
<xdp:xdp xmlns:xdp="http://ns.adobe.com/xdp/">
<template xmlns="http://www.xfa.org/schema/xfa-template/3.3/"><subform name="form1"><field name="Name"/></subform></template>
<xfa:datasets xmlns:xfa="http://www.xfa.org/schema/xfa-data/1.0/">
<xfa:data>
<form1>
<Name>Jane Doe</Name>
<Address><Street>1 Main St</Street><City>Springfield</City></Address>
<Phone>555-0100</Phone>
<Phone>555-0199</Phone>
<Amount currency="USD">12.50</Amount>
<Signature xfa:dataNode="dataGroup"/>
<FSCalcCache>42</FSCalcCache>
<Empty/>
</form1>
</xfa:data>
</xfa:datasets>
<config xmlns="http://www.xfa.org/schema/xci/3.0/"><present><pdf><version>1.7</version></pdf></present></config>
</xdp:xdp>
"""


class FakeClock:
    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeDocument:
    """In-memory stand-in for an opened document."""

    def __init__(
        self,
        page_count: int = 3,
        *,
        texts: Optional[Dict[int, str]] = None,
        text_errors: Iterable[int] = (),
        render_errors: Iterable[int] = (),
        xfa: Optional[List[bytes]] = None,
        xfa_error: Optional[Exception] = None,
        on_page: Optional[Callable[[int], None]] = None,
    ) -> None:
        self.page_count = page_count
        self.texts = texts or {}
        self.text_errors = set(text_errors)
        self.render_errors = set(render_errors)
        self.xfa = xfa
        self.xfa_error = xfa_error
        self.on_page = on_page
        self.closed = False
        self.text_calls: List[int] = []
        self.render_calls: List[Tuple[int, int]] = []

    @property
    def has_form_data(self) -> bool:
        return self.xfa is not None or self.xfa_error is not None

    def extract_text(self, page_number: int) -> str:
        self.text_calls.append(page_number)
        if self.on_page is not None:
            self.on_page(page_number)
        if page_number in self.text_errors:
            raise PageRenderError("no text layer", page_number=page_number)
        return self.texts.get(page_number, f"text of page {page_number}")

    def render_page(self, page_number: int, dpi: int) -> str:
        self.render_calls.append((page_number, dpi))
        if page_number in self.render_errors:
            raise PageRenderError("rasterization failed", page_number=page_number)
        return f"image-{page_number}"

    def extract_form_xml(self) -> Optional[List[bytes]]:
        if self.xfa_error is not None:
            raise self.xfa_error
        return self.xfa

    def close(self) -> None:
        self.closed = True


class FakeRenderer:
    def __init__(self, document: Optional[FakeDocument] = None, *, open_error: Optional[Exception] = None) -> None:
        self.document = document or FakeDocument()
        self.open_error = open_error
        self.opened: List[Tuple[object, Optional[str]]] = []

    def open(self, source: object, password: Optional[str] = None) -> FakeDocument:
        self.opened.append((source, password))
        if self.open_error is not None:
            raise self.open_error
        return self.document


class FakeRecognizer:
    def __init__(self, *, failing_images: Iterable[str] = ()) -> None:
        self.failing_images = set(failing_images)
        self.calls: List[Tuple[str, Sequence[str], int]] = []

    def recognize(self, image: str, languages: Sequence[str], dpi: int) -> str:
        self.calls.append((image, tuple(languages), dpi))
        if image in self.failing_images:
            raise PageRecognitionError("engine crashed")
        return f"ocr of {image}"


@pytest.fixture()
def sample_xdp() -> bytes:
    return SAMPLE_XDP


@pytest.fixture()
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def fake_document_factory() -> Callable[..., FakeDocument]:
    return FakeDocument


@pytest.fixture()
def fake_renderer_factory() -> Callable[..., FakeRenderer]:
    return FakeRenderer


@pytest.fixture()
def fake_recognizer_factory() -> Callable[..., FakeRecognizer]:
    return FakeRecognizer


@pytest.fixture()
def blank_pdf(tmp_path: Path) -> Path:
    pdf_path = tmp_path / "blank.pdf"
    writer = PdfWriter()
    for _ in range(5):
        writer.add_blank_page(width=200, height=200)
    writer.add_metadata({"/Producer": "pdfextractx-tests", "/Title": "Blank"})
    with pdf_path.open("wb") as stream:
        writer.write(stream)
    return pdf_path


@pytest.fixture()
def text_pdf(tmp_path: Path) -> Path:
    pdf_path = tmp_path / "text.pdf"
    document = fitz.open()
    for index in range(3):
        page = document.new_page(width=300, height=300)
        page.insert_text((36, 72), f"Hello page {index + 1}")
    document.save(str(pdf_path))
    document.close()
    return pdf_path


@pytest.fixture()
def encrypted_pdf(tmp_path: Path) -> Path:
    pdf_path = tmp_path / "encrypted.pdf"
    document = fitz.open()
    page = document.new_page(width=300, height=300)
    page.insert_text((36, 72), "Top secret")
    document.save(
        str(pdf_path),
        encryption=fitz.PDF_ENCRYPT_RC4_128,
        owner_pw="owner",
        user_pw="secret",
    )
    document.close()
    return pdf_path


@pytest.fixture()
def owner_locked_pdf(tmp_path: Path) -> Path:
    pdf_path = tmp_path / "owner-locked.pdf"
    document = fitz.open()
    page = document.new_page(width=300, height=300)
    page.insert_text((36, 72), "Printing restricted")
    document.save(
        str(pdf_path),
        encryption=fitz.PDF_ENCRYPT_AES_256,
        owner_pw="owner",
        user_pw="",
    )
    document.close()
    return pdf_path


@pytest.fixture()
def xfa_pdf_factory(tmp_path: Path) -> Callable[[Sequence[bytes]], Path]:
    def _create(packets: Sequence[bytes], filename: str = "form.pdf") -> Path:
        path = tmp_path / filename
        writer = PdfWriter()
        writer.add_blank_page(width=200, height=200)

        xfa = ArrayObject()
        for index, packet in enumerate(packets):
            stream = DecodedStreamObject()
            stream.set_data(packet)
            xfa.append(TextStringObject(f"packet{index}"))
            xfa.append(writer._add_object(stream))

        acro_form = DictionaryObject()
        acro_form[NameObject("/Fields")] = ArrayObject()
        acro_form[NameObject("/XFA")] = xfa
        writer._root_object[NameObject("/AcroForm")] = writer._add_object(acro_form)

        with path.open("wb") as handle:
            writer.write(handle)
        return path

    return _create


@pytest.fixture()
def xfa_pdf(xfa_pdf_factory: Callable[[Sequence[bytes]], Path]) -> Path:
    return xfa_pdf_factory([SAMPLE_XDP])
