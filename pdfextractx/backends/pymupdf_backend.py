"""PyMuPDF backend: page text, rasterization and XFA stream lookup.

Pages are read and rendered with PyMuPDF. XFA form streams are located
with pypdf, which exposes the raw ``/AcroForm /XFA`` object graph.
"""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import List, Optional

import fitz  # PyMuPDF
from PIL import Image
from pypdf import PdfReader
from pypdf.errors import DependencyError, PyPdfError
from pypdf.generic import ArrayObject, StreamObject

from ..exceptions import (
    DocumentOpenError,
    EncryptedDocumentError,
    PageRenderError,
    XfaParseError,
)
from .base import DocumentSource, RenderingBackend

LOGGER = logging.getLogger(__name__)

_SIGNATURES = (
    (b"\x89PNG\r\n\x1a\n", "png"),
    (b"\xff\xd8\xff", "jpeg"),
    (b"II*\x00", "tiff"),
    (b"MM\x00*", "tiff"),
    (b"GIF87a", "gif"),
    (b"GIF89a", "gif"),
    (b"BM", "bmp"),
)


def sniff_filetype(data: bytes) -> Optional[str]:
    """Guess the document type of ``data`` from its magic number."""
    if b"%PDF-" in data[:1024]:
        return "pdf"
    for signature, filetype in _SIGNATURES:
        if data.startswith(signature):
            return filetype
    return None


class PyMuPDFDocument:
    """Document handle wrapping a :class:`fitz.Document`."""

    def __init__(
        self,
        document: fitz.Document,
        *,
        source: DocumentSource,
        password: Optional[str] = None,
    ) -> None:
        self._document = document
        self._source = source
        self._password = password
        self._reader: Optional[PdfReader] = None
        self._xfa: object | None = None
        self._xfa_loaded = False
        self._closed = False

    @property
    def page_count(self) -> int:
        return self._document.page_count

    @property
    def is_pdf(self) -> bool:
        return bool(self._document.is_pdf)

    # ------------------------------------------------------------------
    # Page helpers
    # ------------------------------------------------------------------
    def _load_page(self, page_number: int) -> fitz.Page:
        if not 1 <= page_number <= self.page_count:
            raise PageRenderError(
                f"Page {page_number} is outside the document (1-{self.page_count}).",
                page_number=page_number,
            )
        return self._document.load_page(page_number - 1)

    def extract_text(self, page_number: int) -> str:
        try:
            page = self._load_page(page_number)
            return page.get_text("text")
        except PageRenderError:
            raise
        except Exception as exc:
            raise PageRenderError(
                f"Failed to extract text from page {page_number}: {exc}",
                page_number=page_number,
            ) from exc

    def render_page(self, page_number: int, dpi: int) -> Image.Image:
        try:
            page = self._load_page(page_number)
            pixmap = page.get_pixmap(dpi=dpi, colorspace=fitz.csGRAY, alpha=False)
            return Image.frombytes(
                "L", (pixmap.width, pixmap.height), pixmap.samples, "raw", "L", pixmap.stride
            )
        except PageRenderError:
            raise
        except Exception as exc:
            raise PageRenderError(
                f"Failed to render page {page_number}: {exc}",
                page_number=page_number,
            ) from exc

    # ------------------------------------------------------------------
    # XFA helpers
    # ------------------------------------------------------------------
    def _pdf_reader(self) -> PdfReader:
        if self._reader is None:
            if isinstance(self._source, bytes):
                reader = PdfReader(io.BytesIO(self._source))
            else:
                reader = PdfReader(str(self._source))
            if reader.is_encrypted and reader.decrypt(self._password or "") == 0:
                raise XfaParseError("Unable to decrypt the document's form data.")
            self._reader = reader
        return self._reader

    def _xfa_object(self) -> object | None:
        """Return the /XFA entry, or ``None`` when absent or unreadable."""
        if not self.is_pdf:
            return None
        if not self._xfa_loaded:
            self._xfa = self._lookup_xfa()
            self._xfa_loaded = True
        return self._xfa

    def _lookup_xfa(self) -> object | None:
        try:
            catalog = self._pdf_reader().trailer.get("/Root")
            catalog = catalog.get_object() if catalog is not None else None
            acro_form = catalog.get("/AcroForm") if catalog is not None else None
            if acro_form is None:
                return None
            xfa = acro_form.get_object().get("/XFA")
            return xfa.get_object() if xfa is not None else None
        except (XfaParseError, DependencyError, PyPdfError, OSError, ValueError, KeyError, AttributeError) as exc:
            LOGGER.warning("Unable to read the form dictionary; treating XFA as absent: %s", exc)
            return None

    @property
    def has_form_data(self) -> bool:
        return self._xfa_object() is not None

    def extract_form_xml(self) -> Optional[List[bytes]]:
        xfa = self._xfa_object()
        if xfa is None:
            return None
        try:
            if isinstance(xfa, StreamObject):
                return [xfa.get_data()]
            if isinstance(xfa, ArrayObject):
                streams: List[bytes] = []
                # /XFA arrays alternate packet names and stream references
                for packet_name, item in zip(xfa[0::2], xfa[1::2]):
                    packet = item.get_object()
                    if isinstance(packet, StreamObject):
                        streams.append(packet.get_data())
                    else:
                        LOGGER.warning("Skipping XFA packet '%s': not a stream", packet_name)
                return streams
        except (DependencyError, PyPdfError, OSError, ValueError) as exc:
            raise XfaParseError(f"Unable to decode XFA streams: {exc}") from exc
        raise XfaParseError(f"Unexpected /XFA entry of type {type(xfa).__name__}.")

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._reader = None
        self._document.close()


class PyMuPDFBackend(RenderingBackend):
    """Backend implementation that uses PyMuPDF under the hood."""

    def open(self, source: DocumentSource, password: Optional[str] = None) -> PyMuPDFDocument:
        if isinstance(source, bytes):
            filetype = sniff_filetype(source)
            if filetype is None:
                raise DocumentOpenError("Unrecognized input: expected a PDF or an image.")
            try:
                document = fitz.open(stream=source, filetype=filetype)
            except Exception as exc:
                raise DocumentOpenError(f"Corrupted or invalid {filetype} input. Error: {exc}") from exc
            label = f"<{len(source)} bytes of {filetype}>"
        else:
            path = Path(source)
            if not path.exists() or not path.is_file():
                raise DocumentOpenError(f"File not found: {source}")
            try:
                document = fitz.open(str(path))
            except Exception as exc:
                raise DocumentOpenError(f"Corrupted or invalid document: {source}. Error: {exc}") from exc
            label = str(path)

        if document.needs_pass:
            if not password or not document.authenticate(password):
                document.close()
                if password:
                    raise EncryptedDocumentError("Failed to decrypt document with supplied password.")
                raise EncryptedDocumentError("Document is encrypted. Supply a password to process this file.")

        if document.page_count == 0:
            document.close()
            raise DocumentOpenError(f"Document has no pages: {label}")

        LOGGER.info("Opened %s (%d pages)", label, document.page_count)
        return PyMuPDFDocument(document, source=source, password=password)
