"""Backend abstractions for pdfextractx."""

from .base import BackendDocument, DocumentSource, RecognitionBackend, RenderingBackend
from .pymupdf_backend import PyMuPDFBackend, PyMuPDFDocument, sniff_filetype
from .tesseract_backend import TesseractBackend

__all__ = [
    "BackendDocument",
    "DocumentSource",
    "PyMuPDFBackend",
    "PyMuPDFDocument",
    "RecognitionBackend",
    "RenderingBackend",
    "TesseractBackend",
    "sniff_filetype",
]
