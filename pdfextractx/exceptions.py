"""
Custom exceptions for pdfextractx.

Every error carries the process exit code the CLI reports for it. Page
scoped errors (:class:`PageStageError` subclasses) are recoverable and never
reach the CLI; the pipeline records them inline in the page output.
"""

from __future__ import annotations


class PDFExtractError(Exception):
    """Base exception for all pdfextractx errors."""

    exit_code = 1

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    @property
    def default_message(self) -> str:
        return "An unknown extraction error occurred."

    @property
    def kind(self) -> str:
        return type(self).__name__


class ConfigError(PDFExtractError):
    """Raised when the run configuration is invalid."""

    @property
    def default_message(self) -> str:
        return "Invalid run configuration."


class NoOpConfigError(ConfigError):
    """Raised when text, OCR and XFA extraction are all disabled."""

    @property
    def default_message(self) -> str:
        return "Nothing to do: text, OCR and XFA extraction are all disabled."


class InvalidRangeError(PDFExtractError):
    """Raised when a page range expression is invalid."""

    @property
    def default_message(self) -> str:
        return "Invalid page range specification."


class PageOutOfBoundsError(InvalidRangeError):
    """Raised when a requested page number is outside the document."""

    @property
    def default_message(self) -> str:
        return "Requested page number is out of bounds."


class DocumentOpenError(PDFExtractError):
    """Raised when the input cannot be read or opened as a document."""

    exit_code = 3

    @property
    def default_message(self) -> str:
        return "Unable to open document."


class EncryptedDocumentError(DocumentOpenError):
    """Raised when the document is encrypted and no valid password was given."""

    @property
    def default_message(self) -> str:
        return "Document is encrypted and cannot be processed without a password."


class RecognitionInitError(PDFExtractError):
    """Raised when the OCR engine or its language data is unavailable."""

    exit_code = 4

    @property
    def default_message(self) -> str:
        return "Unable to initialize the OCR engine."


class XfaParseError(PDFExtractError):
    """Raised when XFA form XML cannot be read or parsed."""

    exit_code = 5

    @property
    def default_message(self) -> str:
        return "Malformed XFA form data."


class OutputProtocolError(PDFExtractError):
    """Raised when output sections are opened or closed out of order."""

    exit_code = 5

    @property
    def default_message(self) -> str:
        return "Output sections written out of order."


class PageStageError(PDFExtractError):
    """Base class for recoverable, page scoped extraction failures."""

    def __init__(self, message: str = "", *, page_number: int | None = None) -> None:
        super().__init__(message)
        self.page_number = page_number


class PageRenderError(PageStageError):
    """Raised when a page's text layer or raster cannot be produced."""

    @property
    def default_message(self) -> str:
        return "Failed to render page."


class PageRecognitionError(PageStageError):
    """Raised when OCR fails on a rendered page."""

    @property
    def default_message(self) -> str:
        return "Failed to recognize text on page."
