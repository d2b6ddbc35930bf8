"""
pdfextractx - text, OCR and XFA form extraction for language-model ingestion.

This library turns a PDF or a standalone image into a delimited text
stream: an optional XFA form-data section followed by one section per
selected page holding the embedded text layer and/or the OCR layer.

Quick Start:
    >>> import sys
    >>> from pdfextractx import ExtractionMode, ExtractionPipeline, OutputFormatter, PyMuPDFBackend, RunConfig
    >>> config = RunConfig(mode=ExtractionMode.TEXT, page_range="1-3")
    >>> pipeline = ExtractionPipeline(config, PyMuPDFBackend(), OutputFormatter(sys.stdout))
    >>> outcome = pipeline.run("input.pdf")

Main Classes:
    - ExtractionPipeline: Drives XFA and per-page extraction for one document
    - OutputFormatter: Streams delimited sections to a text stream
    - Deadline: Cooperative global time budget

Backends:
    - PyMuPDFBackend: Page text, rasterization and XFA stream lookup
    - TesseractBackend: OCR through pytesseract

For CLI usage, use the 'pdfextractx' command after installation.
"""

__version__ = "1.0.0"
__author__ = "pdfextractx Contributors"
__license__ = "MIT"

# Data types
from pdfextractx.types import (
    ExtractionMode,
    PageResult,
    RunConfig,
    RunOutcome,
    StageResult,
    XfaMode,
    XfaResult,
)

# Exceptions
from pdfextractx.exceptions import (
    PDFExtractError,
    ConfigError,
    NoOpConfigError,
    InvalidRangeError,
    PageOutOfBoundsError,
    DocumentOpenError,
    EncryptedDocumentError,
    RecognitionInitError,
    XfaParseError,
    PageRenderError,
    PageRecognitionError,
)

# Core components
from pdfextractx.pages import resolve_page_range
from pdfextractx.xfa import DEFAULT_PRUNE_RULES, PruneRules, clean_form_data, transform_xfa
from pdfextractx.output import Layer, OutputFormatter
from pdfextractx.timeout import Deadline
from pdfextractx.pipeline import ExtractionPipeline
from pdfextractx.backends import PyMuPDFBackend, TesseractBackend

__all__ = [
    # Main classes
    "ExtractionPipeline",
    "OutputFormatter",
    "Layer",
    "Deadline",
    "PyMuPDFBackend",
    "TesseractBackend",
    # Data types
    "ExtractionMode",
    "PageResult",
    "RunConfig",
    "RunOutcome",
    "StageResult",
    "XfaMode",
    "XfaResult",
    # XFA
    "DEFAULT_PRUNE_RULES",
    "PruneRules",
    "clean_form_data",
    "transform_xfa",
    # Page ranges
    "resolve_page_range",
    # Exceptions
    "PDFExtractError",
    "ConfigError",
    "NoOpConfigError",
    "InvalidRangeError",
    "PageOutOfBoundsError",
    "DocumentOpenError",
    "EncryptedDocumentError",
    "RecognitionInitError",
    "XfaParseError",
    "PageRenderError",
    "PageRecognitionError",
    # Version info
    "__version__",
]
