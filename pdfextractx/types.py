"""
Type definitions and dataclasses for pdfextractx.

This module defines the run configuration and the values passed between
the pipeline, its backends and the output formatter.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .exceptions import ConfigError, NoOpConfigError, PDFExtractError

PageIndexSet = Tuple[int, ...]
XfaRawBlob = List[bytes]
CleanedFormRecord = Dict[str, str]

MIN_DPI = 72
MAX_DPI = 600


class ExtractionMode(str, Enum):
    """Which per-page stages run."""

    HYBRID = "hybrid"
    TEXT = "text"
    OCR = "ocr"
    NONE = "none"

    @property
    def text_enabled(self) -> bool:
        return self in (ExtractionMode.HYBRID, ExtractionMode.TEXT)

    @property
    def ocr_enabled(self) -> bool:
        return self in (ExtractionMode.HYBRID, ExtractionMode.OCR)

    @classmethod
    def from_flags(cls, *, text: bool, ocr: bool) -> "ExtractionMode":
        if text and ocr:
            return cls.HYBRID
        if text:
            return cls.TEXT
        if ocr:
            return cls.OCR
        return cls.NONE


class XfaMode(str, Enum):
    """How embedded XFA form data is reported."""

    OFF = "off"
    RAW = "raw"
    FULL = "full"
    CLEAN = "clean"


@dataclass(frozen=True)
class RunConfig:
    """
    Immutable configuration for a single extraction run.

    Attributes:
        mode: Per-page extraction stages to run
        languages: Tesseract language codes, e.g. ``("eng", "deu")``
        dpi: Rasterization resolution used for OCR
        page_range: Page selection expression; empty or ``"all"`` selects every page
        xfa_mode: XFA reporting mode
        timeout: Global time budget in seconds; ``None`` or ``0`` disables it
        verbosity: 0 for silent, 1 for INFO logging, 2+ for DEBUG logging
        password: Password for encrypted PDFs
        tessdata_dir: Directory holding Tesseract ``*.traineddata`` files
        min_confidence: Mean word confidence below which OCR output is dropped
    """
    mode: ExtractionMode = ExtractionMode.HYBRID
    languages: Tuple[str, ...] = ("eng",)
    dpi: int = 300
    page_range: str = ""
    xfa_mode: XfaMode = XfaMode.CLEAN
    timeout: Optional[float] = None
    verbosity: int = 0
    password: Optional[str] = None
    tessdata_dir: Optional[str] = None
    min_confidence: Optional[float] = None

    @property
    def text_enabled(self) -> bool:
        return self.mode.text_enabled

    @property
    def ocr_enabled(self) -> bool:
        return self.mode.ocr_enabled

    @property
    def xfa_enabled(self) -> bool:
        return self.xfa_mode is not XfaMode.OFF

    @property
    def verbose(self) -> bool:
        return self.verbosity > 0

    @property
    def language_spec(self) -> str:
        """Languages in Tesseract's ``eng+deu`` notation."""
        return "+".join(self.languages)

    def validate(self) -> None:
        """Raise :class:`ConfigError` if this configuration cannot run."""
        if not (self.text_enabled or self.ocr_enabled or self.xfa_enabled):
            raise NoOpConfigError()
        if not MIN_DPI <= self.dpi <= MAX_DPI:
            raise ConfigError(
                f"DPI must be between {MIN_DPI} and {MAX_DPI}. Got: {self.dpi}"
            )
        if self.timeout is not None and self.timeout < 0:
            raise ConfigError(f"Timeout must not be negative. Got: {self.timeout}")
        if self.ocr_enabled and not self.languages:
            raise ConfigError("At least one OCR language is required.")
        if self.min_confidence is not None and not 0 <= self.min_confidence <= 100:
            raise ConfigError(
                f"Minimum confidence must be between 0 and 100. Got: {self.min_confidence}"
            )


def parse_languages(value: str) -> Tuple[str, ...]:
    """Split ``"eng+deu"`` or ``"eng,deu"`` into language codes."""
    normalized = value.replace(",", "+")
    return tuple(part.strip() for part in normalized.split("+") if part.strip())


class StageStatus(str, Enum):
    OK = "ok"
    SOFT_FAIL = "soft_fail"
    HARD_FAIL = "hard_fail"


@dataclass(frozen=True)
class StageResult:
    """Tagged outcome of one collaborator call."""

    status: StageStatus
    payload: Any = None
    reason: str = ""
    error: Optional[PDFExtractError] = None

    @classmethod
    def ok(cls, payload: Any) -> "StageResult":
        return cls(StageStatus.OK, payload=payload)

    @classmethod
    def soft_fail(cls, reason: str) -> "StageResult":
        return cls(StageStatus.SOFT_FAIL, reason=reason)

    @classmethod
    def hard_fail(cls, error: PDFExtractError) -> "StageResult":
        return cls(StageStatus.HARD_FAIL, reason=error.message, error=error)

    @property
    def is_ok(self) -> bool:
        return self.status is StageStatus.OK


@dataclass
class PageResult:
    """
    Per-page extraction result.

    A layer of ``None`` means the stage did not run; an empty string means it
    ran and found nothing.
    """
    page_number: int
    text_layer: Optional[str] = None
    ocr_layer: Optional[str] = None
    text_error: Optional[str] = None
    ocr_error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.text_error is not None or self.ocr_error is not None


@dataclass(frozen=True)
class XfaResult:
    """Output of the XFA transform; ``present`` is False when the document has no form data."""

    present: bool
    mode: XfaMode = XfaMode.OFF
    payload: str = ""
    record: Optional[CleanedFormRecord] = None

    @classmethod
    def absent(cls) -> "XfaResult":
        return cls(present=False)

    @property
    def is_absent(self) -> bool:
        return not self.present


class OutcomeStatus(str, Enum):
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"


TIMEOUT_EXIT_CODE = 2


@dataclass
class RunOutcome:
    """Terminal status of a run."""

    status: OutcomeStatus
    reason: Optional[str] = None
    error: Optional[PDFExtractError] = None
    pages_emitted: int = 0
    failed_pages: List[int] = field(default_factory=list)

    @classmethod
    def completed(cls, **kwargs: Any) -> "RunOutcome":
        return cls(OutcomeStatus.COMPLETED, **kwargs)

    @classmethod
    def partial(cls, reason: str, **kwargs: Any) -> "RunOutcome":
        return cls(OutcomeStatus.PARTIAL, reason=reason, **kwargs)

    @classmethod
    def failed(cls, error: PDFExtractError, **kwargs: Any) -> "RunOutcome":
        return cls(OutcomeStatus.FAILED, reason=error.kind, error=error, **kwargs)

    @property
    def exit_code(self) -> int:
        if self.status is OutcomeStatus.COMPLETED:
            return 0
        if self.status is OutcomeStatus.PARTIAL:
            return TIMEOUT_EXIT_CODE
        return self.error.exit_code if self.error is not None else 1

    def __str__(self) -> str:
        if self.status is OutcomeStatus.FAILED:
            return f"RunOutcome(failed, kind={self.reason})"
        if self.status is OutcomeStatus.PARTIAL:
            return f"RunOutcome(partial, reason={self.reason}, pages={self.pages_emitted})"
        return f"RunOutcome(completed, pages={self.pages_emitted})"
