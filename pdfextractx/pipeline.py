"""Extraction pipeline controller.

The pipeline owns one document for the length of a run and drives it
through three phases::

    INIT -> XFA -> PAGES -> DONE
                        \\-> ABORTED (deadline elapsed between pages)
    any phase -> FAILED (fatal error)

Every collaborator call is wrapped in a :class:`StageResult`. Page scoped
failures are soft: the page is written with an inline error marker and the
run continues. Anything else is hard and ends the run.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, List, Optional

from .backends.base import BackendDocument, DocumentSource, RecognitionBackend, RenderingBackend
from .exceptions import ConfigError, PageStageError, PDFExtractError, XfaParseError
from .output import Layer, OutputFormatter
from .pages import resolve_page_range
from .timeout import Deadline
from .types import (
    PageResult,
    RunConfig,
    RunOutcome,
    StageResult,
    StageStatus,
    XfaMode,
    XfaResult,
)
from .utils import time_block
from .xfa import DEFAULT_PRUNE_RULES, PruneRules, transform_xfa

LOGGER = logging.getLogger(__name__)

TIMEOUT_REASON = "timeout"


class PipelineState(str, Enum):
    INIT = "init"
    XFA = "xfa"
    PAGES = "pages"
    DONE = "done"
    ABORTED = "aborted"
    FAILED = "failed"


def call_stage(func: Callable[..., Any], *args: Any) -> StageResult:
    """Run one collaborator call and tag its outcome."""
    try:
        return StageResult.ok(func(*args))
    except PageStageError as exc:
        return StageResult.soft_fail(f"{exc.kind}: {exc.message}")
    except PDFExtractError as exc:
        return StageResult.hard_fail(exc)


class ExtractionPipeline:
    """Run the configured extraction stages over one document."""

    def __init__(
        self,
        config: RunConfig,
        renderer: RenderingBackend,
        formatter: OutputFormatter,
        *,
        recognizer: Optional[RecognitionBackend] = None,
        deadline: Optional[Deadline] = None,
        prune_rules: PruneRules = DEFAULT_PRUNE_RULES,
    ) -> None:
        if config.ocr_enabled and recognizer is None:
            raise ConfigError("OCR extraction requires a recognition backend.")
        self.config = config
        self.renderer = renderer
        self.recognizer = recognizer
        self.formatter = formatter
        self.deadline = deadline or Deadline(config.timeout)
        self.prune_rules = prune_rules

        self.state = PipelineState.INIT
        self.pages_emitted = 0
        self.failed_pages: List[int] = []

    # ------------------------------------------------------------------
    def run(self, source: DocumentSource) -> RunOutcome:
        """Extract ``source`` and stream the result through the formatter."""
        document: Optional[BackendDocument] = None
        try:
            self.config.validate()
            document = self.renderer.open(source, password=self.config.password)
            pages = resolve_page_range(self.config.page_range, document.page_count)
            LOGGER.info(
                "Extracting %d of %d page(s) (mode=%s, xfa=%s)",
                len(pages),
                document.page_count,
                self.config.mode.value,
                self.config.xfa_mode.value,
            )

            if self.deadline.expired():
                return self._abort()
            self.state = PipelineState.XFA
            self._xfa_phase(document)

            self.state = PipelineState.PAGES
            if not (self.config.text_enabled or self.config.ocr_enabled):
                pages = ()
            for page_number in pages:
                if self.deadline.expired():
                    return self._abort()
                self._process_page(document, page_number)

            self.state = PipelineState.DONE
            return RunOutcome.completed(
                pages_emitted=self.pages_emitted, failed_pages=list(self.failed_pages)
            )
        except PDFExtractError as exc:
            self.state = PipelineState.FAILED
            self.formatter.abort()
            LOGGER.error("Extraction failed: %s", exc.message)
            return RunOutcome.failed(
                exc, pages_emitted=self.pages_emitted, failed_pages=list(self.failed_pages)
            )
        except Exception:
            self.state = PipelineState.FAILED
            self.formatter.abort()
            raise
        finally:
            if document is not None:
                document.close()

    # ------------------------------------------------------------------
    def _abort(self) -> RunOutcome:
        self.state = PipelineState.ABORTED
        self.formatter.abort()
        LOGGER.warning(
            "Deadline of %ss elapsed after %d page(s); output truncated",
            self.deadline.seconds,
            self.pages_emitted,
        )
        return RunOutcome.partial(
            TIMEOUT_REASON, pages_emitted=self.pages_emitted, failed_pages=list(self.failed_pages)
        )

    def _read_xfa(self, document: BackendDocument) -> XfaResult:
        if not document.has_form_data:
            LOGGER.info("Document has no XFA form data")
            return XfaResult.absent()
        blob = document.extract_form_xml()
        return transform_xfa(blob, self.config.xfa_mode, self.prune_rules)

    def _xfa_phase(self, document: BackendDocument) -> None:
        if not self.config.xfa_enabled:
            return

        with time_block(LOGGER, "XFA extraction"):
            try:
                stage = StageResult.ok(self._read_xfa(document))
            except XfaParseError as exc:
                if self.config.xfa_mode is XfaMode.RAW:
                    stage = StageResult.soft_fail(exc.message)
                else:
                    stage = StageResult.hard_fail(exc)

        if stage.status is StageStatus.HARD_FAIL:
            raise stage.error
        if stage.status is StageStatus.SOFT_FAIL:
            LOGGER.warning("Skipping XFA section: %s", stage.reason)
            return
        self.formatter.write_xfa(stage.payload)

    def _process_page(self, document: BackendDocument, page_number: int) -> None:
        result = PageResult(page_number=page_number)
        self.formatter.begin_page(page_number)

        with time_block(LOGGER, f"Page {page_number}"):
            if self.config.text_enabled:
                stage = call_stage(document.extract_text, page_number)
                self._emit(Layer.TEXT, stage, result)

            if self.config.ocr_enabled:
                stage = call_stage(document.render_page, page_number, self.config.dpi)
                if stage.is_ok:
                    stage = call_stage(
                        self.recognizer.recognize,
                        stage.payload,
                        self.config.languages,
                        self.config.dpi,
                    )
                self._emit(Layer.OCR, stage, result)

        self.formatter.end_page()
        self.pages_emitted += 1
        if result.failed:
            self.failed_pages.append(page_number)

    def _emit(self, layer: Layer, stage: StageResult, result: PageResult) -> None:
        if stage.status is StageStatus.HARD_FAIL:
            raise stage.error

        if stage.is_ok:
            text = stage.payload or ""
            self.formatter.write_layer(layer, text)
            if layer is Layer.TEXT:
                result.text_layer = text
            else:
                result.ocr_layer = text
            return

        LOGGER.warning("Page %d: %s failed: %s", result.page_number, layer.value.lower(), stage.reason)
        self.formatter.write_layer_error(layer, stage.reason)
        if layer is Layer.TEXT:
            result.text_error = stage.reason
        else:
            result.ocr_error = stage.reason


__all__ = ["ExtractionPipeline", "PipelineState", "TIMEOUT_REASON", "call_stage"]
