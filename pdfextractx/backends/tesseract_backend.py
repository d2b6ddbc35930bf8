"""Tesseract OCR backend built on pytesseract."""

from __future__ import annotations

import logging
import shlex
from pathlib import Path
from typing import Optional, Sequence

import pytesseract
from PIL import Image
from pytesseract import Output, TesseractError, TesseractNotFoundError

from ..exceptions import PageRecognitionError, RecognitionInitError
from .base import RecognitionBackend

LOGGER = logging.getLogger(__name__)

OEM_LSTM_ONLY = 1
PSM_AUTO_OSD = 1
PSM_AUTO = 3
LOCAL_TESSDATA = Path("tessdata")


def resolve_tessdata_dir(tessdata_dir: Optional[str]) -> Optional[Path]:
    """Return the explicit data directory, else ``./tessdata`` if present."""
    if tessdata_dir:
        path = Path(tessdata_dir).expanduser()
        if not path.is_dir():
            raise RecognitionInitError(f"Tesseract data directory not found: {tessdata_dir}")
        return path.resolve()
    if LOCAL_TESSDATA.is_dir():
        return LOCAL_TESSDATA.resolve()
    return None


class TesseractBackend(RecognitionBackend):
    """
    Recognize text with the Tesseract LSTM engine.

    Construction verifies that the Tesseract binary and every requested
    language pack are available, so a misconfigured engine fails before any
    page is processed.
    """

    def __init__(
        self,
        languages: Sequence[str],
        *,
        tessdata_dir: Optional[str] = None,
        min_confidence: Optional[float] = None,
    ) -> None:
        self.tessdata_dir = resolve_tessdata_dir(tessdata_dir)
        self.min_confidence = min_confidence

        try:
            version = pytesseract.get_tesseract_version()
            available = set(pytesseract.get_languages(config=self._data_config()))
        except TesseractNotFoundError as exc:
            raise RecognitionInitError("Tesseract is not installed or not on PATH.") from exc
        except (TesseractError, OSError) as exc:
            raise RecognitionInitError(f"Unable to query Tesseract: {exc}") from exc

        missing = [language for language in languages if language not in available]
        if missing:
            raise RecognitionInitError(
                "Tesseract language data not installed: {missing}. Available: {available}".format(
                    missing=", ".join(missing),
                    available=", ".join(sorted(available)) or "none",
                )
            )

        if "osd" in available:
            self.page_segmentation = PSM_AUTO_OSD
        else:
            LOGGER.warning("osd.traineddata not found; auto-rotation disabled")
            self.page_segmentation = PSM_AUTO
        LOGGER.info("Tesseract %s ready (languages: %s)", version, "+".join(languages))

    def _data_config(self) -> str:
        if self.tessdata_dir is None:
            return ""
        return f"--tessdata-dir {shlex.quote(str(self.tessdata_dir))}"

    def _config(self, dpi: int) -> str:
        options = [
            self._data_config(),
            f"--oem {OEM_LSTM_ONLY}",
            f"--psm {self.page_segmentation}",
            f"--dpi {dpi}",
        ]
        return " ".join(option for option in options if option)

    def mean_confidence(self, image: Image.Image, lang: str, config: str) -> float:
        data = pytesseract.image_to_data(image, lang=lang, config=config, output_type=Output.DICT)
        confidences = [float(value) for value in data.get("conf", []) if float(value) >= 0]
        if not confidences:
            return 0.0
        return sum(confidences) / len(confidences)

    def recognize(self, image: Image.Image, languages: Sequence[str], dpi: int) -> str:
        lang = "+".join(languages)
        config = self._config(dpi)
        try:
            if self.min_confidence is not None:
                confidence = self.mean_confidence(image, lang, config)
                if confidence < self.min_confidence:
                    LOGGER.info(
                        "Discarding OCR output: mean confidence %.1f below %.1f",
                        confidence,
                        self.min_confidence,
                    )
                    return ""
            return pytesseract.image_to_string(image, lang=lang, config=config)
        except (TesseractError, RuntimeError, OSError) as exc:
            raise PageRecognitionError(f"OCR failed: {exc}") from exc
