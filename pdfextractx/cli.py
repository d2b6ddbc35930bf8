"""
Command-line interface for pdfextractx.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import BinaryIO, Optional, Sequence, TextIO

import click
from rich.console import Console
from rich.markup import escape

from pdfextractx import __version__
from pdfextractx.backends import PyMuPDFBackend, TesseractBackend
from pdfextractx.exceptions import PDFExtractError
from pdfextractx.input import InputSource
from pdfextractx.output import OutputFormatter
from pdfextractx.pipeline import ExtractionPipeline
from pdfextractx.timeout import Deadline
from pdfextractx.types import ExtractionMode, RunConfig, XfaMode, parse_languages
from pdfextractx.utils import configure_logging
from pdfextractx.xfa import DEFAULT_PRUNE_RULES, PruneRules

USAGE_EXIT_CODE = 1
INTERNAL_EXIT_CODE = 5

console = Console(stderr=True)


def report_error(error: PDFExtractError) -> None:
    console.print(f"[bold red]✗ Error:[/bold red] {escape(error.message)}")


def run_extraction(
    config: RunConfig,
    input_path: Optional[Path],
    *,
    deadline: Optional[Deadline] = None,
    prune_rules_path: Optional[Path] = None,
    stdin: Optional[BinaryIO] = None,
    stdout: Optional[TextIO] = None,
) -> int:
    """Run one extraction and return the process exit code."""
    deadline = deadline or Deadline(config.timeout)
    try:
        config.validate()
        prune_rules = (
            PruneRules.from_json_file(prune_rules_path) if prune_rules_path else DEFAULT_PRUNE_RULES
        )
        recognizer = None
        if config.ocr_enabled:
            recognizer = TesseractBackend(
                config.languages,
                tessdata_dir=config.tessdata_dir,
                min_confidence=config.min_confidence,
            )
        if input_path is not None:
            source = InputSource.from_path(input_path)
        else:
            source = InputSource.from_stream(stdin or sys.stdin.buffer)
    except PDFExtractError as exc:
        report_error(exc)
        return exc.exit_code

    with source:
        pipeline = ExtractionPipeline(
            config,
            PyMuPDFBackend(),
            OutputFormatter(stdout or sys.stdout),
            recognizer=recognizer,
            deadline=deadline,
            prune_rules=prune_rules,
        )
        outcome = pipeline.run(source.source)

    if outcome.error is not None:
        report_error(outcome.error)
    return outcome.exit_code


@click.command(
    name="pdfextractx",
    context_settings={"auto_envvar_prefix": "PDFEXTRACTX", "help_option_names": ["-h", "--help"]},
)
@click.version_option(version=__version__, prog_name="pdfextractx")
@click.argument("input_file", required=False, type=click.Path(dir_okay=False, path_type=Path))
@click.option(
    "--mode", "-m",
    type=click.Choice([mode.value for mode in ExtractionMode], case_sensitive=False),
    default=ExtractionMode.HYBRID.value,
    show_default=True,
    help="Per-page extraction: embedded text, OCR, both, or none",
)
@click.option("--no-text", is_flag=True, help="Disable embedded-text extraction")
@click.option("--no-ocr", is_flag=True, help="Disable OCR")
@click.option("--lang", "-l", default="eng", show_default=True, help="Tesseract language code(s), e.g. 'eng+deu'")
@click.option("--dpi", "-d", default=300, show_default=True, type=int, help="Rasterization DPI for OCR")
@click.option("--range", "-r", "page_range", default="all", show_default=True, help="Pages to extract, e.g. '1-3,5,10'")
@click.option(
    "--xfa", "-x",
    type=click.Choice([mode.value for mode in XfaMode], case_sensitive=False),
    default=XfaMode.CLEAN.value,
    show_default=True,
    help="XFA form data: skip, raw XML, full JSON, or cleaned field values",
)
@click.option("--timeout", "-t", default=0.0, show_default=True, type=float, help="Global time budget in seconds (0 disables)")
@click.option("--password", default=None, help="Password for encrypted PDFs")
@click.option("--tessdata-dir", default=None, type=click.Path(file_okay=False), help="Directory with Tesseract language data")
@click.option("--min-confidence", default=None, type=float, help="Drop OCR output below this mean word confidence (0-100)")
@click.option(
    "--prune-rules",
    default=None,
    type=click.Path(dir_okay=False, path_type=Path),
    help="JSON file overriding the XFA clean-mode pruning tables",
)
@click.option("--verbose", "-v", count=True, help="Log progress to stderr (-vv for debug)")
def cli(
    input_file,
    mode,
    no_text,
    no_ocr,
    lang,
    dpi,
    page_range,
    xfa,
    timeout,
    password,
    tessdata_dir,
    min_confidence,
    prune_rules,
    verbose,
):
    """
    Extract text, OCR output and XFA form data from a PDF or image.

    Reads INPUT_FILE, or standard input when omitted, and writes delimited
    sections to standard output.

    Examples:

        pdfextractx scan.pdf

        pdfextractx form.pdf --mode text --xfa clean -r 1-3

        cat scan.png | pdfextractx --mode ocr -l eng+deu
    """
    deadline = Deadline(timeout or None)
    configure_logging(verbose)

    selected = ExtractionMode(mode.lower())
    config = RunConfig(
        mode=ExtractionMode.from_flags(
            text=selected.text_enabled and not no_text,
            ocr=selected.ocr_enabled and not no_ocr,
        ),
        languages=parse_languages(lang),
        dpi=dpi,
        page_range=page_range,
        xfa_mode=XfaMode(xfa.lower()),
        timeout=timeout or None,
        verbosity=verbose,
        password=password,
        tessdata_dir=tessdata_dir,
        min_confidence=min_confidence,
    )
    return run_extraction(config, input_file, deadline=deadline, prune_rules_path=prune_rules)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the CLI and return its exit code instead of exiting."""
    try:
        result = cli.main(args=list(argv) if argv is not None else None, standalone_mode=False)
    except click.exceptions.Abort:
        console.print("[bold yellow]Aborted.[/bold yellow]")
        return USAGE_EXIT_CODE
    except click.ClickException as exc:
        exc.show(file=sys.stderr)
        return USAGE_EXIT_CODE
    except Exception as exc:
        console.print(f"[bold red]✗ Unexpected error:[/bold red] {escape(str(exc))}")
        return INTERNAL_EXIT_CODE
    return result if isinstance(result, int) else 0


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
