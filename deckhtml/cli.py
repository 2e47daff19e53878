"""CLI entrypoint for the PDF -> screenshots -> vision model -> HTML -> PDF pipeline.

Usage:
    python -m deckhtml run "samples/sample deck_2.pdf"
    python -m deckhtml run deck.pdf --csv data.csv --output-dir ./output
    python -m deckhtml run deck.pdf --render-pdf --concurrency 2
    python -m deckhtml extract --output-dir ./output
    python -m deckhtml setup
"""

from __future__ import annotations

import argparse
import logging
from logging.handlers import RotatingFileHandler
import sys
import time
from pathlib import Path

log = logging.getLogger(__name__)

LOG_FILE_NAME = "deckhtml.log"
_DATEFMT = "%Y-%m-%d %H:%M:%S"
_CONSOLE_FMT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DETAILED_FMT = (
    "%(asctime)s | %(levelname)-8s | %(name)s | "
    "%(funcName)s | %(filename)s:%(lineno)d | %(message)s"
)
# chatty third-party loggers
_QUIET_LOGGERS = ("httpx", "httpcore", "anthropic", "PIL", "pdf2image", "asyncio")


def _setup_logging(*, verbose: bool, detailed_logging: bool) -> None:
    """Console logging only; the log file is attached once the output dir is known."""
    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    root_level = logging.DEBUG if verbose else logging.INFO
    root_logger.setLevel(root_level)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(root_level)
    console_handler.setFormatter(
        logging.Formatter(_DETAILED_FMT if detailed_logging else _CONSOLE_FMT, _DATEFMT)
    )
    root_logger.addHandler(console_handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def _attach_log_file(args: argparse.Namespace, output_dir: Path) -> Path | None:
    """Add a rotating DEBUG log under *output_dir* (or at ``--log-file``).

    Nothing is attached unless ``--log-file`` or ``--detailed-logging`` was given.
    """
    log_file = args.log_file
    if log_file is None and args.detailed_logging:
        log_file = output_dir / LOG_FILE_NAME
    if log_file is None:
        return None

    log_file.parent.mkdir(parents=True, exist_ok=True)
    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=20 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(_DETAILED_FMT, _DATEFMT))
    logging.getLogger().addHandler(file_handler)
    log.debug("Logging to %s", log_file)
    return log_file


def _add_logging_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--detailed-logging",
        action="store_true",
        help="Enable detailed logging (thread, file/line, rotating log file)",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help=(
            "Optional log file path "
            "(default: <output-dir>/deckhtml.log in detailed mode)"
        ),
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="deckhtml",
        description="Slide-deck PDF -> vision model -> HTML (-> combined PDF)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Process one PDF end to end")
    run.add_argument("pdf", type=Path, help="Source PDF")
    run.add_argument(
        "--csv",
        dest="side_data",
        type=Path,
        default=None,
        help="Side-data CSV copied into every page record",
    )
    run.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        help="Output directory (default: $OUTPUT_DIR or output/)",
    )
    run.add_argument(
        "--screenshot-dir",
        type=Path,
        default=None,
        help="Page screenshot directory (default: $SCREENSHOT_DIR or <output-dir>/screenshots)",
    )
    run.add_argument(
        "--render-pdf",
        action="store_true",
        help="Re-render extracted HTML to PDF and merge into <slug>-combined.pdf",
    )
    run.add_argument("--model", default=None, help="Model id (default: $CLAUDE_MODEL)")
    run.add_argument("--max-tokens", type=int, default=None)
    run.add_argument("--temperature", type=float, default=None)
    run.add_argument(
        "--prompt-file",
        type=Path,
        default=None,
        help="Read the prompt text from this file",
    )
    run.add_argument("--density", type=int, default=None, help="Rasterization DPI")
    run.add_argument("--width", type=int, default=None, help="Screenshot width")
    run.add_argument("--height", type=int, default=None, help="Screenshot height")
    run.add_argument(
        "--format",
        dest="image_format",
        choices=["png", "jpeg"],
        default=None,
        help="Screenshot format (default: png)",
    )
    run.add_argument(
        "--timeout",
        dest="request_timeout",
        type=float,
        default=None,
        help="Per-request timeout in seconds (default: 60)",
    )
    run.add_argument(
        "--concurrency",
        dest="concurrency_limit",
        type=int,
        default=None,
        help="Maximum concurrent model calls (default: 4)",
    )
    run.add_argument(
        "--request-delay",
        type=float,
        default=None,
        help="Seconds to wait after each model call (rate limiting)",
    )
    run.add_argument(
        "--no-progress",
        action="store_true",
        help="Disable the progress bar",
    )
    _add_logging_args(run)

    extract = sub.add_parser(
        "extract", help="Re-extract HTML from the page records of a previous run"
    )
    extract.add_argument(
        "--output-dir",
        type=Path,
        default=Path("output"),
        help="Directory holding model_output_page_<n>.json (default: output/)",
    )
    _add_logging_args(extract)

    setup = sub.add_parser("setup", help="Create .env and output directories")
    setup.add_argument("--env-file", type=Path, default=Path(".env"))
    setup.add_argument("--template", type=Path, default=Path("env.example"))
    setup.add_argument("--output-dir", type=Path, default=Path("output"))
    setup.add_argument(
        "--screenshot-dir",
        type=Path,
        default=None,
        help="Page screenshot directory (default: <output-dir>/screenshots)",
    )
    _add_logging_args(setup)

    return parser.parse_args(argv)


def _log_summary(result, overall_t0: float) -> None:
    log.info("=" * 60)
    log.info("PIPELINE COMPLETE")
    log.info(f"  Source PDF:          {result.source_pdf}")
    log.info(f"  Pages:               {result.total_pages}")
    log.info(f"  Succeeded:           {len(result.succeeded)}")
    log.info(f"  Transport failures:  {len(result.transport_failures)}")
    log.info(f"  Extraction failures: {len(result.extraction_failures)}")
    log.info(f"  Render failures:     {len(result.render_failures)}")
    log.info(f"  Files written:       {len(result.output_files)}")
    if result.combined_pdf:
        log.info(f"  Combined PDF:        {result.combined_pdf}")
    log.info(f"  Total runtime:       {time.perf_counter() - overall_t0:.1f}s")
    problems = [p for p in result.pages if p.error or p.render_error]
    if problems:
        log.warning("Failed pages:")
        for p in problems:
            log.warning(f"  - page {p.index} [{p.status}]: {(p.error or p.render_error)[:200]}")


def _run(args: argparse.Namespace) -> int:
    from .config import ConfigError, PipelineConfig
    from .orchestrator import PipelineError, run_pipeline

    overall_t0 = time.perf_counter()
    prompt = None
    if args.prompt_file is not None:
        try:
            prompt = args.prompt_file.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            log.error("Could not read prompt file %s: %s", args.prompt_file, exc)
            return 1

    try:
        config = PipelineConfig.from_env(
            args.pdf,
            output_dir=args.output_dir,
            screenshot_dir=args.screenshot_dir,
            side_data_path=args.side_data,
            render_pdf=args.render_pdf or None,
            model=args.model,
            max_tokens=args.max_tokens,
            temperature=args.temperature,
            prompt=prompt,
            density=args.density,
            width=args.width,
            height=args.height,
            image_format=args.image_format,
            request_timeout=args.request_timeout,
            concurrency_limit=args.concurrency_limit,
            request_delay=args.request_delay,
        )
    except ConfigError as exc:
        log.error("Configuration error: %s", exc)
        return 1

    try:
        _attach_log_file(args, config.output_dir)
    except OSError as exc:
        log.error("Could not open log file: %s", exc)
        return 1

    log.info(
        "Processing %s -> %s (concurrency=%s render_pdf=%s)",
        config.pdf_path,
        config.output_dir,
        config.concurrency_limit,
        config.render_pdf,
    )
    try:
        result = run_pipeline(config, show_progress=not args.no_progress)
    except PipelineError as exc:
        log.error("Processing failed: %s", exc)
        return 1

    _log_summary(result, overall_t0)
    return 0


def _extract(args: argparse.Namespace) -> int:
    from .utils import EXTRACTED_DIR_NAME, extract_html_from_outputs

    if args.output_dir.is_dir():
        _attach_log_file(args, args.output_dir)
    extracted = extract_html_from_outputs(args.output_dir)
    if not extracted:
        log.error("No page records found in %s. Run the pipeline first.", args.output_dir)
        return 1
    written = sum(1 for path in extracted.values() if path is not None)
    log.info(
        "HTML extraction complete: %s/%s pages -> %s",
        written,
        len(extracted),
        args.output_dir / EXTRACTED_DIR_NAME,
    )
    return 0


def _setup(args: argparse.Namespace) -> int:
    from .config import write_env_template

    write_env_template(args.env_file, args.template)
    screenshot_dir = args.screenshot_dir or args.output_dir / "screenshots"
    for directory in (args.output_dir, screenshot_dir):
        if not directory.exists():
            directory.mkdir(parents=True, exist_ok=True)
            log.info("Created directory: %s", directory)
    _attach_log_file(args, args.output_dir)
    log.info("Next steps:")
    log.info("  1. Edit %s and add your Claude API key", args.env_file)
    log.info("  2. Get your API key from: https://console.anthropic.com/")
    log.info("  3. Run: python -m deckhtml run <deck.pdf>")
    return 0


def main(argv: list[str] | None = None) -> None:
    """Run the selected subcommand and exit with its status."""
    args = parse_args(argv)
    _setup_logging(verbose=args.verbose, detailed_logging=args.detailed_logging)

    handlers = {"run": _run, "extract": _extract, "setup": _setup}
    status = handlers[args.command](args)
    if status:
        sys.exit(status)
