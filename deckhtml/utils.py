"""Cross-cutting helpers: constants, path utilities, manifest I/O."""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Optional

from .extraction import extract_html_from_reply
from .models import PageResult, PipelineResult

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

PAGE_RECORD_PATTERN = "model_output_page_{}.json"
PAGE_HTML_PATTERN = "html_output_page_{}.html"
SUMMARY_FILE_NAME = "processing_summary.json"
PDF_DIR_NAME = "pdf"
EXTRACTED_DIR_NAME = "extracted-html"

_PAGE_RECORD_RE = re.compile(r"^model_output_page_(\d+)\.json$")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")


# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------


def slugify(filename: str) -> str:
    """Filesystem-safe identifier from a source filename.

    >>> slugify("Sample Deck_2.pdf")
    'sample-deck-2'
    """
    stem = Path(filename).name.lower()
    if "." in stem:
        stem = stem.rsplit(".", 1)[0]
    return _NON_ALNUM_RE.sub("-", stem).strip("-")


def ensure_output_dirs(output_dir: Path, screenshot_dir: Path) -> tuple[Path, Path]:
    """Create and return (output_dir, screenshot_dir)."""
    output_dir.mkdir(parents=True, exist_ok=True)
    screenshot_dir.mkdir(parents=True, exist_ok=True)
    return output_dir, screenshot_dir


def read_side_data(path: Optional[Path]) -> str:
    """Side-data CSV as raw text; empty string when no path was given."""
    if path is None:
        return ""
    return path.read_text(encoding="utf-8")


# ---------------------------------------------------------------------------
# Manifest I/O
# ---------------------------------------------------------------------------


def _write_json(path: Path, data: Any) -> Path:
    with open(path, "w", encoding="utf-8", errors="replace") as fh:
        json.dump(data, fh, indent=2, ensure_ascii=False, default=str)
    return path


def page_record(result: PageResult, side_data: str) -> dict[str, Any]:
    """JSON record for one page. Failed pages keep a record too."""
    return {
        "page": result.index,
        "screenshotPath": str(result.page.image_path),
        "timestamp": result.reply.timestamp,
        "status": result.status,
        "error": result.error,
        "htmlPath": str(result.html_path) if result.html_path else None,
        "modelResponse": result.reply.body,
        "sideData": side_data,
    }


def save_page_record(output_dir: Path, result: PageResult, side_data: str) -> Path:
    """Write ``model_output_page_<n>.json`` and return its path."""
    path = output_dir / PAGE_RECORD_PATTERN.format(result.index)
    return _write_json(path, page_record(result, side_data))


def save_html(output_dir: Path, result: PageResult) -> Optional[Path]:
    """Write ``html_output_page_<n>.html`` when HTML was extracted."""
    if result.extracted.html is None:
        return None
    path = output_dir / PAGE_HTML_PATTERN.format(result.index)
    path.write_text(result.extracted.html, encoding="utf-8", errors="replace")
    result.html_path = path
    return path


def save_summary(output_dir: Path, result: PipelineResult) -> Path:
    """Write ``processing_summary.json`` and return its path."""
    return _write_json(output_dir / SUMMARY_FILE_NAME, result.to_summary())


# ---------------------------------------------------------------------------
# Re-extraction from a previous run
# ---------------------------------------------------------------------------


def extract_html_from_outputs(output_dir: Path) -> dict[int, Optional[Path]]:
    """Re-run extraction over saved page records in *output_dir*.

    Writes ``extracted-html/page_<n>_extracted.html`` for every record that
    yields HTML. Returns ``{page: path or None}``, empty when the directory
    or the records are missing.
    """
    if not output_dir.exists():
        log.warning("Output directory not found: %s", output_dir)
        return {}

    records: list[tuple[int, Path]] = []
    for path in output_dir.iterdir():
        match = _PAGE_RECORD_RE.match(path.name)
        if match:
            records.append((int(match.group(1)), path))
    if not records:
        log.warning("No page records found in %s", output_dir)
        return {}
    records.sort()
    log.info("Found %s page records in %s", len(records), output_dir)

    html_dir = output_dir / EXTRACTED_DIR_NAME
    html_dir.mkdir(parents=True, exist_ok=True)

    extracted: dict[int, Optional[Path]] = {}
    for page, path in records:
        try:
            with open(path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (ValueError, RecursionError, OSError) as exc:
            log.warning("Skipping unreadable record %s (%s)", path.name, exc)
            extracted[page] = None
            continue

        body = data.get("modelResponse") if isinstance(data, dict) else None
        html = extract_html_from_reply(body)
        if html is None:
            log.warning("Page %s: no HTML content found in %s", page, path.name)
            extracted[page] = None
            continue

        target = html_dir / f"page_{page}_extracted.html"
        target.write_text(html, encoding="utf-8", errors="replace")
        extracted[page] = target
        log.info("Page %s: extracted HTML -> %s", page, target)

    return extracted
