"""Shared data models for the pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Union


def utc_now() -> str:
    """ISO-8601 timestamp in UTC."""
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class Page:
    """One rasterized PDF page. ``index`` is the 1-based page ordinal."""

    index: int
    image_path: Path


@dataclass(frozen=True)
class ModelSuccess:
    """Transport-level success: the model answered with a 2xx reply."""

    raw_text: str
    body: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TransportFailure:
    """Timeout, network error, non-2xx status or unreadable input."""

    message: str


ModelOutcome = Union[ModelSuccess, TransportFailure]


@dataclass(frozen=True)
class ModelReply:
    """Outcome of the model call for a single page."""

    page_index: int
    outcome: ModelOutcome
    timestamp: str = field(default_factory=utc_now)

    @property
    def succeeded(self) -> bool:
        return isinstance(self.outcome, ModelSuccess)

    @property
    def raw_text(self) -> str:
        if isinstance(self.outcome, ModelSuccess):
            return self.outcome.raw_text
        return ""

    @property
    def body(self) -> Optional[dict[str, Any]]:
        if isinstance(self.outcome, ModelSuccess):
            return self.outcome.body
        return None

    @property
    def error_message(self) -> Optional[str]:
        if isinstance(self.outcome, TransportFailure):
            return self.outcome.message
        return None


@dataclass(frozen=True)
class ExtractedDocument:
    """HTML recovered from a reply; ``html is None`` means nothing usable."""

    page_index: int
    html: Optional[str] = None


@dataclass
class PageResult:
    """Everything the pipeline knows about one page, joined on ordinal."""

    page: Page
    reply: ModelReply
    extracted: ExtractedDocument
    html_path: Optional[Path] = None
    pdf_path: Optional[Path] = None
    render_error: Optional[str] = None

    @property
    def index(self) -> int:
        return self.page.index

    @property
    def status(self) -> str:
        if not self.reply.succeeded:
            return "transport_error"
        if self.extracted.html is None:
            return "extraction_error"
        return "success"

    @property
    def error(self) -> Optional[str]:
        if not self.reply.succeeded:
            return self.reply.error_message
        if self.extracted.html is None:
            return "No HTML recoverable from model reply"
        return None


@dataclass
class PipelineResult:
    """Tracks a whole run. Pages are kept sorted by ordinal."""

    source_pdf: Path
    slug: str
    side_data_path: Optional[Path] = None
    pages: list[PageResult] = field(default_factory=list)
    output_files: list[Path] = field(default_factory=list)
    screenshot_paths: list[Path] = field(default_factory=list)
    combined_pdf: Optional[Path] = None
    started_at: str = field(default_factory=utc_now)
    finished_at: Optional[str] = None

    @property
    def total_pages(self) -> int:
        return len(self.pages)

    @property
    def succeeded(self) -> list[PageResult]:
        return [p for p in self.pages if p.status == "success"]

    @property
    def transport_failures(self) -> list[PageResult]:
        return [p for p in self.pages if p.status == "transport_error"]

    @property
    def extraction_failures(self) -> list[PageResult]:
        return [p for p in self.pages if p.status == "extraction_error"]

    @property
    def render_failures(self) -> list[PageResult]:
        return [p for p in self.pages if p.render_error is not None]

    def to_summary(self) -> dict[str, Any]:
        """Top-level summary record written as ``processing_summary.json``."""
        return {
            "processedAt": self.finished_at or utc_now(),
            "startedAt": self.started_at,
            "sourcePdfPath": str(self.source_pdf),
            "sideDataPath": str(self.side_data_path) if self.side_data_path else None,
            "slug": self.slug,
            "totalPages": self.total_pages,
            "succeededPages": [p.index for p in self.succeeded],
            "transportFailures": [p.index for p in self.transport_failures],
            "extractionFailures": [p.index for p in self.extraction_failures],
            "renderFailures": [p.index for p in self.render_failures],
            "combinedPdfPath": str(self.combined_pdf) if self.combined_pdf else None,
            "outputFiles": [str(p) for p in self.output_files],
            "screenshotPaths": [str(p) for p in self.screenshot_paths],
        }
