"""Slide-deck PDF -> vision model -> HTML -> PDF pipeline.

Public API -- all symbols that tests and external code import live here.
Internally the code is split across focused submodules; this file
re-exports the stable public surface so ``from deckhtml import X`` works.
"""

from .client import ModelClient, build_messages
from .config import (
    API_KEY_PLACEHOLDER,
    DEFAULT_MODEL,
    DEFAULT_PROMPT,
    ConfigError,
    PipelineConfig,
    write_env_template,
)
from .extraction import extract_html, extract_html_from_reply, unescape_output
from .models import (
    ExtractedDocument,
    ModelReply,
    ModelSuccess,
    Page,
    PageResult,
    PipelineResult,
    TransportFailure,
)
from .orchestrator import PipelineError, PipelineOrchestrator, Stage, run_pipeline
from .processing import process_all, process_page
from .rasterize import page_image_path, rasterize_pdf
from .rendering import HtmlPdfRenderer, merge_pdfs, page_pdf_path, render_pages
from .utils import (
    SUMMARY_FILE_NAME,
    ensure_output_dirs,
    extract_html_from_outputs,
    read_side_data,
    save_html,
    save_page_record,
    save_summary,
    slugify,
)

__all__ = [
    # Models
    "Page",
    "ModelSuccess",
    "TransportFailure",
    "ModelReply",
    "ExtractedDocument",
    "PageResult",
    "PipelineResult",
    # Config
    "API_KEY_PLACEHOLDER",
    "DEFAULT_MODEL",
    "DEFAULT_PROMPT",
    "ConfigError",
    "PipelineConfig",
    "write_env_template",
    # Extraction
    "extract_html",
    "extract_html_from_reply",
    "unescape_output",
    # Rasterization
    "page_image_path",
    "rasterize_pdf",
    # Model client
    "ModelClient",
    "build_messages",
    # Page processing
    "process_page",
    "process_all",
    # Rendering
    "HtmlPdfRenderer",
    "page_pdf_path",
    "render_pages",
    "merge_pdfs",
    # Utils
    "SUMMARY_FILE_NAME",
    "slugify",
    "ensure_output_dirs",
    "read_side_data",
    "save_html",
    "save_page_record",
    "save_summary",
    "extract_html_from_outputs",
    # Orchestration
    "Stage",
    "PipelineError",
    "PipelineOrchestrator",
    "run_pipeline",
]
