"""Run the whole pipeline: rasterize -> model -> persist -> render -> merge.

Stages are strictly linear. A fatal problem (bad config, missing PDF, no
pages, unwritable output) raises ``PipelineError`` and leaves the
orchestrator in ``Stage.FAILED``; a failing page never does.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import time
from typing import Any, Callable, Optional

from .config import ConfigError, PipelineConfig
from .models import PipelineResult, utc_now
from .processing import process_all
from .rasterize import rasterize_pdf
from .rendering import HtmlPdfRenderer, merge_pdfs, render_pages
from .utils import (
    PDF_DIR_NAME,
    ensure_output_dirs,
    read_side_data,
    save_html,
    save_page_record,
    save_summary,
    slugify,
)

log = logging.getLogger(__name__)


class Stage(enum.Enum):
    IDLE = "idle"
    RASTERIZING = "rasterizing"
    MODEL_PROCESSING = "model_processing"
    PERSISTING = "persisting"
    RENDERING = "rendering"
    MERGING = "merging"
    DONE = "done"
    FAILED = "failed"


class PipelineError(RuntimeError):
    """Unrecoverable error; the run stops at ``stage``."""

    def __init__(self, stage: Stage, message: str) -> None:
        super().__init__(f"[{stage.value}] {message}")
        self.stage = stage


class PipelineOrchestrator:
    """Drives one run for one PDF.

    Collaborators are injectable so tests can replace the rasterizer, the
    model client and the HTML renderer.
    """

    def __init__(
        self,
        config: PipelineConfig,
        *,
        client: Any = None,
        rasterizer: Callable[..., list] = rasterize_pdf,
        renderer_factory: Optional[Callable[[], Any]] = None,
        show_progress: bool = True,
    ) -> None:
        self.config = config
        self.client = client
        self.rasterizer = rasterizer
        self.renderer_factory = renderer_factory or (
            lambda: HtmlPdfRenderer(
                width=config.render_width,
                height=config.render_height,
                timeout_ms=config.render_timeout_ms,
            )
        )
        self.show_progress = show_progress
        self.stage = Stage.IDLE

    def _enter(self, stage: Stage) -> None:
        log.debug("Stage %s -> %s", self.stage.value, stage.value)
        self.stage = stage

    def _fail(self, message: str, exc: Optional[BaseException] = None) -> PipelineError:
        failed_at = self.stage
        self.stage = Stage.FAILED
        log.error("Pipeline failed during %s: %s", failed_at.value, message)
        error = PipelineError(failed_at, message)
        if exc is not None:
            error.__cause__ = exc
        return error

    def _write_summary(self, result: PipelineResult) -> None:
        result.finished_at = utc_now()
        try:
            path = save_summary(self.config.output_dir, result)
        except (OSError, ValueError) as exc:
            raise self._fail(f"Could not write summary: {exc}", exc) from exc
        log.debug("Summary written: %s", path)

    def _make_client(self) -> Any:
        from .client import ModelClient

        return ModelClient(
            self.config.api_key or "",
            model=self.config.model,
            max_tokens=self.config.max_tokens,
            temperature=self.config.temperature,
            timeout=self.config.request_timeout,
        )

    async def run(self) -> PipelineResult:
        cfg = self.config
        overall_t0 = time.perf_counter()

        try:
            cfg.validate()
        except ConfigError as exc:
            raise self._fail(str(exc), exc) from exc

        if not cfg.pdf_path.is_file():
            raise self._fail(f"Source PDF not found: {cfg.pdf_path}")

        try:
            ensure_output_dirs(cfg.output_dir, cfg.screenshot_dir)
            side_data = read_side_data(cfg.side_data_path)
        except OSError as exc:
            raise self._fail(str(exc), exc) from exc

        result = PipelineResult(
            source_pdf=cfg.pdf_path,
            slug=slugify(cfg.pdf_path.name),
            side_data_path=cfg.side_data_path,
        )

        # --- Rasterize ---
        self._enter(Stage.RASTERIZING)
        t0 = time.perf_counter()
        try:
            pages = self.rasterizer(
                cfg.pdf_path,
                cfg.screenshot_dir,
                density=cfg.density,
                width=cfg.width,
                height=cfg.height,
                image_format=cfg.image_format,
            )
        except Exception as exc:
            raise self._fail(f"Rasterization failed: {exc}", exc) from exc
        if not pages:
            raise self._fail(f"No pages produced from {cfg.pdf_path}")
        pages = sorted(pages, key=lambda p: p.index)
        result.screenshot_paths = [p.image_path for p in pages]
        log.info("Rasterized %s pages in %.2fs", len(pages), time.perf_counter() - t0)

        # --- Model calls ---
        self._enter(Stage.MODEL_PROCESSING)
        t0 = time.perf_counter()
        client = self.client
        owns_client = client is None
        if owns_client:
            client = self._make_client()
        try:
            result.pages = await process_all(
                pages,
                client,
                cfg.prompt,
                concurrency=cfg.concurrency_limit,
                request_delay=cfg.request_delay,
                show_progress=self.show_progress,
            )
        finally:
            if owns_client:
                await client.close()
        log.info("Model stage completed in %.2fs", time.perf_counter() - t0)

        # --- Persist ---
        self._enter(Stage.PERSISTING)
        try:
            for page_result in result.pages:
                html_path = save_html(cfg.output_dir, page_result)
                record_path = save_page_record(cfg.output_dir, page_result, side_data)
                result.output_files.append(record_path)
                if html_path is not None:
                    result.output_files.append(html_path)
        except (OSError, ValueError) as exc:
            raise self._fail(f"Could not write page outputs: {exc}", exc) from exc
        self._write_summary(result)

        # --- Render + merge (optional) ---
        if cfg.render_pdf:
            self._enter(Stage.RENDERING)
            t0 = time.perf_counter()
            pdf_dir = cfg.output_dir / PDF_DIR_NAME
            try:
                async with self.renderer_factory() as renderer:
                    page_pdfs = await render_pages(
                        renderer,
                        result.pages,
                        pdf_dir,
                        concurrency=cfg.concurrency_limit,
                    )
            except Exception as exc:
                raise self._fail(f"Rendering engine failed: {exc}", exc) from exc
            result.output_files.extend(page_pdfs)
            log.info(
                "Rendered %s/%s pages to PDF in %.2fs",
                len(page_pdfs),
                len(result.pages),
                time.perf_counter() - t0,
            )

            self._enter(Stage.MERGING)
            try:
                combined = merge_pdfs(
                    page_pdfs, cfg.output_dir / f"{result.slug}-combined.pdf"
                )
            except Exception as exc:
                raise self._fail(f"Merging page PDFs failed: {exc}", exc) from exc
            if combined is not None:
                result.combined_pdf = combined
                result.output_files.append(combined)
            self._write_summary(result)

        self._enter(Stage.DONE)
        log.info("Run finished in %.2fs", time.perf_counter() - overall_t0)
        return result


def run_pipeline(config: PipelineConfig, **kwargs: Any) -> PipelineResult:
    """Synchronous entry point around ``PipelineOrchestrator.run``."""
    return asyncio.run(PipelineOrchestrator(config, **kwargs).run())
