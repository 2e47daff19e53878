"""HTML -> single-page PDF (Playwright Chromium) and PDF merging (PyMuPDF)."""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import Any, Optional, Sequence

from .models import PageResult

log = logging.getLogger(__name__)

PAGE_PDF_PATTERN = "page_{:04d}.pdf"


def page_pdf_path(output_dir: Path, index: int) -> Path:
    return output_dir / PAGE_PDF_PATTERN.format(index)


class HtmlPdfRenderer:
    """One shared Chromium instance; every ``render`` call gets its own page.

    Use as an async context manager::

        async with HtmlPdfRenderer() as renderer:
            await renderer.render(html, Path("page_0001.pdf"))
    """

    def __init__(
        self,
        *,
        width: str = "1280px",
        height: str = "720px",
        timeout_ms: int = 30000,
    ) -> None:
        self.width = width
        self.height = height
        self.timeout_ms = timeout_ms
        self._playwright: Any = None
        self._browser: Any = None

    async def __aenter__(self) -> "HtmlPdfRenderer":
        from playwright.async_api import async_playwright

        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch()
        log.info("HtmlPdfRenderer: chromium launched")
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None

    async def render(self, html: str, pdf_path: Path) -> None:
        """Render *html* to *pdf_path*. Raises on failure."""
        if self._browser is None:
            raise RuntimeError("HtmlPdfRenderer used outside 'async with'")
        page = await self._browser.new_page()
        try:
            # wait for the Tailwind and Google Fonts CDNs
            await page.set_content(
                html, wait_until="networkidle", timeout=self.timeout_ms
            )
            await page.emulate_media(media="screen")
            await page.pdf(
                path=str(pdf_path),
                width=self.width,
                height=self.height,
                print_background=True,
                page_ranges="1",
            )
        finally:
            await page.close()


async def render_pages(
    renderer: Any,
    results: Sequence[PageResult],
    output_dir: Path,
    *,
    concurrency: int = 4,
) -> list[Path]:
    """Render each page that has HTML; isolate failures per page.

    Sets ``pdf_path`` or ``render_error`` on each result and returns the
    written PDFs sorted by page ordinal.
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def _render(result: PageResult) -> None:
        html = result.extracted.html
        if html is None:
            return
        target = page_pdf_path(output_dir, result.index)
        t0 = time.perf_counter()
        try:
            async with semaphore:
                await renderer.render(html, target)
        except Exception as exc:
            result.render_error = f"{type(exc).__name__}: {exc}"
            log.error("Page %s: PDF render failed - %s", result.index, result.render_error)
            return
        result.pdf_path = target
        log.info("Page %s: rendered %s in %.2fs", result.index, target.name, time.perf_counter() - t0)

    await asyncio.gather(*(_render(r) for r in results))

    ordered = sorted(results, key=lambda r: r.index)
    return [r.pdf_path for r in ordered if r.pdf_path is not None]


def merge_pdfs(pdf_paths: Sequence[Path], output_path: Path) -> Optional[Path]:
    """Concatenate *pdf_paths* in the given order into *output_path*.

    Returns None (and writes nothing) when *pdf_paths* is empty.
    """
    import fitz

    if not pdf_paths:
        log.warning("merge_pdfs: nothing to merge")
        return None

    merged = fitz.open()
    try:
        for path in pdf_paths:
            with fitz.open(str(path)) as doc:
                merged.insert_pdf(doc)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        merged.save(str(output_path))
        log.info(
            "merge_pdfs: %s pages from %s files -> %s",
            merged.page_count,
            len(pdf_paths),
            output_path,
        )
    finally:
        merged.close()
    return output_path
