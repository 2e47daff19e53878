"""Concurrent per-page model calls with per-page failure isolation."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Optional, Sequence

from .extraction import extract_html
from .models import (
    ExtractedDocument,
    ModelReply,
    ModelSuccess,
    Page,
    PageResult,
    TransportFailure,
)

log = logging.getLogger(__name__)


async def process_page(
    page: Page,
    client: Any,
    prompt: str,
    *,
    semaphore: Optional[asyncio.Semaphore] = None,
    request_delay: float = 0.0,
) -> PageResult:
    """Call the model for one page. Never raises."""
    t0 = time.perf_counter()
    try:
        if semaphore is None:
            outcome = await client.send(page.image_path, prompt)
        else:
            async with semaphore:
                outcome = await client.send(page.image_path, prompt)
                if request_delay > 0:
                    await asyncio.sleep(request_delay)
    except Exception as exc:
        log.exception("process_page: page %s raised", page.index)
        outcome = TransportFailure(f"{type(exc).__name__}: {exc}")

    reply = ModelReply(page_index=page.index, outcome=outcome)
    html = None
    if isinstance(outcome, ModelSuccess):
        try:
            html = extract_html(outcome.raw_text)
        except Exception:
            log.exception("process_page: extraction for page %s raised", page.index)
    result = PageResult(
        page=page,
        reply=reply,
        extracted=ExtractedDocument(page_index=page.index, html=html),
    )

    elapsed = time.perf_counter() - t0
    if result.status == "success":
        log.info("Page %s: HTML extracted (%s chars) in %.2fs", page.index, len(html), elapsed)
    elif result.status == "extraction_error":
        log.warning("Page %s: reply received but no HTML recoverable", page.index)
    else:
        log.error("Page %s: model call failed - %s", page.index, reply.error_message)
    return result


async def process_all(
    pages: Sequence[Page],
    client: Any,
    prompt: str,
    *,
    concurrency: int = 4,
    request_delay: float = 0.0,
    show_progress: bool = True,
) -> list[PageResult]:
    """Dispatch every page concurrently; return results sorted by ordinal.

    One page failing never affects the others, and completion order does not
    matter.
    """
    from tqdm import tqdm

    if not pages:
        return []

    semaphore = asyncio.Semaphore(max(1, concurrency))
    progress = tqdm(total=len(pages), desc="Model calls", disable=not show_progress)

    async def _run(page: Page) -> PageResult:
        result = await process_page(
            page,
            client,
            prompt,
            semaphore=semaphore,
            request_delay=request_delay,
        )
        progress.update(1)
        return result

    try:
        results = await asyncio.gather(*(_run(page) for page in pages))
    finally:
        progress.close()

    results = sorted(results, key=lambda r: r.index)
    failed = sum(1 for r in results if r.status != "success")
    log.info("Model processing: %s succeeded, %s failed", len(results) - failed, failed)
    return results
