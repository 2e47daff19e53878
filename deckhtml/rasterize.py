"""PDF -> page screenshots via pdf2image (poppler)."""

from __future__ import annotations

import logging
import time
from pathlib import Path

from .models import Page

log = logging.getLogger(__name__)

PAGE_IMAGE_PATTERN = "page_{:04d}.{}"

_PIL_FORMATS = {"png": "PNG", "jpg": "JPEG", "jpeg": "JPEG"}


def page_image_path(output_dir: Path, index: int, image_format: str = "png") -> Path:
    """Deterministic screenshot path for page *index* (1-based)."""
    return output_dir / PAGE_IMAGE_PATTERN.format(index, image_format.lower())


def rasterize_pdf(
    pdf_path: Path,
    output_dir: Path,
    *,
    density: int = 100,
    width: int = 800,
    height: int = 600,
    image_format: str = "png",
) -> list[Page]:
    """Render every page of *pdf_path* to an image file in *output_dir*.

    Returns pages ordered by ordinal. Errors from poppler propagate; an empty
    document returns an empty list and the caller decides what that means.
    """
    from pdf2image import convert_from_path

    fmt = image_format.lower()
    if fmt not in _PIL_FORMATS:
        raise ValueError(f"Unsupported image format: {image_format}")

    output_dir.mkdir(parents=True, exist_ok=True)

    t0 = time.perf_counter()
    log.info(
        "rasterize_pdf: converting %s (dpi=%s size=%sx%s fmt=%s)",
        pdf_path,
        density,
        width,
        height,
        fmt,
    )
    images = convert_from_path(str(pdf_path), dpi=density, size=(width, height))

    pages: list[Page] = []
    for index, img in enumerate(images, start=1):
        path = page_image_path(output_dir, index, fmt)
        if _PIL_FORMATS[fmt] == "JPEG":
            img = img.convert("RGB")
        img.save(path, _PIL_FORMATS[fmt])
        pages.append(Page(index=index, image_path=path))

    log.info(
        "rasterize_pdf: %s pages written to %s in %.2fs",
        len(pages),
        output_dir,
        time.perf_counter() - t0,
    )
    return pages
