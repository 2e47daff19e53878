"""Shared fixtures for the deckhtml test suite.

No network, poppler or browser is needed: the model client, rasterizer and
HTML renderer are replaced by the small fakes defined here.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path

import pytest

from deckhtml import ModelSuccess, Page, TransportFailure

# ---------------------------------------------------------------------------
# Configure verbose logging for test debugging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.DEBUG,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stderr,
    force=True,
)
log = logging.getLogger("conftest")

SAMPLE_HTML = (
    "<!DOCTYPE html>\n<html>\n<head>\n"
    '<script src="https://cdn.tailwindcss.com"></script>\n'
    "</head>\n<body class=\"aspect-video\">\n"
    '  <h1 class="text-4xl">Slide {n}</h1>\n'
    "</body>\n</html>"
)


def sample_html(n: int) -> str:
    return SAMPLE_HTML.format(n=n)


def json_reply(html: str) -> str:
    """Model reply in the requested ``{"output": ...}`` shape."""
    return json.dumps({"output": html})


class FakeClient:
    """Stands in for ``ModelClient``; behaviour is keyed by page ordinal.

    ``replies`` maps a page index to either a reply string, a
    ``TransportFailure`` or an exception instance to raise. ``delays`` maps
    page index to seconds to sleep before answering.
    """

    def __init__(self, replies=None, delays=None, default=None):
        self.replies = replies or {}
        self.delays = delays or {}
        self.default = default
        self.calls: list[int] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    @staticmethod
    def page_index(image_path: Path) -> int:
        return int(image_path.stem.rsplit("_", 1)[-1])

    async def send(self, image, prompt, media_type=None):
        index = self.page_index(image)
        self.calls.append(index)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(index, 0))
            reply = self.replies.get(index, self.default)
            if reply is None:
                reply = json_reply(sample_html(index))
            if isinstance(reply, BaseException):
                raise reply
            if isinstance(reply, TransportFailure):
                return reply
            body = {"content": [{"type": "text", "text": reply}], "role": "assistant"}
            return ModelSuccess(raw_text=reply, body=body)
        finally:
            self.in_flight -= 1

    async def close(self):
        self.closed = True


class FakeRenderer:
    """Async-context-manager stand-in for ``HtmlPdfRenderer``.

    Writes a real one-page PDF with PyMuPDF so merging can be checked.
    """

    def __init__(self, fail_on=()):
        self.fail_on = set(fail_on)
        self.rendered: list[Path] = []
        self.entered = 0
        self.exited = 0

    async def __aenter__(self):
        self.entered += 1
        return self

    async def __aexit__(self, *exc_info):
        self.exited += 1

    async def render(self, html, pdf_path):
        import fitz

        index = int(pdf_path.stem.rsplit("_", 1)[-1])
        if index in self.fail_on:
            raise RuntimeError(f"render failed for page {index}")
        doc = fitz.open()
        page = doc.new_page(width=1280, height=720)
        page.insert_text((72, 72), f"page {index}")
        doc.save(str(pdf_path))
        doc.close()
        self.rendered.append(pdf_path)


def write_pages(directory: Path, count: int) -> list[Page]:
    directory.mkdir(parents=True, exist_ok=True)
    pages = []
    for index in range(1, count + 1):
        path = directory / f"page_{index:04d}.png"
        path.write_bytes(b"\x89PNG fake " + str(index).encode())
        pages.append(Page(index=index, image_path=path))
    return pages


@pytest.fixture
def tmp_output(tmp_path: Path) -> Path:
    """Return a temporary output directory for a single test."""
    return tmp_path / "output"


@pytest.fixture
def make_pages(tmp_path: Path):
    """Factory: ``make_pages(n)`` writes n fake screenshots and returns Pages."""

    def _make(count: int) -> list[Page]:
        return write_pages(tmp_path / "screens", count)

    return _make


@pytest.fixture
def fake_rasterizer():
    """Factory: ``fake_rasterizer(n)`` returns a rasterizer producing n pages."""

    def _factory(count: int):
        calls = []

        def _rasterize(pdf_path, output_dir, **kwargs):
            calls.append((pdf_path, output_dir, kwargs))
            return write_pages(output_dir, count)

        _rasterize.calls = calls
        return _rasterize

    return _factory


@pytest.fixture
def source_pdf(tmp_path: Path) -> Path:
    """A placeholder PDF file; the fake rasterizer never parses it."""
    path = tmp_path / "Sample Deck_2.pdf"
    path.write_bytes(b"%PDF-1.4 sample")
    return path

