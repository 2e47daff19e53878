"""Recover an HTML document from a free-form vision-model reply.

Models answer in several shapes: a bare ``{"output": "..."}`` JSON object,
the same object inside a fenced ``json`` block, raw HTML, a fenced ``html``
block, or HTML buried in prose. ``extract_html`` tries each shape in turn
and never raises.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional

log = logging.getLogger(__name__)

_JSON_BLOCK_RE = re.compile(r"```json\s*([\s\S]*?)\s*```")
_HTML_BLOCK_RE = re.compile(r"```html\s*([\s\S]*?)\s*```")
_HTML_SPAN_RE = re.compile(r"<html[\s\S]*?</html>", re.IGNORECASE)
_ESCAPE_RE = re.compile(r'\\([\\ntr"])')

_ESCAPES = {
    "\\": "\\",
    "n": "\n",
    "t": "\t",
    "r": "\r",
    '"': '"',
}


def unescape_output(text: str) -> str:
    """Resolve ``\\\\``, ``\\n``, ``\\t``, ``\\r`` and ``\\"`` in one pass.

    Scanning left to right consumes each backslash exactly once, so an
    escaped backslash followed by ``n`` stays a literal backslash and ``n``
    instead of turning into a newline. Unknown escapes are left as-is.
    """
    return _ESCAPE_RE.sub(lambda m: _ESCAPES[m.group(1)], text)


def _output_from_json(candidate: str) -> Optional[str]:
    """Return the unescaped ``output`` field, or None if absent.

    Raises ``ValueError`` when *candidate* is not JSON at all, so callers can
    tell a parse failure apart from a JSON reply with no ``output``.
    """
    try:
        data = json.loads(candidate)
    except RecursionError as exc:
        raise ValueError("JSON nested too deeply to decode") from exc
    if isinstance(data, dict):
        output = data.get("output")
        if isinstance(output, str) and output:
            return unescape_output(output)
    return None


def _looks_like_html_document(text: str) -> bool:
    head = text.lstrip()[:15].lower()
    return head.startswith("<!doctype html") or head.startswith("<html")


def extract_html(raw_text: Optional[str]) -> Optional[str]:
    """Pull an HTML document out of *raw_text*; None when nothing is usable."""
    if not raw_text:
        return None

    try:
        html = _output_from_json(raw_text)
        if html is not None:
            log.debug("extract_html: matched JSON output field")
            return html
    except ValueError:
        match = _JSON_BLOCK_RE.search(raw_text)
        if match:
            try:
                html = _output_from_json(match.group(1).strip())
                if html is not None:
                    log.debug("extract_html: matched fenced json block")
                    return html
            except ValueError:
                log.debug("extract_html: fenced json block is not valid JSON")

    if _looks_like_html_document(raw_text):
        log.debug("extract_html: reply is a bare HTML document")
        return raw_text

    match = _HTML_BLOCK_RE.search(raw_text)
    if match:
        log.debug("extract_html: matched fenced html block")
        return match.group(1).strip()

    match = _HTML_SPAN_RE.search(raw_text)
    if match:
        log.debug("extract_html: matched <html> span")
        return match.group(0)

    log.debug("extract_html: no HTML found (preview=%r)", raw_text[:200])
    return None


def extract_html_from_reply(body: Any) -> Optional[str]:
    """Apply ``extract_html`` to a Messages API body (``content[0].text``)."""
    if not isinstance(body, dict):
        return None
    content = body.get("content")
    if not isinstance(content, list) or not content:
        return None
    first = content[0]
    text = first.get("text") if isinstance(first, dict) else None
    if not isinstance(text, str):
        return None
    return extract_html(text)
