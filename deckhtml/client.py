"""Vision-model boundary: one page image + prompt in, tagged outcome out."""

from __future__ import annotations

import base64
import logging
import time
from pathlib import Path
from typing import Any, Optional, Union

import anthropic

from .models import ModelOutcome, ModelSuccess, TransportFailure

log = logging.getLogger(__name__)

_MEDIA_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
}


def build_messages(
    prompt: str, image_b64: str, media_type: str = "image/png"
) -> list[dict[str, Any]]:
    """Single user turn: prompt text followed by the base64 page image."""
    return [
        {
            "role": "user",
            "content": [
                {"type": "text", "text": prompt},
                {
                    "type": "image",
                    "source": {
                        "type": "base64",
                        "media_type": media_type,
                        "data": image_b64,
                    },
                },
            ],
        }
    ]


def _first_text(message: Any) -> str:
    content = getattr(message, "content", None) or []
    if not content:
        return ""
    text = getattr(content[0], "text", None)
    return text if isinstance(text, str) else ""


def _dump(message: Any) -> dict[str, Any]:
    if hasattr(message, "model_dump"):
        return message.model_dump(mode="json")
    return dict(message)


class ModelClient:
    """Thin wrapper over ``anthropic.AsyncAnthropic`` that never raises.

    Retries are disabled: a timeout or error is reported once, as that
    page's failure.
    """

    def __init__(
        self,
        api_key: str,
        *,
        model: str,
        max_tokens: int = 4096,
        temperature: float = 0.0,
        timeout: float = 60.0,
        client: Optional[Any] = None,
    ) -> None:
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.timeout = timeout
        self._client = client or anthropic.AsyncAnthropic(
            api_key=api_key,
            timeout=timeout,
            max_retries=0,
        )

    async def send(
        self,
        image: Union[Path, bytes],
        prompt: str,
        media_type: Optional[str] = None,
    ) -> ModelOutcome:
        """Send one image and *prompt*; return ``ModelSuccess`` or ``TransportFailure``."""
        try:
            if isinstance(image, Path):
                media_type = media_type or _MEDIA_TYPES.get(
                    image.suffix.lower(), "image/png"
                )
                image_bytes = image.read_bytes()
            else:
                image_bytes = image
        except OSError as exc:
            return TransportFailure(f"Could not read page image: {exc}")

        image_b64 = base64.b64encode(image_bytes).decode("utf-8")
        messages = build_messages(prompt, image_b64, media_type or "image/png")

        t0 = time.perf_counter()
        try:
            message = await self._client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                messages=messages,
            )
        except anthropic.APITimeoutError:
            return TransportFailure(
                f"Request timed out after {self.timeout:.0f}s"
            )
        except anthropic.APIStatusError as exc:
            return TransportFailure(f"API error {exc.status_code}: {exc.message}")
        except anthropic.APIConnectionError as exc:
            return TransportFailure(f"Connection error: {exc}")
        except anthropic.AnthropicError as exc:
            return TransportFailure(f"{type(exc).__name__}: {exc}")

        log.debug("ModelClient.send: reply in %.2fs", time.perf_counter() - t0)
        return ModelSuccess(raw_text=_first_text(message), body=_dump(message))

    async def close(self) -> None:
        close = getattr(self._client, "close", None)
        if close is not None:
            await close()
