"""Run configuration: one explicit struct handed to the orchestrator."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

log = logging.getLogger(__name__)

API_KEY_PLACEHOLDER = "your-claude-api-key-here"
DEFAULT_MODEL = "claude-sonnet-4-20250514"
DEFAULT_PROMPT = (
    "Create an HTML container section of 16:9 ratio that looks exactly like "
    "the image attached here. It should be a single HTML file using "
    "cdn.tailwindcss.com and google font cdn. Replace all moustache variables "
    'with dummy data. Output should be strictly json: "output":"your response"\n'
)

ENV_TEMPLATE = f"""\
# Anthropic API key used for the vision model calls
CLAUDE_API_KEY={API_KEY_PLACEHOLDER}

# Where page screenshots and model outputs are written
SCREENSHOT_DIR=./output/screenshots
OUTPUT_DIR=./output

# Optional overrides
# CLAUDE_MODEL={DEFAULT_MODEL}
# REQUEST_TIMEOUT=60
# CONCURRENCY_LIMIT=4
"""


class ConfigError(ValueError):
    """Configuration that makes a run impossible (e.g. no API key)."""


@dataclass
class PipelineConfig:
    """Everything a run needs. Built once, never mutated mid-run."""

    pdf_path: Path
    api_key: Optional[str] = None
    output_dir: Path = Path("output")
    screenshot_dir: Optional[Path] = None
    side_data_path: Optional[Path] = None

    # Rasterization
    density: int = 100
    width: int = 800
    height: int = 600
    image_format: str = "png"

    # Model calls
    model: str = DEFAULT_MODEL
    max_tokens: int = 4096
    temperature: float = 0.0
    prompt: str = DEFAULT_PROMPT
    request_timeout: float = 60.0
    concurrency_limit: int = 4
    request_delay: float = 0.0

    # Optional HTML -> PDF stage
    render_pdf: bool = False
    render_width: str = "1280px"
    render_height: str = "720px"
    render_timeout_ms: int = 30000

    def __post_init__(self) -> None:
        self.pdf_path = Path(self.pdf_path)
        self.output_dir = Path(self.output_dir)
        if self.screenshot_dir is None:
            self.screenshot_dir = self.output_dir / "screenshots"
        else:
            self.screenshot_dir = Path(self.screenshot_dir)
        if self.side_data_path is not None:
            self.side_data_path = Path(self.side_data_path)

    @classmethod
    def from_env(cls, pdf_path: Path, **overrides: Any) -> "PipelineConfig":
        """Load ``.env`` and the process environment, then apply *overrides*.

        Overrides whose value is None are ignored so CLI flags that were not
        given fall back to the environment.
        """
        from dotenv import find_dotenv, load_dotenv

        load_dotenv(find_dotenv(usecwd=True))

        values: dict[str, Any] = {
            "api_key": os.environ.get("CLAUDE_API_KEY")
            or os.environ.get("ANTHROPIC_API_KEY"),
        }
        if os.environ.get("OUTPUT_DIR"):
            values["output_dir"] = Path(os.environ["OUTPUT_DIR"])
        if os.environ.get("SCREENSHOT_DIR"):
            values["screenshot_dir"] = Path(os.environ["SCREENSHOT_DIR"])
        if os.environ.get("CLAUDE_MODEL"):
            values["model"] = os.environ["CLAUDE_MODEL"]
        if os.environ.get("REQUEST_TIMEOUT"):
            values["request_timeout"] = _env_number(
                "REQUEST_TIMEOUT", float, os.environ["REQUEST_TIMEOUT"]
            )
        if os.environ.get("CONCURRENCY_LIMIT"):
            values["concurrency_limit"] = _env_number(
                "CONCURRENCY_LIMIT", int, os.environ["CONCURRENCY_LIMIT"]
            )

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(pdf_path=pdf_path, **values)

    def validate(self) -> None:
        """Raise ``ConfigError`` for settings no page work can survive."""
        if not self.api_key or self.api_key == API_KEY_PLACEHOLDER:
            raise ConfigError(
                "Claude API key not found. Please set CLAUDE_API_KEY in your .env file"
            )
        if self.concurrency_limit < 1:
            raise ConfigError(
                f"concurrency_limit must be >= 1 (got {self.concurrency_limit})"
            )
        if self.request_timeout <= 0:
            raise ConfigError(
                f"request_timeout must be positive (got {self.request_timeout})"
            )
        if self.request_delay < 0:
            raise ConfigError(
                f"request_delay must be >= 0 (got {self.request_delay})"
            )


def _env_number(name: str, cast, raw: str):
    try:
        return cast(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number (got {raw!r})") from exc


def write_env_template(env_path: Path, template_path: Optional[Path] = None) -> bool:
    """Create *env_path* from *template_path* (or the built-in template).

    Returns False without touching anything when *env_path* already exists.
    """
    if env_path.exists():
        log.info(".env file already exists: %s", env_path)
        return False
    if template_path is not None and template_path.exists():
        content = template_path.read_text(encoding="utf-8")
    else:
        content = ENV_TEMPLATE
    env_path.write_text(content, encoding="utf-8")
    log.info(".env file created: %s", env_path)
    return True
