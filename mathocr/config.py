"""
Configuration.

Values come from the process environment, then a `.env` file at the
project root (never overriding variables that are already set), then
the defaults below.

Usage:
    from mathocr.config import get_config
    config = get_config()
    config.ai.model        # AI_MODEL, default gemini-2.5-flash
    config.crop.padding    # CROP_PADDING_PX, default 10
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional, TypeVar

T = TypeVar("T")

PROJECT_ROOT = Path(__file__).resolve().parent.parent

GEMINI_OPENAI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _load_dotenv(dotenv_path: Optional[Path] = None) -> None:
    """
    Read KEY=VALUE lines into os.environ.

    Blank lines, comments and lines without '=' are skipped; surrounding
    quotes are removed. Variables that already have a non-empty value win.
    """
    path = dotenv_path or PROJECT_ROOT / ".env"
    if not path.is_file():
        return

    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        key = key.strip()
        if not sep or not key:
            continue
        if not os.environ.get(key):
            os.environ[key] = value.strip().strip("'\"")


_load_dotenv()


def _env(key: str, default: T, cast: Callable[[str], T] = str) -> T:
    """Typed environment lookup; unset, empty or unparseable values give `default`."""
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    try:
        return cast(raw)
    except ValueError:
        return default


def _env_flag(key: str, default: bool = False) -> bool:
    raw = os.getenv(key, "").strip().lower()
    if raw in _TRUE:
        return True
    if raw in _FALSE:
        return False
    return default


def _env_field(key: str, default: T, cast: Callable[[str], T] = str) -> T:
    """Dataclass field read from the environment when the instance is created."""
    return field(default_factory=lambda: _env(key, default, cast))


def _api_key() -> str:
    # AI_API_KEY first, then the names Gemini and generic setups use
    for key in ("AI_API_KEY", "GEMINI_API_KEY", "API_KEY"):
        value = _env(key, "")
        if value:
            return value
    return ""


@dataclass
class AIConfig:
    """Vision model used to classify page blocks."""
    provider: str = _env_field("AI_PROVIDER", "Gemini")
    api_key: str = field(default_factory=_api_key)
    model: str = _env_field("AI_MODEL", "gemini-2.5-flash")
    base_url: str = _env_field("AI_BASE_URL", "")
    timeout_sec: int = _env_field("AI_TIMEOUT_SEC", 120, int)
    temperature: float = _env_field("AI_TEMPERATURE", 0.1, float)
    max_tokens: int = _env_field("AI_MAX_TOKENS", 8192, int)
    # json_schema, json_object, or empty for free text
    response_format: str = field(
        default_factory=lambda: _env("AI_RESPONSE_FORMAT", "json_schema").lower()
    )

    # Optional pricing for cost estimates
    input_cost_per_1m_usd: Optional[float] = _env_field("AI_INPUT_COST_PER_1M_USD", None, float)
    output_cost_per_1m_usd: Optional[float] = _env_field("AI_OUTPUT_COST_PER_1M_USD", None, float)

    @property
    def has_pricing(self) -> bool:
        return self.input_cost_per_1m_usd is not None or self.output_cost_per_1m_usd is not None

    def get_normalized_base_url(self) -> str:
        """
        Base URL for the OpenAI SDK.

        Gemini without an explicit URL maps to its OpenAI-compatible
        endpoint. A full ".../chat/completions" URL is cut back to its base.
        An empty result means the SDK default.
        """
        url = self.base_url.strip().rstrip("/")
        if not url:
            return GEMINI_OPENAI_BASE_URL if self.provider.lower() == "gemini" else ""
        url = url.removesuffix("/chat/completions")
        return f"{url}/"

    def estimate_cost(self, input_tokens: int, output_tokens: int) -> Optional[float]:
        """Cost in USD for the token counts, or None without pricing."""
        if not self.has_pricing:
            return None
        return (
            input_tokens * (self.input_cost_per_1m_usd or 0.0)
            + output_tokens * (self.output_cost_per_1m_usd or 0.0)
        ) / 1_000_000


@dataclass
class RenderConfig:
    # Oversampling over the PDF's native 72 dpi page size
    scale: float = _env_field("RENDER_SCALE", 3.0, float)
    jpeg_quality: int = _env_field("RENDER_JPEG_QUALITY", 95, int)


@dataclass
class CropConfig:
    # Pixels added on every side of a figure box
    padding: int = _env_field("CROP_PADDING_PX", 10, int)


@dataclass
class RetryConfig:
    """
    Page retry policy of the document processor.

    0 retries (the default) aborts the document on the first failed page.
    """
    max_retries: int = _env_field("PAGE_MAX_RETRIES", 0, int)
    retry_delay_sec: float = _env_field("PAGE_RETRY_DELAY_SEC", 2.0, float)


@dataclass
class ExportConfig:
    """Word export layout."""
    title: str = _env_field("EXPORT_TITLE", "Math OCR Export")
    # 400 x 300 px at 96 dpi
    figure_width_pt: float = _env_field("EXPORT_FIGURE_WIDTH_PT", 300.0, float)
    figure_height_pt: float = _env_field("EXPORT_FIGURE_HEIGHT_PT", 225.0, float)
    font_size_pt: float = _env_field("EXPORT_FONT_SIZE_PT", 12.0, float)


@dataclass
class Config:
    """
    Application configuration.

    Relative OUTPUT_DIR / LOG_DIR values resolve against `base_dir`.
    """

    base_dir: Path = PROJECT_ROOT
    output_dir: Optional[Path] = None
    logs_dir: Optional[Path] = None

    debug: bool = field(default_factory=lambda: _env_flag("DEBUG"))
    log_to_file: bool = field(default_factory=lambda: _env_flag("LOG_TO_FILE"))

    ai: AIConfig = field(default_factory=AIConfig)
    render: RenderConfig = field(default_factory=RenderConfig)
    crop: CropConfig = field(default_factory=CropConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    export: ExportConfig = field(default_factory=ExportConfig)

    def __post_init__(self):
        if self.output_dir is None:
            self.output_dir = self.base_dir / _env("OUTPUT_DIR", "output")
        if self.logs_dir is None:
            self.logs_dir = self.base_dir / _env("LOG_DIR", "logs")

    @property
    def dump_raw_responses(self) -> bool:
        """Log raw model responses (always on in debug mode)."""
        return self.debug or _env_flag("DUMP_RAW_RESPONSES")

    def get_docx_path(self, stem: str) -> Path:
        return Path(self.output_dir) / f"{stem}.docx"

    def get_json_path(self, stem: str) -> Path:
        return Path(self.output_dir) / f"{stem}.json"


_config: Optional[Config] = None


def get_config() -> Config:
    """Process-wide configuration, built on first use."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def reset_config() -> None:
    """Drop the cached configuration so the next get_config() re-reads the environment."""
    global _config
    _config = None
