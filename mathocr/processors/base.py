"""
Processor base class and the per-run processing context.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

from ..config import Config
from ..exceptions import MathOCRError
from ..logger import get_logger
from ..models import AIUsage, ProcessingStats
from ..utils.timing import Timer, format_duration


@dataclass
class ProcessingContext:
    """
    State shared by the processors working on one document.

    A context belongs to exactly one run; create a new one per input.
    """

    config: Config
    input_name: Optional[str] = None
    stats: ProcessingStats = field(default_factory=ProcessingStats)

    # 1-based page currently in flight, and progress through the document
    current_page: Optional[int] = None
    total_pages: int = 0
    pages_processed: int = 0

    @property
    def ai_usage(self) -> AIUsage:
        return self.stats.ai_usage


def _format_extra(kwargs: dict[str, Any]) -> str:
    return " ".join(f"{k}={v}" for k, v in kwargs.items())


class BaseProcessor(ABC):
    """
    Common ground of the pipeline stages.

    Subclasses set `name` (also their logger name) and implement
    `process`. `run` wraps `process` with prerequisite checks, timing and
    error logging; errors always propagate to the caller.
    """

    name: str = "BaseProcessor"

    def __init__(self, context: ProcessingContext):
        self.context = context
        self.config = context.config
        self.logger = get_logger(self.name)
        self._timer = Timer()

    @property
    def debug_mode(self) -> bool:
        return self.config.debug

    def log_debug(self, message: str, **kwargs: Any) -> None:
        """Log only in debug mode; extras are appended as key=value."""
        if self.debug_mode:
            self.logger.debug(f"{message} {_format_extra(kwargs)}".strip())

    def log_info(self, message: str, **kwargs: Any) -> None:
        self.logger.info(f"{message} {_format_extra(kwargs)}".strip())

    def log_warning(self, message: str, **kwargs: Any) -> None:
        self.logger.warning(f"{message} {_format_extra(kwargs)}".strip())

    def log_error(self, message: str, error: Optional[Exception] = None) -> None:
        if error is None:
            self.logger.error(message)
        else:
            # Tracebacks only in debug mode
            self.logger.error(f"{message}: {error}", exc_info=self.debug_mode)

    @abstractmethod
    def process(self, *args: Any, **kwargs: Any) -> Any:
        """Do the stage's work."""

    def validate(self) -> None:
        """
        Check prerequisites before `run` calls `process`.

        Raise a MathOCRError subclass when they are not met.
        """

    def run(self, *args: Any, **kwargs: Any) -> Any:
        """Validate, then process with timing and error logging."""
        self._timer = Timer()
        self.log_info(f"Starting {self.name}")

        try:
            self.validate()
            result = self.process(*args, **kwargs)
        except MathOCRError as e:
            self.log_error(f"{self.name} failed after {format_duration(self._timer.elapsed)}", error=e)
            raise
        except Exception as e:
            self.log_error(
                f"{self.name} crashed after {format_duration(self._timer.elapsed)}", error=e
            )
            raise

        self.log_info(f"Completed {self.name}", duration=format_duration(self._timer.elapsed))
        return result
