"""
Run statistics: per-page stage timings, block counts and model usage.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, List, Optional


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


@dataclass
class AIUsage:
    """Token usage of the classifier calls of one run."""
    provider: str = ""
    model: str = ""
    calls_count: int = 0
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    total_cost_usd: float = 0.0

    def add_call(self, input_tokens: int, output_tokens: int, cost_usd: Optional[float] = None) -> None:
        self.calls_count += 1
        self.total_input_tokens += input_tokens
        self.total_output_tokens += output_tokens
        self.total_cost_usd += cost_usd or 0.0

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["total_cost_usd"] = round(self.total_cost_usd, 6)
        return data


@dataclass
class PageTiming:
    """What happened to one page."""
    page_number: int = 0

    blocks: int = 0
    figures: int = 0
    crops: int = 0
    failed_crops: int = 0  # figures left without an image

    # >1 only when the retry policy kicked in
    attempts: int = 1

    rasterize_time_sec: float = 0.0
    classify_time_sec: float = 0.0
    crop_time_sec: float = 0.0
    total_time_sec: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ProcessingStats:
    """
    Statistics of one document run.

    Counts and stage times are derived from `page_timings`, so a failed
    run still reports the pages that finished before the failure.
    Status moves pending -> processing -> completed | failed | aborted.
    """

    input_name: str = ""
    input_kind: str = ""  # pdf or image

    status: str = "pending"
    error_message: str = ""
    started_at: str = ""
    completed_at: str = ""

    total_pages: int = 0
    total_time_sec: float = 0.0

    ai_usage: AIUsage = field(default_factory=AIUsage)
    page_timings: List[PageTiming] = field(default_factory=list)

    def start(self) -> None:
        self.status = "processing"
        self.started_at = _utc_now()

    def complete(self) -> None:
        self.status = "completed"
        self.completed_at = _utc_now()

    def fail(self, error: str, status: str = "failed") -> None:
        self.status = status
        self.error_message = error
        self.completed_at = _utc_now()

    def add_page_timing(self, page_timing: PageTiming) -> None:
        self.page_timings.append(page_timing)

    def _sum(self, attr: str) -> Any:
        return sum(getattr(pt, attr) for pt in self.page_timings)

    @property
    def pages_processed(self) -> int:
        return len(self.page_timings)

    @property
    def total_blocks(self) -> int:
        return self._sum("blocks")

    @property
    def total_figures(self) -> int:
        return self._sum("figures")

    @property
    def failed_crops(self) -> int:
        return self._sum("failed_crops")

    @property
    def avg_time_per_page_sec(self) -> float:
        if not self.page_timings:
            return 0.0
        return self.total_time_sec / len(self.page_timings)

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready form, used by the JSON export."""
        return {
            "input_name": self.input_name,
            "input_kind": self.input_kind,
            "status": self.status,
            "error_message": self.error_message,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "counts": {
                "total_pages": self.total_pages,
                "pages_processed": self.pages_processed,
                "total_blocks": self.total_blocks,
                "total_figures": self.total_figures,
                "failed_crops": self.failed_crops,
            },
            "timing": {
                stage: round(self._sum(stage), 4)
                for stage in ("rasterize_time_sec", "classify_time_sec", "crop_time_sec")
            } | {
                "total_time_sec": round(self.total_time_sec, 4),
                "avg_time_per_page_sec": round(self.avg_time_per_page_sec, 4),
            },
            "ai_usage": self.ai_usage.to_dict(),
            "page_timings": [pt.to_dict() for pt in self.page_timings],
        }

    def summary_str(self) -> str:
        """Multi-line summary printed at the end of a CLI run."""
        lines = [
            f"{self.input_name or 'input'}: {self.status}",
            f"  pages      {self.pages_processed}/{self.total_pages}",
            f"  blocks     {self.total_blocks} ({self.total_figures} figures, {self.failed_crops} without image)",
            f"  time       {self.total_time_sec:.1f}s",
        ]
        usage = self.ai_usage
        if usage.calls_count:
            tokens = f"{usage.total_input_tokens} in / {usage.total_output_tokens} out"
            lines.append(f"  model      {usage.calls_count} calls, {tokens} tokens")
            if usage.total_cost_usd:
                lines.append(f"  cost       ${usage.total_cost_usd:.4f}")
        if self.error_message:
            lines.append(f"  error      {self.error_message}")
        return "\n".join(lines)
