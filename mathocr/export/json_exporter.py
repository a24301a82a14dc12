"""
JSON export of page results.

Figures are embedded as PNG data URLs so the file is self-contained.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional, Sequence

from ..exceptions import ExportError
from ..models import PageResult, ProcessingStats


def results_to_dict(
    results: Sequence[PageResult],
    stats: Optional[ProcessingStats] = None,
) -> dict[str, Any]:
    data: dict[str, Any] = {
        "pages": [page.to_dict() for page in results],
    }
    if stats is not None:
        data["stats"] = stats.to_dict()
    return data


def export_json(
    results: Sequence[PageResult],
    path: Path,
    stats: Optional[ProcessingStats] = None,
) -> Path:
    """
    Save page results (and optionally run statistics) as JSON.

    Returns:
        Path to saved file
    """
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            json.dumps(results_to_dict(results, stats), ensure_ascii=False, indent=2),
            encoding="utf-8",
        )
    except OSError as e:
        raise ExportError(f"Failed to write JSON: {e}", file_path=str(path), export_format="json") from e
    return path
