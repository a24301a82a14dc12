"""
Model output parsing.

Vision models do not always honour the declared response format: the
payload can come wrapped in a Markdown fence or surrounded by a sentence
of commentary. `extract_json` digs the JSON value out of either.
"""

import json
import logging
import re
from typing import Any, Optional

logger = logging.getLogger("mathocr.ai_parser")

_FENCE_RE = re.compile(r"^```[\w-]*\s*(.*?)\s*```$", re.DOTALL)

_decoder = json.JSONDecoder()


def extract_json(response_text: Optional[str]) -> Any:
    """
    Extract the first JSON array/object from model output.

    Args:
        response_text: Raw message content

    Returns:
        Parsed JSON value, or None when the response is empty

    Raises:
        ValueError: Text is present but holds no parseable JSON
    """
    if response_text is None:
        return None

    text = response_text.strip()
    fenced = _FENCE_RE.match(text)
    if fenced:
        text = fenced.group(1)
    if not text:
        return None

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    # First position where a complete array or object decodes
    for match in re.finditer(r"[\[{]", text):
        try:
            value, _ = _decoder.raw_decode(text, match.start())
        except json.JSONDecodeError:
            continue
        return value

    logger.debug(f"No JSON found in response: {text[:200]}")
    raise ValueError("Could not parse JSON from model response")
