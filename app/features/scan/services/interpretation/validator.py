"""
Validation of raw AI replies.

Replies are untrusted: anything that is not a JSON object satisfying the
Interpretation schema is rejected and the caller falls back to heuristics.
"""
import json
import logging
import re
from typing import Optional

from pydantic import ValidationError

from app.features.scan.schemas.scan import Interpretation

logger = logging.getLogger(__name__)

FENCE_PATTERN = re.compile(r"^```(?:json)?\s*\n?(.*?)\n?\s*```$", re.DOTALL)


def strip_markdown_fences(text: str) -> str:
    stripped = text.strip()
    match = FENCE_PATTERN.match(stripped)
    if match:
        return match.group(1).strip()
    return stripped


def parse_interpretation(raw: Optional[str]) -> Optional[Interpretation]:
    if not raw or not raw.strip():
        return None

    text = strip_markdown_fences(raw)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        logger.warning(f"AI reply is not valid JSON: {e}")
        return None

    if not isinstance(data, dict):
        logger.warning(f"AI reply is a {type(data).__name__}, expected an object")
        return None

    # Strict: "0.95" is not a confidence and "no" is not a boolean
    try:
        return Interpretation.model_validate_json(text, strict=True)
    except ValidationError as e:
        logger.warning(f"AI reply failed schema validation: {e.error_count()} errors")
        return None
