from __future__ import annotations

import json
import re

from prtrace_core.errors import LlmResponseParseError

_FENCED_JSON_RE = re.compile(r"```json\s*(.*?)\s*```", re.IGNORECASE | re.DOTALL)


def _try_parse(text: str):
    try:
        return json.loads(text.strip())
    except (json.JSONDecodeError, ValueError):
        return None


def parse_json_from_llm(raw: str):
    """Parse an LLM response as JSON, directly or from a ```json fenced block.

    Backticks inside JSON string values are left untouched; only the outer
    fence is removed.
    """
    direct = _try_parse(raw or "")
    if direct is not None:
        return direct

    fenced = _FENCED_JSON_RE.search(raw or "")
    if fenced:
        parsed = _try_parse(fenced.group(1))
        if parsed is not None:
            return parsed

    raise LlmResponseParseError("LLM response is not valid JSON.")
