"""Unified JSON parsing from LLM output.

Models rarely return bare JSON: answers come wrapped in markdown fences or
preceded by a sentence of chatter. Candidates are tried from most to least
literal and the first JSON object wins.
"""

import json
import re
from typing import Any, Dict, Iterable, Iterator

_FENCED = re.compile(r"```(?:json)?\s*\n(.*?)\n\s*```", re.DOTALL)
_BRACES = re.compile(r"\{.*\}", re.DOTALL)


def _candidates(text: str) -> Iterator[str]:
    yield text
    for match in _FENCED.finditer(text):
        yield match.group(1).strip()
    match = _BRACES.search(text)
    if match:
        yield match.group(0)


def parse_json_from_llm(raw: str, required: Iterable[str] = ()) -> Dict[str, Any]:
    """Parse the first JSON object found in LLM output.

    Args:
        raw: Raw LLM output string.
        required: Keys that must be present in the parsed object.

    Returns:
        Parsed JSON as dict.

    Raises:
        ValueError: If no JSON object is found, or a required key is missing.
    """
    if not raw or not raw.strip():
        raise ValueError("Empty LLM output")

    text = raw.strip()
    for candidate in _candidates(text):
        try:
            result = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if not isinstance(result, dict):
            continue
        missing = [key for key in required if key not in result]
        if missing:
            raise ValueError(f"LLM output is missing keys {missing}: {text[:200]}")
        return result

    raise ValueError(f"No valid JSON object found in LLM output: {text[:200]}")
