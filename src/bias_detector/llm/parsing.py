"""
Model output parsing helpers.

``extract_json`` isolates the JSON payload from free-form model text,
``strict_parse`` decodes it without any leniency and ``repair_json`` applies
syntactic repair for the common ways models break JSON.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

import json_repair
from bias_detector.common.exceptions import BiasDetectorError

logger = logging.getLogger(__name__)

_LEADING_FENCE = re.compile(r"^```(json)?", re.IGNORECASE)
_TRAILING_FENCE = re.compile(r"```$", re.IGNORECASE)
_LEADING_JSON_TAG = re.compile(r"^<json>", re.IGNORECASE)
_TRAILING_JSON_TAG = re.compile(r"</json>$", re.IGNORECASE)
_OBJECT_SPAN = re.compile(r"\{.*\}", re.DOTALL)


class ParseError(BiasDetectorError):
    """Model output could not be decoded as JSON."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        kwargs.setdefault("error_code", "PARSE_ERROR")
        super().__init__(message, **kwargs)


class JSONRepairError(ParseError):
    """Syntactic repair produced nothing usable."""

    def __init__(self, message: str = "JSON repair produced no object", **kwargs: Any) -> None:
        kwargs.setdefault("error_code", "JSON_REPAIR_FAILED")
        super().__init__(message, **kwargs)


def extract_json(raw_text: str | None) -> str:
    """
    Isolate the JSON-looking span of a model answer.

    Strips leading/trailing code fences and ``<json>`` wrappers until none
    remain, then returns the greedy span from the first ``{`` to the last
    ``}``. Falls back to the cleaned text when no braces are present. Never
    raises.
    """
    if not raw_text:
        return ""

    text = raw_text.strip()
    previous = None
    while text != previous:
        previous = text
        text = _LEADING_FENCE.sub("", text, count=1)
        text = _TRAILING_FENCE.sub("", text, count=1).strip()
        text = _LEADING_JSON_TAG.sub("", text, count=1)
        text = _TRAILING_JSON_TAG.sub("", text, count=1).strip()

    match = _OBJECT_SPAN.search(text)
    return match.group(0) if match else text


def strict_parse(text: str) -> Any:
    """Decode ``text`` as standard JSON, raising ``ParseError`` on any defect."""
    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError) as exc:
        raise ParseError(f"Invalid JSON: {exc}") from exc


def repair_json(text: str) -> str:
    """
    Repair syntactically broken JSON.

    Handles unquoted keys, single quotes, trailing commas, unescaped
    characters and truncated braces. The result is guaranteed to decode to
    a JSON object; anything else raises ``JSONRepairError``.
    """
    if not text or not text.strip():
        raise JSONRepairError("Nothing to repair")

    try:
        repaired = json_repair.repair_json(text, ensure_ascii=False)
    except Exception as exc:
        raise JSONRepairError(f"JSON repair failed: {exc}") from exc

    if not isinstance(repaired, str) or not repaired.strip():
        raise JSONRepairError()

    try:
        decoded = json.loads(repaired)
    except json.JSONDecodeError as exc:
        raise JSONRepairError(f"Repaired text is still invalid: {exc}") from exc

    if not isinstance(decoded, dict):
        raise JSONRepairError()

    logger.debug("Repaired model JSON (%d -> %d chars)", len(text), len(repaired))
    return repaired
