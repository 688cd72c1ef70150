# funcgen/output_parser.py
from __future__ import annotations

import dataclasses
import json
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ValidationError

from .errors import MalformedResponse
from .schemas import StructuredError

FENCE = "```"


def to_jsonable(obj: Any) -> Any:
    """Convert enums, dataclasses and pydantic models into plain JSON-friendly values."""
    if isinstance(obj, Enum):
        return obj.name
    if obj is None or isinstance(obj, (str, int, float, bool)):
        return obj
    if isinstance(obj, BaseModel):
        return obj.model_dump(mode="json")
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: to_jsonable(getattr(obj, f.name)) for f in dataclasses.fields(obj)}
    if isinstance(obj, dict):
        return {str(k): to_jsonable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [to_jsonable(v) for v in obj]
    if isinstance(obj, (set, frozenset)):
        return [to_jsonable(v) for v in sorted(obj, key=repr)]
    return str(obj)


def as_json(obj: Any) -> str:
    return json.dumps(to_jsonable(obj), ensure_ascii=False, separators=(",", ":"))


def is_valid_json(text: str) -> bool:
    try:
        json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return False
    return True


def normalize_response(raw: Optional[str]) -> str:
    """
    Recover a JSON document from a raw backend reply.

    Strips one surrounding markdown fence (the opening line with its language
    tag and the closing fence line), then accepts the text if it parses as JSON,
    or if it does so once a single pair of outer double quotes is removed.
    Raises MalformedResponse otherwise.
    """
    if raw is None:
        raise MalformedResponse("Backend returned no response", None)

    text = raw.strip()
    if not text:
        raise MalformedResponse("Backend returned an empty response", raw)

    if text.startswith(FENCE) and text.endswith(FENCE):
        first_newline = text.find("\n")
        last_newline = text.rfind("\n")
        if first_newline == -1 or first_newline >= last_newline:
            raise MalformedResponse(f"Invalid Markdown-wrapped response format: {text}", raw)
        text = text[first_newline + 1 : last_newline].strip()

    if is_valid_json(text):
        return text

    # Stringified JSON, e.g. "[1, 2, 3]" with the quotes left on.
    if len(text) >= 2 and text.startswith('"') and text.endswith('"'):
        unquoted = text[1:-1]
        if is_valid_json(unquoted):
            return unquoted

    raise MalformedResponse(f"Invalid response format: {text}", raw)


def parse_error_response(normalized: str) -> Optional[StructuredError]:
    """
    Return the structured error carried by a normalized response, or None when
    the response is a candidate payload. Only {"error": true, "message": "..."}
    counts as an error; {"error": false, ...} and partial objects do not.
    """
    try:
        data = json.loads(normalized)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict) or "error" not in data or "message" not in data:
        return None
    try:
        parsed = StructuredError.model_validate(data, strict=True)
    except ValidationError:
        return None
    return parsed if parsed.error else None
