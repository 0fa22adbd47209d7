"""Extracts structured plans and responses from raw planner text.

The planner is a probabilistic text model: even in JSON mode it may wrap
output in markdown fences, surround it with prose, leave trailing commas
or emit raw control characters. Parsing escalates through a fixed chain
of attempts and fails closed once the chain is exhausted.
"""

import json
import re
from typing import Any, Iterator, Optional

from pydantic import ValidationError

from invocursor.errors import NoValidPlan, UnparsablePlanResponse
from invocursor.models.plan import Step, parse_plan
from invocursor.models.response import ConversationResponse, parse_response


_TRAILING_COMMA = re.compile(r",\s*([}\]])")
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_decoder = json.JSONDecoder()


def _first_array(text: str) -> Optional[list[Any]]:
    start = text.find("[")
    while start != -1:
        try:
            value, _ = _decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            start = text.find("[", start + 1)
            continue
        return value
    return None


def extract_plan(text: str) -> list[Step]:
    """Parses plain-plan output into steps.

    The first well-formed JSON array in ``text`` is taken as the plan;
    prose or fences around it are ignored.

    Raises:
        NoValidPlan: If no array is found or it is not a valid plan.
    """
    raw = _first_array(text)
    if raw is None:
        raise NoValidPlan()
    try:
        return parse_plan(raw)
    except ValidationError as e:
        raise NoValidPlan(f"Invalid plan: {e.error_count()} error(s)") from e


def first_balanced_object(text: str) -> Optional[str]:
    """Returns the first balanced ``{...}`` substring, honoring strings."""
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start : i + 1]
    return None


def repair_json_text(text: str) -> str:
    """Applies the only textual repairs the parser allows.

    Trailing commas before ``}`` or ``]`` are removed, then control
    characters 0x00-0x1F and 0x7F are stripped.
    """
    return _CONTROL_CHARS.sub("", _TRAILING_COMMA.sub(r"\1", text))


def _candidates(text: str) -> Iterator[str]:
    yield text
    extracted = first_balanced_object(text)
    if extracted is not None:
        yield extracted
    yield repair_json_text(extracted if extracted is not None else text)


def parse_conversation_response(text: str) -> ConversationResponse:
    """Parses smart-chat output into a typed response.

    Attempts, in order: the whole text, the first balanced object, and the
    repaired object. The first attempt that yields a valid response wins.

    Raises:
        UnparsablePlanResponse: If every attempt fails.
    """
    for candidate in _candidates(text):
        try:
            raw = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if not isinstance(raw, dict):
            continue
        try:
            return parse_response(raw)
        except ValidationError:
            continue
    raise UnparsablePlanResponse()
