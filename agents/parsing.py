"""Strict decoding of the model's free-text reply.

The reply is untrusted: the first JSON object found in it must match the
``AgentDecision`` shape exactly, otherwise there is no decision.
"""

from __future__ import annotations

import json

from pydantic import ValidationError

from models.decision import AgentDecision


class DecisionParseError(ValueError):
    """The reply held no JSON object, or the object had the wrong shape."""


def extract_first_json_object(text: str) -> dict:
    """Return the first decodable JSON object embedded in *text*.

    Scans each ``{`` in order and decodes from there, so prose, markdown
    fences and trailing commentary around the object are ignored.
    """
    decoder = json.JSONDecoder()
    idx = text.find("{")
    while idx != -1:
        try:
            obj, _ = decoder.raw_decode(text, idx)
        except json.JSONDecodeError:
            idx = text.find("{", idx + 1)
            continue
        if isinstance(obj, dict):
            return obj
        idx = text.find("{", idx + 1)
    raise DecisionParseError("No JSON object found in model reply.")


def parse_decision(text: str) -> AgentDecision:
    """Decode *text* into an ``AgentDecision`` or raise ``DecisionParseError``."""
    payload = extract_first_json_object(text or "")
    try:
        return AgentDecision.model_validate(payload)
    except ValidationError as exc:
        errors = "; ".join(
            f"{'.'.join(str(p) for p in e['loc']) or 'decision'}: {e['msg']}"
            for e in exc.errors()
        )
        raise DecisionParseError(f"Malformed decision: {errors}") from exc
