"""Decoding of the collaborator's plan documents.

The plan wire format has two historical key spellings (camelCase and
snake_case) and, in its oldest form, a bare JSON array of steps. Everything
in this module turns those variants into one canonical intermediate shape so
the rest of the engine never sees wire-format history.
"""

import json
import re
from typing import Any, Optional

import jsonschema

from capability_planner.errors import PlanParseError


PLAN_DOCUMENT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "description": "Raw plan document drafted by the language collaborator.",
    # at least one spelling must carry the step list; a null one defers to the other
    "anyOf": [
        {"required": ["plan"], "properties": {"plan": {"type": "array"}}},
        {"required": ["steps"], "properties": {"steps": {"type": "array"}}},
    ],
    "properties": {
        "plan": {"type": ["array", "null"], "items": {"type": "object"}},
        "steps": {"type": ["array", "null"], "items": {"type": "object"}},
    },
}

# canonical name -> accepted spellings, canonical first
DOCUMENT_KEYS: dict[str, tuple[str, ...]] = {
    "intentType": ("intentType", "intent_type"),
    "confidence": ("confidence",),
    "riskLevel": ("riskLevel", "risk_level"),
    "needsApproval": ("needsApproval", "needs_approval"),
    "missingFields": ("missingFields", "missing_fields"),
    "plan": ("plan", "steps"),
}

STEP_KEYS: dict[str, tuple[str, ...]] = {
    "id": ("id", "step_id"),
    "capability": ("capability", "agent"),
    "action": ("action", "intent"),
    "constraints": ("constraints",),
    "changes": ("changes",),
    "dependsOn": ("dependsOn", "depends_on"),
}

_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)
_OBJECT = re.compile(r"\{[\s\S]*\}")
_ARRAY = re.compile(r"\[[\s\S]*\]")


def pick(document: dict[str, Any], spellings: tuple[str, ...], default: Any = None) -> Any:
    """Returns the first present, non-null value among the spellings."""
    for key in spellings:
        value = document.get(key)
        if value is not None:
            return value
    return default


def _loads(text: str) -> Any:
    try:
        return json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return None


def extract_json(raw: str) -> Any:
    """Parses JSON from a reply, repairing fences and surrounding prose."""
    text = _FENCE.sub("", (raw or "").strip())
    parsed = _loads(text)
    if parsed is not None:
        return parsed

    for pattern in (_OBJECT, _ARRAY):
        match = pattern.search(text)
        if match:
            parsed = _loads(match.group(0))
            if parsed is not None:
                return parsed
    return None


def extract_json_object(raw: str) -> Optional[dict[str, Any]]:
    parsed = extract_json(raw)
    return parsed if isinstance(parsed, dict) else None


def parse_plan_reply(raw: str) -> dict[str, Any]:
    """Parses a collaborator reply into a plan document.

    Args:
        raw: The unparsed reply text.

    Returns:
        The plan document as a dictionary. A bare array of steps is wrapped
        as {"plan": [...]}.

    Raises:
        PlanParseError: If no JSON can be recovered or the document does not
            have the shape of a step list.
    """
    parsed = extract_json(raw)
    if parsed is None:
        raise PlanParseError("reply is not valid JSON", raw=raw)

    if isinstance(parsed, list):
        parsed = {"plan": parsed}

    try:
        jsonschema.validate(instance=parsed, schema=PLAN_DOCUMENT_SCHEMA)
    except jsonschema.ValidationError as e:
        raise PlanParseError(f"reply is not a step list: {e.message}", raw=raw) from e

    return parsed


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set)):
        return list(value)
    return [value]


def decode_step(entry: dict[str, Any], raw_message: str) -> dict[str, Any]:
    """Decodes one step entry into canonical keys.

    The returned 'id' is None when the entry carries none; 'constraints'
    always includes 'rawMessage'.
    """
    raw_id = pick(entry, STEP_KEYS["id"])
    constraints = pick(entry, STEP_KEYS["constraints"], {})
    if not isinstance(constraints, dict):
        constraints = {}
    constraints = dict(constraints)
    if not constraints.get("rawMessage"):
        constraints["rawMessage"] = raw_message

    changes = pick(entry, STEP_KEYS["changes"], {})
    action = pick(entry, STEP_KEYS["action"], "")

    return {
        "id": str(raw_id).strip() if raw_id not in (None, "") else None,
        "capability": str(pick(entry, STEP_KEYS["capability"], "")).strip().lower(),
        "action": str(action).strip() or "process request",
        "constraints": constraints,
        "changes": dict(changes) if isinstance(changes, dict) else {},
        "dependsOn": [str(d).strip() for d in _as_list(pick(entry, STEP_KEYS["dependsOn"]))],
    }


def decode_document(document: dict[str, Any], raw_message: str) -> dict[str, Any]:
    """Decodes a plan document into canonical keys without judging values."""
    return {
        "intentType": pick(document, DOCUMENT_KEYS["intentType"]),
        "confidence": pick(document, DOCUMENT_KEYS["confidence"]),
        "riskLevel": pick(document, DOCUMENT_KEYS["riskLevel"]),
        "needsApproval": pick(document, DOCUMENT_KEYS["needsApproval"], False),
        "missingFields": [
            str(f) for f in _as_list(pick(document, DOCUMENT_KEYS["missingFields"]))
        ],
        "plan": [
            decode_step(entry, raw_message)
            for entry in _as_list(pick(document, DOCUMENT_KEYS["plan"]))
            if isinstance(entry, dict)
        ],
    }
