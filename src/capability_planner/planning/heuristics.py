"""Deterministic keyword heuristics used when the collaborator cannot plan."""

import re
from typing import Iterable, Optional

from capability_planner.config.catalogue import CapabilityCatalogue
from capability_planner.models.enums import Capability, IntentType, RiskLevel
from capability_planner.models.plan import Plan, PlanStep


DEFAULT_ACTION = "process request"
GREETING_ACTION = "greeting response"
DEFAULT_META_ACTION = "describe_capabilities"

# Unusable capability -> closest usable substitute; anything else ends in general.
_SUBSTITUTES = {
    Capability.CALENDAR: Capability.DATABASE,
}


def _search(pattern: str, text: str) -> bool:
    return bool(pattern) and re.search(pattern, text, re.IGNORECASE) is not None


def matches_meta(message: str, catalogue: CapabilityCatalogue) -> bool:
    return _search(catalogue.meta_pattern, message)


def matches_greeting(message: str, catalogue: CapabilityCatalogue) -> bool:
    return _search(catalogue.greeting_pattern, message.strip())


def infer_meta_action(message: str, catalogue: CapabilityCatalogue) -> str:
    for action, pattern in catalogue.meta_actions.items():
        if _search(pattern, message):
            return action
    return DEFAULT_META_ACTION


def infer_capability(
    message: str,
    catalogue: CapabilityCatalogue,
    allowed: Optional[Iterable[Capability]] = None,
) -> Capability:
    """Routes a message by catalogue keywords, respecting usable capabilities.

    The best keyword match wins. When the caller cannot use it, a calendar
    request degrades to database (reminders still work) and anything else to
    general.
    """
    usable = set(allowed) if allowed is not None else set(catalogue.known)
    suggestions = catalogue.routing_suggestions(message)
    if not suggestions:
        return Capability.GENERAL

    best = suggestions[0].capability
    if best in usable:
        return best

    substitute = _SUBSTITUTES.get(best)
    if substitute is not None and substitute in usable:
        return substitute
    return Capability.GENERAL


def infer_action(
    message: str, capability: Capability, catalogue: CapabilityCatalogue
) -> str:
    """First action hint whose trigger phrases occur in the message."""
    if capability == Capability.META:
        return infer_meta_action(message, catalogue)

    spec = catalogue.get(capability)
    if spec is None:
        return DEFAULT_ACTION

    text = message.lower()
    for action, phrases in spec.action_keywords.items():
        if any(p.lower() in text for p in phrases):
            return action
    return DEFAULT_ACTION


def infer_risk(texts: Iterable[str], catalogue: CapabilityCatalogue) -> RiskLevel:
    """Highest risk signalled by any of the texts."""
    risk = RiskLevel.LOW
    for text in texts:
        if _search(catalogue.high_risk_pattern, text):
            return RiskLevel.HIGH
        if _search(catalogue.medium_risk_pattern, text):
            risk = RiskLevel.MEDIUM
    return risk


def fallback_plan(
    message: str,
    catalogue: CapabilityCatalogue,
    allowed: Optional[Iterable[Capability]] = None,
    confidence: float = 0.4,
) -> Plan:
    """Builds the single-step plan used when no usable plan was drafted.

    The plan always carries low confidence and the 'intent_unclear' signal so
    the orchestrator asks the user to clarify before anything runs.

    Args:
        message: The original user request.
        catalogue: Keyword tables used for routing.
        allowed: Capabilities the caller can use; defaults to all known.
        confidence: Confidence to assign; kept at or below 0.5.

    Returns:
        A Plan with exactly one step.
    """
    if matches_meta(message, catalogue):
        intent_type = IntentType.META
        capability = Capability.META
        action = infer_meta_action(message, catalogue)
    elif matches_greeting(message, catalogue):
        intent_type = IntentType.CONVERSATION
        capability = Capability.GENERAL
        action = GREETING_ACTION
    else:
        intent_type = IntentType.OPERATION
        capability = infer_capability(message, catalogue, allowed)
        action = infer_action(message, capability, catalogue)

    return Plan(
        intent_type=intent_type,
        confidence=min(confidence, 0.5),
        risk_level=infer_risk([message], catalogue),
        missing_fields=["intent_unclear"],
        steps=[
            PlanStep(
                id="A",
                capability=capability,
                action=action,
                constraints={"rawMessage": message},
            )
        ],
    )
