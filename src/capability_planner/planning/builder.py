"""Plan construction from the collaborator's raw step lists.

This module turns whatever the language collaborator drafts into a Plan that
satisfies every structural invariant: known capabilities only, unique
sequential ids, dependency edges that point at existing steps, no duplicate
(capability, action) pairs and an acyclic dependency graph.
"""

import logging
import math
import re
from typing import Any, Iterable, Optional

from capability_planner.chat.collaborator import LanguageCollaborator
from capability_planner.chat.memory import RollingContext, build_history_block
from capability_planner.chat.prompts import (
    PLAN_CORRECTION_INSTRUCTION,
    build_planner_prompt,
)
from capability_planner.config.catalogue import CapabilityCatalogue, default_catalogue
from capability_planner.config.settings import EngineConfig
from capability_planner.errors import DependencyCycleError, PlanParseError
from capability_planner.models.base import StepId
from capability_planner.models.enums import Capability, IntentType, RiskLevel
from capability_planner.models.plan import Plan, PlanStep
from capability_planner.observability.logging import get_logger, log_event
from capability_planner.observability.metrics import PLAN_PARSE_FAILURES_TOTAL
from capability_planner.planning.heuristics import fallback_plan, infer_meta_action
from capability_planner.planning.wire import decode_document, parse_plan_reply

logger = get_logger(__name__)

DEFAULT_CONFIDENCE = 0.7
MAX_PARSE_ATTEMPTS = 2

_WHITESPACE = re.compile(r"\s+")


def sequential_id(index: int) -> StepId:
    """Spreadsheet-style id for a zero-based position: A..Z, AA, AB, ..."""
    label = ""
    index += 1
    while index:
        index, remainder = divmod(index - 1, 26)
        label = chr(ord("A") + remainder) + label
    return label


def normalize_action(action: str) -> str:
    return _WHITESPACE.sub("_", action.strip().lower())


def merge_key(step: PlanStep) -> tuple[Capability, str]:
    return step.capability, normalize_action(step.action)


def _dedupe(ids: Iterable[StepId]) -> list[StepId]:
    return list(dict.fromkeys(ids))


def merge_duplicate_steps(steps: list[PlanStep], raw_message: str) -> list[PlanStep]:
    """Collapses steps sharing a capability and normalized action.

    The first member of each group (document order) is kept. It carries the
    full original request as 'rawMessage' so a bulk-capable backend sees every
    item, records 'mergedStepCount', and absorbs the other members' changes
    (its own keys win). The other members' dependencies are discarded and
    edges pointing at them are redirected to the kept step.

    Running the pass again on its own output returns the same steps.

    Args:
        steps: Steps with unique ids.
        raw_message: The full original request.

    Returns:
        The merged steps, in the order of their representatives.
    """
    groups: dict[tuple[Capability, str], list[PlanStep]] = {}
    for step in steps:
        groups.setdefault(merge_key(step), []).append(step)

    kept_id: dict[StepId, StepId] = {}
    for members in groups.values():
        for member in members:
            kept_id[member.id] = members[0].id

    merged: list[PlanStep] = []
    for members in groups.values():
        representative = members[0]
        update: dict[str, Any] = {}

        if len(members) > 1:
            constraints = dict(representative.constraints)
            constraints["rawMessage"] = raw_message
            constraints["mergedStepCount"] = len(members)

            changes: dict[str, Any] = {}
            for member in reversed(members):
                changes.update(member.changes)

            update["constraints"] = constraints
            update["changes"] = changes
            log_event(
                logger,
                "plan.steps_merged",
                capability=representative.capability.value,
                action=representative.action,
                merged=[m.id for m in members],
            )

        depends_on = _dedupe(
            kept_id.get(dep, dep)
            for dep in representative.depends_on
            if kept_id.get(dep, dep) != representative.id
        )
        if depends_on != representative.depends_on:
            update["depends_on"] = depends_on

        merged.append(
            representative.model_copy(update=update) if update else representative
        )
    return merged


def reassign_ids(steps: list[PlanStep]) -> list[PlanStep]:
    """Renames steps A, B, C, ... and rewrites every edge through the rename.

    Edges to ids that no longer exist and self-edges are dropped.
    """
    new_id = {step.id: sequential_id(i) for i, step in enumerate(steps)}
    renamed = []
    for step in steps:
        own = new_id[step.id]
        depends_on = _dedupe(
            new_id[dep]
            for dep in step.depends_on
            if dep in new_id and new_id[dep] != own
        )
        renamed.append(step.model_copy(update={"id": own, "depends_on": depends_on}))
    return renamed


def find_cycle(steps: list[PlanStep]) -> Optional[list[StepId]]:
    """Returns one dependency cycle as a closed path (A -> B -> A), if any."""
    edges = {step.id: step.depends_on for step in steps}
    visiting: list[StepId] = []
    done: set[StepId] = set()

    def visit(node: StepId) -> Optional[list[StepId]]:
        if node in visiting:
            return visiting[visiting.index(node):] + [node]
        if node in done or node not in edges:
            return None
        visiting.append(node)
        for dep in edges[node]:
            cycle = visit(dep)
            if cycle:
                return cycle
        visiting.pop()
        done.add(node)
        return None

    for step in steps:
        cycle = visit(step.id)
        if cycle:
            return cycle
    return None


def _clamp_confidence(value: Any) -> float:
    if isinstance(value, bool):
        return DEFAULT_CONFIDENCE
    try:
        number = float(value)
    except (TypeError, ValueError):
        return DEFAULT_CONFIDENCE
    if math.isnan(number):
        return DEFAULT_CONFIDENCE
    return max(0.0, min(1.0, number))


def _enum_or_default(enum_cls, value: Any, default):
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        return default


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1")
    return bool(value)


class PlanBuilder:
    """Builds validated Plans from the language collaborator's drafts."""

    def __init__(
        self,
        collaborator: LanguageCollaborator,
        catalogue: Optional[CapabilityCatalogue] = None,
        config: Optional[EngineConfig] = None,
    ):
        self.collaborator = collaborator
        self.catalogue = catalogue or default_catalogue()
        self.config = config or EngineConfig()
        self._system_prompt = build_planner_prompt(self.catalogue)

    def compose_messages(
        self,
        message: str,
        context: Optional[RollingContext] = None,
        allowed: Optional[Iterable[Capability]] = None,
    ) -> list[dict[str, str]]:
        """Builds the system and user turns for a planning request."""
        usable = set(allowed) if allowed is not None else set(self.catalogue.known)
        names = [
            spec.name.value
            for spec in self.catalogue.capabilities
            if spec.name in usable
        ]

        sections = ["## Available capabilities\n" + ", ".join(names)]

        suggestions = self.catalogue.routing_suggestions(message)[:3]
        if suggestions:
            hints = [
                f"- {s.capability.value}: score={s.score}, matched: "
                + ", ".join(f'"{m}"' for m in s.matched[:3])
                for s in suggestions
            ]
            sections.append(
                "## Pattern Matching Hints\n"
                + "\n".join(hints)
                + "\nUse these hints to inform routing, but apply the routing rules."
            )

        if context is not None:
            history = build_history_block(
                context,
                limit=self.config.history_limit,
                preview_chars=self.config.history_preview_chars,
            )
            if history:
                sections.append(
                    "## Recent Conversation (most recent first)\n" + history
                )

        sections.append("## User Message\n" + message)

        return [
            {"role": "system", "content": self._system_prompt},
            {"role": "user", "content": "\n\n".join(sections)},
        ]

    def _request_document(
        self, messages: list[dict[str, str]]
    ) -> Optional[dict[str, Any]]:
        """Asks for a plan, re-asking once with a correction on bad output."""
        for attempt in range(1, MAX_PARSE_ATTEMPTS + 1):
            try:
                raw = self.collaborator.plan(messages)
            except Exception as e:
                logger.error(f"Plan request failed: {e}", exc_info=True)
                return None

            try:
                return parse_plan_reply(raw)
            except PlanParseError as e:
                log_event(
                    logger,
                    "plan.parse_failed",
                    level=logging.WARNING,
                    attempt=attempt,
                    code=e.code,
                    detail=e.detail,
                    raw=raw[:500] if raw else "",
                )
                messages = messages + [
                    {"role": "assistant", "content": raw or ""},
                    {
                        "role": "user",
                        "content": PLAN_CORRECTION_INSTRUCTION.format(error=e.detail),
                    },
                ]
        return None

    def build(
        self,
        message: str,
        context: Optional[RollingContext] = None,
        allowed: Optional[Iterable[Capability]] = None,
    ) -> Plan:
        """Requests and finalizes a plan for one message.

        Args:
            message: The user's request.
            context: The session's rolling context, used for history.
            allowed: Capabilities the caller can use.

        Returns:
            A validated Plan. When the collaborator fails or drafts
            unparseable output twice, the heuristic fallback plan.

        Raises:
            DependencyCycleError: If the drafted dependencies form a cycle.
        """
        allowed = list(allowed) if allowed is not None else None
        document = self._request_document(
            self.compose_messages(message, context, allowed)
        )
        if document is None:
            PLAN_PARSE_FAILURES_TOTAL.inc()
            log_event(
                logger,
                "plan.fallback",
                level=logging.WARNING,
                code=PlanParseError.code,
            )
            return fallback_plan(
                message,
                self.catalogue,
                allowed,
                confidence=self.config.fallback_confidence,
            )
        return self.finalize(document, message)

    def _to_steps(self, decoded: list[dict[str, Any]]) -> list[PlanStep]:
        """Validates capabilities, fills in ids and drops dangling edges."""
        # Drafted ids are reserved up front so generated ones never collide.
        taken: set[StepId] = {e["id"] for e in decoded if e["id"]}
        ids: list[StepId] = []
        seen: set[StepId] = set()
        for index, entry in enumerate(decoded):
            step_id = entry["id"]
            if not step_id or step_id in seen:
                if step_id:
                    logger.warning(f"Duplicate step id '{step_id}' replaced")
                while sequential_id(index) in taken:
                    index += 1
                step_id = sequential_id(index)
                taken.add(step_id)
            seen.add(step_id)
            ids.append(step_id)

        known = set(ids)
        steps = []
        for step_id, entry in zip(ids, decoded):
            try:
                capability = Capability(entry["capability"])
            except ValueError:
                logger.warning(
                    f"Invalid capability '{entry['capability']}', defaulting to 'general'"
                )
                capability = Capability.GENERAL

            depends_on = []
            for dep in entry["dependsOn"]:
                if dep in known and dep != step_id:
                    depends_on.append(dep)
                else:
                    logger.warning(f"Dropped dependency '{dep}' of step {step_id}")

            steps.append(
                PlanStep(
                    id=step_id,
                    capability=capability,
                    action=entry["action"],
                    constraints=entry["constraints"],
                    changes=entry["changes"],
                    depends_on=_dedupe(depends_on),
                )
            )
        return steps

    def finalize(self, document: dict[str, Any], message: str) -> Plan:
        """Normalizes a parsed plan document into a validated Plan.

        Raises:
            DependencyCycleError: If the dependency graph contains a cycle.
        """
        decoded = decode_document(document, message)

        intent_type = _enum_or_default(
            IntentType, decoded["intentType"], IntentType.OPERATION
        )
        risk_level = _enum_or_default(RiskLevel, decoded["riskLevel"], RiskLevel.LOW)

        steps = self._to_steps(decoded["plan"])
        steps = merge_duplicate_steps(steps, message)
        steps = reassign_ids(steps)

        if intent_type == IntentType.META and not steps:
            action = infer_meta_action(message, self.catalogue)
            logger.info(f"Synthesized general step for empty meta plan: {action}")
            steps = [
                PlanStep(
                    id=sequential_id(0),
                    capability=Capability.GENERAL,
                    action=action,
                    constraints={"rawMessage": message},
                )
            ]

        cycle = find_cycle(steps)
        if cycle:
            raise DependencyCycleError(cycle)

        plan = Plan(
            intent_type=intent_type,
            confidence=_clamp_confidence(decoded["confidence"]),
            risk_level=risk_level,
            needs_approval=_as_bool(decoded["needsApproval"]),
            missing_fields=_dedupe(decoded["missingFields"]),
            steps=steps,
        )
        log_event(
            logger,
            "plan.built",
            intent_type=plan.intent_type.value,
            confidence=plan.confidence,
            risk_level=plan.risk_level.value,
            steps=len(plan.steps),
        )
        return plan
