"""Request orchestration: one message in, one reply out.

The orchestrator wires the Intent Resolver, Plan Builder, Access Gate, Plan
Executor and Result Aggregator together and owns the per-session rolling
contexts. Each request runs as one sequential call chain.
"""

import logging
import threading
from collections import OrderedDict
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from capability_planner.chat.collaborator import LanguageCollaborator
from capability_planner.chat.language import detect_language
from capability_planner.chat.memory import RollingContext
from capability_planner.config.catalogue import CapabilityCatalogue, default_catalogue
from capability_planner.config.settings import EngineConfig
from capability_planner.errors import (
    CapabilityDenied,
    ClassificationError,
    DependencyCycleError,
)
from capability_planner.execution.aggregator import ResultAggregator
from capability_planner.execution.backends import BackendRegistry
from capability_planner.execution.engine import PlanExecutor
from capability_planner.execution.gate import AccessGate
from capability_planner.execution.messages import render
from capability_planner.models.caller import CallerProfile
from capability_planner.models.enums import (
    Capability,
    IntentType,
    Language,
    PlanState,
)
from capability_planner.models.execution_result import ExecutionResult
from capability_planner.models.intent import IntentDecision
from capability_planner.models.plan import Plan, PlanStep
from capability_planner.observability.logging import get_logger, log_event
from capability_planner.observability.metrics import PLAN_OUTCOMES_TOTAL
from capability_planner.planning.builder import PlanBuilder
from capability_planner.planning.heuristics import (
    GREETING_ACTION,
    fallback_plan,
    infer_action,
    infer_risk,
    matches_greeting,
)
from capability_planner.planning.intent_resolver import IntentResolver

logger = get_logger(__name__)


class OrchestratorReply(BaseModel):
    """The outcome of handling one message.

    Attributes:
        text: The reply shown to the user.
        state: Terminal plan state for this request.
        plan: The plan that was built, if any.
        results: Step results, one per executed step.
        language: Language the reply was written for.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    text: str = Field(..., description="The reply shown to the user.")
    state: PlanState = Field(..., description="Terminal plan state.")
    plan: Optional[Plan] = Field(default=None, description="The plan built, if any.")
    results: list[ExecutionResult] = Field(
        default_factory=list, description="Step results, one per executed step."
    )
    language: Language = Field(
        default=Language.ENGLISH, description="Language of the reply."
    )


class RequestOrchestrator:
    """
    Runs the full resolve, plan, gate, execute and aggregate flow.
    """

    def __init__(
        self,
        *,
        collaborator: LanguageCollaborator,
        registry: BackendRegistry,
        catalogue: Optional[CapabilityCatalogue] = None,
        config: Optional[EngineConfig] = None,
    ) -> None:
        self.catalogue = catalogue or default_catalogue()
        self.config = config or EngineConfig()
        self.resolver = IntentResolver(collaborator, self.catalogue, self.config)
        self.builder = PlanBuilder(collaborator, self.catalogue, self.config)
        self.gate = AccessGate(self.catalogue)
        self.executor = PlanExecutor(registry)
        self.aggregator = ResultAggregator(collaborator)

        self._sessions: OrderedDict[str, RollingContext] = OrderedDict()
        self._lock = threading.Lock()

    def session(self, session_id: str) -> RollingContext:
        """The session's rolling context, created on first use.

        At most `config.max_sessions` contexts are kept; creating one beyond
        that evicts the least recently used session.
        """
        with self._lock:
            context = self._sessions.get(session_id)
            if context is None:
                context = RollingContext(self.config.context_window)
                self._sessions[session_id] = context
                while len(self._sessions) > self.config.max_sessions:
                    evicted, _ = self._sessions.popitem(last=False)
                    log_event(logger, "session.evicted", session_id=evicted)
            else:
                self._sessions.move_to_end(session_id)
            return context

    def reset_session(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)

    def _transition(self, session_id: str, state: PlanState, **fields) -> None:
        log_event(
            logger,
            "plan.state",
            session_id=session_id,
            state=state.value,
            **fields,
        )

    def _finish(
        self,
        session_id: str,
        text: str,
        state: PlanState,
        language: Language,
        plan: Optional[Plan] = None,
        results: Optional[list[ExecutionResult]] = None,
    ) -> OrchestratorReply:
        self._transition(session_id, state)
        PLAN_OUTCOMES_TOTAL.labels(state=state.value).inc()
        return OrchestratorReply(
            text=text,
            state=state,
            plan=plan,
            results=results or [],
            language=language,
        )

    def _single_step_plan(
        self,
        message: str,
        capability: Capability,
        action: str,
        intent_type: IntentType,
    ) -> Plan:
        return Plan(
            intent_type=intent_type,
            confidence=1.0,
            risk_level=infer_risk([message, action], self.catalogue),
            steps=[
                PlanStep(
                    id="A",
                    capability=capability,
                    action=action,
                    constraints={"rawMessage": message},
                )
            ],
        )

    def route(
        self,
        message: str,
        decision: IntentDecision,
        context: RollingContext,
        allowed: frozenset[Capability],
    ) -> Plan:
        """Chooses between a conversational reply, direct dispatch or planning."""
        if decision.is_conversation:
            action = (
                GREETING_ACTION if matches_greeting(message, self.catalogue) else "respond"
            )
            return self._single_step_plan(
                message, Capability.GENERAL, action, IntentType.CONVERSATION
            )

        if not decision.requires_plan and len(decision.involved_capabilities) == 1:
            (capability,) = decision.involved_capabilities
            return self._single_step_plan(
                message,
                capability,
                infer_action(message, capability, self.catalogue),
                IntentType.META if capability == Capability.META else IntentType.OPERATION,
            )

        try:
            return self.builder.build(message, context, allowed)
        except DependencyCycleError as e:
            log_event(
                logger,
                "plan.cycle_rejected",
                level=logging.WARNING,
                code=e.code,
                cycle=e.cycle,
            )
            return fallback_plan(
                message,
                self.catalogue,
                allowed,
                confidence=self.config.fallback_confidence,
            )

    def handle(
        self,
        message: str,
        session_id: str = "default",
        caller: Optional[CallerProfile] = None,
        approved: bool = False,
    ) -> OrchestratorReply:
        """Handles one user message end to end.

        Args:
            message: The user's request.
            session_id: Conversation the message belongs to.
            caller: Entitlements of the user; defaults to an unconnected
                standard-tier profile.
            approved: Whether the user already approved a sensitive plan.

        Returns:
            The reply with the plan and per-step results.
        """
        caller = caller or CallerProfile()
        context = self.session(session_id)
        language = caller.language or detect_language(message)

        try:
            decision = self.resolver.resolve(message, context)
        except ClassificationError as e:
            logger.error(f"[{e.code}] {e.detail}")
            return self._finish(
                session_id, render("classification_failed", language), PlanState.DENIED, language
            )

        allowed = self.gate.allowed_capabilities(caller)
        plan = self.route(message, decision, context, allowed)
        self._transition(
            session_id,
            PlanState.BUILT,
            steps=[s.id for s in plan.steps],
            confidence=plan.confidence,
        )

        if plan.missing_fields and plan.confidence < self.config.clarification_threshold:
            return self._finish(
                session_id,
                render("clarify", language, fields=", ".join(plan.missing_fields)),
                PlanState.CLARIFYING,
                language,
                plan=plan,
            )

        if self.config.enforce_approval and plan.needs_approval and not approved:
            steps = ", ".join(f"{s.capability.value}: {s.action}" for s in plan.steps)
            return self._finish(
                session_id,
                render("approval", language, steps=steps),
                PlanState.AWAITING_APPROVAL,
                language,
                plan=plan,
            )

        try:
            steps = self.gate.filter(plan.steps, caller, language)
        except CapabilityDenied as e:
            logger.warning(f"[{e.code}] denied capabilities: {e.missing}")
            return self._finish(session_id, e.detail, PlanState.DENIED, language, plan=plan)
        self._transition(session_id, PlanState.GATED, steps=[s.id for s in steps])

        self._transition(session_id, PlanState.EXECUTING)
        results = self.executor.execute(steps, context)
        text = self.aggregator.aggregate(message, steps, results, language)

        state = (
            PlanState.COMPLETED
            if all(r.succeeded for r in results)
            else PlanState.PARTIALLY_COMPLETED
        )
        return self._finish(session_id, text, state, language, plan=plan, results=results)
