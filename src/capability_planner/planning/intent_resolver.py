from typing import Any, Optional

from capability_planner.chat.collaborator import LanguageCollaborator
from capability_planner.chat.memory import RollingContext
from capability_planner.config.catalogue import CapabilityCatalogue, default_catalogue
from capability_planner.config.settings import EngineConfig
from capability_planner.errors import ClassificationError
from capability_planner.models.enums import Capability
from capability_planner.models.intent import (
    GENERAL_INTENT,
    MULTI_TASK_INTENT,
    IntentDecision,
)
from capability_planner.observability.logging import get_logger, log_event

logger = get_logger(__name__)

_CONFIDENCE_BUCKETS = ("high", "medium", "low")


class IntentResolver:
    """
    Decides whether a message needs a plan and which capabilities it touches.
    """

    def __init__(
        self,
        collaborator: LanguageCollaborator,
        catalogue: Optional[CapabilityCatalogue] = None,
        config: Optional[EngineConfig] = None,
    ):
        self.collaborator = collaborator
        self.catalogue = catalogue or default_catalogue()
        self.config = config or EngineConfig()

    def resolve(
        self, message: str, context: Optional[RollingContext] = None
    ) -> IntentDecision:
        """Classifies a message.

        Args:
            message: The user's message.
            context: The session's rolling context; only the most recent
                entries are shared with the classifier.

        Returns:
            The normalized IntentDecision.

        Raises:
            ClassificationError: If the collaborator cannot be reached or
                returns no usable decision.
        """
        turns = (
            context.as_messages(self.config.classifier_context)
            if context is not None
            else []
        )
        try:
            raw = self.collaborator.classify(message, turns)
        except Exception as e:
            raise ClassificationError(f"Intent classification failed: {e}") from e

        if not isinstance(raw, dict) or not raw:
            raise ClassificationError("Intent classifier returned no decision")

        decision = self.normalize(raw)
        log_event(
            logger,
            "intent.resolved",
            primary_intent=decision.primary_intent,
            requires_plan=decision.requires_plan,
            involved=sorted(c.value for c in decision.involved_capabilities),
            confidence=decision.confidence,
        )
        return decision

    def _capability(self, value: Any) -> Optional[Capability]:
        try:
            capability = Capability(str(value).strip().lower())
        except ValueError:
            return None
        return capability if capability in self.catalogue.known else None

    def normalize(self, raw: dict[str, Any]) -> IntentDecision:
        """Turns a raw classifier document into an IntentDecision."""
        primary = str(
            raw.get("primaryIntent") or raw.get("primary_intent") or GENERAL_INTENT
        ).strip().lower()
        primary_capability = self._capability(primary)
        if primary != MULTI_TASK_INTENT and primary_capability is None:
            primary = GENERAL_INTENT

        requires_plan = raw.get("requiresPlan", raw.get("requires_plan"))
        if not isinstance(requires_plan, bool):
            requires_plan = primary == MULTI_TASK_INTENT

        agents = raw.get("involvedAgents") or raw.get("involved_agents") or []
        if isinstance(agents, str):
            agents = [agents]
        involved = {
            c for c in (self._capability(a) for a in agents) if c is not None
        }

        if not involved:
            if primary_capability is not None and primary != GENERAL_INTENT:
                involved = {primary_capability}
            elif primary == MULTI_TASK_INTENT:
                involved = set(self.catalogue.domain_capabilities)

        # A general capability alone is conversation, not a backend request.
        involved.discard(Capability.GENERAL)

        confidence = str(raw.get("confidence", "medium")).strip().lower()
        if confidence not in _CONFIDENCE_BUCKETS:
            confidence = "medium"

        return IntentDecision(
            primary_intent=primary,
            requires_plan=requires_plan if involved else False,
            involved_capabilities=frozenset(involved),
            confidence=confidence,
        )
