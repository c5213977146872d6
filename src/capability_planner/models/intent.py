from typing import Literal

from pydantic import ConfigDict, Field

from capability_planner.models.base import ModelBase
from capability_planner.models.enums import Capability


IntentConfidence = Literal["high", "medium", "low"]

# Primary-intent marker meaning "several capabilities, plan required".
MULTI_TASK_INTENT = "multi-task"
GENERAL_INTENT = "general"


class IntentDecision(ModelBase):
    """
    Classification of a single user message.

    Produced by the Intent Resolver from the language collaborator's raw
    decision; decides whether the request needs a plan at all.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    primary_intent: str = Field(
        default=GENERAL_INTENT,
        description="Capability name, 'general', or the multi-task marker.",
    )

    requires_plan: bool = Field(
        default=False,
        description="Whether the Plan Builder must decompose the request.",
    )

    involved_capabilities: frozenset[Capability] = Field(
        default_factory=frozenset,
        description="Capabilities the request touches.",
    )

    confidence: IntentConfidence = Field(
        default="medium",
        description="Classifier confidence bucket.",
    )

    @property
    def is_conversation(self) -> bool:
        return not self.involved_capabilities
