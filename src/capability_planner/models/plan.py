"""Data models for validated multi-step plans.

A Plan is produced exclusively by the Plan Builder from the language
collaborator's raw step list. Plans and their steps are immutable once built;
later stages (gate, executor, aggregator) only read them.
"""

from typing import Any

from pydantic import Field, ValidationInfo, field_validator, model_validator

from capability_planner.models.base import StepId, WireModel
from capability_planner.models.enums import Capability, IntentType, RiskLevel


class PlanStep(WireModel):
    """One unit of work bound to a single capability.

    Attributes:
        id: Short token, unique within its Plan (A, B, C, ...).
        capability: The capability backend this step is routed to.
        action: Free-form action hint (e.g. 'create task').
        constraints: Step-specific constraints; always carries 'rawMessage'.
        changes: Mutation payload for update-style actions.
        depends_on: Ids of steps that must succeed before this one runs.
    """

    id: StepId = Field(
        ...,
        min_length=1,
        description="Short token, unique within its Plan.",
    )
    capability: Capability = Field(
        ..., description="The capability backend this step is routed to."
    )
    action: str = Field(
        default="process request",
        description="Free-form action hint for the backend.",
    )
    constraints: dict[str, Any] = Field(
        default_factory=dict,
        description="Step constraints; always carries the original request text.",
    )
    changes: dict[str, Any] = Field(
        default_factory=dict,
        description="Mutation payload for the step.",
    )
    depends_on: list[StepId] = Field(
        default_factory=list,
        description="Ids of steps that must succeed before this one runs.",
    )

    @model_validator(mode="after")
    def validate_no_self_reference(self) -> "PlanStep":
        if self.id in self.depends_on:
            raise ValueError(f"step {self.id} must not depend on itself")
        return self

    @property
    def raw_message(self) -> str:
        return str(self.constraints.get("rawMessage", ""))


class Plan(WireModel):
    """An ordered, validated set of steps plus classification metadata.

    Attributes:
        intent_type: Overall classification of the request.
        confidence: Planner confidence in [0, 1].
        risk_level: Highest risk across the steps.
        needs_approval: Whether execution needs explicit user approval.
        missing_fields: Signals of missing or unclear information.
        steps: Ordered steps to execute.
    """

    intent_type: IntentType = Field(
        default=IntentType.OPERATION,
        description="Overall classification of the request.",
    )
    confidence: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Planner confidence in [0, 1].",
    )
    risk_level: RiskLevel = Field(
        default=RiskLevel.LOW,
        description="Highest risk across the steps.",
    )
    needs_approval: bool = Field(
        default=False,
        validate_default=True,
        description="Whether execution needs explicit user approval.",
    )
    missing_fields: list[str] = Field(
        default_factory=list,
        description="Signals of missing or unclear information.",
    )
    steps: list[PlanStep] = Field(
        default_factory=list,
        alias="plan",
        description="Ordered steps to execute; 'plan' on the wire.",
    )

    @field_validator("needs_approval")
    @classmethod
    def force_approval_for_high_risk(cls, value: bool, info: ValidationInfo) -> bool:
        # High-risk plans always need approval, whatever the collaborator said.
        if info.data.get("risk_level") == RiskLevel.HIGH:
            return True
        return value

    @model_validator(mode="after")
    def validate_step_graph(self) -> "Plan":
        ids = [s.id for s in self.steps]
        if len(ids) != len(set(ids)):
            raise ValueError(f"duplicate step ids: {ids}")

        known = set(ids)
        for step in self.steps:
            unknown = [d for d in step.depends_on if d not in known]
            if unknown:
                raise ValueError(
                    f"step {step.id} depends on unknown steps: {unknown}"
                )
        return self

    @property
    def capabilities(self) -> list[Capability]:
        """Distinct capabilities in step order."""
        seen: list[Capability] = []
        for step in self.steps:
            if step.capability not in seen:
                seen.append(step.capability)
        return seen

    @property
    def needs_clarification(self) -> bool:
        return bool(self.missing_fields)

    def to_wire(self) -> dict[str, Any]:
        """Serializes the plan using the canonical wire spelling."""
        return self.model_dump(by_alias=True, mode="json")
