"""Data models for reporting step outcomes.

This module defines the structures exchanged with capability backends and the
immutable per-step results created by the Plan Executor.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from capability_planner.models.enums import Capability, StepStatus


class CapabilityResponse(BaseModel):
    """The single response a backend returns for one dispatched step.

    Attributes:
        success: Whether the backend handled the step.
        data: Backend payload; rendered to text for the user.
        error: Human-readable error when success is False.
    """

    model_config = ConfigDict(extra="forbid")

    success: bool = Field(..., description="Whether the backend handled the step.")
    data: Optional[Any] = Field(
        default=None, description="Backend payload; rendered to text for the user."
    )
    error: Optional[str] = Field(
        default=None, description="Human-readable error when success is False."
    )


class ExecutionError(BaseModel):
    """Details regarding a failed or blocked step.

    Attributes:
        code: Machine-readable error code (e.g., 'dependency.unmet').
        detail: Human-readable explanation of the error.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    code: str = Field(
        ...,
        description="Machine-readable error code (e.g., 'dependency.unmet').",
    )
    detail: str = Field(
        ..., description="Human-readable explanation of the error."
    )


class ExecutionResult(BaseModel):
    """The terminal outcome of one plan step.

    Attributes:
        step_id: The id of the step this result belongs to.
        capability: The capability the step was routed to.
        action: The step's action hint.
        status: The final outcome (success, failed, blocked).
        response: Backend response text for successful steps.
        error: Error details if the status is FAILED or BLOCKED.
        duration_ms: Time spent dispatching the step in milliseconds.
        started_at: When processing of the step started.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    step_id: str = Field(..., description="The id of the step this result belongs to.")
    capability: Capability = Field(
        ..., description="The capability the step was routed to."
    )
    action: str = Field(..., description="The step's action hint.")
    status: StepStatus = Field(
        ..., description="The final outcome (success, failed, blocked)."
    )
    response: Optional[str] = Field(
        default=None, description="Backend response text for successful steps."
    )
    error: Optional[ExecutionError] = Field(
        default=None,
        description="Error details if the status is FAILED or BLOCKED.",
    )
    duration_ms: float = Field(
        default=0.0,
        ge=0.0,
        description="Time spent dispatching the step in milliseconds.",
    )
    started_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When processing of the step started.",
    )

    @property
    def succeeded(self) -> bool:
        return self.status == StepStatus.SUCCESS
