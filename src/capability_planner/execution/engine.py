"""Dependency-gated, sequential execution of plan steps."""

import copy
import json
import logging
import time
from datetime import datetime, timezone
from typing import Any, Optional

from capability_planner.chat.memory import RollingContext
from capability_planner.errors import StepDispatchError
from capability_planner.execution.backends import BackendRegistry
from capability_planner.models.enums import StepStatus
from capability_planner.models.execution_result import (
    CapabilityResponse,
    ExecutionError,
    ExecutionResult,
)
from capability_planner.models.plan import PlanStep
from capability_planner.observability.logging import get_logger, log_event
from capability_planner.observability.metrics import (
    STEP_DURATION_SECONDS,
    STEP_RESULTS_TOTAL,
)

logger = get_logger(__name__)


def render_data(data: Any) -> str:
    """Renders a backend payload as reply text."""
    if data is None:
        return ""
    if isinstance(data, str):
        return data
    return json.dumps(data, ensure_ascii=False, default=str)


class PlanExecutor:
    """
    Runs plan steps in declared order, gating each on its dependencies.

    A failing step never aborts the plan; every step yields exactly one
    ExecutionResult and each backend is dispatched at most once per step.
    """

    def __init__(self, registry: BackendRegistry) -> None:
        self._registry = registry

    def execute(
        self,
        steps: list[PlanStep],
        context: Optional[RollingContext] = None,
    ) -> list[ExecutionResult]:
        """Executes steps and returns their results in the same order.

        Args:
            steps: The gated plan steps.
            context: The session's rolling context; each successful step's
                response is appended to it.

        Returns:
            One ExecutionResult per step.
        """
        results: list[ExecutionResult] = []
        recorded: dict[str, ExecutionResult] = {}

        for step in steps:
            result = self.execute_step(step, recorded)
            results.append(result)
            recorded[step.id] = result

            STEP_RESULTS_TOTAL.labels(
                capability=step.capability.value, status=result.status.value
            ).inc()
            log_event(
                logger,
                "step.finished",
                level=logging.INFO if result.succeeded else logging.WARNING,
                step_id=step.id,
                capability=step.capability.value,
                action=step.action,
                status=result.status.value,
                duration_ms=result.duration_ms,
                error_code=result.error.code if result.error else None,
            )

            if result.succeeded and context is not None:
                context.add(
                    "assistant",
                    result.response or "",
                    step_id=step.id,
                    capability=step.capability,
                )

        return results

    def execute_step(
        self, step: PlanStep, recorded: dict[str, ExecutionResult]
    ) -> ExecutionResult:
        """Dispatches one step unless a dependency did not succeed.

        Args:
            step: The step to run.
            recorded: Results of the steps already processed, by id.

        Returns:
            The step's terminal result.
        """
        started_at = datetime.now(timezone.utc)

        unmet = [
            dep
            for dep in step.depends_on
            if dep not in recorded or not recorded[dep].succeeded
        ]
        if unmet:
            return ExecutionResult(
                step_id=step.id,
                capability=step.capability,
                action=step.action,
                status=StepStatus.BLOCKED,
                started_at=started_at,
                error=ExecutionError(
                    code="dependency.unmet",
                    detail=f"Step {step.id} skipped: depends on {', '.join(unmet)}, which did not succeed",
                ),
            )

        backend = self._registry.get(step.capability)
        if backend is None:
            return ExecutionResult(
                step_id=step.id,
                capability=step.capability,
                action=step.action,
                status=StepStatus.FAILED,
                started_at=started_at,
                error=ExecutionError(
                    code="backend.missing",
                    detail=f"No backend registered for capability: {step.capability.value}",
                ),
            )

        constraints = copy.deepcopy(step.constraints)
        if step.depends_on:
            constraints["dependencyResults"] = {
                dep: recorded[dep].response for dep in step.depends_on
            }

        start = time.perf_counter()
        try:
            response = self._dispatch(step, constraints)
        except StepDispatchError as e:
            logger.error(f"Step {step.id} failed: {e.detail}", exc_info=True)
            return self._finish(step, started_at, start, error=e)
        return self._finish(step, started_at, start, response=response)

    def _dispatch(
        self, step: PlanStep, constraints: dict[str, Any]
    ) -> CapabilityResponse:
        backend = self._registry.get(step.capability)
        try:
            response = backend.execute(
                step.capability, step.action, constraints, copy.deepcopy(step.changes)
            )
            if not isinstance(response, CapabilityResponse):
                response = CapabilityResponse.model_validate(response)
        except Exception as e:
            raise StepDispatchError(
                f"{type(e).__name__}: {e}", code="execution.exception"
            ) from e

        if not response.success:
            raise StepDispatchError(
                response.error or "Backend reported failure", code="execution.error"
            )
        return response

    def _finish(
        self,
        step: PlanStep,
        started_at: datetime,
        start: float,
        *,
        response: Optional[CapabilityResponse] = None,
        error: Optional[StepDispatchError] = None,
    ) -> ExecutionResult:
        elapsed = time.perf_counter() - start
        STEP_DURATION_SECONDS.labels(capability=step.capability.value).observe(elapsed)

        if error is not None:
            return ExecutionResult(
                step_id=step.id,
                capability=step.capability,
                action=step.action,
                status=StepStatus.FAILED,
                started_at=started_at,
                duration_ms=elapsed * 1000,
                error=ExecutionError(code=error.code, detail=error.detail),
            )

        return ExecutionResult(
            step_id=step.id,
            capability=step.capability,
            action=step.action,
            status=StepStatus.SUCCESS,
            started_at=started_at,
            duration_ms=elapsed * 1000,
            response=render_data(response.data),
        )
