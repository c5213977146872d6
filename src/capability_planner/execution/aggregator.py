"""Combines per-step outcomes into one user-facing reply."""

import logging
from typing import Any, Optional

from capability_planner.chat.collaborator import LanguageCollaborator
from capability_planner.chat.language import detect_language
from capability_planner.errors import AggregationError
from capability_planner.execution.messages import render
from capability_planner.models.enums import Language, StepStatus
from capability_planner.models.execution_result import ExecutionResult
from capability_planner.models.plan import PlanStep
from capability_planner.observability.logging import get_logger, log_event

logger = get_logger(__name__)


def build_summary_payload(
    language: Language,
    steps: list[PlanStep],
    results: list[ExecutionResult],
) -> dict[str, Any]:
    """The structured {language, plan, results} document sent for narration."""
    return {
        "language": language.value,
        "plan": [
            {
                "id": s.id,
                "capability": s.capability.value,
                "action": s.action,
                "dependsOn": list(s.depends_on),
            }
            for s in steps
        ],
        "results": [
            {
                "stepId": r.step_id,
                "capability": r.capability.value,
                "action": r.action,
                "status": r.status.value,
                "response": r.response,
                "error": r.error.detail if r.error else None,
            }
            for r in results
        ],
    }


def render_template(language: Language, results: list[ExecutionResult]) -> str:
    """Deterministic count line followed by one line per step."""
    counts = {status: 0 for status in StepStatus}
    for r in results:
        counts[r.status] += 1

    lines = [
        render(
            "summary.counts",
            language,
            succeeded=counts[StepStatus.SUCCESS],
            total=len(results),
            failed=counts[StepStatus.FAILED],
            blocked=counts[StepStatus.BLOCKED],
        )
    ]
    for r in results:
        lines.append(
            render(
                f"step.{r.status.value}",
                language,
                capability=r.capability.value,
                action=r.action,
                detail=r.error.detail if r.error else "",
            )
        )
    return "\n".join(lines)


class ResultAggregator:
    """
    Produces the single reply for a finished plan run.
    """

    def __init__(self, collaborator: Optional[LanguageCollaborator] = None):
        self.collaborator = collaborator

    def aggregate(
        self,
        message: str,
        steps: list[PlanStep],
        results: list[ExecutionResult],
        language: Optional[Language] = None,
    ) -> str:
        """Combines results into one reply.

        Args:
            message: The original request; used to pick the reply language.
            steps: The executed plan steps, in order.
            results: One result per step, same order.
            language: Reply language override.

        Returns:
            The reply text.
        """
        language = language or detect_language(message)
        if not results:
            return render("empty", language)

        capabilities = {s.capability for s in steps} | {r.capability for r in results}
        if len(capabilities) == 1:
            return self._single_capability(results)

        payload = build_summary_payload(language, steps, results)
        try:
            return self._narrate(payload)
        except AggregationError as e:
            log_event(
                logger,
                "aggregation.fallback",
                level=logging.WARNING,
                code=e.code,
                detail=e.detail,
            )
            return render_template(language, results)

    @staticmethod
    def _single_capability(results: list[ExecutionResult]) -> str:
        responses = [r.response for r in results if r.succeeded]
        if responses:
            return "\n\n".join(r for r in responses if r)

        for r in results:
            if r.error is not None:
                return r.error.detail
        return ""

    def _narrate(self, payload: dict[str, Any]) -> str:
        if self.collaborator is None:
            raise AggregationError("No summarizer configured")
        try:
            text = self.collaborator.summarize(payload)
        except Exception as e:
            raise AggregationError(f"Summarizer failed: {e}") from e
        if not text or not text.strip():
            raise AggregationError("Summarizer returned empty output")
        return text.strip()
