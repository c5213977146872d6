"""Exception hierarchy for the planning and execution engine."""

from typing import Optional


class PlannerError(Exception):
    """Base class carrying a machine-readable code and a readable detail."""

    code = "planner.error"

    def __init__(self, detail: str, code: Optional[str] = None):
        self.detail = detail
        if code is not None:
            self.code = code
        super().__init__(detail)


class ClassificationError(PlannerError):
    """The language collaborator could not classify the message."""

    code = "intent.classification_failed"


class PlanParseError(PlannerError):
    """The collaborator's plan output could not be parsed as a step list."""

    code = "plan.parse_failed"

    def __init__(self, detail: str, raw: str = ""):
        self.raw = raw
        super().__init__(detail)


class PlanValidationError(PlannerError):
    """A parsed plan violates a structural invariant."""

    code = "plan.invalid"


class DependencyCycleError(PlanValidationError):
    """The plan's dependency graph contains a cycle."""

    code = "plan.dependency_cycle"

    def __init__(self, cycle: list[str]):
        self.cycle = cycle
        super().__init__(
            "Dependency cycle between steps: " + " -> ".join(cycle)
        )


class CapabilityDenied(PlannerError):
    """Every step of the plan needs a capability the caller cannot use."""

    code = "capability.denied"

    def __init__(self, detail: str, missing: Optional[list[str]] = None):
        self.missing = missing or []
        super().__init__(detail)


class StepDispatchError(PlannerError):
    """A capability backend failed while handling one step."""

    code = "execution.error"


class AggregationError(PlannerError):
    """The summarizer could not narrate a multi-capability result."""

    code = "aggregation.failed"


class CatalogueError(PlannerError):
    """A capability catalogue definition is invalid."""

    code = "catalogue.invalid"
