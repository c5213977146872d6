import os

from pydantic import BaseModel, ConfigDict, Field


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class EngineConfig(BaseModel):
    """
    Static configuration for the planning and execution engine.

    Built once at process start and shared read-only across requests.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    context_window: int = Field(
        default=10,
        ge=1,
        description="Maximum entries kept in a session's rolling context.",
    )
    history_limit: int = Field(
        default=10,
        ge=0,
        description="Maximum history entries embedded in the planner prompt.",
    )
    classifier_context: int = Field(
        default=4,
        ge=0,
        description="History entries passed to the intent classifier.",
    )
    history_preview_chars: int = Field(
        default=200,
        ge=20,
        description="Per-entry truncation applied to history in prompts.",
    )
    clarification_threshold: float = Field(
        default=0.6,
        ge=0.0,
        le=1.0,
        description="Plans with missing fields below this confidence ask the user to clarify.",
    )
    fallback_confidence: float = Field(
        default=0.4,
        ge=0.0,
        le=0.5,
        description="Confidence assigned to the heuristic fallback plan.",
    )
    max_sessions: int = Field(
        default=1000,
        ge=1,
        description="Session contexts kept before the least recently used is evicted.",
    )
    enforce_approval: bool = Field(
        default=False,
        description="Whether plans flagged needs_approval wait for explicit approval.",
    )

    @classmethod
    def from_env(cls) -> "EngineConfig":
        return cls(
            context_window=int(os.environ.get("PLANNER_CONTEXT_WINDOW", 10)),
            history_limit=int(os.environ.get("PLANNER_HISTORY_LIMIT", 10)),
            clarification_threshold=float(
                os.environ.get("PLANNER_CLARIFICATION_THRESHOLD", 0.6)
            ),
            max_sessions=int(os.environ.get("PLANNER_MAX_SESSIONS", 1000)),
            enforce_approval=_env_bool("PLANNER_ENFORCE_APPROVAL", False),
        )
