"""Enumeration definitions for the capability planner.

This module contains the standard Enum classes used across the engine to keep
capability names, plan classifications and step outcomes consistent.
"""

from enum import Enum


class Capability(str, Enum):
    """Defines the capability domains a plan step can be routed to.

    Attributes:
        CALENDAR: Scheduling (events, availability, agendas).
        DATABASE: Structured task storage (tasks, reminders, named lists).
        GMAIL: Messaging (reading and sending email).
        SECOND_BRAIN: Free-form memory (notes, contacts, saved facts).
        GENERAL: Conversational fallback.
        META: Questions about the assistant itself (help, plan, status).
    """

    CALENDAR = "calendar"
    DATABASE = "database"
    GMAIL = "gmail"
    SECOND_BRAIN = "second-brain"
    GENERAL = "general"
    META = "meta"


class IntentType(str, Enum):
    """Defines the overall classification of a plan.

    Attributes:
        OPERATION: The user wants something done against a backend.
        CONVERSATION: Small talk or advice; no domain mutation.
        META: The user asks about the assistant.
    """

    OPERATION = "operation"
    CONVERSATION = "conversation"
    META = "meta"


class RiskLevel(str, Enum):
    """Defines the risk associated with executing a plan.

    Attributes:
        LOW: Create or read operations.
        MEDIUM: Updates to existing data.
        HIGH: Deletions, bulk deletions or outgoing messages.
    """

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class StepStatus(str, Enum):
    """Defines the terminal status of a single plan step.

    Attributes:
        SUCCESS: The backend handled the step.
        FAILED: The backend raised or reported an error.
        BLOCKED: A declared dependency did not succeed; never dispatched.
    """

    SUCCESS = "success"
    FAILED = "failed"
    BLOCKED = "blocked"


class PlanState(str, Enum):
    """Lifecycle of a plan within one request.

    Attributes:
        BUILT: The plan was produced by the builder.
        GATED: Entitlement filtering passed.
        EXECUTING: Steps are being dispatched.
        COMPLETED: Every step succeeded.
        PARTIALLY_COMPLETED: At least one step failed or was blocked.
        DENIED: The request was aborted before execution.
        CLARIFYING: The plan is too uncertain; the user was asked to clarify.
        AWAITING_APPROVAL: The plan needs explicit user approval to run.
    """

    BUILT = "built"
    GATED = "gated"
    EXECUTING = "executing"
    COMPLETED = "completed"
    PARTIALLY_COMPLETED = "partially_completed"
    DENIED = "denied"
    CLARIFYING = "clarifying"
    AWAITING_APPROVAL = "awaiting_approval"


class Language(str, Enum):
    """Languages recognised for user-facing templates."""

    HEBREW = "hebrew"
    ENGLISH = "english"
    OTHER = "other"
