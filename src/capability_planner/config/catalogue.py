"""Capability catalogue: the fixed routing configuration of the engine.

The catalogue describes every capability the planner may route to, the action
hints each backend understands, the keyword tables used for deterministic
routing, and the entitlements a caller needs to use each capability. It is
built once at process start (from the defaults below or a YAML file) and is
shared read-only by the Intent Resolver, Plan Builder and Access Gate.
"""

import re
from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from capability_planner.errors import CatalogueError
from capability_planner.models.caller import Tier
from capability_planner.models.enums import Capability


class CapabilitySpec(BaseModel):
    """Declaration of one capability backend.

    Attributes:
        name: The capability this entry describes.
        description: What the backend can do, shown to the planner.
        action_hints: Action strings the backend understands.
        keywords: Phrases that suggest this capability (any language).
        action_keywords: Ordered action hint -> trigger phrases; first match wins.
        requires_connection: Whether the caller must link an external account.
        min_tier: Lowest subscription tier allowed to use the capability.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: Capability
    description: str = ""
    action_hints: tuple[str, ...] = ()
    keywords: tuple[str, ...] = ()
    action_keywords: dict[str, tuple[str, ...]] = Field(default_factory=dict)
    requires_connection: bool = False
    min_tier: Optional[Tier] = None


class RoutingSuggestion(BaseModel):
    """Keyword-match score of one capability for a message."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    capability: Capability
    score: int
    matched: tuple[str, ...] = ()


class CapabilityCatalogue(BaseModel):
    """
    Immutable routing configuration shared across requests.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    capabilities: tuple[CapabilitySpec, ...] = Field(
        ...,
        min_length=1,
        description="Capabilities in routing priority order.",
    )
    routing_rules: str = Field(
        default="",
        description="Routing decision text embedded in the planner prompt.",
    )
    meta_actions: dict[str, str] = Field(
        default_factory=dict,
        description="Ordered meta action -> regex; first match wins.",
    )
    meta_pattern: str = Field(
        default="",
        description="Regex detecting questions about the assistant.",
    )
    greeting_pattern: str = Field(
        default="",
        description="Regex detecting a bare greeting or thanks.",
    )
    high_risk_pattern: str = Field(
        default="",
        description="Regex marking destructive or outgoing actions.",
    )
    medium_risk_pattern: str = Field(
        default="",
        description="Regex marking update-style actions.",
    )

    @field_validator(
        "meta_pattern",
        "greeting_pattern",
        "high_risk_pattern",
        "medium_risk_pattern",
    )
    @classmethod
    def validate_regex(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as e:
            raise ValueError(f"invalid pattern {value!r}: {e}") from e
        return value

    @field_validator("meta_actions")
    @classmethod
    def validate_meta_actions(cls, value: dict[str, str]) -> dict[str, str]:
        for action, pattern in value.items():
            try:
                re.compile(pattern)
            except re.error as e:
                raise ValueError(f"invalid pattern for {action!r}: {e}") from e
        return value

    @field_validator("capabilities")
    @classmethod
    def validate_unique_names(
        cls, value: tuple[CapabilitySpec, ...]
    ) -> tuple[CapabilitySpec, ...]:
        names = [c.name for c in value]
        if len(names) != len(set(names)):
            raise ValueError("capability names must be unique")
        if Capability.GENERAL not in names:
            raise ValueError("the catalogue must declare the 'general' capability")
        return value

    @property
    def known(self) -> frozenset[Capability]:
        return frozenset(c.name for c in self.capabilities)

    @property
    def domain_capabilities(self) -> frozenset[Capability]:
        """Capabilities a multi-domain request may span."""
        return self.known - {Capability.GENERAL, Capability.META}

    def get(self, capability: Capability) -> Optional[CapabilitySpec]:
        for spec in self.capabilities:
            if spec.name == capability:
                return spec
        return None

    def routing_suggestions(self, message: str) -> list[RoutingSuggestion]:
        """Scores capabilities by keyword matches, best first.

        Ties keep catalogue (priority) order.
        """
        text = message.lower()
        suggestions = []
        for spec in self.capabilities:
            matched = tuple(k for k in spec.keywords if k.lower() in text)
            if matched:
                suggestions.append(
                    RoutingSuggestion(
                        capability=spec.name, score=len(matched), matched=matched
                    )
                )
        # sorted() is stable, so equal scores stay in priority order.
        return sorted(suggestions, key=lambda s: -s.score)

    def render_prompt_section(self) -> str:
        """Formats the catalogue for the planner's system prompt."""
        lines = ["## CAPABILITIES"]
        for spec in self.capabilities:
            lines.append(f"### {spec.name.value}")
            if spec.description:
                lines.append(spec.description)
            if spec.action_hints:
                hints = ", ".join(f'"{h}"' for h in spec.action_hints)
                lines.append(f"Action hints: {hints}")
            if spec.keywords:
                lines.append("Trigger phrases: " + ", ".join(spec.keywords[:12]))
            if spec.requires_connection:
                lines.append("Requires a connected account.")
            lines.append("")
        if self.routing_rules:
            lines.append("## ROUTING RULES")
            lines.append(self.routing_rules.strip())
        return "\n".join(lines).strip()


DEFAULT_ROUTING_RULES = """\
Apply in this order:
1. Questions about the assistant itself (help, capabilities, plan, status) -> meta.
2. Saving or recalling facts, notes, contacts ("remember that") -> second-brain.
3. Email operations -> gmail (only when connected).
4. "remind me", explicit tasks, completing tasks, named lists -> database.
   Scheduling language or a time/date without "remind me" -> calendar.
5. Anything else -> general.

BULK rule: several items of the same operation are ONE step; never split them.
Split only for different operations or capabilities.
Add dependsOn only when a step needs another step's RESULT.
Risk: low = create/read, medium = update, high = delete, bulk delete, send email.
needsApproval = true for any high-risk plan.
If critical information is unclear, lower confidence and list missingFields
("target_unclear", "time_unclear", "which_one", "intent_unclear")."""


def default_catalogue() -> CapabilityCatalogue:
    """Builds the built-in catalogue."""
    return CapabilityCatalogue(
        capabilities=(
            CapabilitySpec(
                name=Capability.META,
                description="Answers questions about the assistant: capabilities, help, website, subscription plan, account status.",
                action_hints=(
                    "describe_capabilities",
                    "help",
                    "website",
                    "about_agent",
                    "plan_info",
                    "account_status",
                    "status",
                ),
                keywords=(
                    "what can you do",
                    "help",
                    "who are you",
                    "capabilities",
                    "מה אתה יכול",
                    "עזרה",
                    "מי אתה",
                ),
            ),
            CapabilitySpec(
                name=Capability.SECOND_BRAIN,
                description="Stores and recalls free-form memory: notes, contacts, key-value facts.",
                action_hints=("store memory", "search memory", "update memory", "delete memory"),
                keywords=(
                    "remember that",
                    "what did i save",
                    "save contact",
                    "password is",
                    "bill is",
                    "תזכור ש",
                    "זכור ש",
                    "מה אמרתי על",
                    "שמור את הטלפון",
                ),
                action_keywords={
                    "search memory": ("what did i", "what is my", "recall", "מה אמרתי"),
                    "delete memory": ("forget", "תשכח"),
                    "store memory": ("remember", "save", "תזכור", "שמור"),
                },
                min_tier="standard",
            ),
            CapabilitySpec(
                name=Capability.GMAIL,
                description="Reads, searches and sends email.",
                action_hints=("list emails", "read email", "send email", "reply email"),
                keywords=("email", "e-mail", "inbox", "mail", "מייל", "אימייל"),
                action_keywords={
                    "send email": ("send", "write", "שלח"),
                    "reply email": ("reply", "respond", "תענה"),
                    "list emails": ("inbox", "check", "show", "מה יש"),
                },
                requires_connection=True,
                min_tier="pro",
            ),
            CapabilitySpec(
                name=Capability.DATABASE,
                description="Manages tasks, WhatsApp reminders and named lists.",
                action_hints=(
                    "create task",
                    "create reminder",
                    "list tasks",
                    "complete task",
                    "delete task",
                    "update task",
                    "create list",
                    "add to list",
                ),
                keywords=(
                    "remind me",
                    "reminder",
                    "task",
                    "todo",
                    "to-do",
                    "list",
                    "i'm done",
                    "תזכיר",
                    "תזכורת",
                    "משימה",
                    "משימות",
                    "רשימה",
                    "סיימתי",
                ),
                action_keywords={
                    "delete task": ("delete", "remove", "clear", "מחק"),
                    "complete task": ("done", "finished", "complete", "סיימתי"),
                    "update task": ("update", "change", "move", "עדכן", "שנה"),
                    "add to list": ("add to", "to the list", "לרשימה"),
                    "list tasks": ("what are my", "show", "list my", "מה המשימות"),
                    "create reminder": ("remind", "תזכיר"),
                    "create task": ("add", "create", "new", "תוסיף"),
                },
            ),
            CapabilitySpec(
                name=Capability.CALENDAR,
                description="Creates, updates, deletes and lists calendar events; answers availability questions.",
                action_hints=(
                    "create event",
                    "list events",
                    "find event",
                    "update event",
                    "delete event",
                    "check availability",
                ),
                keywords=(
                    "meeting",
                    "event",
                    "calendar",
                    "schedule",
                    "appointment",
                    "book",
                    "פגישה",
                    "אירוע",
                    "יומן",
                    "לוז",
                    "תקבע",
                ),
                action_keywords={
                    "delete event": ("delete", "cancel", "remove", "מחק", "בטל"),
                    "update event": ("move", "reschedule", "change", "update", "הזז", "שנה"),
                    "check availability": ("free", "available", "פנוי"),
                    "list events": ("what do i have", "show", "list", "מה יש לי"),
                    "create event": ("schedule", "book", "add", "create", "תקבע", "תוסיף"),
                },
                requires_connection=True,
            ),
            CapabilitySpec(
                name=Capability.GENERAL,
                description="Conversation, advice and anything no other capability handles.",
                action_hints=("respond", "greeting response", "advice"),
            ),
        ),
        routing_rules=DEFAULT_ROUTING_RULES,
        meta_actions={
            "website": r"website|אתר|כתובת|url|link",
            "about_agent": r"who are you|מי אתה|what are you",
            "plan_info": r"my plan|what plan|plan price|תוכנית|מחיר",
            "account_status": r"am i connected|google connected|מחובר",
            "status": r"status|סטטוס",
            "help": r"help|עזרה",
        },
        meta_pattern=(
            r"what can you do|מה אתה יכול|\bhelp\b|עזרה|capabilities|יכולות|"
            r"who are you|מי אתה|what are you|my plan|what plan|am i connected|"
            r"google connected|מחובר לגוגל|\bstatus\b|סטטוס"
        ),
        greeting_pattern=(
            r"^(שלום|היי|הי|בוקר טוב|ערב טוב|hello|hi|hey|good morning|"
            r"good evening|תודה|thanks|thank you)[\s!?.]*$"
        ),
        high_risk_pattern=r"delete|remove|cancel|מחק|בטל|הסר|send.*e?mail|שלח.*מייל",
        medium_risk_pattern=r"update|modify|change|move|edit|reschedule|שנה|עדכן|הזז",
    )


def load_catalogue(path: Union[str, Path]) -> CapabilityCatalogue:
    """Loads and validates a catalogue from a YAML file.

    Args:
        path: Path to the YAML catalogue definition.

    Returns:
        The validated, immutable catalogue.

    Raises:
        CatalogueError: If the file cannot be parsed or fails validation.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise CatalogueError(f"Cannot read catalogue {path}: {e}") from e

    if not isinstance(data, dict):
        raise CatalogueError(f"Catalogue {path} must be a mapping")

    try:
        return CapabilityCatalogue.model_validate(data)
    except ValidationError as e:
        raise CatalogueError(f"Invalid catalogue {path}: {e}") from e
