from typing import Literal, Optional

from pydantic import ConfigDict, Field

from capability_planner.models.base import ModelBase
from capability_planner.models.enums import Capability, Language


Tier = Literal["free", "standard", "pro", "business"]

TIER_ORDER: tuple[str, ...] = ("free", "standard", "pro", "business")


def tier_rank(tier: str) -> int:
    """Position of a subscription tier; unknown tiers rank lowest."""
    try:
        return TIER_ORDER.index(tier)
    except ValueError:
        return 0


class CallerProfile(ModelBase):
    """
    Entitlements of the user issuing a request.

    The Access Gate compares these against the catalogue's per-capability
    requirements once, before a plan executes.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    connected: frozenset[Capability] = Field(
        default_factory=frozenset,
        description="Capabilities whose external account is linked.",
    )

    tier: Tier = Field(
        default="standard",
        description="Subscription tier of the caller.",
    )

    language: Optional[Language] = Field(
        default=None,
        description="Preferred reply language; detected from the message when unset.",
    )
