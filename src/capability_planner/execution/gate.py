from typing import Optional

from capability_planner.chat.language import detect_language
from capability_planner.config.catalogue import CapabilityCatalogue, default_catalogue
from capability_planner.errors import CapabilityDenied
from capability_planner.execution.messages import CONNECT_URL, render
from capability_planner.models.caller import CallerProfile, tier_rank
from capability_planner.models.enums import Capability, Language
from capability_planner.models.plan import PlanStep
from capability_planner.observability.logging import get_logger, log_event

logger = get_logger(__name__)


class AccessGate:
    """
    Removes plan steps whose capability the caller cannot use.

    Entitlements are evaluated once, before execution starts.
    """

    def __init__(self, catalogue: Optional[CapabilityCatalogue] = None):
        self.catalogue = catalogue or default_catalogue()

    def denial_reason(
        self, capability: Capability, caller: CallerProfile
    ) -> Optional[str]:
        """'connection', 'tier' or None when the caller may use the capability."""
        spec = self.catalogue.get(capability)
        if spec is None:
            return None
        if spec.requires_connection and capability not in caller.connected:
            return "connection"
        if spec.min_tier is not None and tier_rank(caller.tier) < tier_rank(
            spec.min_tier
        ):
            return "tier"
        return None

    def allowed_capabilities(self, caller: CallerProfile) -> frozenset[Capability]:
        return frozenset(
            c for c in self.catalogue.known if self.denial_reason(c, caller) is None
        )

    def filter(
        self,
        steps: list[PlanStep],
        caller: CallerProfile,
        language: Optional[Language] = None,
    ) -> list[PlanStep]:
        """Keeps the steps the caller is entitled to run.

        Args:
            steps: The plan's steps, in order.
            caller: Entitlements of the requesting user.
            language: Language of the denial message; defaults to the
                caller's preference, then the request text.

        Returns:
            The usable steps, in their original order.

        Raises:
            CapabilityDenied: If steps were given and none remain.
        """
        kept: list[PlanStep] = []
        denied: dict[Capability, str] = {}
        for step in steps:
            reason = self.denial_reason(step.capability, caller)
            if reason is None:
                kept.append(step)
            else:
                denied.setdefault(step.capability, reason)

        if denied:
            log_event(
                logger,
                "gate.steps_removed",
                removed={c.value: r for c, r in denied.items()},
                kept=[s.id for s in kept],
            )

        if steps and not kept:
            if language is None:
                language = caller.language or detect_language(steps[0].raw_message)
            raise CapabilityDenied(
                self.denial_message(denied, language),
                missing=[c.value for c in denied],
            )
        return kept

    @staticmethod
    def denial_message(denied: dict[Capability, str], language: Language) -> str:
        unlinked = {c for c, reason in denied.items() if reason == "connection"}
        if {Capability.CALENDAR, Capability.GMAIL} <= unlinked:
            key = "denied.both"
        elif Capability.CALENDAR in unlinked:
            key = "denied.calendar"
        elif Capability.GMAIL in unlinked:
            key = "denied.gmail"
        else:
            key = "denied.generic"
        return render(key, language, url=CONNECT_URL)
