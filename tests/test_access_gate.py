import pytest

from capability_planner.errors import CapabilityDenied
from capability_planner.execution.gate import AccessGate
from capability_planner.models.caller import CallerProfile
from capability_planner.models.enums import Capability, Language
from capability_planner.models.plan import PlanStep


def make_step(step_id, capability, message="do it"):
    return PlanStep(
        id=step_id,
        capability=capability,
        action="process request",
        constraints={"rawMessage": message},
    )


@pytest.fixture
def gate():
    return AccessGate()


class TestAccessGate:
    def test_unconnected_capability_removed(self, gate):
        steps = [make_step("A", Capability.CALENDAR), make_step("B", Capability.DATABASE)]
        kept = gate.filter(steps, CallerProfile())
        assert [s.id for s in kept] == ["B"]

    def test_connected_capability_kept(self, gate):
        steps = [make_step("A", Capability.CALENDAR)]
        caller = CallerProfile(connected=frozenset({Capability.CALENDAR}))
        assert gate.filter(steps, caller) == steps

    def test_tier_requirement(self, gate):
        steps = [make_step("A", Capability.GMAIL)]
        standard = CallerProfile(connected=frozenset({Capability.GMAIL}), tier="standard")
        pro = CallerProfile(connected=frozenset({Capability.GMAIL}), tier="pro")

        with pytest.raises(CapabilityDenied):
            gate.filter(steps, standard)
        assert gate.filter(steps, pro) == steps

    def test_free_tier_cannot_use_second_brain(self, gate):
        assert gate.denial_reason(Capability.SECOND_BRAIN, CallerProfile(tier="free")) == "tier"
        assert gate.denial_reason(Capability.SECOND_BRAIN, CallerProfile()) is None

    def test_allowed_capabilities(self, gate):
        allowed = gate.allowed_capabilities(CallerProfile())
        assert Capability.CALENDAR not in allowed
        assert Capability.GMAIL not in allowed
        assert {Capability.DATABASE, Capability.GENERAL, Capability.META} <= allowed

    def test_empty_input_passes(self, gate):
        assert gate.filter([], CallerProfile()) == []

    @pytest.mark.parametrize(
        "capabilities,fragment",
        [
            ([Capability.CALENDAR], "היומן שלך לא מחובר"),
            ([Capability.GMAIL], "ה-Gmail שלך לא מחובר"),
            ([Capability.CALENDAR, Capability.GMAIL], "היומן וה-Gmail"),
        ],
    )
    def test_hebrew_denial_messages(self, gate, capabilities, fragment):
        steps = [make_step(sequential, cap, "תקבע פגישה") for sequential, cap in zip("AB", capabilities)]
        with pytest.raises(CapabilityDenied) as exc:
            gate.filter(steps, CallerProfile(tier="pro"))
        assert fragment in exc.value.detail
        assert "https://" in exc.value.detail
        assert exc.value.missing == [c.value for c in capabilities]

    def test_english_denial_message(self, gate):
        steps = [make_step("A", Capability.CALENDAR, "schedule a meeting")]
        with pytest.raises(CapabilityDenied) as exc:
            gate.filter(steps, CallerProfile())
        assert exc.value.detail.startswith("Your calendar is not connected")

    def test_generic_denial_for_tier(self, gate):
        steps = [make_step("A", Capability.SECOND_BRAIN, "remember that")]
        with pytest.raises(CapabilityDenied) as exc:
            gate.filter(steps, CallerProfile(tier="free"), language=Language.ENGLISH)
        assert "upgrade" in exc.value.detail

    def test_caller_language_preferred(self, gate):
        steps = [make_step("A", Capability.CALENDAR, "schedule a meeting")]
        caller = CallerProfile(language=Language.HEBREW)
        with pytest.raises(CapabilityDenied) as exc:
            gate.filter(steps, caller)
        assert "היומן" in exc.value.detail
