import pytest

from capability_planner.config.catalogue import default_catalogue
from capability_planner.models.enums import Capability, IntentType, RiskLevel
from capability_planner.planning.heuristics import (
    fallback_plan,
    infer_action,
    infer_capability,
    infer_meta_action,
    infer_risk,
    matches_greeting,
    matches_meta,
)


@pytest.fixture
def catalogue():
    return default_catalogue()


class TestRouting:
    @pytest.mark.parametrize(
        "message,expected",
        [
            ("remind me to pay rent", Capability.DATABASE),
            ("schedule a meeting with Dana", Capability.CALENDAR),
            ("check my inbox", Capability.GMAIL),
            ("remember that my locker code is 42", Capability.SECOND_BRAIN),
            ("תזכיר לי לקנות חלב", Capability.DATABASE),
            ("what's the capital of France", Capability.GENERAL),
        ],
    )
    def test_infer_capability(self, catalogue, message, expected):
        assert infer_capability(message, catalogue) == expected

    def test_unconnected_calendar_degrades_to_database(self, catalogue):
        allowed = {Capability.DATABASE, Capability.GENERAL}
        assert (
            infer_capability("book an appointment", catalogue, allowed)
            == Capability.DATABASE
        )

    def test_unconnected_gmail_degrades_to_general(self, catalogue):
        allowed = {Capability.DATABASE, Capability.GENERAL}
        assert infer_capability("check my inbox", catalogue, allowed) == Capability.GENERAL

    def test_infer_action_first_match_wins(self, catalogue):
        assert (
            infer_action("delete the task about milk", Capability.DATABASE, catalogue)
            == "delete task"
        )
        assert infer_action("whatever", Capability.DATABASE, catalogue) == "process request"

    def test_infer_action_meta(self, catalogue):
        assert infer_action("who are you?", Capability.META, catalogue) == "about_agent"


class TestPatterns:
    def test_greeting(self, catalogue):
        assert matches_greeting("  Hello!! ", catalogue)
        assert matches_greeting("שלום", catalogue)
        assert not matches_greeting("hello, add a task", catalogue)

    def test_meta(self, catalogue):
        assert matches_meta("What can you do?", catalogue)
        assert not matches_meta("add milk to the list", catalogue)

    @pytest.mark.parametrize(
        "message,expected",
        [
            ("what is your website", "website"),
            ("am I connected to google?", "account_status"),
            ("help", "help"),
            ("what can you do", "describe_capabilities"),
        ],
    )
    def test_meta_action(self, catalogue, message, expected):
        assert infer_meta_action(message, catalogue) == expected

    def test_risk(self, catalogue):
        assert infer_risk(["delete all my tasks"], catalogue) == RiskLevel.HIGH
        assert infer_risk(["send an email to Bob"], catalogue) == RiskLevel.HIGH
        assert infer_risk(["move my meeting"], catalogue) == RiskLevel.MEDIUM
        assert infer_risk(["add milk"], catalogue) == RiskLevel.LOW
        assert infer_risk(["move it", "then cancel it"], catalogue) == RiskLevel.HIGH


class TestFallbackPlan:
    def test_operation(self, catalogue):
        plan = fallback_plan("delete the task about milk", catalogue)
        assert plan.intent_type == IntentType.OPERATION
        assert plan.confidence == 0.4
        assert plan.missing_fields == ["intent_unclear"]
        assert plan.risk_level == RiskLevel.HIGH
        assert plan.needs_approval is True
        assert plan.steps[0].capability == Capability.DATABASE
        assert plan.steps[0].action == "delete task"
        assert plan.steps[0].raw_message == "delete the task about milk"

    def test_meta(self, catalogue):
        plan = fallback_plan("what can you do?", catalogue)
        assert plan.intent_type == IntentType.META
        assert plan.steps[0].capability == Capability.META

    def test_greeting(self, catalogue):
        plan = fallback_plan("hi", catalogue)
        assert plan.intent_type == IntentType.CONVERSATION
        assert plan.steps[0].action == "greeting response"

    def test_confidence_capped(self, catalogue):
        plan = fallback_plan("hi", catalogue, confidence=0.9)
        assert plan.confidence <= 0.5
