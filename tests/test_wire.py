import pytest

from capability_planner.errors import PlanParseError
from capability_planner.planning.wire import (
    decode_document,
    decode_step,
    extract_json,
    extract_json_object,
    parse_plan_reply,
)


class TestExtractJson:
    def test_plain_json(self):
        assert extract_json('{"a": 1}') == {"a": 1}

    def test_markdown_fence(self):
        assert extract_json('```json\n{"a": 1}\n```') == {"a": 1}

    def test_object_inside_prose(self):
        raw = 'Sure! Here is the plan: {"plan": []} Let me know.'
        assert extract_json(raw) == {"plan": []}

    def test_garbage(self):
        assert extract_json("not json at all") is None
        assert extract_json("") is None

    def test_extract_object_rejects_arrays(self):
        assert extract_json_object("[1, 2]") is None
        assert extract_json_object('{"x": true}') == {"x": True}


class TestParsePlanReply:
    def test_valid_document(self):
        doc = parse_plan_reply('{"intentType": "operation", "plan": [{"id": "A"}]}')
        assert doc["plan"] == [{"id": "A"}]

    def test_bare_array_is_wrapped(self):
        doc = parse_plan_reply('[{"capability": "database"}]')
        assert doc == {"plan": [{"capability": "database"}]}

    def test_steps_key_accepted(self):
        doc = parse_plan_reply('{"steps": []}')
        assert doc["steps"] == []

    def test_null_plan_defers_to_steps(self):
        doc = parse_plan_reply('{"plan": null, "steps": [{"capability": "database"}]}')
        assert decode_document(doc, "add milk")["plan"][0]["capability"] == "database"

    def test_null_plan_and_steps_raises(self):
        with pytest.raises(PlanParseError):
            parse_plan_reply('{"plan": null, "steps": null}')

    def test_scalar_missing_fields_accepted(self):
        doc = parse_plan_reply('{"missingFields": "time_unclear", "plan": []}')
        assert decode_document(doc, "x")["missingFields"] == ["time_unclear"]

    def test_not_json_raises(self):
        with pytest.raises(PlanParseError) as exc:
            parse_plan_reply("I cannot help with that")
        assert exc.value.code == "plan.parse_failed"
        assert exc.value.raw == "I cannot help with that"

    def test_missing_plan_raises(self):
        with pytest.raises(PlanParseError):
            parse_plan_reply('{"intentType": "operation"}')

    def test_plan_not_a_list_raises(self):
        with pytest.raises(PlanParseError):
            parse_plan_reply('{"plan": "do it"}')

    def test_plan_entries_must_be_objects(self):
        with pytest.raises(PlanParseError):
            parse_plan_reply('{"plan": ["A", "B"]}')


class TestDecode:
    def test_legacy_spellings(self):
        doc = {
            "intent_type": "operation",
            "risk_level": "medium",
            "needs_approval": True,
            "missing_fields": ["time_unclear"],
            "plan": [
                {
                    "id": "A",
                    "capability": "calendar",
                    "intent": "update event",
                    "depends_on": ["B"],
                }
            ],
        }
        decoded = decode_document(doc, "move my meeting")
        assert decoded["intentType"] == "operation"
        assert decoded["riskLevel"] == "medium"
        assert decoded["needsApproval"] is True
        assert decoded["missingFields"] == ["time_unclear"]
        step = decoded["plan"][0]
        assert step["action"] == "update event"
        assert step["dependsOn"] == ["B"]

    def test_canonical_spelling_wins(self):
        decoded = decode_document(
            {"riskLevel": "high", "risk_level": "low", "plan": []}, "x"
        )
        assert decoded["riskLevel"] == "high"

    def test_step_defaults(self):
        step = decode_step({"capability": " Database "}, "add milk")
        assert step["id"] is None
        assert step["capability"] == "database"
        assert step["action"] == "process request"
        assert step["constraints"] == {"rawMessage": "add milk"}
        assert step["changes"] == {}
        assert step["dependsOn"] == []

    def test_existing_raw_message_kept(self):
        step = decode_step(
            {"constraints": {"rawMessage": "first part", "listName": "groceries"}},
            "full message",
        )
        assert step["constraints"]["rawMessage"] == "first part"
        assert step["constraints"]["listName"] == "groceries"

    def test_scalar_depends_on_becomes_list(self):
        step = decode_step({"dependsOn": "A"}, "x")
        assert step["dependsOn"] == ["A"]

    def test_non_object_entries_skipped(self):
        decoded = decode_document({"plan": [{"id": "A"}, "junk"]}, "x")
        assert len(decoded["plan"]) == 1
