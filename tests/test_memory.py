import pytest

from capability_planner.chat.language import detect_language
from capability_planner.chat.memory import RollingContext, build_history_block
from capability_planner.models.enums import Capability, Language


class TestRollingContext:
    def test_oldest_entries_evicted(self):
        context = RollingContext(max_entries=3)
        for i in range(5):
            context.add("user", f"m{i}")
        assert [e.content for e in context] == ["m2", "m3", "m4"]
        assert len(context) == 3

    def test_recent(self):
        context = RollingContext(10)
        for i in range(4):
            context.add("assistant", f"m{i}")
        assert [e.content for e in context.recent(2)] == ["m2", "m3"]
        assert context.recent(0) == []

    def test_as_messages(self):
        context = RollingContext(10)
        context.add("user", "hi")
        context.add("assistant", "hello", capability=Capability.GENERAL)
        assert context.as_messages() == [
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": "hello"},
        ]

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            RollingContext(0)


class TestHistoryBlock:
    def test_newest_first_and_tagged(self):
        context = RollingContext(10)
        context.add("user", "add milk")
        context.add("assistant", "Task created", step_id="A", capability=Capability.DATABASE)

        block = build_history_block(context)

        assert block.splitlines() == [
            "[assistant/database]: Task created",
            "[user]: add milk",
        ]

    def test_truncation(self):
        context = RollingContext(10)
        context.add("user", "x" * 300)
        block = build_history_block(context, preview_chars=200)
        assert block == "[user]: " + "x" * 200 + "..."

    def test_empty(self):
        assert build_history_block(RollingContext(10)) == ""


@pytest.mark.parametrize(
    "text,expected",
    [
        ("תזכיר לי מחר", Language.HEBREW),
        ("remind me tomorrow", Language.ENGLISH),
        ("add משימה", Language.HEBREW),
        ("12:30 !!", Language.OTHER),
        ("", Language.OTHER),
    ],
)
def test_detect_language(text, expected):
    assert detect_language(text) == expected
