import json
from unittest.mock import MagicMock, patch

import pytest

from capability_planner.chat.openai_adapter import OpenAICollaborator


def completion(content, total_tokens=12):
    mock = MagicMock()
    mock.choices = [MagicMock(message=MagicMock(content=content))]
    mock.usage.total_tokens = total_tokens
    return mock


@pytest.fixture
def adapter():
    with patch("capability_planner.chat.openai_adapter.OpenAI"):
        return OpenAICollaborator()


def test_adapter_initialization(monkeypatch):
    monkeypatch.delenv("OPENAI_MODEL", raising=False)
    with patch("capability_planner.chat.openai_adapter.OpenAI") as mock_openai:
        adapter = OpenAICollaborator(model_name="test-model")
        assert adapter.model_name == "test-model"
        mock_openai.assert_called_once()


def test_model_from_env(monkeypatch):
    monkeypatch.setenv("OPENAI_MODEL", "env-model")
    with patch("capability_planner.chat.openai_adapter.OpenAI"):
        assert OpenAICollaborator().model_name == "env-model"


def test_classify(adapter):
    adapter.client.chat.completions.create.return_value = completion(
        '{"primaryIntent": "database", "requiresPlan": false, "involvedAgents": ["database"]}'
    )

    decision = adapter.classify("remind me", [{"role": "user", "content": "earlier"}])

    assert decision["primaryIntent"] == "database"
    kwargs = adapter.client.chat.completions.create.call_args.kwargs
    assert kwargs["response_format"] == {"type": "json_object"}
    assert kwargs["messages"][0]["role"] == "system"
    assert kwargs["messages"][1] == {"role": "user", "content": "earlier"}
    assert kwargs["messages"][-1] == {"role": "user", "content": "remind me"}


def test_classify_unparseable(adapter):
    adapter.client.chat.completions.create.return_value = completion("sorry")
    assert adapter.classify("x", []) == {}


def test_classify_empty(adapter):
    adapter.client.chat.completions.create.return_value = completion(None)
    assert adapter.classify("x", []) == {}


def test_plan_returns_raw_text(adapter):
    raw = json.dumps({"intentType": "operation", "plan": []})
    adapter.client.chat.completions.create.return_value = completion(raw)
    messages = [{"role": "system", "content": "s"}, {"role": "user", "content": "u"}]

    assert adapter.plan(messages) == raw
    kwargs = adapter.client.chat.completions.create.call_args.kwargs
    assert kwargs["messages"] == messages
    assert kwargs["max_tokens"] == 2500


def test_summarize(adapter):
    adapter.client.chat.completions.create.return_value = completion("  All done.  ")
    payload = {"language": "hebrew", "plan": [], "results": []}

    assert adapter.summarize(payload) == "All done."
    kwargs = adapter.client.chat.completions.create.call_args.kwargs
    assert "response_format" not in kwargs
    assert json.loads(kwargs["messages"][1]["content"]) == payload


def test_errors_propagate(adapter):
    adapter.client.chat.completions.create.side_effect = RuntimeError("quota")
    with pytest.raises(RuntimeError):
        adapter.plan([])
