import io
import json
import logging
import sys
from unittest.mock import MagicMock

from prometheus_client import REGISTRY

from capability_planner.chat.collaborator import LanguageCollaborator
from capability_planner.execution.backends import BackendRegistry, EchoBackend
from capability_planner.execution.engine import PlanExecutor
from capability_planner.models.enums import Capability
from capability_planner.models.plan import PlanStep
from capability_planner.observability.logging import (
    JsonFormatter,
    get_logger,
    log_event,
    setup_logging,
)
from capability_planner.planning.builder import PlanBuilder


def test_json_formatter():
    formatter = JsonFormatter()
    log_record = logging.LogRecord(
        name="test_logger",
        level=logging.INFO,
        pathname="test.py",
        lineno=10,
        msg="test message",
        args=(),
        exc_info=None,
    )
    log_record.extra_fields = {"event": "test_event", "custom": "value"}
    log_record.session_id = "s-1"

    data = json.loads(formatter.format(log_record))

    assert data["message"] == "test message"
    assert data["level"] == "INFO"
    assert data["component"] == "test_logger"
    assert data["event"] == "test_event"
    assert data["custom"] == "value"
    assert data["session_id"] == "s-1"
    assert "timestamp" in data


def test_json_formatter_exception():
    try:
        raise ValueError("boom")
    except ValueError:
        record = logging.makeLogRecord(
            {"name": "x", "levelname": "ERROR", "msg": "failed", "exc_info": sys.exc_info()}
        )

    data = json.loads(JsonFormatter().format(record))

    assert data["message"] == "failed"
    assert "ValueError: boom" in data["exception"]
    assert "exc_info" not in data


def test_log_event_fields():
    log_output = io.StringIO()
    handler = logging.StreamHandler(log_output)
    handler.setFormatter(JsonFormatter())

    logger = get_logger("test_log_event")
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)

    log_event(logger, "plan.built", steps=2, language="עברית")

    data = json.loads(log_output.getvalue())
    assert data["message"] == "plan.built"
    assert data["event"] == "plan.built"
    assert data["steps"] == 2
    assert data["language"] == "עברית"


def test_setup_logging(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "warning")
    setup_logging()
    root = logging.getLogger()
    assert root.level == logging.WARNING
    assert isinstance(root.handlers[0].formatter, JsonFormatter)


def test_step_metrics_recorded():
    labels = {"capability": "database", "status": "success"}
    before = REGISTRY.get_sample_value("plan_step_results_total", labels) or 0.0

    registry = BackendRegistry.with_backend(EchoBackend(), [Capability.DATABASE])
    PlanExecutor(registry).execute([PlanStep(id="A", capability=Capability.DATABASE)])

    after = REGISTRY.get_sample_value("plan_step_results_total", labels)
    assert after == before + 1
    assert REGISTRY.get_sample_value(
        "plan_step_duration_seconds_count", {"capability": "database"}
    ) >= 1


def test_parse_failure_metric():
    before = REGISTRY.get_sample_value("planner_parse_failures_total") or 0.0

    collaborator = MagicMock(spec=LanguageCollaborator)
    collaborator.plan.return_value = "garbage"
    PlanBuilder(collaborator).build("hello")

    assert REGISTRY.get_sample_value("planner_parse_failures_total") == before + 1
