import pytest
import yaml

from capability_planner.config.catalogue import (
    CapabilityCatalogue,
    CapabilitySpec,
    default_catalogue,
    load_catalogue,
)
from capability_planner.config.settings import EngineConfig
from capability_planner.errors import CatalogueError
from capability_planner.models.enums import Capability


class TestDefaultCatalogue:
    def test_known_capabilities(self):
        catalogue = default_catalogue()
        assert catalogue.known == set(Capability)
        assert Capability.GENERAL not in catalogue.domain_capabilities
        assert Capability.META not in catalogue.domain_capabilities

    def test_entitlements(self):
        catalogue = default_catalogue()
        assert catalogue.get(Capability.CALENDAR).requires_connection
        assert catalogue.get(Capability.GMAIL).min_tier == "pro"
        assert not catalogue.get(Capability.DATABASE).requires_connection

    def test_routing_suggestions_ordered_by_score(self):
        suggestions = default_catalogue().routing_suggestions(
            "schedule a meeting in my calendar and add a task"
        )
        assert suggestions[0].capability == Capability.CALENDAR
        assert suggestions[0].score == 3
        assert {s.capability for s in suggestions} == {Capability.CALENDAR, Capability.DATABASE}

    def test_prompt_section(self):
        text = default_catalogue().render_prompt_section()
        assert text.startswith("## CAPABILITIES")
        assert "### second-brain" in text
        assert "## ROUTING RULES" in text

    def test_catalogue_is_immutable(self):
        catalogue = default_catalogue()
        with pytest.raises(Exception):
            catalogue.routing_rules = "anything"


class TestValidation:
    def test_general_required(self):
        with pytest.raises(ValueError):
            CapabilityCatalogue(capabilities=(CapabilitySpec(name=Capability.DATABASE),))

    def test_duplicate_names_rejected(self):
        with pytest.raises(ValueError):
            CapabilityCatalogue(
                capabilities=(
                    CapabilitySpec(name=Capability.GENERAL),
                    CapabilitySpec(name=Capability.GENERAL),
                )
            )

    def test_bad_regex_rejected(self):
        with pytest.raises(ValueError):
            CapabilityCatalogue(
                capabilities=(CapabilitySpec(name=Capability.GENERAL),),
                meta_pattern="(unclosed",
            )


class TestLoadCatalogue:
    def test_load_yaml(self, tmp_path):
        path = tmp_path / "catalogue.yaml"
        path.write_text(
            yaml.safe_dump(
                {
                    "capabilities": [
                        {"name": "database", "keywords": ["todo"], "action_hints": ["create task"]},
                        {"name": "general"},
                    ],
                    "routing_rules": "todo -> database",
                }
            )
        )
        catalogue = load_catalogue(path)
        assert catalogue.known == {Capability.DATABASE, Capability.GENERAL}
        assert catalogue.get(Capability.DATABASE).keywords == ("todo",)

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("capabilities: [unclosed")
        with pytest.raises(CatalogueError):
            load_catalogue(path)

    def test_unknown_capability(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("capabilities:\n  - name: weather\n  - name: general\n")
        with pytest.raises(CatalogueError) as exc:
            load_catalogue(path)
        assert exc.value.code == "catalogue.invalid"

    def test_missing_file(self, tmp_path):
        with pytest.raises(CatalogueError):
            load_catalogue(tmp_path / "missing.yaml")


def test_engine_config_from_env(monkeypatch):
    monkeypatch.setenv("PLANNER_CONTEXT_WINDOW", "5")
    monkeypatch.setenv("PLANNER_CLARIFICATION_THRESHOLD", "0.3")
    monkeypatch.setenv("PLANNER_ENFORCE_APPROVAL", "yes")
    monkeypatch.setenv("PLANNER_MAX_SESSIONS", "50")
    config = EngineConfig.from_env()
    assert config.context_window == 5
    assert config.clarification_threshold == 0.3
    assert config.enforce_approval is True
    assert config.history_limit == 10
    assert config.max_sessions == 50
