"""Capability backend contract and registry.

This module defines the uniform interface every capability backend implements,
the registry the Plan Executor dispatches through, and an echo backend used by
the CLI demo and tests.
"""

from abc import ABC, abstractmethod
from typing import Any, Iterable, Optional

from capability_planner.models.enums import Capability
from capability_planner.models.execution_result import CapabilityResponse


class CapabilityBackend(ABC):
    """Interface for the backend behind one or more capabilities."""

    @abstractmethod
    def execute(
        self,
        capability: Capability,
        action: str,
        constraints: dict[str, Any],
        changes: dict[str, Any],
    ) -> CapabilityResponse:
        """Handles one dispatched plan step.

        Args:
            capability: The capability the step is routed to.
            action: Free-form action hint (e.g. 'create task').
            constraints: Step constraints; always carries 'rawMessage' and,
                for dependent steps, 'dependencyResults'.
            changes: Mutation payload for update-style actions.

        Returns:
            The single response for this step.

        Raises:
            Exception: Any failure; the executor records the step as failed.
        """
        pass  # pragma: no cover


class BackendRegistry:
    """Maps capabilities to the backend that handles them."""

    def __init__(self, backends: Optional[dict[Capability, CapabilityBackend]] = None):
        self._backends: dict[Capability, CapabilityBackend] = dict(backends or {})

    def register(self, capability: Capability, backend: CapabilityBackend) -> None:
        self._backends[capability] = backend

    def get(self, capability: Capability) -> Optional[CapabilityBackend]:
        return self._backends.get(capability)

    def __contains__(self, capability: Capability) -> bool:
        return capability in self._backends

    @property
    def capabilities(self) -> frozenset[Capability]:
        return frozenset(self._backends)

    @classmethod
    def with_backend(
        cls, backend: CapabilityBackend, capabilities: Iterable[Capability]
    ) -> "BackendRegistry":
        """Registry routing every listed capability to one backend."""
        return cls({capability: backend for capability in capabilities})


class EchoBackend(CapabilityBackend):
    """
    Demo backend that acknowledges every step without side effects.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[Capability, str, dict[str, Any], dict[str, Any]]] = []

    def execute(
        self,
        capability: Capability,
        action: str,
        constraints: dict[str, Any],
        changes: dict[str, Any],
    ) -> CapabilityResponse:
        self.calls.append((capability, action, dict(constraints), dict(changes)))

        text = f"[{capability.value}] {action}: {constraints.get('rawMessage', '')}"
        merged = constraints.get("mergedStepCount")
        if merged:
            text += f" ({merged} items)"
        if changes:
            text += " " + ", ".join(f"{k}={v}" for k, v in sorted(changes.items()))
        return CapabilityResponse(success=True, data=text)
