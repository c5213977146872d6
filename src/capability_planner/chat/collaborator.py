"""Abstract base class for language-understanding collaborators.

This module defines the three request/response contracts the engine relies on:
classifying a message, drafting a raw step list, and narrating a finished
multi-capability run.
"""

from abc import ABC, abstractmethod
from typing import Any


class LanguageCollaborator(ABC):
    """Interface to the external language-understanding service."""

    @abstractmethod
    def classify(
        self, text: str, context: list[dict[str, str]]
    ) -> dict[str, Any]:
        """Classifies a message into a raw intent decision.

        Args:
            text: The user's message.
            context: Recent conversation turns, oldest first. Each turn is a
                dictionary with 'role' and 'content' keys.

        Returns:
            The raw decision document (keys such as 'primaryIntent',
            'requiresPlan', 'involvedAgents', 'confidence').

        Raises:
            Exception: Any failure to reach or parse the service.
        """
        pass  # pragma: no cover

    @abstractmethod
    def plan(self, messages: list[dict[str, str]]) -> str:
        """Drafts a raw step-list document.

        Args:
            messages: The chat transcript to send, starting with the system
                prompt. Retries append the invalid output and a correction.

        Returns:
            The unparsed text reply.
        """
        pass  # pragma: no cover

    @abstractmethod
    def summarize(self, payload: dict[str, Any]) -> str:
        """Narrates a structured {language, plan, results} summary.

        Args:
            payload: JSON-serializable description of the plan and its results.

        Returns:
            User-facing narrative text.
        """
        pass  # pragma: no cover
