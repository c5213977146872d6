"""Gemini-based implementation of the language collaborator.

This module provides a collaborator that uses Google's Gemini models to
classify messages, draft plan documents and narrate execution results.
"""

import json
import os
from typing import Any, Optional

import google.generativeai as genai

from capability_planner.chat.collaborator import LanguageCollaborator
from capability_planner.chat.prompts import SUMMARY_PROMPT, build_classifier_prompt
from capability_planner.config.catalogue import CapabilityCatalogue, default_catalogue
from capability_planner.observability.metrics import LLM_TOKEN_USAGE_TOTAL
from capability_planner.planning.wire import extract_json_object


class GeminiCollaborator(LanguageCollaborator):
    """Collaborator backed by Google Gemini models."""

    def __init__(
        self,
        model_name: str = "gemini-2.0-flash",
        catalogue: Optional[CapabilityCatalogue] = None,
    ):
        """Initializes the Gemini collaborator.

        Args:
            model_name: The identifier of the Gemini model to use.
                Defaults to 'gemini-2.0-flash' unless overridden by the
                GEMINI_MODEL environment variable.
            catalogue: Capability catalogue embedded in the classifier prompt.
        """
        genai.configure(api_key=os.environ.get("GOOGLE_API_KEY"))
        self.model_name = os.environ.get("GEMINI_MODEL", model_name)
        self.catalogue = catalogue or default_catalogue()
        self._classifier_prompt = build_classifier_prompt(self.catalogue)

    @staticmethod
    def _to_contents(turns: list[dict[str, str]]) -> list[dict[str, Any]]:
        """Converts chat turns to Gemini contents ('assistant' -> 'model')."""
        contents = []
        for turn in turns:
            role = turn.get("role", "user")
            if role not in ("user", "assistant"):
                continue
            contents.append(
                {
                    "role": "model" if role == "assistant" else "user",
                    "parts": [str(turn.get("content", ""))],
                }
            )
        return contents

    def _generate(
        self,
        system_instruction: str,
        contents: list[dict[str, Any]],
        *,
        temperature: float,
        json_mode: bool = False,
    ) -> str:
        model = genai.GenerativeModel(
            model_name=self.model_name,
            system_instruction=system_instruction,
        )
        config: dict[str, Any] = {"temperature": temperature}
        if json_mode:
            config["response_mime_type"] = "application/json"

        response = model.generate_content(contents, generation_config=config)

        if response.usage_metadata:
            LLM_TOKEN_USAGE_TOTAL.labels(model=self.model_name).inc(
                response.usage_metadata.total_token_count
            )

        return (response.text or "").strip()

    def classify(
        self, text: str, context: list[dict[str, str]]
    ) -> dict[str, Any]:
        """Classifies a message using the intent classifier prompt."""
        contents = self._to_contents(context)
        contents.append({"role": "user", "parts": [text]})
        raw = self._generate(
            self._classifier_prompt, contents, temperature=0.1, json_mode=True
        )
        return extract_json_object(raw) or {}

    def plan(self, messages: list[dict[str, str]]) -> str:
        """Requests a raw plan document.

        The leading system turn becomes the system instruction.
        """
        system = "\n\n".join(
            m.get("content", "") for m in messages if m.get("role") == "system"
        )
        return self._generate(
            system, self._to_contents(messages), temperature=0.3, json_mode=True
        )

    def summarize(self, payload: dict[str, Any]) -> str:
        """Narrates a multi-capability execution summary."""
        contents = [
            {
                "role": "user",
                "parts": [json.dumps(payload, ensure_ascii=False, indent=2)],
            }
        ]
        return self._generate(SUMMARY_PROMPT, contents, temperature=0.7)
