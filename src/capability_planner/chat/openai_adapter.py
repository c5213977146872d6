"""OpenAI-based implementation of the language collaborator.

This module provides a collaborator that uses OpenAI's Chat Completion API to
classify messages, draft plan documents and narrate execution results.
"""

import json
import os
from typing import Any, Optional, cast

from openai import OpenAI
from openai.types.chat.chat_completion_message_param import (
    ChatCompletionMessageParam,
)

from capability_planner.chat.collaborator import LanguageCollaborator
from capability_planner.chat.prompts import SUMMARY_PROMPT, build_classifier_prompt
from capability_planner.config.catalogue import CapabilityCatalogue, default_catalogue
from capability_planner.observability.logging import get_logger
from capability_planner.observability.metrics import LLM_TOKEN_USAGE_TOTAL
from capability_planner.planning.wire import extract_json_object

logger = get_logger(__name__)


class OpenAICollaborator(LanguageCollaborator):
    """Collaborator backed by OpenAI chat completions."""

    def __init__(
        self,
        model_name: str = "gpt-4o-mini",
        catalogue: Optional[CapabilityCatalogue] = None,
    ):
        """Initializes the OpenAI collaborator.

        Args:
            model_name: The identifier of the OpenAI model to use.
                Defaults to 'gpt-4o-mini' unless overridden by the
                OPENAI_MODEL environment variable.
            catalogue: Capability catalogue embedded in the classifier prompt.
        """
        api_key = os.environ.get("OPENAI_API_KEY")
        base_url = os.environ.get("OPENAI_API_BASE")

        self.client = OpenAI(api_key=api_key, base_url=base_url)
        self.model_name = os.environ.get("OPENAI_MODEL", model_name)
        self.catalogue = catalogue or default_catalogue()
        self._classifier_prompt = build_classifier_prompt(self.catalogue)

    def _complete(
        self,
        messages: list[ChatCompletionMessageParam],
        *,
        temperature: float,
        max_tokens: int,
        json_mode: bool = False,
    ) -> str:
        kwargs: dict[str, Any] = {
            "model": self.model_name,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        completion = self.client.chat.completions.create(**kwargs)

        if getattr(completion, "usage", None):
            LLM_TOKEN_USAGE_TOTAL.labels(model=self.model_name).inc(
                completion.usage.total_tokens
            )

        return (completion.choices[0].message.content or "").strip()

    def classify(
        self, text: str, context: list[dict[str, str]]
    ) -> dict[str, Any]:
        """Classifies a message using the intent classifier prompt.

        Args:
            text: The user's message.
            context: Recent conversation turns, oldest first.

        Returns:
            The raw decision document; empty when the reply holds no JSON.
        """
        messages: list[ChatCompletionMessageParam] = [
            {"role": "system", "content": self._classifier_prompt}
        ]
        for turn in context:
            messages.append(
                cast(
                    ChatCompletionMessageParam,
                    {
                        "role": turn.get("role", "user"),
                        "content": str(turn.get("content", "")),
                    },
                )
            )
        messages.append({"role": "user", "content": text})

        raw = self._complete(
            messages, temperature=0.1, max_tokens=200, json_mode=True
        )
        if not raw:
            logger.warning("Intent classifier returned empty content")
            return {}
        return extract_json_object(raw) or {}

    def plan(self, messages: list[dict[str, str]]) -> str:
        """Requests a raw plan document.

        Args:
            messages: System prompt, user prompt and any correction turns.

        Returns:
            The unparsed reply text.
        """
        return self._complete(
            cast(list[ChatCompletionMessageParam], messages),
            temperature=0.3,
            max_tokens=2500,
            json_mode=True,
        )

    def summarize(self, payload: dict[str, Any]) -> str:
        """Narrates a multi-capability execution summary.

        Args:
            payload: The {language, plan, results} summary document.

        Returns:
            Plain-text narrative.
        """
        messages: list[ChatCompletionMessageParam] = [
            {"role": "system", "content": SUMMARY_PROMPT},
            {
                "role": "user",
                "content": json.dumps(payload, ensure_ascii=False, indent=2),
            },
        ]
        return self._complete(messages, temperature=0.7, max_tokens=500)
