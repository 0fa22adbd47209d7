"""OpenAI-based implementation of the planner adapter.

This module provides an adapter that uses OpenAI's Chat Completion API to
turn a system prompt and a user prompt into raw planner text.
"""

import os
from typing import Any, Optional

from openai import OpenAI, OpenAIError
from openai.types.chat.chat_completion_message_param import (
    ChatCompletionMessageParam,
)

from invocursor.chat.adapter import PlannerAdapter
from invocursor.errors import PlannerError
from invocursor.observability.logging import get_logger


logger = get_logger(__name__)

PLAN_MAX_TOKENS = 500
JSON_MAX_TOKENS = 2000


class OpenAIPlannerAdapter(PlannerAdapter):
    """Planner adapter backed by an OpenAI chat model."""

    def __init__(
        self,
        model_name: str = "gpt-4o-mini",
        api_key: Optional[str] = None,
        temperature: float = 0.1,
    ):
        """Initializes the OpenAI adapter.

        Args:
            model_name: The identifier of the OpenAI model to use.
                Defaults to 'gpt-4o-mini' unless overridden by the
                OPENAI_MODEL environment variable.
            api_key: API key. Defaults to the OPENAI_API_KEY env var.
            temperature: Sampling temperature; kept low so plans are stable.
        """
        self.api_key = api_key or os.environ.get("OPENAI_API_KEY")
        base_url = os.environ.get("OPENAI_API_BASE")

        self.client = OpenAI(
            api_key=self.api_key or "missing", base_url=base_url
        )
        self.model_name = os.environ.get("OPENAI_MODEL", model_name)
        self.temperature = temperature

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def complete(
        self, system_prompt: str, user_prompt: str, json_mode: bool = False
    ) -> str:
        messages: list[ChatCompletionMessageParam] = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]
        kwargs: dict[str, Any] = {
            "model": self.model_name,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": JSON_MAX_TOKENS if json_mode else PLAN_MAX_TOKENS,
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            completion = self.client.chat.completions.create(**kwargs)
        except OpenAIError as e:
            raise PlannerError(str(e) or "OpenAI API error") from e

        if not completion.choices:
            raise PlannerError("OpenAI returned no choices")

        content = completion.choices[0].message.content
        if content is None:
            raise PlannerError("OpenAI returned an empty message")

        logger.debug(
            "Planner response received",
            extra={"model": self.model_name, "chars": len(content)},
        )
        return content
