"""Abstract base class for planner adapters.

A planner adapter wraps one external text-generation call. It keeps no
state: given a system prompt and a user prompt it returns raw text, or
raises ``PlannerError`` when the backend fails.
"""

from abc import ABC, abstractmethod


class PlannerAdapter(ABC):
    """Interface between the conversation router and a language model."""

    model_name: str = "unknown"

    @abstractmethod
    def complete(
        self, system_prompt: str, user_prompt: str, json_mode: bool = False
    ) -> str:
        """Generates text for a prompt pair.

        Args:
            system_prompt: Instructions describing the host application.
            user_prompt: The user's request with page context.
            json_mode: Ask the backend to constrain output to one JSON
                object. The output may still be malformed.

        Returns:
            The raw generated text.

        Raises:
            PlannerError: If the backend is unreachable or reports an error.
        """
        pass  # pragma: no cover

    @property
    def is_configured(self) -> bool:
        """Whether credentials for the backend are present."""
        return True
