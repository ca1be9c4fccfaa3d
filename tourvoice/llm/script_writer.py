"""Script generation capability for tour stops.

Responsibilities:
- Turn tour context plus a persona profile into one spoken narration script.
- Preserve provider/model metadata for diagnostics.
"""

from __future__ import annotations

from typing import Protocol

from ..models.datatypes import StopInput
from ..personas.catalog import get_persona_prompt
from .openai_client import OpenAIChatClient, OpenAIProviderError
from .prompts import PromptLibrary
from .rate_limiter import RateLimiter


class ScriptWriter(Protocol):
    """Protocol for script generation providers."""

    def generate_script(
        self,
        *,
        city: str,
        transport_mode: str,
        length_minutes: int,
        persona: str,
        stop: StopInput,
        stop_index: int,
        total_stops: int,
    ) -> str:
        """Return narration text for one stop or raise on provider failure."""


class OpenAIScriptWriter:
    """Generate stop narration scripts with OpenAI chat-completions."""

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        api_key: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 520,
        timeout_seconds: float = 60.0,
        rate_limiter: RateLimiter | None = None,
        max_attempts: int = 3,
        base_delay_seconds: float = 0.25,
    ) -> None:
        """Initialize OpenAI-backed script settings."""

        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.client = OpenAIChatClient(
            api_key=api_key,
            timeout_seconds=timeout_seconds,
            rate_limiter=rate_limiter,
            max_attempts=max_attempts,
            base_delay_seconds=base_delay_seconds,
        )
        self.prompts = PromptLibrary()

    def generate_script(
        self,
        *,
        city: str,
        transport_mode: str,
        length_minutes: int,
        persona: str,
        stop: StopInput,
        stop_index: int,
        total_stops: int,
    ) -> str:
        """Generate one narration script; empty provider output is an error."""

        persona_prompt = get_persona_prompt(persona)
        text = self.client.chat_completion_text(
            model=self.model,
            system_prompt=self.prompts.script_system_prompt(persona_prompt),
            user_prompt=self.prompts.script_user_prompt(
                persona_prompt,
                city=city,
                transport_mode=transport_mode,
                length_minutes=length_minutes,
                stop=stop,
                stop_index=stop_index,
                total_stops=total_stops,
            ),
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        normalized = text.strip()
        if not normalized:
            raise OpenAIProviderError("OpenAI script generation returned empty text.")
        return normalized
