"""Prompt template library for stop narration scripts.

Responsibilities:
- Centralize prompt construction for per-stop script generation.
- Pull every persona-specific instruction from the persona catalog.
"""

from __future__ import annotations

from ..models.datatypes import StopInput
from ..personas.catalog import PersonaPrompt


class PromptLibrary:
    """Build prompt strings for stop narration requests."""

    def script_system_prompt(self, persona: PersonaPrompt) -> str:
        """Return the persona system prompt for one tour stop."""

        return " ".join([*persona.system, "Write natural spoken narration for one tour stop."])

    def script_user_prompt(
        self,
        persona: PersonaPrompt,
        *,
        city: str,
        transport_mode: str,
        length_minutes: int,
        stop: StopInput,
        stop_index: int,
        total_stops: int,
    ) -> str:
        """Return the user prompt carrying tour context and length requirements."""

        target = persona.length_target
        lines = [
            f"City: {city}",
            f"Transport: {transport_mode}",
            f"Tour length: {length_minutes} minutes",
            f"Narrator persona: {persona.name}",
            f"Target spoken duration for this stop: {target.duration_seconds} seconds",
            f"Stop {stop_index + 1} of {total_stops}: {stop.title}",
            "Style guidelines:",
            *(f"- {line}" for line in persona.style_guidelines),
            "Disallowed patterns:",
            *(f"- {line}" for line in persona.banned_patterns),
            "Requirements:",
            f"- {target.sentence_range} sentences.",
            f"- {target.word_range} words total.",
            "- Mention the stop name once naturally.",
            "- Include at least two specific sensory details.",
            "- Include one memorable hook line.",
            "- End with a transition to keep moving.",
            "- Do not use placeholders, brackets, or stage directions.",
            "- Output plain text only.",
        ]
        return "\n".join(lines)
