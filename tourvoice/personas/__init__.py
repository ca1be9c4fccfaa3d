"""Narration persona profiles."""

from .catalog import PERSONA_CATALOG, PersonaPrompt, fallback_script, get_persona_prompt

__all__ = ["PERSONA_CATALOG", "PersonaPrompt", "fallback_script", "get_persona_prompt"]
