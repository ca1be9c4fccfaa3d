"""Speech synthesis capability and OpenAI-backed implementation.

Responsibilities:
- Define the protocol for persona narration synthesis.
- Try backend model variants in priority order until one returns audio bytes.
"""

from __future__ import annotations

from typing import Protocol, Sequence

from ..llm.openai_client import OpenAIProviderError, OpenAISpeechClient
from ..llm.rate_limiter import RateLimiter
from .voices import voice_for_persona


class SpeechSynthesizer(Protocol):
    """Protocol for speech synthesis providers."""

    def synthesize(self, persona: str, text: str) -> bytes:
        """Return encoded audio bytes for narration text or raise on failure."""


class OpenAISpeechSynthesizer:
    """OpenAI-backed synthesizer that falls back across model variants."""

    def __init__(
        self,
        models: Sequence[str] = ("gpt-4o-mini-tts", "tts-1"),
        api_key: str | None = None,
        response_format: str = "mp3",
        timeout_seconds: float = 60.0,
        rate_limiter: RateLimiter | None = None,
        max_attempts: int = 3,
        base_delay_seconds: float = 0.25,
    ) -> None:
        """Initialize OpenAI-backed synthesis settings."""

        if not models:
            raise ValueError("At least one TTS model variant is required.")
        self.models = tuple(models)
        self.response_format = response_format
        self.client = OpenAISpeechClient(
            api_key=api_key,
            timeout_seconds=timeout_seconds,
            rate_limiter=rate_limiter,
            max_attempts=max_attempts,
            base_delay_seconds=base_delay_seconds,
        )

    def synthesize(self, persona: str, text: str) -> bytes:
        """Synthesize narration, treating empty audio like an HTTP failure."""

        voice = voice_for_persona(persona).provider_voice_id
        failures: list[str] = []
        for model in self.models:
            try:
                audio_bytes = self.client.synthesize_speech(
                    model=model,
                    voice=voice,
                    text=text,
                    response_format=self.response_format,
                )
            except OpenAIProviderError as exc:
                failures.append(f"{model}/{voice}: {exc}")
                continue
            if audio_bytes:
                return audio_bytes
            failures.append(f"{model}/{voice}: empty audio response")

        raise OpenAIProviderError(f"OpenAI TTS generation failed ({' | '.join(failures)})")
