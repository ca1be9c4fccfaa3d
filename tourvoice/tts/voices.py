"""Voice profile models for narration synthesis.

Responsibilities:
- Represent provider voice identities per persona.
- Decouple orchestration logic from provider-specific naming.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping


@dataclass(frozen=True, slots=True)
class VoiceProfile:
    """Declarative voice profile used by speech providers.

    Attributes:
        name: Human-readable profile name.
        provider_voice_id: Provider-native voice identifier.
        language: BCP-47 or short language code.
    """

    name: str
    provider_voice_id: str
    language: str = "en"


VOICE_BY_PERSONA: Mapping[str, VoiceProfile] = {
    "adult": VoiceProfile(name="AI Historian", provider_voice_id="alloy"),
    "preteen": VoiceProfile(name="AI Main Character", provider_voice_id="nova"),
}


def voice_for_persona(persona: str) -> VoiceProfile:
    """Return the synthesis voice for a persona key."""

    try:
        return VOICE_BY_PERSONA[persona]
    except KeyError as exc:
        raise ValueError(f"No synthesis voice configured for persona `{persona}`.") from exc
