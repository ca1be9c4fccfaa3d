"""Text-to-speech provider abstractions.

This package contains persona voice profiles and synthesizer interfaces used by
the audio phase.
"""

from .synthesizer import OpenAISpeechSynthesizer, SpeechSynthesizer
from .voices import VoiceProfile, voice_for_persona

__all__ = ["OpenAISpeechSynthesizer", "SpeechSynthesizer", "VoiceProfile", "voice_for_persona"]
