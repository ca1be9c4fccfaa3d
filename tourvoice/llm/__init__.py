"""LLM-facing abstractions for narration script generation.

This package defines prompt construction, provider clients, and the pacing and
retry helpers wrapped around provider calls.
"""

from .openai_client import OpenAIChatClient, OpenAIProviderError, OpenAISpeechClient
from .prompts import PromptLibrary
from .rate_limiter import RateLimiter
from .retry import with_retry
from .script_writer import OpenAIScriptWriter, ScriptWriter

__all__ = [
    "OpenAIChatClient",
    "OpenAIProviderError",
    "OpenAIScriptWriter",
    "OpenAISpeechClient",
    "PromptLibrary",
    "RateLimiter",
    "ScriptWriter",
    "with_retry",
]
