"""Provider factory helpers for script, speech, and upload capabilities.

Responsibilities:
- Build concrete capability implementations from a resolved `TourvoiceConfig`.
- Keep the job service independent from concrete provider class construction.
"""

from __future__ import annotations

from .config import TourvoiceConfig
from .io.uploader import BucketAudioUploader, LocalDirectoryUploader, NarrationAudioUploader
from .llm.rate_limiter import RateLimiter
from .llm.script_writer import OpenAIScriptWriter, ScriptWriter
from .tts.synthesizer import OpenAISpeechSynthesizer, SpeechSynthesizer


class ProviderFactory:
    """Factory for provider-backed capabilities used by the orchestrator."""

    @staticmethod
    def create_rate_limiter(config: TourvoiceConfig) -> RateLimiter:
        """Create the limiter shared by script and speech calls of one job."""

        return RateLimiter(min_interval_seconds=config.provider_min_interval_seconds)

    @staticmethod
    def create_script_writer(
        config: TourvoiceConfig, api_key: str, rate_limiter: RateLimiter | None = None
    ) -> ScriptWriter:
        """Create the chat-backed script writer."""

        return OpenAIScriptWriter(
            model=config.script_model,
            api_key=api_key,
            temperature=config.script_temperature,
            max_tokens=config.script_max_tokens,
            timeout_seconds=config.request_timeout_seconds,
            rate_limiter=rate_limiter,
            max_attempts=config.retry_max_attempts,
            base_delay_seconds=config.retry_base_delay_seconds,
        )

    @staticmethod
    def create_synthesizer(
        config: TourvoiceConfig, api_key: str, rate_limiter: RateLimiter | None = None
    ) -> SpeechSynthesizer:
        """Create the multi-variant speech synthesizer."""

        return OpenAISpeechSynthesizer(
            models=config.tts_models,
            api_key=api_key,
            response_format=config.tts_format,
            timeout_seconds=config.request_timeout_seconds,
            rate_limiter=rate_limiter,
            max_attempts=config.retry_max_attempts,
            base_delay_seconds=config.retry_base_delay_seconds,
        )

    @staticmethod
    def create_uploader(config: TourvoiceConfig) -> NarrationAudioUploader:
        """Create the local-directory uploader when `audio_dir` is set, else the bucket uploader."""

        if config.audio_dir is not None:
            return LocalDirectoryUploader(config.audio_dir, config.public_audio_base_url)
        return BucketAudioUploader(
            storage_url=config.storage_url,
            service_key=config.storage_service_key,
            bucket=config.storage_bucket,
            require_storage_url=config.require_storage_url,
            timeout_seconds=config.request_timeout_seconds,
            max_attempts=config.retry_max_attempts,
            base_delay_seconds=config.retry_base_delay_seconds,
        )
