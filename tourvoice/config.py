"""Configuration model and loaders for Tourvoice.

Responsibilities:
- Define runtime configuration as a typed dataclass.
- Provide deterministic precedence resolution for the provider API key.
- Provide loader entry points for file- and environment-based configuration.

Key types:
- `TourvoiceConfig`: normalized runtime settings for store, providers, and uploads.
- `RuntimeConfigSources`: optional value sources for precedence resolution.
- `ConfigLoader`: static construction helpers for `TourvoiceConfig`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import os
from pathlib import Path
from typing import Any, Callable, Mapping

import yaml

from .errors import PipelineStageError
from .parsing import normalize_optional_text, parse_permissive_boolean

_DEFAULT_DB_PATH = Path("tourvoice.sqlite3")
_DEFAULT_SWITCH_FILE = Path("mix-generation-switch.json")
_DEFAULT_SCRIPT_MODEL = "gpt-4o-mini"
_DEFAULT_TTS_MODELS = ("gpt-4o-mini-tts", "tts-1")
_SUPPORTED_TTS_FORMATS = frozenset({"mp3", "opus", "aac", "flac", "wav"})


@dataclass(frozen=True, slots=True)
class RuntimeConfigSources:
    """Source mappings used for deterministic runtime value precedence.

    Attributes:
        cli: Values explicitly provided by CLI arguments.
        secure: Values loaded from secure local credential storage.
        env: Values loaded from environment variables.
    """

    cli: Mapping[str, str] = field(default_factory=dict)
    secure: Mapping[str, str] = field(default_factory=dict)
    env: Mapping[str, str] = field(default_factory=dict)


@dataclass(slots=True)
class TourvoiceConfig:
    """Runtime configuration for generation jobs.

    Attributes:
        db_path: SQLite database file holding stops, mappings, assets, and jobs.
        switch_file: Generation mode switch JSON document.
        api_key: Optional OpenAI API key (lowest precedence source).
        script_model: Chat model for narration scripts.
        script_temperature: Sampling temperature for narration scripts.
        script_max_tokens: Completion token cap per script.
        tts_models: Speech model variants tried in priority order.
        tts_format: Encoded audio format requested from the speech endpoint.
        storage_url: Object storage base URL; inline audio is used when unset.
        storage_service_key: Object storage service credential.
        storage_bucket: Bucket receiving narration clips.
        require_storage_url: Fail uploads instead of falling back to inline audio.
        audio_dir: Local directory uploader root; takes priority over bucket storage.
        public_audio_base_url: URL prefix for clips written to `audio_dir`.
        request_timeout_seconds: Timeout for every provider and storage request.
        provider_min_interval_seconds: Minimum spacing between provider calls.
        retry_max_attempts: Attempts per provider call, including the first.
        retry_base_delay_seconds: Base delay for exponential retry backoff.
        runtime_sources: Optional runtime source overrides injected by CLI.
    """

    db_path: Path = _DEFAULT_DB_PATH
    switch_file: Path = _DEFAULT_SWITCH_FILE
    api_key: str | None = None
    script_model: str = _DEFAULT_SCRIPT_MODEL
    script_temperature: float = 0.7
    script_max_tokens: int = 520
    tts_models: tuple[str, ...] = _DEFAULT_TTS_MODELS
    tts_format: str = "mp3"
    storage_url: str | None = None
    storage_service_key: str | None = None
    storage_bucket: str = "narrations"
    require_storage_url: bool = False
    audio_dir: Path | None = None
    public_audio_base_url: str | None = None
    request_timeout_seconds: float = 60.0
    provider_min_interval_seconds: float = 0.05
    retry_max_attempts: int = 3
    retry_base_delay_seconds: float = 0.25
    runtime_sources: RuntimeConfigSources = field(default_factory=RuntimeConfigSources)

    def validate(self) -> None:
        """Validate configuration values before any job is created."""

        if not str(self.db_path).strip():
            raise ValueError("`db_path` must be a non-empty path.")
        if normalize_optional_text(self.script_model) is None:
            raise ValueError("`script_model` must be a non-empty string.")
        if not self.tts_models or any(
            normalize_optional_text(model) is None for model in self.tts_models
        ):
            raise ValueError("`tts_models` must list at least one non-empty model id.")
        if self.tts_format not in _SUPPORTED_TTS_FORMATS:
            supported = ", ".join(sorted(_SUPPORTED_TTS_FORMATS))
            raise ValueError(f"Unsupported `tts_format` `{self.tts_format}`; supported: {supported}.")
        if not 0.0 <= self.script_temperature <= 2.0:
            raise ValueError("`script_temperature` must be between 0 and 2.")
        if self.script_max_tokens <= 0:
            raise ValueError("`script_max_tokens` must be a positive integer.")
        if self.request_timeout_seconds <= 0:
            raise ValueError("`request_timeout_seconds` must be positive.")
        if self.provider_min_interval_seconds < 0:
            raise ValueError("`provider_min_interval_seconds` must not be negative.")
        if self.retry_max_attempts < 1:
            raise ValueError("`retry_max_attempts` must be at least 1.")
        if self.retry_base_delay_seconds < 0:
            raise ValueError("`retry_base_delay_seconds` must not be negative.")

    def resolved_api_key(self, sources: RuntimeConfigSources | None = None) -> str | None:
        """Resolve the provider API key.

        Precedence is `cli` > `secure` > `env` (`OPENAI_API_KEY`) > config field.
        """

        resolved_sources = sources if sources is not None else self.runtime_sources
        for mapping, key in (
            (resolved_sources.cli, "api_key"),
            (resolved_sources.secure, "api_key"),
            (resolved_sources.env, "OPENAI_API_KEY"),
        ):
            value = normalize_optional_text(mapping.get(key))
            if value is not None:
                return value
        return normalize_optional_text(self.api_key)

    def require_api_key(self) -> str:
        """Return the resolved API key or raise a configuration error."""

        api_key = self.resolved_api_key()
        if api_key is None:
            raise PipelineStageError(
                stage="config",
                detail="OPENAI_API_KEY is required.",
                hint=(
                    "Pass `--api-key`, run `tourvoice credentials --set-api-key`, "
                    "or export `OPENAI_API_KEY`."
                ),
            )
        return api_key


def _parse_path(value: object) -> Path:
    normalized = normalize_optional_text(value)
    if normalized is None:
        raise ValueError("must be a non-empty path")
    return Path(normalized)


def _parse_text(value: object) -> str | None:
    return normalize_optional_text(value)


def _parse_positive_int(value: object) -> int:
    if isinstance(value, bool):
        raise ValueError("must be a positive integer")
    try:
        parsed = int(str(value).strip())
    except ValueError as exc:
        raise ValueError("must be a positive integer") from exc
    if parsed <= 0:
        raise ValueError("must be a positive integer")
    return parsed


def _parse_float(value: object) -> float:
    if isinstance(value, bool):
        raise ValueError("must be a number")
    try:
        return float(str(value).strip())
    except ValueError as exc:
        raise ValueError("must be a number") from exc


def _parse_boolean(value: object) -> bool:
    parsed = parse_permissive_boolean(value)
    if parsed is None:
        raise ValueError("must be a boolean value (`true`/`false`, `1`/`0`, `yes`/`no`)")
    return parsed


def _parse_model_list(value: object) -> tuple[str, ...]:
    if isinstance(value, (list, tuple)):
        items = [normalize_optional_text(item) for item in value]
    else:
        items = [normalize_optional_text(item) for item in str(value).split(",")]
    models = tuple(item for item in items if item is not None)
    if not models:
        raise ValueError("must list at least one model id")
    return models


_FIELD_PARSERS: Mapping[str, Callable[[object], Any]] = {
    "db_path": _parse_path,
    "switch_file": _parse_path,
    "api_key": _parse_text,
    "script_model": _parse_text,
    "script_temperature": _parse_float,
    "script_max_tokens": _parse_positive_int,
    "tts_models": _parse_model_list,
    "tts_format": _parse_text,
    "storage_url": _parse_text,
    "storage_service_key": _parse_text,
    "storage_bucket": _parse_text,
    "require_storage_url": _parse_boolean,
    "audio_dir": _parse_path,
    "public_audio_base_url": _parse_text,
    "request_timeout_seconds": _parse_float,
    "provider_min_interval_seconds": _parse_float,
    "retry_max_attempts": _parse_positive_int,
    "retry_base_delay_seconds": _parse_float,
}


class ConfigLoader:
    """Factory methods for creating `TourvoiceConfig` from external sources."""

    _SUPPORTED_YAML_KEYS = frozenset(_FIELD_PARSERS)
    _ENV_KEYS: Mapping[str, str] = {
        "TOURVOICE_DB_PATH": "db_path",
        "MIX_GENERATION_SWITCH_FILE": "switch_file",
        "TOURVOICE_SCRIPT_MODEL": "script_model",
        "TOURVOICE_SCRIPT_TEMPERATURE": "script_temperature",
        "TOURVOICE_SCRIPT_MAX_TOKENS": "script_max_tokens",
        "TOURVOICE_TTS_MODELS": "tts_models",
        "TOURVOICE_TTS_FORMAT": "tts_format",
        "TOURVOICE_STORAGE_URL": "storage_url",
        "TOURVOICE_STORAGE_SERVICE_KEY": "storage_service_key",
        "TOURVOICE_STORAGE_BUCKET": "storage_bucket",
        "TOURVOICE_REQUIRE_STORAGE_URL": "require_storage_url",
        "TOURVOICE_AUDIO_DIR": "audio_dir",
        "TOURVOICE_PUBLIC_AUDIO_BASE_URL": "public_audio_base_url",
        "TOURVOICE_REQUEST_TIMEOUT_SECONDS": "request_timeout_seconds",
        "TOURVOICE_PROVIDER_MIN_INTERVAL_SECONDS": "provider_min_interval_seconds",
        "TOURVOICE_RETRY_MAX_ATTEMPTS": "retry_max_attempts",
        "TOURVOICE_RETRY_BASE_DELAY_SECONDS": "retry_base_delay_seconds",
    }
    _RUNTIME_ENV_KEYS = frozenset({"OPENAI_API_KEY"})

    @staticmethod
    def from_yaml(path: Path) -> TourvoiceConfig:
        """Create a validated config from a YAML file."""

        path_text = path.read_text(encoding="utf-8")
        payload = yaml.safe_load(path_text)
        if payload is None:
            payload = {}
        if not isinstance(payload, Mapping):
            raise ValueError(f"YAML config `{path}` must contain a top-level mapping/object.")

        unknown = sorted(set(payload).difference(ConfigLoader._SUPPORTED_YAML_KEYS))
        if unknown:
            raise ValueError(
                f"YAML `{path}` includes unsupported key(s): {', '.join(unknown)}."
            )
        values = ConfigLoader._parse_fields(
            {key: payload[key] for key in payload if payload[key] is not None},
            source_label=f"YAML `{path}` field",
        )
        return ConfigLoader._build(values)

    @staticmethod
    def from_env(env: Mapping[str, str] | None = None) -> TourvoiceConfig:
        """Create a validated config from environment variables."""

        env_map: Mapping[str, str] = os.environ if env is None else env
        raw: dict[str, object] = {}
        labels: dict[str, str] = {}
        for env_key, field_name in ConfigLoader._ENV_KEYS.items():
            value = normalize_optional_text(env_map.get(env_key))
            if value is not None:
                raw[field_name] = value
                labels[field_name] = env_key

        values: dict[str, Any] = {}
        for field_name, value in raw.items():
            try:
                values[field_name] = _FIELD_PARSERS[field_name](value)
            except ValueError as exc:
                raise ValueError(
                    f"Environment variable `{labels[field_name]}` {exc}."
                ) from exc

        runtime_env = {
            key: value
            for key, value in env_map.items()
            if key in ConfigLoader._RUNTIME_ENV_KEYS
            and normalize_optional_text(value) is not None
        }
        values["runtime_sources"] = RuntimeConfigSources(env=runtime_env)
        return ConfigLoader._build(values)

    @staticmethod
    def _parse_fields(payload: Mapping[str, Any], source_label: str) -> dict[str, Any]:
        values: dict[str, Any] = {}
        for key, raw_value in payload.items():
            try:
                values[key] = _FIELD_PARSERS[key](raw_value)
            except ValueError as exc:
                raise ValueError(f"{source_label} `{key}` {exc}.") from exc
        return values

    @staticmethod
    def _build(values: Mapping[str, Any]) -> TourvoiceConfig:
        cleaned = {key: value for key, value in values.items() if value is not None}
        config = TourvoiceConfig(**cleaned)
        config.validate()
        return config
