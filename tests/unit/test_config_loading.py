"""Unit tests for YAML/environment configuration loading and API key precedence."""

from __future__ import annotations

from pathlib import Path

import pytest

from tourvoice.config import ConfigLoader, RuntimeConfigSources, TourvoiceConfig
from tourvoice.errors import PipelineStageError


def test_config_loader_from_yaml_loads_and_normalizes_values(tmp_path: Path) -> None:
    """YAML loader should parse typed values and trim blank-padded strings."""

    config_path = tmp_path / "tourvoice.yml"
    config_path.write_text(
        """
db_path: " data/tourvoice.sqlite3 "
switch_file: " ops/switch.json "
script_model: " gpt-4o-mini "
script_temperature: "0.4"
script_max_tokens: " 400 "
tts_models: [" tts-1 ", "gpt-4o-mini-tts"]
storage_url: " https://storage.test "
storage_service_key: " service "
require_storage_url: " yes "
retry_max_attempts: 2
storage_bucket:
""".strip(),
        encoding="utf-8",
    )

    config = ConfigLoader.from_yaml(config_path)

    assert config.db_path == Path("data/tourvoice.sqlite3")
    assert config.switch_file == Path("ops/switch.json")
    assert config.script_model == "gpt-4o-mini"
    assert config.script_temperature == 0.4
    assert config.script_max_tokens == 400
    assert config.tts_models == ("tts-1", "gpt-4o-mini-tts")
    assert config.storage_url == "https://storage.test"
    assert config.require_storage_url is True
    assert config.retry_max_attempts == 2
    assert config.storage_bucket == "narrations"


def test_config_loader_from_yaml_rejects_unknown_keys(tmp_path: Path) -> None:
    """Unknown keys should fail fast with the offending names."""

    config_path = tmp_path / "tourvoice.yml"
    config_path.write_text("db_path: a.sqlite3\nvoice: echo\nbucket: x\n", encoding="utf-8")

    with pytest.raises(ValueError, match=r"unsupported key\(s\): bucket, voice\."):
        ConfigLoader.from_yaml(config_path)


@pytest.mark.parametrize(
    ("content", "message"),
    [
        ("script_max_tokens: zero\n", "field `script_max_tokens` must be a positive integer."),
        ("require_storage_url: maybe\n", "field `require_storage_url` must be a boolean value"),
        ("tts_models: []\n", "field `tts_models` must list at least one model id."),
        ("- a\n- b\n", "must contain a top-level mapping/object."),
    ],
)
def test_config_loader_from_yaml_reports_field_errors(
    tmp_path: Path, content: str, message: str
) -> None:
    """Invalid YAML values should name the failing field."""

    config_path = tmp_path / "tourvoice.yml"
    config_path.write_text(content, encoding="utf-8")

    with pytest.raises(ValueError, match=message.replace("(", r"\(").replace(")", r"\)")):
        ConfigLoader.from_yaml(config_path)


def test_config_loader_from_yaml_runs_validation(tmp_path: Path) -> None:
    """Semantically invalid values should be rejected by `validate`."""

    config_path = tmp_path / "tourvoice.yml"
    config_path.write_text("tts_format: ogg\n", encoding="utf-8")

    with pytest.raises(ValueError, match="Unsupported `tts_format` `ogg`"):
        ConfigLoader.from_yaml(config_path)


def test_config_loader_from_env_maps_variables_and_runtime_key() -> None:
    """Environment loading should map prefixed variables and keep the API key as a runtime source."""

    config = ConfigLoader.from_env(
        {
            "TOURVOICE_DB_PATH": " /var/lib/tourvoice.sqlite3 ",
            "MIX_GENERATION_SWITCH_FILE": "switch.json",
            "TOURVOICE_TTS_MODELS": "tts-1, gpt-4o-mini-tts ,",
            "TOURVOICE_REQUIRE_STORAGE_URL": "off",
            "OPENAI_API_KEY": " env-key ",
            "UNRELATED": "ignored",
        }
    )

    assert config.db_path == Path("/var/lib/tourvoice.sqlite3")
    assert config.switch_file == Path("switch.json")
    assert config.tts_models == ("tts-1", "gpt-4o-mini-tts")
    assert config.require_storage_url is False
    assert config.api_key is None
    assert config.resolved_api_key() == "env-key"


def test_config_loader_from_env_names_invalid_variable() -> None:
    """Invalid environment values should name the variable."""

    with pytest.raises(ValueError, match="Environment variable `TOURVOICE_RETRY_MAX_ATTEMPTS`"):
        ConfigLoader.from_env({"TOURVOICE_RETRY_MAX_ATTEMPTS": "-1"})


def test_resolved_api_key_precedence() -> None:
    """CLI beats secure storage, which beats environment, which beats the config field."""

    config = TourvoiceConfig(api_key="field-key")

    assert config.resolved_api_key() == "field-key"
    assert config.resolved_api_key(RuntimeConfigSources(env={"OPENAI_API_KEY": "env"})) == "env"
    assert (
        config.resolved_api_key(
            RuntimeConfigSources(secure={"api_key": "secure"}, env={"OPENAI_API_KEY": "env"})
        )
        == "secure"
    )
    assert (
        config.resolved_api_key(
            RuntimeConfigSources(
                cli={"api_key": "cli"},
                secure={"api_key": "secure"},
                env={"OPENAI_API_KEY": "env"},
            )
        )
        == "cli"
    )


def test_require_api_key_raises_config_stage_error() -> None:
    """A missing key should raise a config-stage error with a remediation hint."""

    with pytest.raises(PipelineStageError) as exc_info:
        TourvoiceConfig().require_api_key()

    assert exc_info.value.stage == "config"
    assert str(exc_info.value) == "OPENAI_API_KEY is required."
    assert exc_info.value.hint is not None
    assert "--set-api-key" in exc_info.value.hint
