"""Integration tests for Tourvoice CLI commands end to end."""

from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from tests.doubles import InMemoryCredentialStore
from tourvoice.cli import app

runner = CliRunner()


def _write_stops(tmp_path: Path) -> Path:
    """Write a three-stop Salem mix selection."""

    stops_path = tmp_path / "stops.json"
    stops_path.write_text(
        json.dumps(
            [
                {"id": "s1", "title": "Salem Harbor", "lat": 42.5212, "lng": -70.8877},
                {
                    "id": "s2",
                    "title": "Old Burying Point Cemetery",
                    "lat": 42.5206,
                    "lng": -70.8922,
                    "image": "https://img.test/burying-point.jpg",
                },
                {"id": "s3", "title": "Salem Witch House", "lat": 42.5229, "lng": -70.8985},
            ]
        ),
        encoding="utf-8",
    )
    return stops_path


def _write_config(tmp_path: Path) -> Path:
    """Write a runtime YAML config with local audio storage."""

    config_path = tmp_path / "tourvoice.yaml"
    config_path.write_text(
        "\n".join(
            [
                f"db_path: {tmp_path / 'tourvoice.sqlite3'}",
                f"switch_file: {tmp_path / 'switch.json'}",
                f"audio_dir: {tmp_path / 'audio'}",
                "public_audio_base_url: https://static.test/audio",
                "provider_min_interval_seconds: 0",
            ]
        ),
        encoding="utf-8",
    )
    return config_path


def _job_id(output: str) -> str:
    """Extract the job id line printed by job creation commands."""

    for line in output.splitlines():
        if line.startswith("Job id: "):
            return line.removeprefix("Job id: ").strip()
    raise AssertionError(f"No job id in output: {output}")


def test_validate_mix_reports_bounds() -> None:
    """Valid selections should print the bounds; invalid ones should exit 1 with a hint."""

    ok = runner.invoke(app, ["validate-mix", "60", "drive", "12"])
    too_many = runner.invoke(app, ["validate-mix", "30", "walk", "6"])

    assert ok.exit_code == 0
    assert "Selection ok (min 2, max 12 stops)." in ok.output
    assert too_many.exit_code == 1
    assert "validate-mix failed at stage `validate-mix`: Select at most 5 stops." in too_many.output
    assert "Hint: Choose between 2 and 5 stops." in too_many.output


def test_create_mix_job_with_wait_writes_audio_and_route_stops(tmp_path: Path) -> None:
    """A waited mix job should finish ready, write clips, and be readable via route-stops."""

    config_path = _write_config(tmp_path)
    result = runner.invoke(
        app,
        [
            "create-mix-job",
            "--stops",
            str(_write_stops(tmp_path)),
            "--route-id",
            "mix-cli",
            "--jam-id",
            "jam-cli",
            "--api-key",
            "sk-cli-key",
            "--wait",
            "--config",
            str(config_path),
        ],
    )

    assert result.exit_code == 0, result.output
    assert "Route: custom/mix-cli" in result.output
    assert '"status": "ready"' in result.output
    assert (tmp_path / "audio/mixes/custom-mix-cli/adult/s1.mp3").read_bytes() == (
        b"ID3-integration-audio"
    )

    status = runner.invoke(app, ["job-status", _job_id(result.output), "--config", str(config_path)])
    assert status.exit_code == 0, status.output
    assert json.loads(status.stdout)["progress"] == 100

    stops = runner.invoke(app, ["route-stops", "custom", "mix-cli", "--config", str(config_path)])
    assert stops.exit_code == 0, stops.output
    rows = json.loads(stops.stdout)
    assert [row["stop_id"] for row in rows] == ["s1", "s2", "s3"]
    assert rows[1]["image_url"] == "https://img.test/burying-point.jpg"
    assert rows[0]["scripts"]["adult"] == "integration-mocked narration for this stop."
    assert rows[0]["audio_urls"] == {
        "adult": "https://static.test/audio/mixes/custom-mix-cli/adult/s1.mp3",
        "preteen": None,
    }


def test_create_mix_job_uses_stored_credential(
    tmp_path: Path, credential_store: InMemoryCredentialStore
) -> None:
    """A key from secure storage should be enough to run a job."""

    credential_store.set_api_key("sk-stored")

    result = runner.invoke(
        app,
        [
            "create-mix-job",
            "--stops",
            str(_write_stops(tmp_path)),
            "--persona",
            "preteen",
            "--wait",
            "--config",
            str(_write_config(tmp_path)),
        ],
    )

    assert result.exit_code == 0, result.output
    assert '"status": "ready"' in result.output


def test_create_mix_job_without_api_key_fails_the_job(tmp_path: Path) -> None:
    """Without any key source the waited job should end failed and the command exit 1."""

    result = runner.invoke(
        app,
        [
            "create-mix-job",
            "--stops",
            str(_write_stops(tmp_path)),
            "--wait",
            "--config",
            str(_write_config(tmp_path)),
        ],
    )

    assert result.exit_code == 1
    assert '"status": "failed"' in result.output
    assert "create-mix-job failed at stage `job`: OPENAI_API_KEY is required." in result.output


def test_create_mix_job_reports_invalid_stops_file(tmp_path: Path) -> None:
    """Missing or malformed stop files should fail at the stops stage."""

    missing = runner.invoke(
        app,
        ["create-mix-job", "--stops", str(tmp_path / "nope.json"), "--config", str(_write_config(tmp_path))],
    )
    malformed_path = tmp_path / "bad.json"
    malformed_path.write_text('[{"id": "s1", "title": "Harbor"}]', encoding="utf-8")
    malformed = runner.invoke(
        app,
        ["create-mix-job", "--stops", str(malformed_path), "--config", str(_write_config(tmp_path))],
    )

    assert missing.exit_code == 1
    assert "failed at stage `stops`: Stops file not found" in missing.output
    assert malformed.exit_code == 1
    assert "Stop #1 is missing or has an invalid field" in malformed.output


def test_create_mix_job_rejects_unknown_persona(tmp_path: Path) -> None:
    """Request validation errors should be reported as command failures."""

    result = runner.invoke(
        app,
        [
            "create-mix-job",
            "--stops",
            str(_write_stops(tmp_path)),
            "--length",
            "30",
            "--mode",
            "walk",
            "--persona",
            "grandparent",
            "--config",
            str(_write_config(tmp_path)),
        ],
    )

    assert result.exit_code == 1
    assert "create-mix-job failed: Unsupported persona `grandparent`." in result.output


def test_create_preset_job_runs_both_personas(tmp_path: Path) -> None:
    """A preset job should narrate the overview and route stops for both personas."""

    config_path = _write_config(tmp_path)
    result = runner.invoke(
        app,
        ["create-preset-job", "salem-core-15", "--api-key", "sk-cli", "--wait", "--config", str(config_path)],
    )

    assert result.exit_code == 0, result.output
    stops = runner.invoke(
        app, ["route-stops", "preset", "salem-core-15", "--config", str(config_path)]
    )
    rows = json.loads(stops.stdout)
    assert rows[0]["stop_id"] == "preset-overview-salem"
    assert rows[0]["title"] == "Overview of Salem"
    assert len(rows) == 4
    assert all(row["audio_urls"]["preteen"] for row in rows)
    assert (tmp_path / "audio/mixes/preset-salem-core-15/preteen/preset-overview-salem.mp3").exists()


def test_create_preset_job_rejects_unknown_route(tmp_path: Path) -> None:
    """Unknown preset ids should fail at the job stage with a catalog hint."""

    result = runner.invoke(
        app, ["create-preset-job", "salem-night-90", "--config", str(_write_config(tmp_path))]
    )

    assert result.exit_code == 1
    assert "create-preset-job failed at stage `job`: Unknown preset route `salem-night-90`." in result.output
    assert "tourvoice presets" in result.output


def test_job_status_for_unknown_job_exits_with_error(tmp_path: Path) -> None:
    """Polling an unknown id should exit 1."""

    result = runner.invoke(app, ["job-status", "missing-job", "--db-path", str(tmp_path / "db.sqlite3")])

    assert result.exit_code == 1
    assert "job-status failed at stage `job`: Unknown generation job `missing-job`." in result.output


def test_invalid_config_file_fails_at_config_stage(tmp_path: Path) -> None:
    """Unsupported config keys should be reported before any work starts."""

    config_path = tmp_path / "tourvoice.yaml"
    config_path.write_text("voice: echo\n", encoding="utf-8")

    result = runner.invoke(app, ["job-status", "any", "--config", str(config_path)])

    assert result.exit_code == 1
    assert "job-status failed at stage `config`" in result.output
    assert "unsupported key(s): voice" in result.output


def test_presets_and_personas_list_catalog_content() -> None:
    """Catalog listings should show every preset route and both personas."""

    presets = runner.invoke(app, ["presets"])
    personas = runner.invoke(app, ["personas", "--city", "Salem", "--stop", "Salem Harbor"])

    assert presets.exit_code == 0
    assert "salem-core-15: Speed Walker (15 min, 3 stops)" in presets.output
    assert "salem-story-30: The Stroll (30 min, 5 stops)" in presets.output
    assert "salem-deepdive-60: Deep Dive (60 min, 7 stops)" in presets.output
    assert "  1. Salem Harbor [deep-salem-harbor]" in presets.output
    assert personas.exit_code == 0
    assert "adult: AI Historian" in personas.output
    assert "preteen: AI Main Character" in personas.output
    assert "Fallback: You are at Salem Harbor, one of the places that helps define Salem." in personas.output


def test_credentials_command_sets_reports_and_clears_key(
    credential_store: InMemoryCredentialStore,
) -> None:
    """The credentials command should manage the secure-storage key."""

    stored = runner.invoke(app, ["credentials", "--set-api-key"], input="sk-secret\n")
    status = runner.invoke(app, ["credentials"])
    cleared = runner.invoke(app, ["credentials", "--clear-api-key"])
    both = runner.invoke(app, ["credentials", "--set-api-key", "--clear-api-key"])

    assert stored.exit_code == 0
    assert "API key stored in secure credential storage." in stored.output
    assert "sk-secret" not in stored.output
    assert "Stored OpenAI API key: present" in status.output
    assert "Stored API key cleared from secure credential storage." in cleared.output
    assert credential_store.get_api_key() is None
    assert both.exit_code == 1
    assert "cannot be used together" in both.output
