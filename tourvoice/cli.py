"""Command-line interface for Tourvoice.

Responsibilities:
- Expose user-facing commands for mix validation, job creation, and polling.
- Convert CLI arguments into `TourvoiceConfig` and a `GenerationJobService`.

Key public functions:
- `app`: Typer application instance.
- `main`: invoke the Typer application.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Annotated

import typer

from .cli_rendering import (
    echo_job_created,
    echo_job_snapshot,
    echo_json,
    echo_mix_validation,
    echo_persona,
    echo_preset_routes,
    echo_route_stops,
    exit_with_command_error,
)
from .config import ConfigLoader, RuntimeConfigSources, TourvoiceConfig
from .content.preset_routes import PRESET_ROUTES
from .credentials import create_credential_store
from .errors import PipelineStageError
from .generation.jobs import GenerationJobService
from .generation.mix_constraints import validate_mix_selection
from .io.store import SqliteStore
from .models.datatypes import PERSONAS, GenerationJob, StopInput
from .parsing import normalize_optional_text
from .personas.catalog import PERSONA_CATALOG, fallback_script
from .telemetry.logger import RunLogger

app = typer.Typer(
    name="tourvoice",
    no_args_is_help=True,
    help="Tourvoice narration generation CLI.",
)

ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", help="Path to YAML config file with runtime defaults."),
]
DbPathOption = Annotated[
    Path | None,
    typer.Option("--db-path", help="SQLite database path (overrides config)."),
]
ApiKeyOption = Annotated[
    str | None,
    typer.Option("--api-key", help="OpenAI API key for this run (not persisted)."),
]
WaitOption = Annotated[
    bool,
    typer.Option("--wait/--no-wait", help="Poll until the job reaches a terminal status."),
]
TimeoutOption = Annotated[
    float,
    typer.Option("--timeout", help="Seconds to wait for a terminal status with `--wait`."),
]


def _load_config(config_file: Path | None) -> TourvoiceConfig:
    """Load YAML or environment configuration and map failures to stage errors."""

    if config_file is None:
        try:
            return ConfigLoader.from_env()
        except ValueError as exc:
            raise PipelineStageError(
                stage="config",
                detail=f"Invalid environment configuration: {exc}",
                hint="Fix the `TOURVOICE_*` variables and rerun.",
            ) from exc

    try:
        config = ConfigLoader.from_yaml(config_file)
    except FileNotFoundError as exc:
        raise PipelineStageError(
            stage="config",
            detail=f"Config file not found: `{config_file}`.",
            hint="Provide an existing path via `--config <path.yaml>`.",
        ) from exc
    except ValueError as exc:
        raise PipelineStageError(
            stage="config",
            detail=f"Invalid config file `{config_file}`: {exc}",
            hint="Fix config schema/values and rerun.",
        ) from exc
    except Exception as exc:
        raise PipelineStageError(
            stage="config",
            detail=f"Failed to load config file `{config_file}`: {exc}",
            hint="Verify YAML syntax and file permissions.",
        ) from exc

    env_api_key = normalize_optional_text(os.environ.get("OPENAI_API_KEY"))
    if env_api_key is not None:
        config.runtime_sources = RuntimeConfigSources(env={"OPENAI_API_KEY": env_api_key})
    return config


def _resolve_config(
    config_file: Path | None,
    db_path: Path | None,
    api_key: str | None,
) -> TourvoiceConfig:
    """Resolve effective config with CLI overrides and secure-storage API key."""

    config = _load_config(config_file)
    if db_path is not None:
        config.db_path = db_path

    runtime_cli_values: dict[str, str] = {}
    normalized_api_key = normalize_optional_text(api_key)
    if normalized_api_key is not None:
        runtime_cli_values["api_key"] = normalized_api_key

    runtime_secure_values: dict[str, str] = {}
    stored_api_key = create_credential_store().get_api_key()
    if stored_api_key is not None:
        runtime_secure_values["api_key"] = stored_api_key

    config.runtime_sources = RuntimeConfigSources(
        cli=runtime_cli_values,
        secure=runtime_secure_values,
        env=config.runtime_sources.env,
    )
    return config


def _open_service(config: TourvoiceConfig) -> GenerationJobService:
    try:
        store = SqliteStore(config.db_path)
    except Exception as exc:
        raise PipelineStageError(
            stage="config",
            detail=f"Failed to open database `{config.db_path}`: {exc}",
            hint="Set `db_path` in config or pass `--db-path`.",
        ) from exc
    return GenerationJobService(store, config, logger=RunLogger())


def _load_stops_file(path: Path) -> list[StopInput]:
    """Read a JSON list of `{id, title, lat, lng, image}` stop objects."""

    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise PipelineStageError(
            stage="stops",
            detail=f"Stops file not found: `{path}`.",
            hint="Pass a JSON list of stops via `--stops <path.json>`.",
        ) from exc
    except json.JSONDecodeError as exc:
        raise PipelineStageError(
            stage="stops",
            detail=f"Stops file `{path}` is not valid JSON: {exc}",
        ) from exc

    if not isinstance(payload, list):
        raise PipelineStageError(stage="stops", detail=f"Stops file `{path}` must contain a list.")

    stops: list[StopInput] = []
    for index, item in enumerate(payload, start=1):
        if not isinstance(item, dict):
            raise PipelineStageError(stage="stops", detail=f"Stop #{index} must be an object.")
        try:
            stops.append(
                StopInput(
                    id=str(item["id"]),
                    title=str(item["title"]),
                    lat=float(item["lat"]),
                    lng=float(item["lng"]),
                    image=normalize_optional_text(item.get("image")),
                )
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise PipelineStageError(
                stage="stops",
                detail=f"Stop #{index} is missing or has an invalid field: {exc}",
                hint="Each stop needs `id`, `title`, `lat`, and `lng`.",
            ) from exc
    return stops


def _finish_job(
    service: GenerationJobService, job: GenerationJob, wait: bool, timeout: float
) -> None:
    echo_job_created(job)
    if not wait:
        return
    final = service.wait_for_job(job.id, timeout_seconds=timeout)
    echo_job_snapshot(final)
    if final.status == "failed":
        raise PipelineStageError(
            stage="job",
            detail=final.error or "Generation failed.",
            hint=f"Inspect with `tourvoice job-status {final.id}`.",
        )


@app.command("validate-mix")
def validate_mix_command(
    length_minutes: Annotated[int, typer.Argument(help="Tour length in minutes.")],
    transport_mode: Annotated[str, typer.Argument(help="`walk` or `drive`.")],
    stop_count: Annotated[int, typer.Argument(help="Number of selected stops.")],
) -> None:
    """Check a mix stop count against the length/mode bounds."""

    try:
        result = validate_mix_selection(length_minutes, transport_mode, stop_count)
        if not result.ok:
            raise PipelineStageError(
                stage="validate-mix",
                detail=result.message,
                hint=f"Choose between {result.min_stops} and {result.max_stops} stops.",
            )
    except Exception as exc:
        exit_with_command_error("validate-mix", exc)

    echo_mix_validation(result)


@app.command("create-mix-job")
def create_mix_job_command(
    stops_file: Annotated[
        Path, typer.Option("--stops", help="JSON list of `{id, title, lat, lng, image}` stops.")
    ],
    city: Annotated[str, typer.Option("--city", help="City key for the mix.")] = "salem",
    transport_mode: Annotated[str, typer.Option("--mode", help="`walk` or `drive`.")] = "walk",
    length_minutes: Annotated[int, typer.Option("--length", help="Tour length in minutes.")] = 30,
    persona: Annotated[str, typer.Option("--persona", help="`adult` or `preteen`.")] = "adult",
    route_id: Annotated[
        str | None, typer.Option("--route-id", help="Custom route id (generated when omitted).")
    ] = None,
    jam_id: Annotated[
        str | None, typer.Option("--jam-id", help="Owning jam id (generated when omitted).")
    ] = None,
    wait: WaitOption = False,
    timeout: TimeoutOption = 600.0,
    config_file: ConfigOption = None,
    db_path: DbPathOption = None,
    api_key: ApiKeyOption = None,
) -> None:
    """Queue narration generation for a user-assembled mix."""

    try:
        stops = _load_stops_file(stops_file)
        config = _resolve_config(config_file, db_path, api_key)
        service = _open_service(config)
        try:
            job = service.create_mix_job(
                stops=stops,
                city=city,
                transport_mode=transport_mode,
                length_minutes=length_minutes,
                persona=persona,
                route_id=route_id,
                jam_id=jam_id,
            )
            _finish_job(service, job, wait, timeout)
        finally:
            service.shutdown(wait=True)
    except Exception as exc:
        exit_with_command_error("create-mix-job", exc)


@app.command("create-preset-job")
def create_preset_job_command(
    route_id: Annotated[str, typer.Argument(help="Catalog route id, see `tourvoice presets`.")],
    city: Annotated[str | None, typer.Option("--city", help="Preset city key.")] = None,
    jam_id: Annotated[
        str | None, typer.Option("--jam-id", help="Owning jam id (generated when omitted).")
    ] = None,
    wait: WaitOption = False,
    timeout: TimeoutOption = 600.0,
    config_file: ConfigOption = None,
    db_path: DbPathOption = None,
    api_key: ApiKeyOption = None,
) -> None:
    """Queue narration generation of a catalog tour for both personas."""

    try:
        config = _resolve_config(config_file, db_path, api_key)
        service = _open_service(config)
        try:
            job = service.create_preset_job(route_id=route_id, city=city, jam_id=jam_id)
            _finish_job(service, job, wait, timeout)
        finally:
            service.shutdown(wait=True)
    except Exception as exc:
        exit_with_command_error("create-preset-job", exc)


@app.command("job-status")
def job_status_command(
    job_id: Annotated[str, typer.Argument(help="Generation job id.")],
    config_file: ConfigOption = None,
    db_path: DbPathOption = None,
) -> None:
    """Print the polling snapshot of a generation job."""

    try:
        config = _load_config(config_file)
        if db_path is not None:
            config.db_path = db_path
        service = _open_service(config)
        try:
            snapshot = service.get_job_status(job_id)
        finally:
            service.shutdown(wait=False)
        if snapshot is None:
            raise PipelineStageError(stage="job", detail=f"Unknown generation job `{job_id}`.")
    except Exception as exc:
        exit_with_command_error("job-status", exc)

    echo_json(snapshot)


@app.command("route-stops")
def route_stops_command(
    route_kind: Annotated[str, typer.Argument(help="`preset` or `custom`.")],
    route_id: Annotated[str, typer.Argument(help="Route id.")],
    config_file: ConfigOption = None,
    db_path: DbPathOption = None,
) -> None:
    """Print a tour's stops joined with canonical data and narration."""

    try:
        config = _load_config(config_file)
        if db_path is not None:
            config.db_path = db_path
        service = _open_service(config)
        try:
            rows = service.load_route_narration(route_kind, route_id)
        finally:
            service.shutdown(wait=False)
    except Exception as exc:
        exit_with_command_error("route-stops", exc)

    echo_route_stops(rows)


@app.command("presets")
def presets_command() -> None:
    """List catalog tours and their stop order."""

    echo_preset_routes(PRESET_ROUTES)


@app.command("personas")
def personas_command(
    city: Annotated[str, typer.Option("--city", help="City used in the preview.")] = "Salem",
    stop_title: Annotated[
        str, typer.Option("--stop", help="Stop title used in the preview.")
    ] = "Salem Harbor",
) -> None:
    """Preview narration personas with their fallback narration."""

    for persona in PERSONAS:
        prompt = PERSONA_CATALOG[persona]
        echo_persona(
            prompt,
            fallback_script(persona, city=city, stop_title=stop_title, stop_index=0),
        )


@app.command("credentials")
def credentials_command(
    set_api_key: Annotated[
        bool,
        typer.Option(
            "--set-api-key",
            help="Prompt for API key with hidden input and store it securely.",
        ),
    ] = False,
    clear_api_key: Annotated[
        bool,
        typer.Option(
            "--clear-api-key",
            help="Clear stored API key from secure credential storage.",
        ),
    ] = False,
) -> None:
    """Manage securely stored CLI credentials."""

    if set_api_key and clear_api_key:
        exit_with_command_error(
            "credentials",
            PipelineStageError(
                stage="credentials",
                detail="`--set-api-key` and `--clear-api-key` cannot be used together.",
                hint="Run one credentials action per command invocation.",
            ),
        )

    credential_store = create_credential_store()
    if set_api_key:
        prompted_api_key = normalize_optional_text(
            typer.prompt(
                "OpenAI API key (hidden input)",
                default="",
                hide_input=True,
                show_default=False,
            )
        )
        if prompted_api_key is None:
            exit_with_command_error(
                "credentials",
                PipelineStageError(
                    stage="credentials",
                    detail="No API key entered.",
                    hint="Provide a non-empty API key when using `--set-api-key`.",
                ),
            )
        try:
            credential_store.set_api_key(prompted_api_key)
        except Exception as exc:
            exit_with_command_error(
                "credentials",
                PipelineStageError(
                    stage="credentials",
                    detail=f"Failed to store API key securely: {exc}",
                    hint="Install and configure a keyring backend and retry.",
                ),
            )
        typer.echo("API key stored in secure credential storage.")
        return

    if clear_api_key:
        removed = credential_store.clear_api_key()
        if removed:
            typer.echo("Stored API key cleared from secure credential storage.")
        else:
            typer.echo("No stored API key found in secure credential storage.")
        return

    availability = "available" if credential_store.is_available() else "unavailable"
    has_stored_key = credential_store.get_api_key() is not None
    status = "present" if has_stored_key else "not set"
    typer.echo(f"Secure credential storage: {availability}")
    typer.echo(f"Stored OpenAI API key: {status}")


def main() -> None:
    """CLI entrypoint for console scripts."""
    app()


if __name__ == "__main__":
    main()
