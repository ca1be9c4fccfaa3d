"""CLI output and error rendering helpers.

This module centralizes user-facing CLI presentation for command diagnostics,
job snapshots, route narration rows, and catalog listings.
"""

from __future__ import annotations

import json
from typing import NoReturn, Sequence

import typer

from .content.preset_routes import PresetRoute
from .errors import JobConflictError, PipelineStageError
from .models.datatypes import GenerationJob, MixValidationResult, RouteStopNarration
from .personas.catalog import PersonaPrompt


def exit_with_command_error(command_name: str, exc: Exception) -> NoReturn:
    """Print concise diagnostics for command failures and exit with code 1."""

    if isinstance(exc, PipelineStageError):
        typer.secho(
            f"{command_name} failed at stage `{exc.stage}`: {exc.detail}",
            fg=typer.colors.RED,
            err=True,
        )
        if exc.hint:
            typer.secho(f"Hint: {exc.hint}", fg=typer.colors.YELLOW, err=True)
    elif isinstance(exc, JobConflictError):
        typer.secho(f"{command_name} failed: {exc}", fg=typer.colors.RED, err=True)
        typer.secho(
            f"Hint: retry after `tourvoice job-status {exc.job_id}` reports a terminal status.",
            fg=typer.colors.YELLOW,
            err=True,
        )
    else:
        typer.secho(f"{command_name} failed: {exc}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1) from exc


def echo_json(payload: object) -> None:
    """Print a JSON document with stable key order."""

    typer.echo(json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True))


def echo_job_created(job: GenerationJob) -> None:
    """Print identifiers of a freshly queued job."""

    typer.echo(f"Job id: {job.id}")
    typer.echo(f"Jam id: {job.jam_id}")
    typer.echo(f"Route: {job.route_kind}/{job.route_id}")


def echo_job_snapshot(job: GenerationJob) -> None:
    """Print the polling snapshot of a job."""

    echo_json(job.as_status_payload())


def echo_mix_validation(result: MixValidationResult) -> None:
    """Print the bounds of a valid mix selection."""

    typer.echo(f"Selection ok (min {result.min_stops}, max {result.max_stops} stops).")


def echo_route_stops(rows: Sequence[RouteStopNarration]) -> None:
    """Print route narration rows as a JSON list."""

    echo_json(
        [
            {
                "stop_id": row.stop_id,
                "position": row.position,
                "canonical_stop_id": row.canonical_stop_id,
                "title": row.title,
                "lat": row.lat,
                "lng": row.lng,
                "image_url": row.image_url,
                "scripts": dict(row.scripts),
                "audio_urls": dict(row.audio_urls),
            }
            for row in rows
        ]
    )


def echo_preset_routes(routes: Sequence[PresetRoute]) -> None:
    """Print catalog tours with their ordered stop ids."""

    for route in routes:
        typer.echo(f"{route.id}: {route.title} ({route.duration_minutes} min, {len(route.stops)} stops)")
        for position, stop in enumerate(route.stops, start=1):
            typer.echo(f"  {position}. {stop.title} [{stop.id}]")


def echo_persona(prompt: PersonaPrompt, fallback: str) -> None:
    """Print one persona profile and its fallback narration preview."""

    typer.echo(f"{prompt.key}: {prompt.display_name}")
    typer.echo(f"  {prompt.description}")
    target = prompt.length_target
    typer.echo(
        f"  Length: {target.duration_seconds}s, {target.sentence_range} sentences, "
        f"{target.word_range} words"
    )
    typer.echo(f"  Fallback: {fallback}")
