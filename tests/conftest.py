"""Shared pytest fixtures for the Tourvoice test suite."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Sequence

import pytest

from tests.doubles import RecordingStore
from tourvoice.models.datatypes import GenerationJob, GenerationRequest, StopInput


@pytest.fixture
def store(tmp_path: Path) -> RecordingStore:
    """Provide a fresh recording SQLite store per test."""

    return RecordingStore(tmp_path / "tourvoice.sqlite3")


@pytest.fixture
def salem_stops() -> tuple[StopInput, ...]:
    """Provide three well-separated Salem stops."""

    return (
        StopInput(id="s1", title="Salem Harbor", lat=42.5212, lng=-70.8877),
        StopInput(id="s2", title="Old Burying Point Cemetery", lat=42.5206, lng=-70.8922),
        StopInput(id="s3", title="Salem Witch House", lat=42.5229, lng=-70.8985),
    )


@pytest.fixture
def make_request(store: RecordingStore) -> Callable[..., GenerationRequest]:
    """Insert a queued job and return a matching generation request."""

    counter = {"value": 0}

    def _make(
        stops: Sequence[StopInput],
        *,
        personas: Sequence[str] = ("adult",),
        route_kind: str = "custom",
        route_id: str = "mix-1",
        city: str = "salem",
    ) -> GenerationRequest:
        counter["value"] += 1
        job = store.insert_job(
            GenerationJob(
                id=f"job-{counter['value']}",
                jam_id=f"jam-{counter['value']}",
                route_kind=route_kind,  # type: ignore[arg-type]
                route_id=route_id,
            )
        )
        return GenerationRequest(
            job_id=job.id,
            route_kind=route_kind,  # type: ignore[arg-type]
            route_id=route_id,
            city=city,
            transport_mode="walk",
            length_minutes=30,
            personas=tuple(personas),  # type: ignore[arg-type]
            stops=tuple(stops),
        )

    return _make
