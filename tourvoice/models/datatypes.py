"""Core datatypes shared across Tourvoice modules.

Responsibilities:
- Represent immutable records exchanged between the resolver, store, and orchestrator.
- Provide explicit status/kind vocabularies mirrored by the relational store.

Key types:
- `StopInput`, `CanonicalStop`, `RouteStopMapping`, `NarrationAsset`,
  `GenerationJob`, `GenerationRequest`, `GenerationOutcome`,
  `RouteStopNarration`, and `MixValidationResult`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Mapping

Persona = Literal["adult", "preteen"]
RouteKind = Literal["preset", "custom"]
TransportMode = Literal["walk", "drive"]
ImageSource = Literal["places", "curated", "placeholder", "link_seed"]
AssetStatus = Literal["pending", "generating", "ready", "failed"]
JobStatus = Literal[
    "queued",
    "generating_script",
    "generating_audio",
    "ready",
    "ready_with_warnings",
    "failed",
]

PERSONAS: tuple[Persona, ...] = ("adult", "preteen")
ROUTE_KINDS = frozenset({"preset", "custom"})
TRANSPORT_MODES = frozenset({"walk", "drive"})
IMAGE_SOURCES = frozenset({"places", "curated", "placeholder", "link_seed"})
STRONG_IMAGE_SOURCES = frozenset({"places", "curated"})
ASSET_STATUSES = frozenset({"pending", "generating", "ready", "failed"})
JOB_STATUSES = frozenset(
    {
        "queued",
        "generating_script",
        "generating_audio",
        "ready",
        "ready_with_warnings",
        "failed",
    }
)
TERMINAL_JOB_STATUSES = frozenset({"ready", "ready_with_warnings", "failed"})
ACTIVE_JOB_STATUSES = frozenset({"queued", "generating_script", "generating_audio"})


@dataclass(frozen=True, slots=True)
class StopInput:
    """A tour-local stop as supplied by a tour definition or a user mix.

    Attributes:
        id: Tour-local stop identifier (not globally unique).
        title: Display title used for prompts and custom-stop identity.
        lat: Latitude in decimal degrees.
        lng: Longitude in decimal degrees.
        image: Candidate image URL or static placeholder path.
    """

    id: str
    title: str
    lat: float
    lng: float
    image: str | None = None


@dataclass(frozen=True, slots=True)
class CanonicalStop:
    """Deduplicated physical place shared by any number of tours."""

    id: str
    city: str
    title: str
    lat: float
    lng: float
    image_url: str | None = None
    image_source: ImageSource = "placeholder"
    created_at: str | None = None
    updated_at: str | None = None


@dataclass(frozen=True, slots=True)
class RouteStopMapping:
    """Join row from a tour-specific stop onto its canonical stop."""

    route_kind: RouteKind
    route_id: str
    stop_id: str
    canonical_stop_id: str
    position: int


@dataclass(frozen=True, slots=True)
class NarrationAsset:
    """Narration reuse unit for one (canonical stop, persona) pair."""

    canonical_stop_id: str
    persona: Persona
    script: str | None = None
    audio_url: str | None = None
    status: AssetStatus = "pending"
    error: str | None = None
    updated_at: str | None = None


@dataclass(frozen=True, slots=True)
class GenerationJob:
    """Persisted generation job record polled by external callers."""

    id: str
    jam_id: str
    route_kind: RouteKind
    route_id: str
    status: JobStatus = "queued"
    progress: int = 0
    message: str = "Queued"
    error: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @property
    def is_terminal(self) -> bool:
        """Return whether the job reached a terminal status."""

        return self.status in TERMINAL_JOB_STATUSES

    def as_status_payload(self) -> dict[str, object]:
        """Return the polling snapshot exposed to external callers."""

        return {
            "id": self.id,
            "status": self.status,
            "progress": self.progress,
            "message": self.message,
            "error": self.error,
            "jam_id": self.jam_id,
            "route_id": self.route_id,
            "updated_at": self.updated_at,
        }


@dataclass(frozen=True, slots=True)
class GenerationRequest:
    """Inputs for one orchestrator run.

    Attributes:
        job_id: Persisted job identifier updated with progress.
        route_kind: `preset` for catalog tours, `custom` for user mixes.
        route_id: Owning tour identifier used in mappings and upload paths.
        city: City key used for canonical identity and prompts.
        transport_mode: `walk` or `drive`.
        length_minutes: Requested tour length.
        personas: Personas to narrate, processed in order.
        stops: Ordered tour stops.
    """

    job_id: str
    route_kind: RouteKind
    route_id: str
    city: str
    transport_mode: TransportMode
    length_minutes: int
    personas: tuple[Persona, ...]
    stops: tuple[StopInput, ...]


@dataclass(frozen=True, slots=True)
class GenerationOutcome:
    """Final accounting of an orchestrator run that did not hard-fail."""

    status: JobStatus
    warning_count: int
    last_warning: str | None
    audio_ready_count: int
    total_units: int


@dataclass(frozen=True, slots=True)
class RouteStopNarration:
    """One stop of a tour rebuilt from mappings, canonical stops, and assets."""

    stop_id: str
    position: int
    canonical_stop_id: str
    title: str
    lat: float
    lng: float
    image_url: str | None
    scripts: Mapping[str, str | None] = field(default_factory=dict)
    audio_urls: Mapping[str, str | None] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class MixValidationResult:
    """Outcome of validating a user mix selection."""

    ok: bool
    message: str
    min_stops: int
    max_stops: int
