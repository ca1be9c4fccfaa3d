"""Generation job lifecycle: creation, detached execution, polling, and route joins.

Responsibilities:
- Validate creation requests and reject them while a job for the same jam is in flight.
- Persist a queued job and run the orchestrator detached from the caller.
- Convert escaping configuration and total-failure errors into a failed job record.
- Rebuild a tour's ordered stops with canonical data and per-persona narration.

Key types:
- `GenerationJobService`: facade used by the CLI and any request layer.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from concurrent.futures import Executor, Future, ThreadPoolExecutor
import threading
import time
from uuid import uuid4

from ..config import TourvoiceConfig
from ..content.preset_routes import build_stops_with_overview, get_preset_route, normalize_preset_city
from ..errors import JobConflictError, PipelineStageError
from ..io.store import RelationalStore
from ..models.datatypes import (
    PERSONAS,
    ROUTE_KINDS,
    TRANSPORT_MODES,
    GenerationJob,
    GenerationOutcome,
    GenerationRequest,
    RouteKind,
    RouteStopNarration,
    StopInput,
)
from ..parsing import normalize_city_key, normalize_optional_text
from ..provider_factory import ProviderFactory
from ..telemetry.logger import RunLogger
from .mix_constraints import validate_mix_selection
from .orchestrator import GenerationOrchestrator
from .progress import JobProgressTracker
from .switch import load_generation_switch

OrchestratorFactory = Callable[[RelationalStore, RunLogger | None], GenerationOrchestrator]


def build_default_orchestrator(
    config: TourvoiceConfig,
) -> OrchestratorFactory:
    """Return a factory that builds OpenAI-backed orchestrators from `config`.

    The API key is resolved when the factory runs, so a missing key fails the
    job at start rather than at creation.
    """

    def factory(store: RelationalStore, logger: RunLogger | None) -> GenerationOrchestrator:
        api_key = config.require_api_key()
        rate_limiter = ProviderFactory.create_rate_limiter(config)
        return GenerationOrchestrator(
            store=store,
            script_writer=ProviderFactory.create_script_writer(config, api_key, rate_limiter),
            synthesizer=ProviderFactory.create_synthesizer(config, api_key, rate_limiter),
            uploader=ProviderFactory.create_uploader(config),
            logger=logger,
        )

    return factory


class GenerationJobService:
    """Create, launch, and observe narration generation jobs.

    The caller and the background worker share nothing but the persisted job
    record; `create_*` returns as soon as the queued job is stored.
    """

    def __init__(
        self,
        store: RelationalStore,
        config: TourvoiceConfig,
        *,
        logger: RunLogger | None = None,
        orchestrator_factory: OrchestratorFactory | None = None,
        executor: Executor | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self.store = store
        self.config = config
        self.logger = logger
        self.orchestrator_factory = orchestrator_factory or build_default_orchestrator(config)
        self._owns_executor = executor is None
        self.executor = executor or ThreadPoolExecutor(
            max_workers=2, thread_name_prefix="tourvoice-job"
        )
        self.id_factory = id_factory or (lambda: uuid4().hex)
        self.tracker = JobProgressTracker(store, logger)
        self._create_lock = threading.Lock()

    def create_mix_job(
        self,
        *,
        stops: Sequence[StopInput],
        city: str,
        transport_mode: str,
        length_minutes: int,
        persona: str,
        route_id: str | None = None,
        jam_id: str | None = None,
    ) -> GenerationJob:
        """Queue narration for a user-assembled mix and launch it detached.

        Raises:
            ValueError: If the selection, persona, or stops are invalid.
            JobConflictError: If a job for the same jam or route is still running.
        """

        if persona not in PERSONAS:
            raise ValueError(f"Unsupported persona `{persona}`.")
        if transport_mode not in TRANSPORT_MODES:
            raise ValueError(f"Unsupported transport mode `{transport_mode}`.")
        selection = validate_mix_selection(length_minutes, transport_mode, len(stops))
        if not selection.ok:
            raise ValueError(selection.message)
        _validate_stops(stops)

        city_key = normalize_city_key(city)
        if city_key is None:
            raise ValueError("City is required.")
        resolved_route_id = normalize_optional_text(route_id) or self.id_factory()

        with self._create_lock:
            job = self._insert_job(
                jam_id=normalize_optional_text(jam_id) or self.id_factory(),
                route_kind="custom",
                route_id=resolved_route_id,
            )
            self.store.delete_route_stop_mappings("custom", resolved_route_id)

        request = GenerationRequest(
            job_id=job.id,
            route_kind="custom",
            route_id=resolved_route_id,
            city=city_key,
            transport_mode=transport_mode,  # type: ignore[arg-type]
            length_minutes=length_minutes,
            personas=(persona,),  # type: ignore[arg-type]
            stops=tuple(stops),
        )
        self.launch(request)
        return job

    def create_preset_job(
        self,
        *,
        route_id: str,
        city: str | None = None,
        jam_id: str | None = None,
    ) -> GenerationJob:
        """Queue narration of a catalog tour for both personas and launch it detached.

        Raises:
            PipelineStageError: If the preset route is unknown.
            JobConflictError: If a job for the same jam or route is still running.
        """

        route = get_preset_route(route_id)
        if route is None:
            raise PipelineStageError(
                stage="job",
                detail=f"Unknown preset route `{route_id}`.",
                hint="Use one of the catalog route ids listed by `tourvoice presets`.",
            )
        city_key = normalize_preset_city(city)

        with self._create_lock:
            job = self._insert_job(
                jam_id=normalize_optional_text(jam_id) or self.id_factory(),
                route_kind="preset",
                route_id=route.id,
            )

        request = GenerationRequest(
            job_id=job.id,
            route_kind="preset",
            route_id=route.id,
            city=city_key,
            transport_mode="walk",
            length_minutes=route.duration_minutes,
            personas=PERSONAS,
            stops=build_stops_with_overview(route, city_key),
        )
        self.launch(request)
        return job

    def launch(self, request: GenerationRequest) -> Future[GenerationOutcome | None]:
        """Submit a run to the executor and return immediately."""

        if self.logger is not None:
            self.logger.log_event("job", "launched", job=request.job_id, route=request.route_id)
        return self.executor.submit(self.run_job, request)

    def run_job(self, request: GenerationRequest) -> GenerationOutcome | None:
        """Run one job, writing `failed` when a configuration or total-failure error escapes.

        Returns:
            The run outcome, or `None` when the job failed.
        """

        if self.logger is not None:
            self.logger.log_stage_start("job", job=request.job_id, kind=request.route_kind)
        try:
            switch = load_generation_switch(self.config.switch_file, self.logger)
            orchestrator = self.orchestrator_factory(self.store, self.logger)
            outcome = orchestrator.run(request, switch)
        except Exception as exc:
            stage = exc.stage if isinstance(exc, PipelineStageError) else "job"
            if self.logger is not None:
                self.logger.log_stage_failure(
                    stage, type(exc).__name__, job=request.job_id
                )
            self.tracker.update(
                request.job_id,
                "failed",
                "Generation failed",
                error=normalize_optional_text(str(exc)) or type(exc).__name__,
            )
            return None

        if self.logger is not None:
            self.logger.log_stage_complete("job", job=request.job_id, status=outcome.status)
        return outcome

    def get_job_status(self, job_id: str) -> dict[str, object] | None:
        """Return the polling snapshot for a job, or `None` when it does not exist."""

        job = self.store.get_job(job_id)
        return job.as_status_payload() if job is not None else None

    def wait_for_job(
        self,
        job_id: str,
        *,
        timeout_seconds: float = 600.0,
        poll_interval_seconds: float = 0.5,
        sleeper: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> GenerationJob:
        """Poll the persisted job until it reaches a terminal status.

        Raises:
            PipelineStageError: If the job is unknown or does not finish in time.
        """

        deadline = clock() + timeout_seconds
        while True:
            job = self.store.get_job(job_id)
            if job is None:
                raise PipelineStageError(stage="job", detail=f"Unknown generation job `{job_id}`.")
            if job.is_terminal:
                return job
            if clock() >= deadline:
                raise PipelineStageError(
                    stage="job",
                    detail=f"Generation job `{job_id}` did not finish within {timeout_seconds:g}s.",
                    hint=f"Poll later with `tourvoice job-status {job_id}`.",
                )
            sleeper(poll_interval_seconds)

    def load_route_narration(
        self,
        route_kind: str,
        route_id: str,
        personas: Sequence[str] = PERSONAS,
    ) -> list[RouteStopNarration]:
        """Return a tour's stops ordered by position, joined with canonical data and narration."""

        if route_kind not in ROUTE_KINDS:
            raise ValueError(f"Unsupported route kind `{route_kind}`.")

        rows: list[RouteStopNarration] = []
        for mapping in self.store.list_route_stop_mappings(route_kind, route_id):
            canonical = self.store.get_canonical_stop(mapping.canonical_stop_id)
            if canonical is None:
                continue
            scripts: dict[str, str | None] = {}
            audio_urls: dict[str, str | None] = {}
            for persona in personas:
                asset = self.store.get_narration_asset(canonical.id, persona)
                scripts[persona] = asset.script if asset is not None else None
                audio_urls[persona] = asset.audio_url if asset is not None else None
            rows.append(
                RouteStopNarration(
                    stop_id=mapping.stop_id,
                    position=mapping.position,
                    canonical_stop_id=canonical.id,
                    title=canonical.title,
                    lat=canonical.lat,
                    lng=canonical.lng,
                    image_url=canonical.image_url,
                    scripts=scripts,
                    audio_urls=audio_urls,
                )
            )
        return rows

    def shutdown(self, wait: bool = True) -> None:
        """Stop the executor this service created; injected executors are left running."""

        if self._owns_executor:
            self.executor.shutdown(wait=wait)

    def _insert_job(self, *, jam_id: str, route_kind: RouteKind, route_id: str) -> GenerationJob:
        active = self.store.find_active_job(jam_id, route_kind, route_id)
        if active is not None:
            raise JobConflictError(job_id=active.id, status=active.status)
        return self.store.insert_job(
            GenerationJob(
                id=self.id_factory(),
                jam_id=jam_id,
                route_kind=route_kind,
                route_id=route_id,
            )
        )


def _validate_stops(stops: Sequence[StopInput]) -> None:
    seen: set[str] = set()
    for stop in stops:
        stop_id = normalize_optional_text(stop.id)
        if stop_id is None:
            raise ValueError("Every stop requires a non-empty id.")
        if normalize_optional_text(stop.title) is None:
            raise ValueError(f"Stop `{stop_id}` requires a non-empty title.")
        if stop_id in seen:
            raise ValueError(f"Duplicate stop id `{stop_id}`.")
        if not (-90.0 <= stop.lat <= 90.0) or not (-180.0 <= stop.lng <= 180.0):
            raise ValueError(f"Stop `{stop_id}` has out-of-range coordinates.")
        seen.add(stop_id)
