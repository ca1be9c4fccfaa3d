"""Two-phase narration generation for one tour.

Responsibilities:
- Resolve every tour stop to a canonical stop and upsert its route mapping.
- Run the script phase over every (persona, stop) pair, then the audio phase.
- Apply reuse, force, and replay policy from the generation switch.
- Aggregate per-stop failures as warnings and finalize the job status.

Key types:
- `GenerationOrchestrator`: run coordinator bound to its capabilities.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ..errors import StoreError, TotalAudioFailureError
from ..io.store import RelationalStore
from ..io.uploader import NarrationAudioUploader
from ..llm.script_writer import ScriptWriter
from ..models.datatypes import (
    CanonicalStop,
    GenerationOutcome,
    GenerationRequest,
    NarrationAsset,
    Persona,
    StopInput,
)
from ..parsing import normalize_optional_text
from ..telemetry.logger import RunLogger
from ..tts.synthesizer import SpeechSynthesizer
from .canonical import CanonicalStopResolver, upsert_route_stop_mapping
from .progress import JobProgressTracker, progress_percent
from .switch import GenerationSwitch


def is_usable_audio_url(url: str | None) -> bool:
    """Return whether a URL points at generated narration audio.

    Only such URLs are reused instead of regenerated, and only they count
    toward the audio a run must produce to succeed.

    Bare `/audio/...` paths are static placeholders bundled with the app.
    """

    value = normalize_optional_text(url)
    if value is None:
        return False
    return not value.startswith("/audio/")


def _error_text(exc: BaseException) -> str:
    return normalize_optional_text(str(exc)) or type(exc).__name__


@dataclass(slots=True)
class _RunState:
    """Mutable counters for one orchestrator run."""

    total_units: int
    done_units: int = 0
    warning_count: int = 0
    last_warning: str | None = None
    audio_ready_count: int = 0
    canonical_by_stop: dict[str, CanonicalStop] = field(default_factory=dict)
    failed_stop_ids: set[str] = field(default_factory=set)
    scripts: dict[tuple[str, str], str | None] = field(default_factory=dict)

    def warn(self, message: str) -> None:
        self.warning_count += 1
        self.last_warning = message

    @property
    def progress(self) -> int:
        return progress_percent(self.done_units, self.total_units)


class GenerationOrchestrator:
    """Coordinate script and audio generation for one tour run."""

    def __init__(
        self,
        *,
        store: RelationalStore,
        script_writer: ScriptWriter,
        synthesizer: SpeechSynthesizer,
        uploader: NarrationAudioUploader,
        resolver: CanonicalStopResolver | None = None,
        tracker: JobProgressTracker | None = None,
        logger: RunLogger | None = None,
    ) -> None:
        self.store = store
        self.script_writer = script_writer
        self.synthesizer = synthesizer
        self.uploader = uploader
        self.resolver = resolver or CanonicalStopResolver(store)
        self.tracker = tracker or JobProgressTracker(store, logger)
        self.logger = logger

    def run(self, request: GenerationRequest, switch: GenerationSwitch) -> GenerationOutcome:
        """Run both phases and write the final job status.

        Raises:
            TotalAudioFailureError: If no (persona, stop) pair ended with usable audio.
        """

        state = _RunState(total_units=len(request.personas) * len(request.stops) * 2)

        self._log_start("script", request, state)
        self.tracker.update(request.job_id, "generating_script", "Generating scripts", state.progress)
        for persona in request.personas:
            for index, stop in enumerate(request.stops):
                self._script_unit(request, switch, state, persona, stop, index)
                state.done_units += 1
                self.tracker.update(
                    request.job_id,
                    "generating_script",
                    f"Generating scripts ({state.done_units}/{state.total_units})",
                    state.progress,
                )
        self._log_complete("script", request, state)

        self._log_start("audio", request, state)
        self.tracker.update(request.job_id, "generating_audio", "Generating audio", state.progress)
        for persona in request.personas:
            for stop in request.stops:
                self._audio_unit(request, switch, state, persona, stop)
                state.done_units += 1
                self.tracker.update(
                    request.job_id,
                    "generating_audio",
                    f"Generating audio ({state.done_units}/{state.total_units})",
                    state.progress,
                )
        self._log_complete("audio", request, state)

        return self._finalize(request, state)

    def _resolve(
        self, request: GenerationRequest, state: _RunState, persona: Persona, stop: StopInput, index: int
    ) -> CanonicalStop | None:
        """Resolve a stop once per run and upsert its mapping; `None` when resolution failed."""

        if stop.id in state.failed_stop_ids:
            return None
        cached = state.canonical_by_stop.get(stop.id)
        if cached is not None:
            return cached

        try:
            if request.route_kind == "preset":
                canonical = self.resolver.resolve_for_catalog_stop(request.city, stop)
            else:
                canonical = self.resolver.resolve_for_user_stop(request.city, stop)
            upsert_route_stop_mapping(
                self.store,
                route_kind=request.route_kind,
                route_id=request.route_id,
                stop_id=stop.id,
                canonical_stop_id=canonical.id,
                position=index,
            )
        except StoreError as exc:
            state.failed_stop_ids.add(stop.id)
            state.warn(f'Stop resolution failed at stop "{stop.title}": {_error_text(exc)}')
            self._warn_log("resolve", stop, persona, exc)
            return None

        state.canonical_by_stop[stop.id] = canonical
        return canonical

    def _script_unit(
        self,
        request: GenerationRequest,
        switch: GenerationSwitch,
        state: _RunState,
        persona: Persona,
        stop: StopInput,
        index: int,
    ) -> None:
        canonical = self._resolve(request, state, persona, stop, index)
        if canonical is None:
            return

        existing = self.store.get_narration_asset(canonical.id, persona)
        existing_script = existing.script if existing is not None else None
        existing_audio = existing.audio_url if existing is not None else None

        if not switch.forces_script and existing_script is not None:
            state.scripts[(persona, stop.id)] = existing_script
            return

        try:
            generated = self.script_writer.generate_script(
                city=request.city,
                transport_mode=request.transport_mode,
                length_minutes=request.length_minutes,
                persona=persona,
                stop=stop,
                stop_index=index,
                total_stops=len(request.stops),
            )
            script = normalize_optional_text(generated)
            if script is None:
                raise ValueError("Script generation returned empty text.")
        except Exception as exc:
            warning = (
                f'Script generation failed for {persona} at stop "{stop.title}": {_error_text(exc)}'
            )
            state.warn(warning)
            self._warn_log("script", stop, persona, exc)
            state.scripts[(persona, stop.id)] = existing_script
            self.store.upsert_narration_asset(
                NarrationAsset(
                    canonical_stop_id=canonical.id,
                    persona=persona,
                    script=existing_script,
                    audio_url=existing_audio,
                    status="failed",
                    error=warning,
                )
            )
            return

        state.scripts[(persona, stop.id)] = script
        self.store.upsert_narration_asset(
            NarrationAsset(
                canonical_stop_id=canonical.id,
                persona=persona,
                script=script,
                audio_url=existing_audio,
                status="ready",
                error=None,
            )
        )

    def _audio_unit(
        self,
        request: GenerationRequest,
        switch: GenerationSwitch,
        state: _RunState,
        persona: Persona,
        stop: StopInput,
    ) -> None:
        canonical = state.canonical_by_stop.get(stop.id)
        if canonical is None:
            return

        current = self.store.get_narration_asset(canonical.id, persona)
        if current is not None:
            script = current.script
        else:
            script = state.scripts.get((persona, stop.id))
        current_audio = current.audio_url if current is not None else None

        audio_url: str | None = None
        warning: str | None = None
        replay_url = switch.replay_url(stop.id, persona)
        if replay_url is not None:
            audio_url = replay_url
        elif not switch.forces_audio and is_usable_audio_url(current_audio):
            audio_url = current_audio
        elif script is not None:
            try:
                audio_bytes = self.synthesizer.synthesize(persona, script)
                audio_url = normalize_optional_text(
                    self.uploader.upload(
                        audio_bytes,
                        route_id=f"{request.route_kind}-{request.route_id}",
                        persona=persona,
                        stop_id=stop.id,
                    )
                )
                if audio_url is None:
                    raise ValueError("Audio upload returned an empty URL.")
            except Exception as exc:
                audio_url = None
                warning = (
                    f'Audio generation failed for {persona} at stop "{stop.title}": '
                    f"{_error_text(exc)}"
                )
                self._warn_log("audio", stop, persona, exc)
        else:
            warning = (
                f'Audio generation skipped for {persona} at stop "{stop.title}" '
                "because script is missing"
            )
            self._warn_log("audio", stop, persona, None)

        if warning is not None:
            state.warn(warning)
        if is_usable_audio_url(audio_url):
            state.audio_ready_count += 1

        self.store.upsert_narration_asset(
            NarrationAsset(
                canonical_stop_id=canonical.id,
                persona=persona,
                script=script,
                audio_url=audio_url,
                status="ready" if audio_url is not None else "failed",
                error=None if audio_url is not None else warning,
            )
        )

    def _finalize(self, request: GenerationRequest, state: _RunState) -> GenerationOutcome:
        if state.audio_ready_count == 0:
            if self.logger is not None:
                self.logger.log_stage_failure(
                    "finalize",
                    "TotalAudioFailureError",
                    job=request.job_id,
                    warnings=state.warning_count,
                )
            raise TotalAudioFailureError(
                state.last_warning or "Audio generation failed for all stops and personas."
            )

        if state.warning_count > 0:
            status = "ready_with_warnings"
            summary = f"{state.warning_count} generation warnings. {state.last_warning or ''}".strip()
            self.tracker.update(
                request.job_id, status, "Tour ready with warnings", 100, error=summary
            )
        else:
            status = "ready"
            self.tracker.update(request.job_id, status, "Tour ready", 100, clear_error=True)

        if self.logger is not None:
            self.logger.log_stage_complete(
                "finalize",
                job=request.job_id,
                status=status,
                warnings=state.warning_count,
                audio_ready=state.audio_ready_count,
            )
        return GenerationOutcome(
            status=status,
            warning_count=state.warning_count,
            last_warning=state.last_warning,
            audio_ready_count=state.audio_ready_count,
            total_units=state.total_units,
        )

    def _log_start(self, stage: str, request: GenerationRequest, state: _RunState) -> None:
        if self.logger is not None:
            self.logger.log_stage_start(
                stage, job=request.job_id, route=request.route_id, units=state.total_units
            )

    def _log_complete(self, stage: str, request: GenerationRequest, state: _RunState) -> None:
        if self.logger is not None:
            self.logger.log_stage_complete(
                stage, job=request.job_id, done=state.done_units, warnings=state.warning_count
            )

    def _warn_log(
        self, stage: str, stop: StopInput, persona: Persona, exc: BaseException | None
    ) -> None:
        if self.logger is not None:
            self.logger.log_stop_warning(
                stage,
                stop_id=stop.id,
                persona=persona,
                error_type=type(exc).__name__ if exc is not None else "MissingScript",
            )
