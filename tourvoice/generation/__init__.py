"""Narration generation core: resolution, orchestration, and job lifecycle."""

from .canonical import CanonicalStopResolver, is_placeholder_image, upsert_route_stop_mapping
from .jobs import GenerationJobService
from .mix_constraints import get_max_stops, validate_mix_selection
from .orchestrator import GenerationOrchestrator, is_usable_audio_url
from .progress import JobProgressTracker, progress_percent
from .switch import GenerationSwitch, load_generation_switch

__all__ = [
    "CanonicalStopResolver",
    "GenerationJobService",
    "GenerationOrchestrator",
    "GenerationSwitch",
    "JobProgressTracker",
    "get_max_stops",
    "is_placeholder_image",
    "is_usable_audio_url",
    "load_generation_switch",
    "progress_percent",
    "upsert_route_stop_mapping",
    "validate_mix_selection",
]
