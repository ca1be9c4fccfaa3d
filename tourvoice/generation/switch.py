"""Generation mode switch loaded once per job run.

Responsibilities:
- Parse the operator-edited switch document into an immutable value.
- Default to `reuse_existing` with no replay overrides when the file is absent or malformed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import json
from pathlib import Path
from typing import Literal, Mapping

from ..parsing import normalize_optional_text
from ..telemetry.logger import RunLogger

GenerationMode = Literal[
    "reuse_existing",
    "force_regenerate_all",
    "force_regenerate_script",
    "force_regenerate_audio",
]

GENERATION_MODES = frozenset(
    {
        "reuse_existing",
        "force_regenerate_all",
        "force_regenerate_script",
        "force_regenerate_audio",
    }
)
DEFAULT_SWITCH_FILE = "mix-generation-switch.json"


@dataclass(frozen=True, slots=True)
class GenerationSwitch:
    """Reuse/force policy plus pinned replay audio per stop and persona.

    Attributes:
        mode: Generation mode applied to every stop of the run.
        replay_audio: `stop_id -> persona -> url` overrides that bypass synthesis.
    """

    mode: GenerationMode = "reuse_existing"
    replay_audio: Mapping[str, Mapping[str, str]] = field(default_factory=dict)

    @property
    def forces_script(self) -> bool:
        """Return whether existing scripts must be regenerated."""

        return self.mode in {"force_regenerate_all", "force_regenerate_script"}

    @property
    def forces_audio(self) -> bool:
        """Return whether existing audio must be regenerated."""

        return self.mode in {"force_regenerate_all", "force_regenerate_audio"}

    def replay_url(self, stop_id: str, persona: str) -> str | None:
        """Return the pinned audio URL for a stop and persona, if any."""

        per_stop = self.replay_audio.get(stop_id)
        if not per_stop:
            return None
        return normalize_optional_text(per_stop.get(persona))


def parse_generation_switch(payload: object) -> GenerationSwitch:
    """Build a switch from a decoded JSON payload.

    Raises:
        ValueError: If the payload shape is not a switch document.
    """

    if not isinstance(payload, dict):
        raise ValueError("Generation switch must be a JSON object.")

    raw_mode = normalize_optional_text(payload.get("mode")) or "reuse_existing"
    if raw_mode not in GENERATION_MODES:
        raise ValueError(f"Unsupported generation mode `{raw_mode}`.")

    raw_replay = payload.get("replay_audio") or {}
    if not isinstance(raw_replay, dict):
        raise ValueError("`replay_audio` must map stop ids to persona URL objects.")

    replay: dict[str, dict[str, str]] = {}
    for stop_id, per_persona in raw_replay.items():
        if not isinstance(per_persona, dict):
            raise ValueError(f"`replay_audio.{stop_id}` must map personas to URLs.")
        urls = {
            str(persona): url
            for persona, value in per_persona.items()
            if (url := normalize_optional_text(value)) is not None
        }
        if urls:
            replay[str(stop_id)] = urls

    return GenerationSwitch(mode=raw_mode, replay_audio=replay)  # type: ignore[arg-type]


def load_generation_switch(path: Path, logger: RunLogger | None = None) -> GenerationSwitch:
    """Read the switch file, falling back to defaults when absent or malformed."""

    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return GenerationSwitch()
    except OSError as exc:
        if logger is not None:
            logger.log_event("config", "switch_fallback", reason=type(exc).__name__)
        return GenerationSwitch()

    try:
        return parse_generation_switch(json.loads(raw))
    except (json.JSONDecodeError, ValueError) as exc:
        if logger is not None:
            logger.log_event("config", "switch_fallback", reason=type(exc).__name__)
        return GenerationSwitch()
