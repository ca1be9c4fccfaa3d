"""Structured job logging on top of loguru.

Every line has the shape
`[job] level=<LEVEL> stage=<stage> event=<event> key=value ...` with context
keys sorted, so logs from concurrent job workers stay grep-friendly. Only ids,
counts, and exception type names are logged; scripts, prompts, and keys never are.
"""

from __future__ import annotations

import sys
from typing import TextIO

from loguru import logger as _loguru_logger

_LINE_FORMAT = "[job] level={level} stage={extra[stage]} event={extra[event]}{message}"
_SAFE_PUNCTUATION = frozenset("-_.:/")


def _token(value: object) -> str:
    """Render a context value as a single whitespace-free token."""

    text = str(value).strip()
    if not text:
        return "none"
    return "".join(ch if ch.isalnum() or ch in _SAFE_PUNCTUATION else "_" for ch in text)


def _context_suffix(context: dict[str, object]) -> str:
    return "".join(f" {key}={_token(context[key])}" for key in sorted(context))


class RunLogger:
    """Emit stage transitions, per-stop warnings, and job events."""

    def __init__(self, sink: TextIO | None = None) -> None:
        """Route loguru output to `sink` (stderr by default) in the job line format."""

        self._sink = sink or sys.stderr
        _loguru_logger.remove()
        _loguru_logger.add(self._sink, format=_LINE_FORMAT, level="INFO", colorize=False)

    def _emit(self, level: str, event: str, stage: str, **context: object) -> None:
        _loguru_logger.bind(stage=stage, event=event).log(level, _context_suffix(context))

    def log_stage_start(self, stage: str, **context: object) -> None:
        self._emit("INFO", "start", stage, **context)

    def log_stage_complete(self, stage: str, **context: object) -> None:
        self._emit("INFO", "complete", stage, **context)

    def log_stage_failure(self, stage: str, error_type: str, **context: object) -> None:
        """Log a failed stage by exception type only."""

        self._emit("ERROR", "failure", stage, error_type=error_type, **context)

    def log_stop_warning(
        self,
        stage: str,
        *,
        stop_id: str,
        persona: str,
        error_type: str,
    ) -> None:
        """Log a per-stop failure that was counted as a warning instead of raised."""

        self._emit("WARNING", "warning", stage, stop=stop_id, persona=persona, error_type=error_type)

    def log_event(self, stage: str, event: str, **context: object) -> None:
        self._emit("INFO", event, stage, **context)
