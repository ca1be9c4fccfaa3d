"""Shared typed data models for Tourvoice.

This package contains dataclasses used across generation modules to avoid
cross-module coupling and circular imports.
"""

from .datatypes import (
    CanonicalStop,
    GenerationJob,
    GenerationOutcome,
    GenerationRequest,
    MixValidationResult,
    NarrationAsset,
    RouteStopMapping,
    RouteStopNarration,
    StopInput,
)

__all__ = [
    "CanonicalStop",
    "GenerationJob",
    "GenerationOutcome",
    "GenerationRequest",
    "MixValidationResult",
    "NarrationAsset",
    "RouteStopMapping",
    "RouteStopNarration",
    "StopInput",
]
