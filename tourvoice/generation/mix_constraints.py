"""Stop-count bounds for user-assembled mixes."""

from __future__ import annotations

from typing import Mapping

from ..models.datatypes import MixValidationResult

MIN_MIX_STOPS = 2

# Walking covers less ground per minute, so it allows fewer stops per length.
MAX_STOPS_BY_LENGTH: Mapping[str, Mapping[int, int]] = {
    "walk": {30: 5, 60: 9, 90: 12},
    "drive": {30: 7, 60: 12, 90: 15},
}


def get_max_stops(length_minutes: int, transport_mode: str) -> int:
    """Return the maximum stop count for a tour length and transport mode.

    Lengths between table entries use the largest bracket not above them;
    lengths below the shortest bracket use the shortest.

    Raises:
        ValueError: If `transport_mode` is not a supported mode.
    """

    try:
        brackets = MAX_STOPS_BY_LENGTH[transport_mode]
    except KeyError as exc:
        raise ValueError(f"Unsupported transport mode `{transport_mode}`.") from exc

    eligible = [length for length in brackets if length <= length_minutes]
    bracket = max(eligible) if eligible else min(brackets)
    return brackets[bracket]


def validate_mix_selection(
    length_minutes: int, transport_mode: str, selected_stops: int
) -> MixValidationResult:
    """Validate a mix stop count against the static bounds table."""

    max_stops = get_max_stops(length_minutes, transport_mode)
    if selected_stops < MIN_MIX_STOPS:
        return MixValidationResult(
            ok=False,
            message=f"Choose at least {MIN_MIX_STOPS} stops.",
            min_stops=MIN_MIX_STOPS,
            max_stops=max_stops,
        )
    if selected_stops > max_stops:
        return MixValidationResult(
            ok=False,
            message=f"Select at most {max_stops} stops.",
            min_stops=MIN_MIX_STOPS,
            max_stops=max_stops,
        )
    return MixValidationResult(ok=True, message="", min_stops=MIN_MIX_STOPS, max_stops=max_stops)
