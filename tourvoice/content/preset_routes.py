"""Built-in catalog tours and city overview stops.

Responsibilities:
- Define the authored Salem stop list and derive the three preset tours from it.
- Build the "Overview of <City>" stop that opens every preset narration job.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Sequence

from ..geo import distance_meters
from ..models.datatypes import StopInput
from ..parsing import normalize_city_key

PLACEHOLDER_IMAGE = "/images/salem/placeholder-01.png"
OVERVIEW_STOP_PREFIX = "preset-overview-"
DEFAULT_PRESET_CITY = "salem"


@dataclass(frozen=True, slots=True)
class CityMeta:
    """Display label and centre coordinates for a preset city."""

    label: str
    lat: float
    lng: float


@dataclass(frozen=True, slots=True)
class PresetRoute:
    """Catalog-authored tour definition."""

    id: str
    title: str
    duration_minutes: int
    description: str
    stops: tuple[StopInput, ...]


CITY_META: Mapping[str, CityMeta] = {
    "salem": CityMeta(label="Salem", lat=42.5195, lng=-70.8967),
    "boston": CityMeta(label="Boston", lat=42.3601, lng=-71.0589),
    "concord": CityMeta(label="Concord", lat=42.4604, lng=-71.3489),
}

SALEM_HARBOR_STOP_ID = "deep-salem-harbor"

_SALEM_CATALOG_STOPS: tuple[StopInput, ...] = (
    StopInput(
        id="deep-salem-harbor",
        title="Salem Harbor",
        lat=42.5212,
        lng=-70.8877,
        image=PLACEHOLDER_IMAGE,
    ),
    StopInput(
        id="deep-house-seven-gables",
        title="House of the Seven Gables",
        lat=42.521756,
        lng=-70.883507,
        image="https://commons.wikimedia.org/wiki/Special:FilePath/House_of_the_Seven_Gables_MA1.jpg",
    ),
    StopInput(
        id="deep-old-burying-point-cemetery",
        title="Old Burying Point Cemetery",
        lat=42.5206,
        lng=-70.8922,
        image=(
            "https://salemhauntedadventures.com/wp-content/uploads/2024/08/"
            "Old-Burying-Point-Cemetery-Salem-Massachusetts.png"
        ),
    ),
    StopInput(
        id="deep-salem-witch-trials-memorial",
        title="Salem Witch Trials Memorial",
        lat=42.5232,
        lng=-70.8958,
        image="https://en.wikipedia.org/wiki/Special:FilePath/Salem_witch2.jpg",
    ),
    StopInput(
        id="deep-joshua-ward-house",
        title="Joshua Ward House",
        lat=42.5203982,
        lng=-70.8959536,
        image="https://en.wikipedia.org/wiki/Special:FilePath/Joshua_Ward_House_in_Salem_MA.jpg",
    ),
    StopInput(
        id="deep-ropes-mansion-garden",
        title="Ropes Mansion & Garden",
        lat=42.5211,
        lng=-70.8972,
        image="https://en.wikipedia.org/wiki/Special:FilePath/Ropes_Mansion_-_Salem,_Massachusetts.JPG",
    ),
    StopInput(
        id="deep-salem-witch-house",
        title="Salem Witch House",
        lat=42.5229,
        lng=-70.8985,
        image="https://en.wikipedia.org/wiki/Special:FilePath/Witch_House,_Salem.jpg",
    ),
)


def derive_anchored_stops(
    stops: Sequence[StopInput], target_count: int, anchor_id: str
) -> tuple[StopInput, ...]:
    """Order up to `target_count` stops by greedy nearest neighbour from an anchor.

    Falls back to the first stop when `anchor_id` is not present.
    """

    if not stops or target_count <= 0:
        return ()
    clamped_target = min(target_count, len(stops))
    anchor = next((stop for stop in stops if stop.id == anchor_id), stops[0])
    remaining = [stop for stop in stops if stop.id != anchor.id]
    ordered = [anchor]

    while len(ordered) < clamped_target and remaining:
        current = ordered[-1]
        best_index = min(
            range(len(remaining)),
            key=lambda index: distance_meters(
                current.lat, current.lng, remaining[index].lat, remaining[index].lng
            ),
        )
        ordered.append(remaining.pop(best_index))

    return tuple(ordered)


_DEEP_DIVE_STOPS = derive_anchored_stops(_SALEM_CATALOG_STOPS, 7, SALEM_HARBOR_STOP_ID)
_STROLL_STOPS = derive_anchored_stops(_DEEP_DIVE_STOPS, 5, SALEM_HARBOR_STOP_ID)
_SPEED_WALKER_STOPS = derive_anchored_stops(_STROLL_STOPS, 3, SALEM_HARBOR_STOP_ID)

PRESET_ROUTES: tuple[PresetRoute, ...] = (
    PresetRoute(
        id="salem-core-15",
        title="Speed Walker",
        duration_minutes=15,
        description="A tight loop of Salem's essential landmarks: quick, iconic, easy.",
        stops=_SPEED_WALKER_STOPS,
    ),
    PresetRoute(
        id="salem-story-30",
        title="The Stroll",
        duration_minutes=30,
        description="More context, more texture. How Salem became Salem.",
        stops=_STROLL_STOPS,
    ),
    PresetRoute(
        id="salem-deepdive-60",
        title="Deep Dive",
        duration_minutes=60,
        description="A fuller arc: landmarks, hidden context, and why it matters.",
        stops=_DEEP_DIVE_STOPS,
    ),
)


def get_preset_route(route_id: str | None) -> PresetRoute | None:
    """Return a catalog tour by id, or `None` when unknown."""

    if not route_id:
        return None
    return next((route for route in PRESET_ROUTES if route.id == route_id), None)


def normalize_preset_city(city: str | None) -> str:
    """Return a supported preset city key, defaulting to Salem."""

    token = normalize_city_key(city)
    return token if token in CITY_META else DEFAULT_PRESET_CITY


def overview_stop_id(city: str) -> str:
    """Return the overview stop id for a preset city."""

    return f"{OVERVIEW_STOP_PREFIX}{normalize_preset_city(city)}"


def is_overview_stop_id(stop_id: str) -> bool:
    """Return whether a stop id names a city overview stop."""

    return stop_id.startswith(OVERVIEW_STOP_PREFIX)


def build_overview_stop(city: str) -> StopInput:
    """Build the overview stop placed at the city centre."""

    key = normalize_preset_city(city)
    meta = CITY_META[key]
    return StopInput(
        id=overview_stop_id(key),
        title=f"Overview of {meta.label}",
        lat=meta.lat,
        lng=meta.lng,
        image=PLACEHOLDER_IMAGE,
    )


def build_stops_with_overview(route: PresetRoute, city: str) -> tuple[StopInput, ...]:
    """Return the overview stop followed by the route stops."""

    mapped = tuple(
        StopInput(
            id=stop.id,
            title=stop.title,
            lat=stop.lat,
            lng=stop.lng,
            image=stop.image or PLACEHOLDER_IMAGE,
        )
        for stop in route.stops
    )
    return (build_overview_stop(city), *mapped)
