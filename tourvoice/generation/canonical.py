"""Canonical stop resolution and route mapping upserts.

Responsibilities:
- Map tour-local stops onto shared canonical stops so narration is computed once per place.
- Use deterministic hashing for catalog stops and proximity matching for user stops.
- Seed link-derived images without ever replacing authoritative images.

Key types:
- `CanonicalStopResolver`: resolver bound to a relational store.
"""

from __future__ import annotations

import hashlib

from ..geo import distance_meters
from ..io.store import RelationalStore
from ..models.datatypes import (
    STRONG_IMAGE_SOURCES,
    CanonicalStop,
    RouteKind,
    RouteStopMapping,
    StopInput,
)
from ..parsing import normalize_optional_text

CANONICAL_MATCH_RADIUS_METERS = 50.0


def is_placeholder_image(url: str | None) -> bool:
    """Return whether an image value is blank or a static placeholder path."""

    value = normalize_optional_text(url)
    if value is None:
        return True
    return "/placeholder-" in value.lower()


def _canonical_id(prefix: str, key: str) -> str:
    digest = hashlib.sha1(key.encode("utf-8")).hexdigest()[:20]
    return f"{prefix}-{digest}"


def canonical_id_for_catalog_stop(city: str, stop_id: str) -> str:
    """Return the deterministic canonical id of a catalog stop."""

    return _canonical_id("canon-preset", f"{city}|{stop_id}")


def canonical_id_for_user_stop(city: str, stop: StopInput) -> str:
    """Return the deterministic canonical id of a user stop with no nearby match."""

    key = f"{city}|{stop.title.lower()}|{stop.lat:.6f}|{stop.lng:.6f}"
    return _canonical_id("canon-custom", key)


class CanonicalStopResolver:
    """Resolve tour stops onto canonical stop records."""

    def __init__(
        self,
        store: RelationalStore,
        match_radius_meters: float = CANONICAL_MATCH_RADIUS_METERS,
    ) -> None:
        self.store = store
        self.match_radius_meters = match_radius_meters

    def resolve_for_catalog_stop(self, city: str, stop: StopInput) -> CanonicalStop:
        """Resolve a catalog-authored stop by `city|stop_id` identity.

        Existing rows are refreshed with the current title and coordinates
        because catalog content can be edited between runs.
        """

        stop_id = canonical_id_for_catalog_stop(city, stop.id)
        existing = self.store.get_canonical_stop(stop_id)
        if existing is None:
            return self._insert(stop_id, city, stop)

        refreshed = self.store.update_canonical_stop(
            stop_id,
            city=city,
            title=stop.title,
            lat=float(stop.lat),
            lng=float(stop.lng),
        )
        return self.seed_image_if_allowed(refreshed, stop.image)

    def resolve_for_user_stop(self, city: str, stop: StopInput) -> CanonicalStop:
        """Resolve a user stop to the nearest canonical stop within the match radius."""

        nearest = self.find_nearest(city, stop.lat, stop.lng)
        if nearest is not None:
            return self.seed_image_if_allowed(nearest, stop.image)

        stop_id = canonical_id_for_user_stop(city, stop)
        existing = self.store.get_canonical_stop(stop_id)
        if existing is not None:
            return self.seed_image_if_allowed(existing, stop.image)
        return self._insert(stop_id, city, stop)

    def find_nearest(self, city: str, lat: float, lng: float) -> CanonicalStop | None:
        """Return the nearest canonical stop in `city` within the match radius."""

        best: CanonicalStop | None = None
        best_distance = float("inf")
        for candidate in self.store.list_canonical_stops(city):
            distance = distance_meters(lat, lng, candidate.lat, candidate.lng)
            if distance < best_distance:
                best = candidate
                best_distance = distance
        if best is None or best_distance > self.match_radius_meters:
            return None
        return best

    def seed_image_if_allowed(self, stop: CanonicalStop, image_url: str | None) -> CanonicalStop:
        """Write an incoming link image unless the current image must be kept."""

        incoming = normalize_optional_text(image_url)
        if incoming is None or is_placeholder_image(incoming):
            return stop
        if stop.image_source in STRONG_IMAGE_SOURCES:
            return stop
        if stop.image_source == "link_seed" and not is_placeholder_image(stop.image_url):
            return stop
        return self.store.update_canonical_stop(
            stop.id, image_url=incoming, image_source="link_seed"
        )

    def _insert(self, stop_id: str, city: str, stop: StopInput) -> CanonicalStop:
        placeholder = is_placeholder_image(stop.image)
        return self.store.insert_canonical_stop(
            CanonicalStop(
                id=stop_id,
                city=city,
                title=stop.title,
                lat=float(stop.lat),
                lng=float(stop.lng),
                image_url=None if placeholder else normalize_optional_text(stop.image),
                image_source="placeholder" if placeholder else "link_seed",
            )
        )


def upsert_route_stop_mapping(
    store: RelationalStore,
    *,
    route_kind: RouteKind,
    route_id: str,
    stop_id: str,
    canonical_stop_id: str,
    position: int,
) -> RouteStopMapping:
    """Record which canonical stop a tour stop resolves to, overwriting any prior row."""

    mapping = RouteStopMapping(
        route_kind=route_kind,
        route_id=route_id,
        stop_id=stop_id,
        canonical_stop_id=canonical_stop_id,
        position=position,
    )
    store.upsert_route_stop_mapping(mapping)
    return mapping
