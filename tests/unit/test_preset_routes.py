"""Unit tests for catalog tours, anchored stop ordering, and overview stops."""

from __future__ import annotations

from tourvoice.content.preset_routes import (
    PLACEHOLDER_IMAGE,
    PRESET_ROUTES,
    build_overview_stop,
    build_stops_with_overview,
    derive_anchored_stops,
    get_preset_route,
    is_overview_stop_id,
    normalize_preset_city,
    overview_stop_id,
)
from tourvoice.models.datatypes import StopInput


def test_preset_routes_are_nested_and_anchored_at_the_harbor() -> None:
    """Shorter tours should be subsets of longer ones and all start at Salem Harbor."""

    by_id = {route.id: route for route in PRESET_ROUTES}
    core = {stop.id for stop in by_id["salem-core-15"].stops}
    story = {stop.id for stop in by_id["salem-story-30"].stops}
    deep = {stop.id for stop in by_id["salem-deepdive-60"].stops}

    assert [len(by_id[key].stops) for key in ("salem-core-15", "salem-story-30", "salem-deepdive-60")] == [3, 5, 7]
    assert core <= story <= deep
    assert all(route.stops[0].id == "deep-salem-harbor" for route in PRESET_ROUTES)
    assert [route.duration_minutes for route in PRESET_ROUTES] == [15, 30, 60]


def test_derive_anchored_stops_uses_greedy_nearest_neighbour() -> None:
    """Each next stop should be the closest remaining one to the previous stop."""

    stops = (
        StopInput(id="far", title="Far", lat=0.0, lng=0.003),
        StopInput(id="anchor", title="Anchor", lat=0.0, lng=0.0),
        StopInput(id="near", title="Near", lat=0.0, lng=0.001),
        StopInput(id="mid", title="Mid", lat=0.0, lng=0.002),
    )

    ordered = derive_anchored_stops(stops, 3, "anchor")

    assert [stop.id for stop in ordered] == ["anchor", "near", "mid"]
    assert [stop.id for stop in derive_anchored_stops(stops, 9, "missing")][0] == "far"
    assert derive_anchored_stops(stops, 0, "anchor") == ()
    assert derive_anchored_stops((), 3, "anchor") == ()


def test_get_preset_route_and_city_normalization() -> None:
    """Unknown ids return `None`; unknown cities fall back to Salem."""

    assert get_preset_route("salem-story-30") is not None
    assert get_preset_route("salem-night-90") is None
    assert get_preset_route(None) is None
    assert normalize_preset_city(" Boston ") == "boston"
    assert normalize_preset_city("springfield") == "salem"
    assert normalize_preset_city(None) == "salem"


def test_overview_stop_sits_at_city_centre() -> None:
    """The overview stop should use the city label, centre coordinates, and placeholder image."""

    overview = build_overview_stop("concord")

    assert overview.id == overview_stop_id("concord") == "preset-overview-concord"
    assert overview.title == "Overview of Concord"
    assert (overview.lat, overview.lng) == (42.4604, -71.3489)
    assert overview.image == PLACEHOLDER_IMAGE
    assert is_overview_stop_id(overview.id) is True
    assert is_overview_stop_id("deep-salem-harbor") is False


def test_build_stops_with_overview_prepends_overview_and_fills_images() -> None:
    """Route stops should follow the overview and always carry an image value."""

    route = get_preset_route("salem-core-15")
    assert route is not None

    stops = build_stops_with_overview(route, "salem")

    assert stops[0].id == "preset-overview-salem"
    assert [stop.id for stop in stops[1:]] == [stop.id for stop in route.stops]
    assert all(stop.image for stop in stops)
