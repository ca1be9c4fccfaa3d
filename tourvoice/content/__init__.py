"""Catalog-authored tour content."""

from .preset_routes import (
    CITY_META,
    PRESET_ROUTES,
    PresetRoute,
    build_overview_stop,
    build_stops_with_overview,
    get_preset_route,
    is_overview_stop_id,
    normalize_preset_city,
)

__all__ = [
    "CITY_META",
    "PRESET_ROUTES",
    "PresetRoute",
    "build_overview_stop",
    "build_stops_with_overview",
    "get_preset_route",
    "is_overview_stop_id",
    "normalize_preset_city",
]
