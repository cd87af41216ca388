"""Viewport fitting for the map.

Three rules, first match wins:

1. the union bounding box of the returned feature geometries,
2. a fixed centre for the selected state's name at state-level zoom,
3. the whole-country default view.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Iterator, Sequence
from typing import Any, Optional

from unitmap.logging_config import get_logger
from unitmap.schemas.map import BoundingBox, RegionFeature, Selection, ViewportSource, ViewportState

logger = get_logger(__name__)

COUNTRY_CENTER: tuple[float, float] = (9.0820, 8.6753)
COUNTRY_ZOOM = 6
REGION_ZOOM = 8
MAX_ZOOM = 18

FALLBACK_CENTERS: dict[str, tuple[float, float]] = {
    "Lagos": (6.5244, 3.3792),
    "Abuja": (9.0765, 7.3986),
    "Kano": (12.0022, 8.5920),
    "Rivers": (4.8156, 7.0498),
}


def _positions(coordinates: Any) -> Iterator[tuple[float, float]]:
    """Yield ``(lng, lat)`` pairs from arbitrarily nested GeoJSON coordinates."""
    if not isinstance(coordinates, Sequence) or isinstance(coordinates, str):
        return
    if len(coordinates) >= 2 and all(
        isinstance(c, (int, float)) and not isinstance(c, bool) for c in coordinates[:2]
    ):
        yield float(coordinates[0]), float(coordinates[1])
        return
    for child in coordinates:
        yield from _positions(child)


def bounds_of(features: Iterable[RegionFeature]) -> Optional[BoundingBox]:
    """Union bounding box of all valid positions, or None when there are none."""
    south = west = math.inf
    north = east = -math.inf
    for feature in features:
        if feature.geometry is None:
            continue
        for lng, lat in _positions(feature.geometry.coordinates):
            if not (math.isfinite(lng) and math.isfinite(lat)):
                continue
            if not (-180.0 <= lng <= 180.0 and -90.0 <= lat <= 90.0):
                continue
            south, north = min(south, lat), max(north, lat)
            west, east = min(west, lng), max(east, lng)

    if not math.isfinite(south):
        return None
    return BoundingBox(south=south, west=west, north=north, east=east)


def zoom_for(bounds: BoundingBox) -> float:
    """Approximate zoom at which ``bounds`` fills the view."""
    lat_zoom = math.log2(180 / (bounds.north - bounds.south))
    lng_zoom = math.log2(360 / (bounds.east - bounds.west))
    zoom = min(lat_zoom, lng_zoom)
    return round(max(COUNTRY_ZOOM, min(zoom, MAX_ZOOM)), 2)


def fit(features: Sequence[RegionFeature], selection: Selection) -> ViewportState:
    """Compute the viewport for the displayed features and selection."""
    if features:
        try:
            bounds = bounds_of(features)
        except (TypeError, ValueError) as e:
            logger.warning("viewport_bounds_failed", error=str(e))
            bounds = None
        if bounds is not None and not bounds.is_degenerate:
            return ViewportState(
                center=bounds.center,
                zoom=zoom_for(bounds),
                bounds=bounds,
                source=ViewportSource.BOUNDS,
            )

    region = selection.region
    if region is not None and region.name in FALLBACK_CENTERS:
        return ViewportState(
            center=FALLBACK_CENTERS[region.name],
            zoom=REGION_ZOOM,
            source=ViewportSource.FALLBACK,
        )

    return default_viewport()


def default_viewport() -> ViewportState:
    return ViewportState(center=COUNTRY_CENTER, zoom=COUNTRY_ZOOM, source=ViewportSource.DEFAULT)
