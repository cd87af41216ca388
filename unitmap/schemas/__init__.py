"""Pydantic schemas."""

from unitmap.schemas.map import (
    DEFAULT_METRIC,
    BoundingBox,
    FeatureProperties,
    Geometry,
    LegendSpec,
    LoadState,
    MapPhase,
    MapView,
    Metric,
    PresentedFeature,
    QueryDescriptor,
    Region,
    RegionFeature,
    Selection,
    StyleSpec,
    SubRegion,
    ViewportSource,
    ViewportState,
)

__all__ = [
    "DEFAULT_METRIC",
    "BoundingBox",
    "FeatureProperties",
    "Geometry",
    "LegendSpec",
    "LoadState",
    "MapPhase",
    "MapView",
    "Metric",
    "PresentedFeature",
    "QueryDescriptor",
    "Region",
    "RegionFeature",
    "Selection",
    "StyleSpec",
    "SubRegion",
    "ViewportSource",
    "ViewportState",
]
