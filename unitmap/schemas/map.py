"""Pydantic schemas for the map selection, query and display pipeline."""

from __future__ import annotations

import math
import sys
from datetime import date, timedelta
from enum import Enum
from typing import Any, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator


def _unwrap_object_id(data: Any) -> Any:
    """Lift a Mongo-style ``{"_id": {"$oid": ...}}`` into a plain ``id``."""
    if isinstance(data, dict) and "id" not in data and "_id" in data:
        raw = data["_id"]
        data = {**data, "id": raw.get("$oid") if isinstance(raw, dict) else raw}
    return data


class LoadState(str, Enum):
    """Loading state of a hierarchy list."""

    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    FAILED = "failed"


class MapPhase(str, Enum):
    """Phase of the selection state machine."""

    IDLE = "idle"
    REGION_SELECTED = "region_selected"
    READY = "ready"
    SUBMITTING = "submitting"
    DISPLAYING = "displaying"
    EMPTY = "empty"
    QUERY_FAILED = "query_failed"


class Metric(str, Enum):
    """Aggregated business indicators a map can be coloured by."""

    DENSITY = "density"
    REVENUE = "revenue"
    TTV = "ttv"
    TRANSACTION_FREQUENCY = "transaction_frequency"

    @property
    def property_key(self) -> str:
        """Feature property carrying the raw value for this metric."""
        return METRIC_PROPERTIES[self]

    @property
    def label(self) -> str:
        return METRIC_LABELS[self]


METRIC_PROPERTIES: dict[Metric, str] = {
    Metric.DENSITY: "avgRetailerDensity",
    Metric.REVENUE: "avgRevenue",
    Metric.TTV: "avgTTV",
    Metric.TRANSACTION_FREQUENCY: "avgTransactionFrequency",
}

METRIC_LABELS: dict[Metric, str] = {
    Metric.DENSITY: "Retailer Density",
    Metric.REVENUE: "Revenue",
    Metric.TTV: "TTV",
    Metric.TRANSACTION_FREQUENCY: "Transaction Frequency",
}

DEFAULT_METRIC = Metric.TTV


# Hierarchy
class Region(BaseModel):
    """Top-level administrative unit (a state)."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = Field(validation_alias=AliasChoices("name", "state_name"))
    code: str = Field(validation_alias=AliasChoices("code", "state_code"))
    country_name: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _lift_id(cls, data: Any) -> Any:
        return _unwrap_object_id(data)


class SubRegion(BaseModel):
    """Administrative unit nested in a region (an LGA)."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = Field(validation_alias=AliasChoices("name", "lga_name"))
    code: str = Field(validation_alias=AliasChoices("code", "lga_code"))
    parent_code: str = Field(validation_alias=AliasChoices("parent_code", "state_code"))
    parent_name: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("parent_name", "state_name")
    )

    @model_validator(mode="before")
    @classmethod
    def _lift_id(cls, data: Any) -> Any:
        return _unwrap_object_id(data)

    def belongs_to(self, region: Optional[Region]) -> bool:
        return region is not None and self.parent_code == region.code


# Selection and query
class Selection(BaseModel):
    """The user's cascading filter selection."""

    model_config = ConfigDict(frozen=True)

    region: Optional[Region] = None
    sub_region: Optional[SubRegion] = None
    metric: Metric = DEFAULT_METRIC
    start_date: date
    end_date: date

    @model_validator(mode="after")
    def _sub_region_in_region(self) -> Selection:
        if self.sub_region is not None and not self.sub_region.belongs_to(self.region):
            raise ValueError("sub_region must belong to the selected region")
        return self

    @classmethod
    def default(cls, today: date, window_days: int) -> Selection:
        """Selection with no region, the default metric and a trailing date window."""
        return cls(start_date=today - timedelta(days=window_days), end_date=today)

    @property
    def has_valid_dates(self) -> bool:
        return self.start_date <= self.end_date


class QueryDescriptor(BaseModel):
    """Canonical aggregation request derived from a Selection."""

    model_config = ConfigDict(frozen=True)

    page: int = 1
    page_size: int
    start_date: date
    end_date: date
    state_id: str
    lga_id: Optional[str] = None
    generation: int = 0

    @property
    def params(self) -> list[tuple[str, str]]:
        """Query parameters in canonical order; ``lga_id`` only when filtered."""
        params = [
            ("page", str(self.page)),
            ("page_size", str(self.page_size)),
            ("start_date", self.start_date.isoformat()),
            ("end_date", self.end_date.isoformat()),
            ("state_id", self.state_id),
        ]
        if self.lga_id is not None:
            params.append(("lga_id", self.lga_id))
        return params

    def same_query(self, other: QueryDescriptor) -> bool:
        """Compare two descriptors ignoring the generation tag."""
        return self.params == other.params


# Features
def _coerce_metric_value(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        try:
            return float(value)
        except OverflowError:
            # Too large for a float; keep it above every threshold
            return math.copysign(sys.float_info.max, value)
    if isinstance(value, float):
        number = value
    elif isinstance(value, str):
        try:
            number = float(value)
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def _coerce_count(value: Any) -> Optional[Union[int, float]]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            pass
    return _coerce_metric_value(value)


class Geometry(BaseModel):
    """GeoJSON geometry; coordinates are ``[lng, lat]`` positions."""

    model_config = ConfigDict(frozen=True)

    type: str
    coordinates: Any


class FeatureProperties(BaseModel):
    """Aggregated metrics for one area."""

    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True)

    name: Optional[str] = None
    count: Optional[Union[int, float]] = None
    avg_retailer_density: Optional[float] = Field(default=None, alias="avgRetailerDensity")
    avg_revenue: Optional[float] = Field(default=None, alias="avgRevenue")
    avg_ttv: Optional[float] = Field(default=None, alias="avgTTV")
    avg_transaction_frequency: Optional[float] = Field(
        default=None, alias="avgTransactionFrequency"
    )

    @field_validator("count", mode="before")
    @classmethod
    def _count_value(cls, value: Any) -> Optional[Union[int, float]]:
        return _coerce_count(value)

    @field_validator(
        "avg_retailer_density",
        "avg_revenue",
        "avg_ttv",
        "avg_transaction_frequency",
        mode="before",
    )
    @classmethod
    def _metric_value(cls, value: Any) -> Optional[float]:
        return _coerce_metric_value(value)

    def value_of(self, metric: Metric) -> Optional[float]:
        """Raw value for a metric, ``None`` when the service did not send one."""
        return {
            Metric.DENSITY: self.avg_retailer_density,
            Metric.REVENUE: self.avg_revenue,
            Metric.TTV: self.avg_ttv,
            Metric.TRANSACTION_FREQUENCY: self.avg_transaction_frequency,
        }[metric]


class RegionFeature(BaseModel):
    """A GeoJSON feature returned by the aggregation service."""

    model_config = ConfigDict(frozen=True, extra="allow")

    type: str = "Feature"
    id: Optional[Union[str, int]] = None
    geometry: Optional[Geometry] = None
    properties: Optional[FeatureProperties] = None


# Viewport
class ViewportSource(str, Enum):
    """Which rule produced a viewport."""

    BOUNDS = "bounds"
    FALLBACK = "fallback"
    DEFAULT = "default"


class BoundingBox(BaseModel):
    """Geographic extent in degrees."""

    model_config = ConfigDict(frozen=True)

    south: float
    west: float
    north: float
    east: float

    @property
    def center(self) -> tuple[float, float]:
        return ((self.south + self.north) / 2, (self.west + self.east) / 2)

    @property
    def is_degenerate(self) -> bool:
        return self.north <= self.south or self.east <= self.west


class ViewportState(BaseModel):
    """Map centre and zoom, with the fitted bounds when derived from data."""

    model_config = ConfigDict(frozen=True)

    center: tuple[float, float] = Field(description="(lat, lng)")
    zoom: float
    bounds: Optional[BoundingBox] = None
    source: ViewportSource


# Presentation
class StyleSpec(BaseModel):
    """Leaflet path style for a feature."""

    model_config = ConfigDict(frozen=True)

    fill_color: str
    weight: int = 1
    opacity: float = 1.0
    color: str = "white"
    fill_opacity: float = 0.7


class PresentedFeature(BaseModel):
    """A feature with its style, bucket and popup for the current metric."""

    feature: RegionFeature
    bucket: int
    style: StyleSpec
    popup: str


class LegendSpec(BaseModel):
    """Legend panel content for the current selection."""

    title: str
    caption: str
    colors: list[str] = Field(default_factory=list)
    low_label: str = "Low"
    high_label: str = "High"
    results_summary: Optional[str] = None


class MapView(BaseModel):
    """Everything the interactive surface needs to draw the map page."""

    selection: Selection
    phase: MapPhase
    error: Optional[str] = None
    sub_regions: list[SubRegion] = Field(default_factory=list)
    sub_regions_state: LoadState = LoadState.IDLE
    features: list[PresentedFeature] = Field(default_factory=list)
    viewport: ViewportState
    legend: Optional[LegendSpec] = None
