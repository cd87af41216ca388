"""Styles, popups and legend for classified features."""

from __future__ import annotations

import math
from collections.abc import Sequence
from html import escape
from typing import Optional, Union

from unitmap.schemas.map import (
    LegendSpec,
    Metric,
    PresentedFeature,
    RegionFeature,
    Selection,
    StyleSpec,
)
from unitmap.services.classifier import NO_DATA_BUCKET, MetricClassifier

NO_DATA = "No data"

POPUP_METRICS: list[tuple[str, Metric]] = [
    ("Avg Retailer Density", Metric.DENSITY),
    ("Avg Revenue", Metric.REVENUE),
    ("Avg TTV", Metric.TTV),
    ("Avg Transaction Frequency", Metric.TRANSACTION_FREQUENCY),
]


def _format_value(value: Optional[float]) -> str:
    if value is None or not math.isfinite(value):
        return NO_DATA
    return f"{value:.2f}"


def _format_count(count: Optional[Union[int, float]]) -> str:
    if isinstance(count, int):
        return str(count)
    if count is None or not math.isfinite(count):
        return NO_DATA
    return f"{count:g}"


class FeaturePresenter:
    """Builds per-feature presentation from the classifier's bucket tables."""

    def __init__(self, classifier: MetricClassifier):
        self.classifier = classifier

    def neutral_style(self) -> StyleSpec:
        return StyleSpec(fill_color=self.classifier.no_data_color, fill_opacity=0.5)

    def bucket_of(self, feature: RegionFeature, metric: Metric) -> int:
        if feature.properties is None:
            return NO_DATA_BUCKET
        return self.classifier.classify(feature.properties.value_of(metric), metric)

    def style_of(self, feature: RegionFeature, metric: Metric) -> StyleSpec:
        """Fill colour from the metric's bucket; grey for features without properties."""
        if feature.properties is None:
            return self.neutral_style()
        bucket = self.bucket_of(feature, metric)
        return StyleSpec(fill_color=self.classifier.color_of_bucket(bucket, metric))

    def popup_of(self, feature: RegionFeature) -> str:
        """HTML popup with the area name, count and the four metric averages."""
        props = feature.properties
        if props is None:
            return f"<strong>{NO_DATA}</strong>"

        lines = [
            f"<strong>{escape(props.name or 'Unnamed area')}</strong>",
            f"Count: {_format_count(props.count)}",
        ]
        lines.extend(
            f"{label}: {_format_value(props.value_of(metric))}" for label, metric in POPUP_METRICS
        )
        return "<br>".join(lines)

    def present(self, feature: RegionFeature, metric: Metric) -> PresentedFeature:
        return PresentedFeature(
            feature=feature,
            bucket=self.bucket_of(feature, metric),
            style=self.style_of(feature, metric),
            popup=self.popup_of(feature),
        )

    def legend_of(
        self, selection: Selection, features: Sequence[RegionFeature]
    ) -> Optional[LegendSpec]:
        """Legend for the selected scope; None until a region is selected."""
        if selection.region is None:
            return None

        scope = selection.sub_region.name if selection.sub_region else "All LGAs"
        title = f"{selection.region.name} - {scope}"

        if not features:
            return LegendSpec(title=title, caption="No data available for the selected filters")

        noun = "area" if len(features) == 1 else "areas"
        return LegendSpec(
            title=title,
            caption=f"Showing data for {selection.metric.label}",
            colors=self.classifier.colors(selection.metric),
            results_summary=f"Results: {len(features)} {noun} found",
        )
