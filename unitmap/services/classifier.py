"""Table-driven classification of raw metric values into colour buckets.

Thresholds and colour ramps are data: the packaged defaults live in
``unitmap/data/color_buckets.json`` and operators can point
``BUCKET_TABLES_PATH`` at a recalibrated copy without touching code.
"""

from __future__ import annotations

import math
from bisect import bisect_left
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from unitmap.config import get_settings
from unitmap.logging_config import get_logger
from unitmap.schemas.map import Metric

logger = get_logger(__name__)

DEFAULT_BUCKET_TABLES = Path(__file__).resolve().parent.parent / "data" / "color_buckets.json"

# Bucket index for missing or non-finite values; never the lowest real bucket.
NO_DATA_BUCKET = -1


class BucketTable(BaseModel):
    """Ascending thresholds and one more colour than thresholds."""

    model_config = ConfigDict(frozen=True)

    thresholds: list[float]
    colors: list[str]

    @model_validator(mode="after")
    def _check_shape(self) -> BucketTable:
        if not self.thresholds:
            raise ValueError("at least one threshold is required")
        if not all(math.isfinite(t) for t in self.thresholds):
            raise ValueError("thresholds must be finite")
        if any(a >= b for a, b in zip(self.thresholds, self.thresholds[1:])):
            raise ValueError("thresholds must be strictly ascending")
        if len(self.colors) != len(self.thresholds) + 1:
            raise ValueError(
                f"expected {len(self.thresholds) + 1} colors for "
                f"{len(self.thresholds)} thresholds, got {len(self.colors)}"
            )
        return self


class BucketTables(BaseModel):
    """Per-metric bucket tables plus the colour for missing data."""

    model_config = ConfigDict(frozen=True)

    no_data_color: str = "#cccccc"
    metrics: dict[Metric, BucketTable] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _all_metrics_present(self) -> BucketTables:
        missing = [m.value for m in Metric if m not in self.metrics]
        if missing:
            raise ValueError(f"bucket tables missing for metrics: {missing}")
        return self


def load_bucket_tables(path: Optional[Path] = None) -> BucketTables:
    """Load bucket tables from ``path`` or the packaged defaults."""
    source = Path(path) if path is not None else DEFAULT_BUCKET_TABLES
    tables = BucketTables.model_validate_json(source.read_text(encoding="utf-8"))
    logger.debug("bucket_tables_loaded", path=str(source))
    return tables


def _is_finite_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    # ints of any size are finite and compare exactly with float thresholds
    return isinstance(value, int) or math.isfinite(value)


class MetricClassifier:
    """Maps raw metric values to bucket indices and colours."""

    def __init__(self, tables: Optional[BucketTables] = None):
        self.tables = tables or load_bucket_tables(get_settings().bucket_tables_path)

    @property
    def no_data_color(self) -> str:
        return self.tables.no_data_color

    def classify(self, value: Any, metric: Metric) -> int:
        """Return the bucket index for ``value`` under ``metric``.

        Bucket ``i`` is the first threshold the value is less than or equal to;
        values above every threshold fall in the open-ended last bucket.
        Missing or non-finite values return ``NO_DATA_BUCKET``.
        """
        if not _is_finite_number(value):
            return NO_DATA_BUCKET
        return bisect_left(self.tables.metrics[metric].thresholds, value)

    def color_of_bucket(self, bucket: int, metric: Metric) -> str:
        if bucket == NO_DATA_BUCKET:
            return self.no_data_color
        return self.tables.metrics[metric].colors[bucket]

    def color_for(self, value: Any, metric: Metric) -> str:
        return self.color_of_bucket(self.classify(value, metric), metric)

    def colors(self, metric: Metric) -> list[str]:
        """Colour ramp for a metric, lowest bucket first."""
        return list(self.tables.metrics[metric].colors)


@lru_cache
def get_classifier() -> MetricClassifier:
    """Get cached classifier built from configured tables."""
    return MetricClassifier()
