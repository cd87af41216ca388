"""Map pipeline services."""

from unitmap.services.classifier import MetricClassifier
from unitmap.services.fetcher import DataFetcher, GenerationTracker
from unitmap.services.hierarchy import HierarchyStore
from unitmap.services.map_session import MapSession
from unitmap.services.presenter import FeaturePresenter

__all__ = [
    "DataFetcher",
    "FeaturePresenter",
    "GenerationTracker",
    "HierarchyStore",
    "MapSession",
    "MetricClassifier",
]
