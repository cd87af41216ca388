"""Cascading selection state machine for one map page.

Phases::

    idle -> region_selected -> ready -> submitting -> displaying | empty | query_failed

Invalidation rules:

- changing the region clears the sub-region and the displayed features and
  reloads the sub-region list;
- changing the sub-region clears the displayed features;
- changing the metric or the dates keeps the features, which are re-coloured
  on the next render without a new request;
- reset returns everything to the defaults.

All mutations run synchronously up to their first await, so two selection
changes never interleave mid-transition. Requests are tagged with generations
(see ``unitmap.services.fetcher``) and late results are dropped.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from typing import Callable, Optional

from unitmap.config import Settings, get_settings
from unitmap.exceptions import AggregationUnavailable, StaleResultDiscarded, ValidationBlocked
from unitmap.logging_config import get_logger
from unitmap.schemas.map import (
    MapPhase,
    MapView,
    Metric,
    Region,
    RegionFeature,
    Selection,
    SubRegion,
)
from unitmap.services import viewport
from unitmap.services.classifier import MetricClassifier
from unitmap.services.fetcher import Channel, DataFetcher, GenerationTracker
from unitmap.services.hierarchy import HierarchyStore
from unitmap.services.presenter import FeaturePresenter
from unitmap.services.query_builder import build_query, validate_for_submit

logger = get_logger(__name__)


class MapSession:
    """Owns the selection, displayed features and viewport of one map page."""

    def __init__(
        self,
        store: HierarchyStore,
        classifier: MetricClassifier,
        settings: Optional[Settings] = None,
        today: Callable[[], date] = date.today,
    ):
        """Initialize a session in the idle phase.

        Args:
            store: Hierarchy store; its fetcher issues all requests
            classifier: Bucket tables used to colour features
            settings: Page size and default date window. Defaults to settings.
            today: Clock for the default date window
        """
        self.store = store
        self.fetcher: DataFetcher = store.fetcher
        self.presenter = FeaturePresenter(classifier)
        self.settings = settings or get_settings()
        self._today = today

        self.selection = self._default_selection()
        self.phase = MapPhase.IDLE
        self.features: list[RegionFeature] = []
        self.error: Optional[str] = None
        self.viewport = viewport.default_viewport()

    @property
    def generations(self) -> GenerationTracker:
        return self.fetcher.generations

    @property
    def can_submit(self) -> bool:
        return self.selection.region is not None and self.selection.has_valid_dates

    def _default_selection(self) -> Selection:
        return Selection.default(self._today(), self.settings.default_window_days)

    def _show(self, features: Sequence[RegionFeature], error: Optional[str] = None) -> None:
        self.features = list(features)
        self.error = error
        self.viewport = viewport.fit(self.features, self.selection)

    async def select_region(self, region: Optional[Region]) -> None:
        """Select a region (or none), clearing everything that depends on it."""
        generation = self.generations.advance(Channel.SUB_REGIONS, Channel.AGGREGATION)
        self.selection = self.selection.model_copy(update={"region": region, "sub_region": None})
        self._show([])
        logger.info(
            "region_selected",
            region=region.code if region else None,
            generation=generation,
        )

        if region is None:
            self.store.clear_sub_regions()
            self.phase = MapPhase.IDLE
            return

        self.phase = MapPhase.REGION_SELECTED
        await self.store.load_sub_regions(region, generation)

        if (
            self.generations.is_current(Channel.SUB_REGIONS, generation)
            and self.phase == MapPhase.REGION_SELECTED
        ):
            self.phase = MapPhase.READY

    def select_sub_region(self, sub_region: Optional[SubRegion]) -> None:
        """Narrow the query to one sub-region of the selected region, or to all."""
        if sub_region is not None and not sub_region.belongs_to(self.selection.region):
            raise ValidationBlocked(
                f"LGA {sub_region.name} does not belong to the selected state"
            )

        generation = self.generations.advance(Channel.AGGREGATION)
        self.selection = self.selection.model_copy(update={"sub_region": sub_region})
        self._show([])
        logger.info(
            "sub_region_selected",
            sub_region=sub_region.code if sub_region else None,
            generation=generation,
        )

        if self.selection.region is not None:
            self.phase = MapPhase.READY

    def select_metric(self, metric: Metric) -> None:
        """Switch the colouring metric; existing features are kept."""
        self.selection = self.selection.model_copy(update={"metric": Metric(metric)})

    def set_dates(self, start_date: date, end_date: date) -> None:
        """Set the date range; checked against each other only on submit."""
        self.selection = self.selection.model_copy(
            update={"start_date": start_date, "end_date": end_date}
        )

    async def submit(self) -> None:
        """Query the aggregation service for the current selection.

        Raises:
            ValidationBlocked: no region selected or start date after end date;
                nothing is sent to the network
        """
        try:
            validate_for_submit(self.selection)
        except ValidationBlocked as e:
            logger.info("submit_blocked", reason=e.reason)
            raise

        generation = self.generations.advance(Channel.AGGREGATION)
        query = build_query(
            self.selection, generation=generation, page_size=self.settings.default_page_size
        )
        self.phase = MapPhase.SUBMITTING
        self.error = None
        logger.info("aggregation_submitted", params=dict(query.params), generation=generation)

        try:
            features = await self.fetcher.fetch_aggregation(query)
        except StaleResultDiscarded:
            return
        except AggregationUnavailable as e:
            logger.warning("aggregation_failed", error=e.message, generation=generation)
            self._show([], error=e.message)
            self.phase = MapPhase.QUERY_FAILED
            return

        self._show(features)
        self.phase = MapPhase.DISPLAYING if features else MapPhase.EMPTY
        logger.info("aggregation_applied", features=len(features), generation=generation)

    def reset(self) -> None:
        """Return selection, features and viewport to their defaults."""
        self.generations.advance(Channel.SUB_REGIONS, Channel.AGGREGATION)
        self.selection = self._default_selection()
        self.store.clear_sub_regions()
        self.phase = MapPhase.IDLE
        self._show([])

    def render(self) -> MapView:
        """Classify and style the current features for the selected metric."""
        metric = self.selection.metric
        return MapView(
            selection=self.selection,
            phase=self.phase,
            error=self.error,
            sub_regions=list(self.store.sub_regions),
            sub_regions_state=self.store.sub_regions_state,
            features=[self.presenter.present(feature, metric) for feature in self.features],
            viewport=self.viewport,
            legend=self.presenter.legend_of(self.selection, self.features),
        )
