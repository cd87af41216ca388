"""HTTP access to the hierarchy and aggregation services.

Every sub-region and aggregation request is tagged with the generation that was
current when it was issued. When the response (or failure) arrives, the tag is
compared with the latest generation of its channel and the outcome is dropped
with ``StaleResultDiscarded`` if a newer selection has superseded it. In-flight
requests are never cancelled; only their effects are suppressed.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

import httpx
from pydantic import BaseModel, ValidationError

from unitmap.config import Settings, get_settings
from unitmap.exceptions import (
    AggregationUnavailable,
    HierarchyUnavailable,
    ServiceUnavailable,
    StaleResultDiscarded,
    SubRegionUnavailable,
)
from unitmap.logging_config import get_logger, log_execution_time, metrics
from unitmap.schemas.map import QueryDescriptor, Region, RegionFeature, SubRegion

logger = get_logger(__name__)


class Channel(str, Enum):
    """Independent streams of generation-tagged requests."""

    SUB_REGIONS = "sub_regions"
    AGGREGATION = "aggregation"


class GenerationTracker:
    """Monotonic generation counter with the latest value issued per channel."""

    def __init__(self):
        self._last = 0
        self._current: dict[Channel, int] = {channel: 0 for channel in Channel}

    def advance(self, *channels: Channel) -> int:
        """Issue a new generation and make it current for ``channels``."""
        self._last += 1
        for channel in channels:
            self._current[channel] = self._last
        return self._last

    def current(self, channel: Channel) -> int:
        return self._current[channel]

    def is_current(self, channel: Channel, generation: int) -> bool:
        return self._current[channel] == generation


class DataFetcher:
    """Executes hierarchy and aggregation requests against the remote services."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        generations: Optional[GenerationTracker] = None,
        settings: Optional[Settings] = None,
    ):
        """Initialize the fetcher.

        Args:
            client: Shared HTTP client (owned by the caller)
            generations: Generation tracker; a fresh one when omitted
            settings: Service endpoints and page size. Defaults to settings.
        """
        self.client = client
        self.generations = generations or GenerationTracker()
        self.settings = settings or get_settings()

    def _ensure_current(self, channel: Channel, generation: int) -> None:
        current = self.generations.current(channel)
        if current != generation:
            metrics.increment("stale_results_discarded")
            logger.debug(
                "stale_result_discarded",
                channel=channel.value,
                generation=generation,
                current=current,
            )
            raise StaleResultDiscarded(channel.value, generation, current)

    async def _get_data(
        self,
        url: str,
        params: list[tuple[str, str]],
        error_cls: type[ServiceUnavailable],
    ) -> list[Any]:
        """GET ``url`` and return the ``data`` list of the response envelope."""
        metrics.increment("requests_issued")
        try:
            response = await self.client.get(
                url, params=params, timeout=self.settings.request_timeout_seconds
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as e:
            raise error_cls(str(e) or type(e).__name__) from e
        except ValueError as e:
            raise error_cls(f"invalid JSON response: {e}") from e

        if not isinstance(payload, dict):
            raise error_cls(f"unexpected response type {type(payload).__name__}")

        data = payload.get("data")
        if data is None:
            return []
        if not isinstance(data, list):
            raise error_cls(f"'data' is {type(data).__name__}, expected a list")
        return data

    @staticmethod
    def _parse(
        model: type[BaseModel], items: list[Any], error_cls: type[ServiceUnavailable]
    ) -> list[Any]:
        try:
            return [model.model_validate(item) for item in items]
        except ValidationError as e:
            raise error_cls(f"malformed {model.__name__} record: {e.error_count()} error(s)") from e
        except (TypeError, ValueError, OverflowError) as e:
            raise error_cls(f"malformed {model.__name__} record: {e}") from e

    def _hierarchy_params(self, **extra: str) -> list[tuple[str, str]]:
        params = [("page", "1"), ("page_size", str(self.settings.default_page_size))]
        params.extend(extra.items())
        return params

    @log_execution_time("regions_fetch")
    async def fetch_regions(self) -> list[Region]:
        """Fetch every top-level region."""
        url = f"{self.settings.hierarchy_base_url.rstrip('/')}/states"
        items = await self._get_data(url, self._hierarchy_params(), HierarchyUnavailable)
        return self._parse(Region, items, HierarchyUnavailable)

    @log_execution_time("sub_regions_fetch")
    async def fetch_sub_regions(self, region: Region, generation: int) -> list[SubRegion]:
        """Fetch the sub-regions of ``region`` for the given generation.

        Raises:
            SubRegionUnavailable: transport or parse failure for a current generation
            StaleResultDiscarded: the generation was superseded while in flight
        """
        url = f"{self.settings.hierarchy_base_url.rstrip('/')}/lgas"
        params = self._hierarchy_params(state_code=region.code)
        try:
            items = await self._get_data(url, params, SubRegionUnavailable)
            sub_regions = self._parse(SubRegion, items, SubRegionUnavailable)
        except SubRegionUnavailable:
            self._ensure_current(Channel.SUB_REGIONS, generation)
            metrics.increment("sub_region_failures")
            raise

        self._ensure_current(Channel.SUB_REGIONS, generation)

        scoped = [sub for sub in sub_regions if sub.belongs_to(region)]
        if len(scoped) != len(sub_regions):
            logger.warning(
                "sub_regions_out_of_scope_dropped",
                region=region.code,
                dropped=len(sub_regions) - len(scoped),
            )
        return scoped

    @log_execution_time("aggregation_fetch")
    async def fetch_aggregation(self, query: QueryDescriptor) -> list[RegionFeature]:
        """Run an aggregation query; an empty list is a valid result.

        Raises:
            AggregationUnavailable: transport or parse failure for a current generation
            StaleResultDiscarded: the generation was superseded while in flight
        """
        url = f"{self.settings.aggregation_base_url.rstrip('/')}/sales"
        try:
            items = await self._get_data(url, query.params, AggregationUnavailable)
            features = self._parse(RegionFeature, items, AggregationUnavailable)
        except AggregationUnavailable:
            self._ensure_current(Channel.AGGREGATION, query.generation)
            metrics.increment("aggregation_failures")
            raise

        self._ensure_current(Channel.AGGREGATION, query.generation)
        return features
