"""Region hierarchy cache: states loaded once, LGAs per selected state."""

from __future__ import annotations

import asyncio
from typing import Optional

from unitmap.exceptions import HierarchyUnavailable, StaleResultDiscarded, SubRegionUnavailable
from unitmap.logging_config import get_logger
from unitmap.schemas.map import LoadState, Region, SubRegion
from unitmap.services.fetcher import Channel, DataFetcher

logger = get_logger(__name__)


class HierarchyStore:
    """Holds the loaded regions and the sub-regions of the selected region."""

    def __init__(self, fetcher: DataFetcher):
        self.fetcher = fetcher
        self.regions: list[Region] = []
        self.regions_state = LoadState.IDLE
        self.sub_regions: list[SubRegion] = []
        self.sub_regions_state = LoadState.IDLE
        self.sub_regions_parent: Optional[str] = None
        self._regions_task: Optional[asyncio.Task[list[Region]]] = None

    async def load_regions(self) -> list[Region]:
        """Fetch and cache all regions once.

        Concurrent callers share the in-flight request. A failure leaves an
        empty list in the FAILED state so the next call retries.

        Raises:
            HierarchyUnavailable: the listing could not be fetched or parsed
        """
        if self.regions_state == LoadState.LOADED:
            return self.regions

        if self._regions_task is None:
            self.regions_state = LoadState.LOADING
            self._regions_task = asyncio.ensure_future(self._fetch_regions())

        return await asyncio.shield(self._regions_task)

    async def _fetch_regions(self) -> list[Region]:
        try:
            regions = await self.fetcher.fetch_regions()
        except HierarchyUnavailable as e:
            self.regions = []
            self.regions_state = LoadState.FAILED
            logger.error("regions_load_failed", error=e.message)
            raise
        finally:
            self._regions_task = None

        self.regions = regions
        self.regions_state = LoadState.LOADED
        logger.info("regions_loaded", count=len(regions))
        return regions

    def for_session(self, fetcher: DataFetcher) -> HierarchyStore:
        """New store sharing the loaded regions but with its own sub-region list."""
        store = HierarchyStore(fetcher)
        if self.regions_state == LoadState.LOADED:
            store.regions = self.regions
            store.regions_state = LoadState.LOADED
        return store

    def find_region(self, code: str) -> Optional[Region]:
        return next((r for r in self.regions if r.code == code), None)

    def find_sub_region(self, code: str) -> Optional[SubRegion]:
        return next((s for s in self.sub_regions if s.code == code), None)

    def clear_sub_regions(self) -> None:
        self.sub_regions = []
        self.sub_regions_state = LoadState.IDLE
        self.sub_regions_parent = None

    async def load_sub_regions(
        self, region: Region, generation: Optional[int] = None
    ) -> list[SubRegion]:
        """Replace the sub-region list with the sub-regions of ``region``.

        The previous list is dropped before the request is issued. A response
        superseded by a later call is discarded without touching the store.
        Failures are logged and leave an empty list.
        """
        if generation is None:
            generation = self.fetcher.generations.advance(Channel.SUB_REGIONS)

        self.sub_regions = []
        self.sub_regions_parent = region.code
        self.sub_regions_state = LoadState.LOADING

        try:
            sub_regions = await self.fetcher.fetch_sub_regions(region, generation)
        except StaleResultDiscarded:
            return []
        except SubRegionUnavailable as e:
            logger.warning("sub_regions_load_failed", region=region.code, error=e.message)
            self.sub_regions_state = LoadState.FAILED
            return []

        self.sub_regions = sub_regions
        self.sub_regions_state = LoadState.LOADED
        logger.info("sub_regions_loaded", region=region.code, count=len(sub_regions))
        return sub_regions
