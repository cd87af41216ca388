"""Tests for the hierarchy store."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from tests.fakes import LGAS, STATES, ok
from unitmap.exceptions import HierarchyUnavailable
from unitmap.schemas.map import LoadState


class TestLoadRegions:
    """Tests for HierarchyStore.load_regions."""

    @pytest.mark.asyncio
    async def test_loads_and_caches(self, store, fake_api):
        first = await store.load_regions()
        second = await store.load_regions()

        assert [r.code for r in first] == ["LA", "KN", "OY"]
        assert second is first
        assert store.regions_state == LoadState.LOADED
        assert len(fake_api.calls("states")) == 1

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_request(self, store, fake_api):
        release = asyncio.Event()

        async def states(request):
            await release.wait()
            return ok(STATES)

        fake_api.routes["states"] = states

        pending = [asyncio.ensure_future(store.load_regions()) for _ in range(3)]
        await asyncio.sleep(0)
        assert store.regions_state == LoadState.LOADING
        release.set()
        results = await asyncio.gather(*pending)

        assert len(fake_api.calls("states")) == 1
        assert all(len(r) == 3 for r in results)

    @pytest.mark.asyncio
    async def test_failure_leaves_empty_retryable_state(self, store, fake_api):
        fake_api.routes["states"] = lambda request: httpx.Response(503)

        with pytest.raises(HierarchyUnavailable):
            await store.load_regions()

        assert store.regions == []
        assert store.regions_state == LoadState.FAILED

        fake_api.routes["states"] = lambda request: ok(STATES)
        regions = await store.load_regions()

        assert len(regions) == 3
        assert store.regions_state == LoadState.LOADED
        assert len(fake_api.calls("states")) == 2

    @pytest.mark.asyncio
    async def test_find_region_by_code(self, store, regions):
        assert store.find_region("KN").name == "Kano"
        assert store.find_region("ZZ") is None


class TestLoadSubRegions:
    """Tests for HierarchyStore.load_sub_regions."""

    @pytest.mark.asyncio
    async def test_loads_region_scoped_list(self, store, regions):
        sub_regions = await store.load_sub_regions(regions["LA"])

        assert [s.name for s in sub_regions] == ["Ikeja", "Epe"]
        assert store.sub_regions == sub_regions
        assert store.sub_regions_parent == "LA"
        assert store.sub_regions_state == LoadState.LOADED
        assert store.find_sub_region("EPE").id == "lg-epe"

    @pytest.mark.asyncio
    async def test_parent_change_replaces_list(self, store, regions):
        await store.load_sub_regions(regions["LA"])
        await store.load_sub_regions(regions["KN"])

        assert [s.code for s in store.sub_regions] == ["NAS"]
        assert store.find_sub_region("IKJ") is None

    @pytest.mark.asyncio
    async def test_failure_returns_empty_list(self, store, regions, fake_api):
        fake_api.routes["lgas"] = lambda request: httpx.Response(500)

        sub_regions = await store.load_sub_regions(regions["LA"])

        assert sub_regions == []
        assert store.sub_regions == []
        assert store.sub_regions_state == LoadState.FAILED

    @pytest.mark.asyncio
    async def test_stale_response_for_previous_region_is_discarded(self, store, regions, fake_api):
        """Lagos answering after Kano was selected must not replace Kano's list."""
        release_lagos = asyncio.Event()

        async def lgas(request):
            code = request.url.params["state_code"]
            if code == "LA":
                await release_lagos.wait()
            return ok(LGAS[code])

        fake_api.routes["lgas"] = lgas

        lagos = asyncio.ensure_future(store.load_sub_regions(regions["LA"]))
        await asyncio.sleep(0)
        kano = await store.load_sub_regions(regions["KN"])
        release_lagos.set()
        late = await lagos

        assert late == []
        assert [s.code for s in kano] == ["NAS"]
        assert [s.code for s in store.sub_regions] == ["NAS"]
        assert store.sub_regions_parent == "KN"
        assert store.sub_regions_state == LoadState.LOADED

    @pytest.mark.asyncio
    async def test_for_session_shares_regions_only(self, store, regions, fetcher):
        await store.load_sub_regions(regions["LA"])

        scoped = store.for_session(fetcher)

        assert scoped.regions is store.regions
        assert scoped.regions_state == LoadState.LOADED
        assert scoped.sub_regions == []
        assert scoped.sub_regions_state == LoadState.IDLE
