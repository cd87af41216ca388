"""Shared fixtures for building fetchers, stores and sessions over the fake services."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import pytest

from tests.fakes import BASE_URL, TODAY, FakeUnitEconomicApi
from unitmap.config import Settings
from unitmap.services.classifier import MetricClassifier
from unitmap.services.fetcher import DataFetcher
from unitmap.services.hierarchy import HierarchyStore
from unitmap.services.map_session import MapSession

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        hierarchy_base_url=BASE_URL,
        aggregation_base_url=BASE_URL,
        default_page_size=100,
        default_window_days=30,
        bucket_tables_path=None,
    )


@pytest.fixture
def fake_api() -> FakeUnitEconomicApi:
    return FakeUnitEconomicApi()


@pytest.fixture
def classifier() -> MetricClassifier:
    return MetricClassifier()


@pytest.fixture
async def http_client(fake_api: FakeUnitEconomicApi) -> AsyncGenerator[httpx.AsyncClient, None]:
    async with httpx.AsyncClient(transport=httpx.MockTransport(fake_api.handler)) as client:
        yield client


@pytest.fixture
def fetcher(http_client: httpx.AsyncClient, test_settings: Settings) -> DataFetcher:
    return DataFetcher(http_client, settings=test_settings)


@pytest.fixture
def store(fetcher: DataFetcher) -> HierarchyStore:
    return HierarchyStore(fetcher)


@pytest.fixture
def session(
    store: HierarchyStore, classifier: MetricClassifier, test_settings: Settings
) -> MapSession:
    return MapSession(store, classifier, settings=test_settings, today=lambda: TODAY)


@pytest.fixture
async def regions(store: HierarchyStore):
    """Loaded regions keyed by code."""
    loaded = await store.load_regions()
    return {region.code: region for region in loaded}
