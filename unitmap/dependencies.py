"""Shared dependencies for FastAPI dependency injection."""

from __future__ import annotations

import time
from typing import Callable, Optional
from uuid import uuid4

import httpx

from unitmap.config import get_settings
from unitmap.logging_config import get_logger
from unitmap.services.classifier import MetricClassifier, get_classifier
from unitmap.services.fetcher import DataFetcher
from unitmap.services.hierarchy import HierarchyStore
from unitmap.services.map_session import MapSession

logger = get_logger(__name__)

# Initialized in main.py on startup
http_client: Optional[httpx.AsyncClient] = None
hierarchy_store: Optional[HierarchyStore] = None


class SessionRegistry:
    """In-process map sessions keyed by session ID.

    Sessions idle for longer than ``ttl_seconds`` are evicted on the next
    ``create`` or ``get``.
    """

    def __init__(
        self,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds or get_settings().session_ttl_seconds
        self._clock = clock
        self._sessions: dict[str, MapSession] = {}
        self._last_access: dict[str, float] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def _evict_expired(self) -> None:
        now = self._clock()
        expired = [
            session_id
            for session_id, last in self._last_access.items()
            if now - last > self.ttl_seconds
        ]
        for session_id in expired:
            self.discard(session_id)
        if expired:
            logger.info("map_sessions_expired", count=len(expired), remaining=len(self))

    def create(self, store: HierarchyStore, classifier: MetricClassifier) -> tuple[str, MapSession]:
        """Start a session with its own generation tracker and sub-region list."""
        self._evict_expired()
        fetcher = DataFetcher(store.fetcher.client, settings=store.fetcher.settings)
        session = MapSession(store.for_session(fetcher), classifier)
        session_id = str(uuid4())
        self._sessions[session_id] = session
        self._last_access[session_id] = self._clock()
        return session_id, session

    def get(self, session_id: str) -> Optional[MapSession]:
        """Look up a live session and refresh its idle timer."""
        self._evict_expired()
        session = self._sessions.get(session_id)
        if session is not None:
            self._last_access[session_id] = self._clock()
        return session

    def discard(self, session_id: str) -> bool:
        self._last_access.pop(session_id, None)
        return self._sessions.pop(session_id, None) is not None


session_registry = SessionRegistry()


def set_http_client(client: Optional[httpx.AsyncClient]) -> None:
    """Set the shared HTTP client and the hierarchy store built on it."""
    global http_client, hierarchy_store
    http_client = client
    hierarchy_store = HierarchyStore(DataFetcher(client)) if client is not None else None


def get_http_client() -> httpx.AsyncClient:
    """Get shared HTTP client dependency."""
    if http_client is None:
        raise RuntimeError("HTTP client not initialized")
    return http_client


def get_hierarchy_store() -> HierarchyStore:
    """Get the application-wide hierarchy store."""
    if hierarchy_store is None:
        raise RuntimeError("Hierarchy store not initialized")
    return hierarchy_store


def get_session_registry() -> SessionRegistry:
    return session_registry


def get_metric_classifier() -> MetricClassifier:
    return get_classifier()
