"""API endpoints backing the interactive unit economic map."""

from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from unitmap.dependencies import (
    SessionRegistry,
    get_hierarchy_store,
    get_metric_classifier,
    get_session_registry,
)
from unitmap.exceptions import HierarchyUnavailable, ValidationBlocked
from unitmap.logging_config import get_logger
from unitmap.schemas.map import MapView, Metric, Region
from unitmap.services.classifier import MetricClassifier
from unitmap.services.hierarchy import HierarchyStore
from unitmap.services.map_session import MapSession

logger = get_logger(__name__)

router = APIRouter(prefix="/api/v1/map", tags=["Map"])


# Request/Response schemas


class RegionListResponse(BaseModel):
    """Regions available for selection."""

    regions: list[Region]
    count: int


class SessionResponse(BaseModel):
    """Session ID and the current map view."""

    session_id: str
    view: MapView


class RegionSelectRequest(BaseModel):
    """Select a state by code; null clears the selection."""

    region_code: Optional[str] = Field(default=None, description="State code, e.g. LA")


class SubRegionSelectRequest(BaseModel):
    """Select an LGA by code; null means all LGAs."""

    sub_region_code: Optional[str] = Field(default=None, description="LGA code")


class MetricSelectRequest(BaseModel):
    metric: Metric


class DateRangeRequest(BaseModel):
    start_date: date
    end_date: date


# Helper functions


def get_session(
    session_id: str,
    registry: SessionRegistry = Depends(get_session_registry),
) -> MapSession:
    """Resolve a session ID or respond 404."""
    session = registry.get(session_id)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Map session not found: {session_id}",
        )
    return session


async def _load_regions(store: HierarchyStore) -> list[Region]:
    try:
        return await store.load_regions()
    except HierarchyUnavailable as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Could not load states, please retry: {e.message}",
        ) from e


def _view(session_id: str, session: MapSession) -> SessionResponse:
    return SessionResponse(session_id=session_id, view=session.render())


# Endpoints


@router.get("/regions", response_model=RegionListResponse)
async def list_regions(
    store: HierarchyStore = Depends(get_hierarchy_store),
) -> RegionListResponse:
    """List all states."""
    regions = await _load_regions(store)
    return RegionListResponse(regions=regions, count=len(regions))


@router.post("/sessions", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def create_session(
    store: HierarchyStore = Depends(get_hierarchy_store),
    classifier: MetricClassifier = Depends(get_metric_classifier),
    registry: SessionRegistry = Depends(get_session_registry),
) -> SessionResponse:
    """Start a map session with the default selection."""
    session_id, session = registry.create(store, classifier)
    logger.info("map_session_created", session_id=session_id, sessions=len(registry))
    return _view(session_id, session)


@router.get("/sessions/{session_id}", response_model=SessionResponse)
async def get_view(
    session_id: str,
    session: MapSession = Depends(get_session),
) -> SessionResponse:
    """Current view, re-classified for the selected metric."""
    return _view(session_id, session)


@router.put("/sessions/{session_id}/region", response_model=SessionResponse)
async def select_region(
    session_id: str,
    request: RegionSelectRequest,
    session: MapSession = Depends(get_session),
    store: HierarchyStore = Depends(get_hierarchy_store),
) -> SessionResponse:
    """Select a state; clears the LGA and the map data, then loads LGAs."""
    region = None
    if request.region_code is not None:
        await _load_regions(store)
        region = store.find_region(request.region_code)
        if region is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Unknown state code: {request.region_code}",
            )

    await session.select_region(region)
    return _view(session_id, session)


@router.put("/sessions/{session_id}/sub-region", response_model=SessionResponse)
async def select_sub_region(
    session_id: str,
    request: SubRegionSelectRequest,
    session: MapSession = Depends(get_session),
) -> SessionResponse:
    """Select an LGA of the current state, or all LGAs."""
    sub_region = None
    if request.sub_region_code is not None:
        sub_region = session.store.find_sub_region(request.sub_region_code)
        if sub_region is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Unknown LGA code for the selected state: {request.sub_region_code}",
            )

    try:
        session.select_sub_region(sub_region)
    except ValidationBlocked as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=e.reason)
    return _view(session_id, session)


@router.put("/sessions/{session_id}/metric", response_model=SessionResponse)
async def select_metric(
    session_id: str,
    request: MetricSelectRequest,
    session: MapSession = Depends(get_session),
) -> SessionResponse:
    """Switch the colouring metric without refetching."""
    session.select_metric(request.metric)
    return _view(session_id, session)


@router.put("/sessions/{session_id}/dates", response_model=SessionResponse)
async def set_dates(
    session_id: str,
    request: DateRangeRequest,
    session: MapSession = Depends(get_session),
) -> SessionResponse:
    """Set the date range used by the next submit."""
    session.set_dates(request.start_date, request.end_date)
    return _view(session_id, session)


@router.post("/sessions/{session_id}/submit", response_model=SessionResponse)
async def submit(
    session_id: str,
    session: MapSession = Depends(get_session),
) -> SessionResponse:
    """Fetch aggregated metrics for the current selection."""
    try:
        await session.submit()
    except ValidationBlocked as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=e.reason)
    return _view(session_id, session)


@router.post("/sessions/{session_id}/reset", response_model=SessionResponse)
async def reset(
    session_id: str,
    session: MapSession = Depends(get_session),
) -> SessionResponse:
    """Reset the selection, map data and viewport to defaults."""
    session.reset()
    return _view(session_id, session)


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(
    session_id: str,
    registry: SessionRegistry = Depends(get_session_registry),
) -> None:
    """End a map session."""
    if not registry.discard(session_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Map session not found: {session_id}",
        )
