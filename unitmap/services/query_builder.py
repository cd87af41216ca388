"""Build aggregation query descriptors from a selection."""

from __future__ import annotations

from typing import Optional

from unitmap.config import get_settings
from unitmap.exceptions import ValidationBlocked
from unitmap.schemas.map import QueryDescriptor, Region, Selection


def validate_for_submit(selection: Selection) -> Region:
    """Return the region to query; raise ValidationBlocked when nothing can be sent."""
    region = selection.region
    if region is None:
        raise ValidationBlocked("Please select a state")
    if not selection.has_valid_dates:
        raise ValidationBlocked(
            f"Start date {selection.start_date.isoformat()} is after "
            f"end date {selection.end_date.isoformat()}"
        )
    return region


def build_query(
    selection: Selection,
    generation: int = 0,
    page_size: Optional[int] = None,
) -> QueryDescriptor:
    """Turn a submittable selection into a canonical QueryDescriptor.

    The sub-region filter is only present when a sub-region is selected;
    its absence means all sub-regions of the region.
    """
    region = validate_for_submit(selection)

    return QueryDescriptor(
        page=1,
        page_size=page_size or get_settings().default_page_size,
        start_date=selection.start_date,
        end_date=selection.end_date,
        state_id=region.id,
        lga_id=selection.sub_region.id if selection.sub_region else None,
        generation=generation,
    )
