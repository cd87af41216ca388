"""Errors raised by the map pipeline."""

from __future__ import annotations


class MapPipelineError(Exception):
    """Base class for map pipeline errors."""


class ServiceUnavailable(MapPipelineError):
    """A remote provider failed at the transport, status or parse level."""

    service: str = "remote"

    def __init__(self, message: str):
        self.message = message
        super().__init__(f"{self.service} unavailable: {message}")


class HierarchyUnavailable(ServiceUnavailable):
    """The region listing could not be loaded."""

    service = "region listing"


class SubRegionUnavailable(ServiceUnavailable):
    """The sub-region listing for a region could not be loaded."""

    service = "sub-region listing"


class AggregationUnavailable(ServiceUnavailable):
    """The sales aggregation query failed."""

    service = "aggregation"


class ValidationBlocked(MapPipelineError):
    """A selection change or submit was rejected before reaching the network."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class StaleResultDiscarded(MapPipelineError):
    """A response arrived for a generation that is no longer current."""

    def __init__(self, channel: str, generation: int, current: int):
        self.channel = channel
        self.generation = generation
        self.current = current
        super().__init__(
            f"Discarded {channel} result for generation {generation} (current {current})"
        )
