"""Programmable fake of the state, LGA and sales services with sample payloads."""

from __future__ import annotations

import inspect
from datetime import date
from typing import Any, Awaitable, Callable, Union

import httpx

BASE_URL = "https://api.test/api/v1"
TODAY = date(2024, 2, 1)

Route = Callable[[httpx.Request], Union[httpx.Response, Awaitable[httpx.Response]]]


def state(oid: str, name: str, code: str) -> dict[str, Any]:
    return {"_id": {"$oid": oid}, "state_name": name, "state_code": code, "country_name": "Nigeria"}


def lga(oid: str, name: str, code: str, state_code: str, state_name: str) -> dict[str, Any]:
    return {
        "_id": {"$oid": oid},
        "lga_name": name,
        "lga_code": code,
        "state_code": state_code,
        "state_name": state_name,
    }


def polygon_feature(
    name: str, ring: list[list[float]], multi: bool = False, **properties: Any
) -> dict[str, Any]:
    geometry = (
        {"type": "MultiPolygon", "coordinates": [[ring]]}
        if multi
        else {"type": "Polygon", "coordinates": [ring]}
    )
    return {
        "type": "Feature",
        "id": name.lower(),
        "properties": {"name": name, **properties},
        "geometry": geometry,
    }


STATES = [
    state("st-lagos", "Lagos", "LA"),
    state("st-kano", "Kano", "KN"),
    state("st-oyo", "Oyo", "OY"),
]

LGAS = {
    "LA": [
        lga("lg-ikeja", "Ikeja", "IKJ", "LA", "Lagos"),
        lga("lg-epe", "Epe", "EPE", "LA", "Lagos"),
    ],
    "KN": [lga("lg-nassarawa", "Nassarawa", "NAS", "KN", "Kano")],
    "OY": [],
}

IKEJA = polygon_feature(
    "Ikeja",
    [[3.30, 6.55], [3.40, 6.55], [3.40, 6.65], [3.30, 6.65], [3.30, 6.55]],
    count=12,
    avgRetailerDensity=5.5,
    avgRevenue=250.0,
    avgTTV=15000.0,
    avgTransactionFrequency=50.0,
)

EPE = polygon_feature(
    "Epe",
    [[3.90, 6.45], [4.10, 6.45], [4.10, 6.60], [3.90, 6.60], [3.90, 6.45]],
    multi=True,
    count=3,
    avgRetailerDensity=120.0,
    avgRevenue=8.0,
    avgTTV=None,
    avgTransactionFrequency=10.0,
)

LAGOS_FEATURES = [IKEJA, EPE]


def ok(data: Any) -> httpx.Response:
    return httpx.Response(200, json={"data": data})


class FakeUnitEconomicApi:
    """Routes requests by last path segment and records every request."""

    def __init__(self, routes: dict[str, Route] | None = None):
        self.routes: dict[str, Route] = {
            "states": lambda request: ok(STATES),
            "lgas": lambda request: ok(LGAS.get(request.url.params.get("state_code"), [])),
            "sales": lambda request: ok(LAGOS_FEATURES),
        }
        self.routes.update(routes or {})
        self.requests: list[httpx.Request] = []

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        endpoint = request.url.path.rsplit("/", 1)[-1]
        result = self.routes[endpoint](request)
        if inspect.isawaitable(result):
            result = await result
        return result

    def calls(self, endpoint: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith(f"/{endpoint}")]


class FakeClock:
    """Monotonic clock the test advances by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds
