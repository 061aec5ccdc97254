"""Shared pytest fixtures."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field

import pytest

from car_search.domain.models import (
    AvailabilityOffer,
    PollResult,
    QueryHandle,
    QueryStatus,
    SearchRequest,
)

BASE_REQUEST: dict = {
    "pickup_unlocode": "PKKHI",
    "dropoff_unlocode": "PKLHE",
    "pickup_iso": "2025-11-03T10:00:00Z",
    "dropoff_iso": "2025-11-05T10:00:00Z",
    "driver_age": 28,
    "residency_country": "PK",
    "vehicle_classes": ["ECONOMY", "SUV"],
    "agreement_refs": ["AGR-001"],
}


@dataclass
class FakeAvailabilityApi:
    """Scripted availability backend.

    `polls[i]` answers the i-th poll call: a PollResult is returned, an
    exception is raised. Calls past the script get `fallback`, or an empty
    PENDING result when it is None. `gates[i]` holds the i-th call until set.
    """

    polls: list[PollResult | Exception] = field(default_factory=list)
    fallback: PollResult | Exception | None = None
    query_ids: list[str] = field(default_factory=lambda: ["r1"])
    submit_error: Exception | None = None
    poll_delay: float = 0
    gates: dict[int, asyncio.Event] = field(default_factory=dict)
    submitted: list[SearchRequest] = field(default_factory=list)
    calls: list[tuple[str, int, int]] = field(default_factory=list)
    closed: bool = False

    async def submit(self, request: SearchRequest) -> QueryHandle:
        await asyncio.sleep(0)
        if self.submit_error is not None:
            raise self.submit_error
        query_id = self.query_ids[min(len(self.submitted), len(self.query_ids) - 1)]
        self.submitted.append(request)
        return QueryHandle(query_id=query_id, recommended_poll_ms=500)

    async def poll(self, query_id: str, since_seq: int, wait_ms: int) -> PollResult:
        index = len(self.calls)
        self.calls.append((query_id, since_seq, wait_ms))
        gate = self.gates.get(index)
        if gate is not None:
            await gate.wait()
        await asyncio.sleep(self.poll_delay)

        step = self.polls[index] if index < len(self.polls) else self.fallback
        if step is None:
            step = PollResult(query_id=query_id, status=QueryStatus.PENDING, last_seq=since_seq)
        if isinstance(step, Exception):
            raise step
        return step

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def make_api() -> Callable[..., FakeAvailabilityApi]:
    """Return the scripted backend class."""
    return FakeAvailabilityApi


@pytest.fixture
def search_request() -> SearchRequest:
    return SearchRequest.model_validate(BASE_REQUEST)


@pytest.fixture
def request_payload() -> dict:
    return dict(BASE_REQUEST)


@pytest.fixture
def offer_builder() -> Callable[[int], AvailabilityOffer]:
    """Return a factory producing distinct offers `o<n>`."""

    def _builder(n: int) -> AvailabilityOffer:
        return AvailabilityOffer(
            supplier_offer_ref=f"o{n}",
            source_id="SRC-AVIS",
            agreement_ref="AGR-001",
            pickup_location="PKKHI",
            dropoff_location="PKLHE",
            vehicle_class="ECONOMY",
            vehicle_make_model="Toyota Corolla",
            rate_plan_code="BAR",
            total_price=100 + n,
            currency="USD",
            availability_status="AVAILABLE",
            supplier_name="Avis",
        )

    return _builder
