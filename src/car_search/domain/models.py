"""Domain models for availability searches."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class QueryStatus(str, Enum):
    """Search status as reported by the backend."""

    PENDING = "PENDING"
    COMPLETE = "COMPLETE"
    ERROR = "ERROR"


class PollerPhase(str, Enum):
    """Lifecycle phase of a single QueryPoller."""

    NOT_STARTED = "NOT_STARTED"
    RUNNING = "RUNNING"
    COMPLETE = "COMPLETE"
    ERRORED = "ERRORED"
    TIMED_OUT = "TIMED_OUT"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self not in (PollerPhase.NOT_STARTED, PollerPhase.RUNNING)


class SearchRequest(BaseModel):
    """Availability search criteria submitted to the backend."""

    model_config = ConfigDict(frozen=True)

    pickup_unlocode: str = Field(min_length=1)
    dropoff_unlocode: str = Field(min_length=1)
    pickup_iso: datetime
    dropoff_iso: datetime
    driver_age: int | None = Field(default=None, gt=0)
    residency_country: str | None = None
    vehicle_classes: list[str] | None = None
    agreement_refs: list[str] | None = None


class QueryHandle(BaseModel):
    """Result of a successful submission."""

    query_id: str = Field(
        min_length=1,
        validation_alias=AliasChoices("request_id", "query_id"),
    )
    # Подсказка сервера, на корректность не влияет
    recommended_poll_ms: int = 0
    status: QueryStatus = QueryStatus.PENDING


class AvailabilityOffer(BaseModel):
    """One supplier offer. Accumulated as is, never merged."""

    model_config = ConfigDict(extra="allow", frozen=True)

    supplier_offer_ref: str = ""
    source_id: str = ""
    agreement_ref: str = ""
    pickup_location: str = ""
    dropoff_location: str = ""
    vehicle_class: str = ""
    vehicle_make_model: str = ""
    rate_plan_code: str = ""
    total_price: float = 0
    currency: str = ""
    availability_status: str = ""
    supplier_name: str = ""


class PollResult(BaseModel):
    """One poll response: the slice of offers emitted after `since_seq`."""

    query_id: str = Field(
        default="",
        validation_alias=AliasChoices("request_id", "query_id"),
    )
    status: QueryStatus = QueryStatus.PENDING
    last_seq: int = Field(default=0, ge=0)
    items: list[AvailabilityOffer] = Field(
        default_factory=list,
        validation_alias=AliasChoices("offers", "items"),
    )
    complete: bool = False
    error: str | None = None


class PollerSnapshot(BaseModel):
    """Immutable view of a poller state, replaced after every change."""

    model_config = ConfigDict(frozen=True)

    query_id: str | None = None
    phase: PollerPhase = PollerPhase.NOT_STARTED
    items: tuple[AvailabilityOffer, ...] = ()
    high_water_seq: int = 0
    error: str | None = None
    server_status: QueryStatus | None = None
    polls: int = 0
    failed_polls: int = 0
    elapsed_ms: float = 0
