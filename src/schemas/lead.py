"""Pydantic schemas for the lead read model."""

from datetime import datetime, timezone
from typing import Annotated, Literal
from uuid import uuid4

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator

from src.models.lead import LeadSource, LeadStatus


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UTCDatetime = Annotated[datetime, AfterValidator(_as_utc)]


class PropertyPreferences(BaseModel):
    """What the lead is looking for."""

    property_types: list[str] = Field(default_factory=list)
    transaction_type: str | None = None
    min_price: float | None = None
    max_price: float | None = None
    preferred_locations: list[str] = Field(default_factory=list)
    must_have_features: list[str] = Field(default_factory=list)
    timeline: str | None = None


class FinancialInfo(BaseModel):
    """Financial qualification data."""

    pre_approved: bool = False
    down_payment_percentage: float | None = None
    credit_score: int | None = None
    employment_status: str | None = None
    employment_length_months: int | None = None


class Communication(BaseModel):
    """One logged communication with the lead."""

    type: str = "other"
    direction: Literal["inbound", "outbound"]
    content: str = ""
    timestamp: UTCDatetime
    outcome: str = "other"


class PropertyViewing(BaseModel):
    property_address: str
    date: UTCDatetime | None = None
    rating: int | None = None


class Offer(BaseModel):
    property_address: str
    offer_amount: float
    status: str = "submitted"


class LeadBase(BaseModel):
    """Fields of a lead the scoring engine reads."""

    tenant_id: str | None = None
    status: LeadStatus = LeadStatus.NEW
    source: LeadSource | None = None
    property_preferences: PropertyPreferences | None = None
    financial_info: FinancialInfo | None = None
    communication_history: list[Communication] = Field(default_factory=list)
    properties_viewed: list[PropertyViewing] = Field(default_factory=list)
    offers: list[Offer] = Field(default_factory=list)
    expected_close_date: UTCDatetime | None = None
    next_follow_up_date: UTCDatetime | None = None
    created_at: UTCDatetime | None = None

    @field_validator("communication_history", "properties_viewed", "offers", mode="before")
    @classmethod
    def _none_as_empty(cls, value: list | None) -> list:
        return value or []


class LeadCreate(LeadBase):
    """Schema for creating a lead (used by seeding and tests)."""

    lead_id: str = Field(default_factory=lambda: str(uuid4()))
    tenant_id: str


class LeadScoreUpdate(BaseModel):
    """Score fields written back onto a lead."""

    score: float
    scored_at: datetime


class LeadSnapshot(LeadBase):
    """Read-only view of a lead, as consumed by the scoring engine."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    lead_id: str
