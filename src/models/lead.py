"""Lead read model.

The leads table is owned by the lead management service. This mapping
covers the columns the scoring engine reads, plus the two score columns
it is allowed to write back.
"""

import enum
from datetime import datetime

from sqlalchemy import Enum, Float, Integer, JSON, String, func
from sqlalchemy.orm import Mapped, mapped_column

from src.database import Base
from src.models.types import UTCDateTime


class LeadStatus(str, enum.Enum):
    """Status of a lead in the sales pipeline."""

    NEW = "new"
    CONTACTED = "contacted"
    QUALIFIED = "qualified"
    INTERESTED = "interested"
    NEGOTIATING = "negotiating"
    CLOSED_WON = "closed_won"
    CLOSED_LOST = "closed_lost"
    INACTIVE = "inactive"
    FOLLOW_UP = "follow_up"
    APPOINTMENT_SCHEDULED = "appointment_scheduled"
    PROPERTY_VIEWED = "property_viewed"
    OFFER_MADE = "offer_made"
    UNDER_CONTRACT = "under_contract"


class LeadSource(str, enum.Enum):
    """Channel a lead came in through."""

    WEBSITE = "website"
    REFERRAL = "referral"
    SOCIAL_MEDIA = "social_media"
    COLD_CALL = "cold_call"
    EMAIL_CAMPAIGN = "email_campaign"
    SMS_CAMPAIGN = "sms_campaign"
    OPEN_HOUSE = "open_house"
    FOR_SALE_SIGN = "for_sale_sign"
    ONLINE_AD = "online_ad"
    PRINT_AD = "print_ad"
    RADIO_AD = "radio_ad"
    TV_AD = "tv_ad"
    EVENT = "event"
    PARTNER = "partner"
    OTHER = "other"


class Lead(Base):
    """Lead record as seen by the scoring engine."""

    __tablename__ = "leads"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    lead_id: Mapped[str] = mapped_column(String(36), nullable=False, unique=True, index=True)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    status: Mapped[LeadStatus] = mapped_column(
        Enum(LeadStatus), default=LeadStatus.NEW, index=True
    )
    source: Mapped[LeadSource | None] = mapped_column(Enum(LeadSource), nullable=True)

    # Nested documents, stored as JSON
    property_preferences: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    financial_info: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    communication_history: Mapped[list] = mapped_column(JSON, default=list)
    properties_viewed: Mapped[list] = mapped_column(JSON, default=list)
    offers: Mapped[list] = mapped_column(JSON, default=list)

    # Dates
    expected_close_date: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    next_follow_up_date: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    # Scoring (written back by the scoring service)
    score: Mapped[float | None] = mapped_column(Float, nullable=True, index=True)
    scored_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<Lead(lead_id='{self.lead_id}', tenant_id='{self.tenant_id}', status={self.status})>"
