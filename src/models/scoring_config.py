"""Stored scoring configuration model."""

import enum
from datetime import datetime

from sqlalchemy import Float, Integer, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from src.database import Base
from src.models.types import UTCDateTime

# Scope key of the configuration shared by tenants without their own
GLOBAL_SCOPE = "*"


class ScoringCategory(str, enum.Enum):
    DEMOGRAPHIC = "demographic"
    BEHAVIORAL = "behavioral"
    FINANCIAL = "financial"
    ENGAGEMENT = "engagement"
    SOURCE = "source"


class ScoringAlgorithm(str, enum.Enum):
    WEIGHTED = "weighted"
    ML = "ml"  # Accepted on input, rejected by validation
    HYBRID = "hybrid"  # Accepted on input, rejected by validation


class UpdateFrequency(str, enum.Enum):
    REALTIME = "realtime"
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"


class ScoreCategory(str, enum.Enum):
    """Tier derived from a percentage score."""

    HOT = "hot"
    WARM = "warm"
    COLD = "cold"


class ScoringConfigurationRecord(Base):
    """One active scoring configuration per scope (a tenant, or global).

    Rows are replaced wholesale on update; ``version`` increases with
    every accepted replacement.
    """

    __tablename__ = "scoring_configurations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    scope: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)

    factors: Mapped[list] = mapped_column(JSON, nullable=False)
    algorithm: Mapped[str] = mapped_column(String(20), nullable=False, default="weighted")
    update_frequency: Mapped[str] = mapped_column(String(20), nullable=False, default="realtime")
    min_score: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    max_score: Mapped[float] = mapped_column(Float, nullable=False, default=100)
    thresholds: Mapped[dict] = mapped_column(JSON, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    updated_by: Mapped[str | None] = mapped_column(String(64), nullable=True)

    def __repr__(self) -> str:
        return f"<ScoringConfigurationRecord(scope='{self.scope}', version={self.version})>"

    def to_dict(self) -> dict:
        """Plain dictionary form, as accepted by ``ScoringConfig.from_dict``."""
        return {
            "factors": list(self.factors),
            "algorithm": self.algorithm,
            "update_frequency": self.update_frequency,
            "min_score": self.min_score,
            "max_score": self.max_score,
            "thresholds": dict(self.thresholds),
        }
