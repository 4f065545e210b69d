"""LLM quota and usage models."""

from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from roadmap_engine.core.database import Base


class UserQuota(Base):
    """Per-user LLM call allowance."""

    __tablename__ = "user_quotas"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), unique=True)
    daily_limit: Mapped[int] = mapped_column(Integer)
    monthly_limit: Mapped[int] = mapped_column(Integer)


class UsageMetric(Base):
    """LLM usage counters, one row per user per day."""

    __tablename__ = "usage_metrics"
    __table_args__ = (UniqueConstraint("user_id", "date", name="uq_usage_metrics_user_date"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    date: Mapped[str] = mapped_column(String)  # YYYY-MM-DD
    month: Mapped[str] = mapped_column(String, index=True)  # YYYY-MM

    llm_calls: Mapped[int] = mapped_column(Integer, default=0)
    tokens_in: Mapped[int] = mapped_column(Integer, default=0)
    tokens_out: Mapped[int] = mapped_column(Integer, default=0)
