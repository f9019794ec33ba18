"""asset_scores table model."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Float, ForeignKey, Integer, text
from sqlalchemy.orm import Mapped, mapped_column

from marketpoll.models.base import Base
from marketpoll.models.mixins import TimestampMixin


class AssetScore(TimestampMixin, Base):
    """Current Elo rating and vote counters for one asset."""

    __tablename__ = "asset_scores"
    __table_args__ = (
        CheckConstraint("polls_count >= 0", name="ck_asset_scores_polls_count"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    asset_id: Mapped[int] = mapped_column(
        ForeignKey("assets.id"),
        nullable=False,
        unique=True,
        index=True,
    )
    elo: Mapped[float] = mapped_column(Float, nullable=False, server_default=text("1500"))
    wins: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    losses: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    ties: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    polls_count: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    votes_for: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    votes_against: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    last_poll_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
