"""voters table model."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from marketpoll.models.base import Base
from marketpoll.models.mixins import CreatedAtMixin


class Voter(CreatedAtMixin, Base):
    """Progression counters for one visitor."""

    __tablename__ = "voters"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    visitor_id: Mapped[str] = mapped_column(String(128), nullable=False, unique=True, index=True)
    xp: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    streak_days: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    total_votes: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    last_voted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    last_seen_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
