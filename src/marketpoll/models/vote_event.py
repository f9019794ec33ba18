"""vote_events table model."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import DateTime, Enum as SAEnum, ForeignKey, Index, Integer, String, UniqueConstraint, func, text
from sqlalchemy.orm import Mapped, mapped_column

from marketpoll.models.base import Base, JSONType


class VoteSide(str, Enum):
    """Which side of a matchup a decision selected."""

    LEFT = "LEFT"
    RIGHT = "RIGHT"
    SKIP = "SKIP"


class VoteSource(str, Enum):
    """Where a vote decision originated."""

    WEB_APP = "WEB_APP"
    POLL_RUN = "POLL_RUN"


class VoteEvent(Base):
    """Append-only record of one decision (or one tallied poll side)."""

    __tablename__ = "vote_events"
    __table_args__ = (
        UniqueConstraint(
            "source",
            "poll_message_id",
            "selected_side",
            name="uq_vote_events_source_message_side",
        ),
        Index("idx_vote_events_voter_created", "voter_id", "created_at"),
        Index("idx_vote_events_pair", "pair_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    source: Mapped[VoteSource] = mapped_column(
        SAEnum(VoteSource, name="vote_source", native_enum=False),
        nullable=False,
    )
    selected_side: Mapped[VoteSide] = mapped_column(
        SAEnum(VoteSide, name="vote_side", native_enum=False),
        nullable=False,
    )
    weight: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("1"))
    pair_id: Mapped[int | None] = mapped_column(ForeignKey("voting_pairs.id"), nullable=True)
    pair_key: Mapped[str] = mapped_column(String(512), nullable=False)
    voter_id: Mapped[int | None] = mapped_column(ForeignKey("voters.id"), nullable=True)
    left_asset_id: Mapped[int] = mapped_column(ForeignKey("assets.id"), nullable=False)
    right_asset_id: Mapped[int] = mapped_column(ForeignKey("assets.id"), nullable=False)
    selected_asset_id: Mapped[int | None] = mapped_column(ForeignKey("assets.id"), nullable=True)
    poll_message_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    metadata_json: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        nullable=False,
        server_default=func.now(),
    )
