"""voting_pairs table model."""

from __future__ import annotations

from sqlalchemy import Boolean, ForeignKey, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column

from marketpoll.models.base import Base, JSONType
from marketpoll.models.mixins import TimestampMixin


class VotingPair(TimestampMixin, Base):
    """A matchup between a left and a right bundle of asset keys."""

    __tablename__ = "voting_pairs"
    __table_args__ = (
        Index("idx_voting_pairs_active_featured", "active", "featured"),
        Index("idx_voting_pairs_left_asset", "left_asset_id"),
        Index("idx_voting_pairs_right_asset", "right_asset_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    pair_key: Mapped[str] = mapped_column(String(512), nullable=False, unique=True, index=True)
    left_asset_id: Mapped[int] = mapped_column(ForeignKey("assets.id"), nullable=False)
    right_asset_id: Mapped[int] = mapped_column(ForeignKey("assets.id"), nullable=False)
    left_asset_keys: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    right_asset_keys: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    matchup_mode: Mapped[str] = mapped_column(String(8), nullable=False, server_default="1v1")
    prompt: Mapped[str] = mapped_column(String(512), nullable=False)
    featured: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("false"))
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("true"))
