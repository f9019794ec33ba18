"""assets table model."""

from __future__ import annotations

from typing import Any

from sqlalchemy import Boolean, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column

from marketpoll.models.base import Base, JSONType
from marketpoll.models.mixins import TimestampMixin


class Asset(TimestampMixin, Base):
    """One votable entity; rows are deactivated, never deleted."""

    __tablename__ = "assets"
    __table_args__ = (Index("idx_assets_active", "active"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    key: Mapped[str] = mapped_column(String(128), nullable=False, unique=True, index=True)
    label: Mapped[str] = mapped_column(String(256), nullable=False)
    tier: Mapped[str | None] = mapped_column(String(32), nullable=True)
    image_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("true"))
    metadata_json: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
