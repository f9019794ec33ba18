"""ingestion_cursors table model."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from marketpoll.models.base import Base


class IngestionCursor(Base):
    """Last applied version string per ingestion source."""

    __tablename__ = "ingestion_cursors"

    source: Mapped[str] = mapped_column(String(128), primary_key=True)
    last_value: Mapped[str] = mapped_column(String(256), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
