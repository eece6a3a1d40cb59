"""ReadingModel ORM model: the append-only telemetry log."""

from datetime import datetime, timezone

from sqlalchemy import Integer, Float, DateTime, Index
from sqlalchemy.orm import Mapped, mapped_column

from .database import Base


class ReadingModel(Base):
    __tablename__ = "readings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    timestamp: Mapped[int] = mapped_column(Integer, nullable=False)  # Unix seconds from the device
    distance: Mapped[float] = mapped_column(Float, nullable=False)
    temperature: Mapped[float] = mapped_column(Float, nullable=False)
    humidity: Mapped[float] = mapped_column(Float, nullable=False)
    pressure: Mapped[float] = mapped_column(Float, nullable=False)
    received_at: Mapped[datetime] = mapped_column(
        DateTime, default=lambda: datetime.now(timezone.utc)
    )

    __table_args__ = (
        Index("idx_reading_timestamp", "timestamp"),
    )
