"""ForecastModel ORM model: full-replace view of the latest forecast run."""

from datetime import datetime, timezone

from sqlalchemy import Integer, Float, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from .database import Base


class ForecastModel(Base):
    __tablename__ = "forecasts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    timestamp: Mapped[int] = mapped_column(Integer, nullable=False)
    distance: Mapped[float] = mapped_column(Float, nullable=False)
    distance_upper: Mapped[float] = mapped_column(Float, nullable=False)
    distance_lower: Mapped[float] = mapped_column(Float, nullable=False)
    temperature: Mapped[float] = mapped_column(Float, nullable=False)
    temperature_upper: Mapped[float] = mapped_column(Float, nullable=False)
    temperature_lower: Mapped[float] = mapped_column(Float, nullable=False)
    humidity: Mapped[float] = mapped_column(Float, nullable=False)
    humidity_upper: Mapped[float] = mapped_column(Float, nullable=False)
    humidity_lower: Mapped[float] = mapped_column(Float, nullable=False)
    pressure: Mapped[float] = mapped_column(Float, nullable=False)
    pressure_upper: Mapped[float] = mapped_column(Float, nullable=False)
    pressure_lower: Mapped[float] = mapped_column(Float, nullable=False)
    generated_at: Mapped[datetime] = mapped_column(
        DateTime, default=lambda: datetime.now(timezone.utc)
    )
