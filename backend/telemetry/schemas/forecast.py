"""Pydantic schemas for forecast and insight API."""

from pydantic import BaseModel


class ForecastRow(BaseModel):
    timestamp: int
    distance: float
    distance_upper: float
    distance_lower: float
    temperature: float
    temperature_upper: float
    temperature_lower: float
    humidity: float
    humidity_upper: float
    humidity_lower: float
    pressure: float
    pressure_upper: float
    pressure_lower: float


class ForecastResponse(BaseModel):
    rows: list[ForecastRow]


class InsightResponse(BaseModel):
    text: str
    created_at: str
