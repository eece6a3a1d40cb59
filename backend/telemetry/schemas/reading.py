"""Pydantic schemas for reading ingest and read-back."""

from pydantic import BaseModel


class ReadingOut(BaseModel):
    timestamp: int
    distance: float
    temperature: float
    humidity: float
    pressure: float


class IngestResult(BaseModel):
    accepted: int
    dropped: int
