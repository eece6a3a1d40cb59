"""POST /api/insight - Generate and store an AI insight; GET the latest one."""

import logging
from datetime import timezone

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..config import settings
from ..models.database import get_db
from ..models.forecast import ForecastModel
from ..models.insight import InsightModel
from ..models.reading import ReadingModel
from ..schemas.forecast import InsightResponse
from ..services.forecast_job import forecast_to_dict
from ..services.insight import generate_insight

logger = logging.getLogger(__name__)
router = APIRouter()

RECENT_READINGS = 48


def get_insight_client():
    """Dependency: None lets the service build a client from the configured key."""
    return None


@router.post("/insight", response_model=InsightResponse)
async def create_insight(
    db: Session = Depends(get_db),
    client=Depends(get_insight_client),
):
    """Summarize recent readings and the current forecast. Never fails the request."""
    recent = (
        db.query(ReadingModel)
        .order_by(ReadingModel.timestamp.desc())
        .limit(RECENT_READINGS)
        .all()
    )
    forecast = [
        forecast_to_dict(r)
        for r in db.query(ForecastModel).order_by(ForecastModel.timestamp).all()
    ]

    text = await generate_insight(
        list(reversed(recent)),
        forecast,
        model=settings.insight_model,
        configured_key=settings.anthropic_api_key,
        max_tokens=settings.insight_max_tokens,
        client=client,
    )

    record = InsightModel(text=text)
    db.add(record)
    db.commit()
    db.refresh(record)
    return _to_response(record)


@router.get("/insight", response_model=InsightResponse | None)
def latest_insight(db: Session = Depends(get_db)):
    record = db.query(InsightModel).order_by(InsightModel.id.desc()).first()
    return _to_response(record) if record else None


def _to_response(record: InsightModel) -> InsightResponse:
    created = record.created_at
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return InsightResponse(text=record.text, created_at=created.isoformat())
