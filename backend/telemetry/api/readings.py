"""Reading ingest and read-back.

GET  /api/readings/submit  - Single reading from the device as query params
POST /api/readings         - Single reading or {"readings": [...]} batch
GET  /api/readings         - Most recent rows
GET  /api/readings/latest  - Newest row

Every field is re-validated with the same bounds the device uses. A row with
any missing or implausible field is dropped without telling the sender.
"""

import logging
import math
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from ..models.database import get_db
from ..models.reading import ReadingModel
from ..schemas.reading import IngestResult, ReadingOut
from ..state import (
    distance_plausible,
    humidity_plausible,
    pressure_plausible,
    temperature_plausible,
)

logger = logging.getLogger(__name__)
router = APIRouter()

# SQLite INTEGER is a signed 64-bit value
TIMESTAMP_LIMIT = 2 ** 63

FIELD_CHECKS = {
    "distance": distance_plausible,
    "temperature": temperature_plausible,
    "humidity": humidity_plausible,
    "pressure": pressure_plausible,
}


def _parse_float(raw: Any) -> Optional[float]:
    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError, OverflowError):
        return None
    if math.isnan(value) or math.isinf(value):
        return None
    return value


def validate_row(raw: dict) -> Optional[dict]:
    """Return a clean row dict, or None if any field fails validation."""
    timestamp = _parse_float(raw.get("timestamp"))
    if timestamp is None or not 0 < timestamp < TIMESTAMP_LIMIT:
        return None
    row: dict[str, Any] = {"timestamp": int(timestamp)}
    for field, plausible in FIELD_CHECKS.items():
        value = _parse_float(raw.get(field))
        if not plausible(value):
            return None
        row[field] = value
    return row


def ingest(db: Session, items: list[Any]) -> IngestResult:
    accepted = 0
    for item in items:
        row = validate_row(item) if isinstance(item, dict) else None
        if row is None:
            logger.debug("Dropped invalid reading: %s", item)
            continue
        db.add(ReadingModel(**row))
        accepted += 1
    if accepted:
        db.commit()
    return IngestResult(accepted=accepted, dropped=len(items) - accepted)


@router.get("/readings/submit")
def submit_reading(
    distance: Optional[str] = None,
    temperature: Optional[str] = None,
    humidity: Optional[str] = None,
    pressure: Optional[str] = None,
    timestamp: Optional[str] = None,
    db: Session = Depends(get_db),
):
    """Device endpoint. Always answers with a redirect; drops are not reported."""
    result = ingest(db, [{
        "distance": distance,
        "temperature": temperature,
        "humidity": humidity,
        "pressure": pressure,
        "timestamp": timestamp,
    }])
    if result.dropped:
        logger.info("Device reading at %s dropped by validation", timestamp)
    return RedirectResponse(url="/api/readings/latest", status_code=302)


@router.post("/readings", status_code=201, response_model=IngestResult)
def submit_readings(payload: Any = Body(...), db: Session = Depends(get_db)):
    """Structured submission: one reading object or a {"readings": [...]} batch."""
    if isinstance(payload, dict) and "readings" in payload:
        items = payload["readings"]
        if not isinstance(items, list):
            raise HTTPException(status_code=422, detail="'readings' must be a list")
    elif isinstance(payload, dict):
        items = [payload]
    else:
        raise HTTPException(status_code=422, detail="Expected a reading object or batch")
    result = ingest(db, items)
    logger.info("Ingest: %d accepted, %d dropped", result.accepted, result.dropped)
    return result


@router.get("/readings", response_model=list[ReadingOut])
def list_readings(
    limit: int = Query(100, ge=1, le=10000),
    db: Session = Depends(get_db),
):
    """Most recent rows, oldest first."""
    rows = (
        db.query(ReadingModel)
        .order_by(ReadingModel.timestamp.desc())
        .limit(limit)
        .all()
    )
    return [_to_out(r) for r in reversed(rows)]


@router.get("/readings/latest", response_model=Optional[ReadingOut])
def latest_reading(db: Session = Depends(get_db)):
    row = db.query(ReadingModel).order_by(ReadingModel.timestamp.desc()).first()
    return _to_out(row) if row else None


def _to_out(r: ReadingModel) -> ReadingOut:
    return ReadingOut(
        timestamp=r.timestamp,
        distance=r.distance,
        temperature=r.temperature,
        humidity=r.humidity,
        pressure=r.pressure,
    )
