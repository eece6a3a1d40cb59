"""Single-attempt reading upload.

Each Reading is sent as one HTTPS GET with its fields as query parameters.
The outcome is classified into success, remote rejection, or transport
failure; nothing is retried within the cycle and nothing is queued, so a
failed reading is simply lost and the next cycle sends a fresh one.

The store answers accepted writes with a redirect, so 302 counts as success
and redirects are never followed.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

import httpx

from ..state import Reading
from .indicator import StatusIndicator

logger = logging.getLogger(__name__)

SUCCESS_CODES = frozenset({200, 201, 302})
UNAVAILABLE = "nan"
MAX_BODY_LOG = 200


class UploadOutcome(Enum):
    SUCCESS = "success"
    REJECTED = "rejected"
    TRANSPORT_FAILURE = "transport_failure"


@dataclass
class UploadResult:
    outcome: UploadOutcome
    status_code: Optional[int] = None
    body: str = ""
    error: Optional[str] = None


def _fmt(value: Optional[float]) -> str:
    return UNAVAILABLE if value is None else f"{value:.2f}"


def build_params(reading: Reading) -> dict[str, str]:
    """Map a Reading to query parameters. Unavailable fields are sent as 'nan'."""
    return {
        "distance": _fmt(reading.distance_cm),
        "temperature": _fmt(reading.temperature_c),
        "humidity": _fmt(reading.humidity_pct),
        "pressure": _fmt(reading.pressure_hpa),
        "timestamp": str(int(reading.timestamp)),
    }


def classify(status_code: int) -> UploadOutcome:
    if status_code in SUCCESS_CODES:
        return UploadOutcome.SUCCESS
    return UploadOutcome.REJECTED


class UploadClient:
    """Sends Readings to the store endpoint."""

    def __init__(
        self,
        url: str,
        indicator: StatusIndicator,
        timeout: float = 6.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.url = url
        self.indicator = indicator
        self.timeout = timeout
        # httpx bounds each phase separately; split the budget so they sum to it
        self._timeout = httpx.Timeout(timeout / 4)
        self._transport = transport

    def upload(self, reading: Reading) -> UploadResult:
        params = build_params(reading)
        kwargs: dict[str, Any] = {"timeout": self._timeout, "follow_redirects": False}
        if self._transport is not None:
            kwargs["transport"] = self._transport

        try:
            with httpx.Client(**kwargs) as client:
                resp = client.get(self.url, params=params)
        except httpx.RequestError as exc:
            logger.warning("Upload failed, no usable response: %s", exc)
            self.indicator.upload_failed()
            return UploadResult(UploadOutcome.TRANSPORT_FAILURE, error=str(exc))

        outcome = classify(resp.status_code)
        if outcome is UploadOutcome.SUCCESS:
            logger.debug("Upload OK (%d)", resp.status_code)
            self.indicator.success()
            return UploadResult(outcome, status_code=resp.status_code)

        body = resp.text.strip()[:MAX_BODY_LOG]
        logger.warning("Upload rejected (%d): %s", resp.status_code, body)
        self.indicator.upload_failed()
        return UploadResult(outcome, status_code=resp.status_code, body=body)
