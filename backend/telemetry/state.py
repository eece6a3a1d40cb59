"""Reading and loop-owned state for the acquisition node.

A Reading is created once per cycle and never mutated. ClockState and
ConnectionState live in a NodeState owned by the acquisition loop and are
passed explicitly to the components that read or update them.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

# Plausibility bounds shared by the device and the store
DISTANCE_MIN_CM = 2.0
DISTANCE_MAX_CM = 400.0
TEMPERATURE_MIN_C = -40.0   # exclusive
TEMPERATURE_MAX_C = 85.0    # exclusive
HUMIDITY_MIN_PCT = 0.0
HUMIDITY_MAX_PCT = 100.0
PRESSURE_MIN_HPA = 300.0
PRESSURE_MAX_HPA = 1100.0


def distance_plausible(value: Optional[float]) -> bool:
    return value is not None and DISTANCE_MIN_CM <= value <= DISTANCE_MAX_CM


def temperature_plausible(value: Optional[float]) -> bool:
    return value is not None and TEMPERATURE_MIN_C < value < TEMPERATURE_MAX_C


def humidity_plausible(value: Optional[float]) -> bool:
    return value is not None and HUMIDITY_MIN_PCT <= value <= HUMIDITY_MAX_PCT


def pressure_plausible(value: Optional[float]) -> bool:
    return value is not None and PRESSURE_MIN_HPA <= value <= PRESSURE_MAX_HPA


@dataclass(frozen=True)
class Reading:
    """One sampled instant. ``None`` marks an unavailable field."""
    distance_cm: Optional[float]
    temperature_c: Optional[float]
    humidity_pct: Optional[float]
    pressure_hpa: Optional[float]
    timestamp: int  # Unix seconds
    environmental_valid: bool


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


@dataclass
class ClockState:
    """Epoch offset learned from network time.

    ``offset_seconds`` is added to the monotonic clock to get Unix time.
    ``last_sync_at`` is the monotonic time of the last successful sync.
    """
    offset_seconds: float = 0.0
    last_sync_at: Optional[float] = None
    last_issued: float = 0.0

    @property
    def synchronized(self) -> bool:
        return self.last_sync_at is not None


@dataclass
class NodeState:
    clock: ClockState = field(default_factory=ClockState)
    connection: ConnectionState = ConnectionState.DISCONNECTED
