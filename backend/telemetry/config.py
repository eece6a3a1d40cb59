"""Application configuration using Pydantic Settings."""

from pathlib import Path
from urllib.parse import urlparse

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

from .hardware.bme280 import MEASUREMENT_TIMEOUT_SEC
from .services.connectivity import NMCLI_TIMEOUT_SEC
from .services.indicator import (
    OFFLINE_PATTERN,
    SUCCESS_PATTERN,
    UPLOAD_FAILED_PATTERN,
    pattern_duration,
)

# Resolve config: prefer system config (installed), fall back to repo .env (dev)
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_SYSTEM_CONF = Path("/etc/telemetry-node/telemetry.conf")
_ENV_FILE = _SYSTEM_CONF if _SYSTEM_CONF.exists() else _PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    """Node and store settings loaded from environment variables and .env file."""

    # Acquisition cadence
    sample_interval_sec: float = 5.0
    poll_interval_sec: float = 0.1

    # Watchdog
    watchdog_deadline_sec: float = 20.0
    restart_delay_sec: float = 1.0

    # Ultrasonic ranger (BCM pin numbers)
    trigger_pin: int = 23
    echo_pin: int = 24
    pulse_samples: int = 5
    pulse_spacing_sec: float = 0.06
    echo_timeout_sec: float = 0.03

    # Environmental sensor (I2C)
    i2c_bus: int = 1
    bme280_address: int = 0x76

    # Status LED
    led_pin: int = 25

    # Network association
    network_interface: str = "wlan0"
    wifi_connection: str = ""
    connect_attempts: int = 30
    connect_wait_sec: float = 0.25

    # Time sync
    ntp_server: str = "pool.ntp.org"
    ntp_timeout_sec: float = 2.0
    ntp_retry_sec: float = 2.0
    ntp_resync_interval_sec: float = 60.0

    # Upload
    upload_url: str = "https://localhost:8000/api/readings/submit"
    upload_timeout_sec: float = 6.0

    # Store database
    db_path: str = "telemetry.db"

    # Forecast
    forecast_horizon_hours: int = 24
    forecast_min_history: int = Field(10, ge=2)

    # AI insight
    anthropic_api_key: str = ""
    insight_model: str = "claude-haiku-4-5-20251001"
    insight_max_tokens: int = 600

    # Store server
    host: str = "0.0.0.0"
    port: int = 8000

    log_level: str = "INFO"

    model_config = {"env_prefix": "TELEMETRY_", "env_file": str(_ENV_FILE)}

    @model_validator(mode="after")
    def _resolve_db_path(self) -> "Settings":
        """Make db_path absolute: relative to /var/lib/telemetry-node if installed, else project root."""
        p = Path(self.db_path)
        if not p.is_absolute():
            if _ENV_FILE == _SYSTEM_CONF:
                self.db_path = str(Path("/var/lib/telemetry-node") / p)
            else:
                self.db_path = str(_PROJECT_ROOT / p)
        return self

    @model_validator(mode="after")
    def _check_upload_url(self) -> "Settings":
        if urlparse(self.upload_url).scheme != "https":
            raise ValueError("upload_url must use https")
        return self

    @model_validator(mode="after")
    def _check_cycle_budget(self) -> "Settings":
        """Reject settings whose worst-case cycle could starve the watchdog."""
        if self.worst_case_cycle_sec >= self.watchdog_deadline_sec:
            raise ValueError(
                f"worst-case cycle {self.worst_case_cycle_sec:.1f}s must be shorter "
                f"than watchdog deadline {self.watchdog_deadline_sec:.1f}s"
            )
        return self

    @property
    def worst_case_cycle_sec(self) -> float:
        """Longest a cycle can block between two watchdog feeds.

        A cycle that loses the link pays for nmcli and every association
        wait. It then either blinks offline, or reconnects on the last
        attempt and pays for NTP, the upload and the longer result blink.
        """
        connect = NMCLI_TIMEOUT_SEC + self.connect_attempts * self.connect_wait_sec
        ranging = self.pulse_samples * (self.pulse_spacing_sec + 2 * self.echo_timeout_sec)
        sampling = MEASUREMENT_TIMEOUT_SEC + ranging
        online = (
            self.ntp_timeout_sec
            + self.upload_timeout_sec
            + max(pattern_duration(SUCCESS_PATTERN), pattern_duration(UPLOAD_FAILED_PATTERN))
        )
        return connect + sampling + max(pattern_duration(OFFLINE_PATTERN), online)

    @property
    def database_url(self) -> str:
        return f"sqlite:///{self.db_path}"


settings = Settings()
