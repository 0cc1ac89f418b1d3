"""Runtime configuration for the motor monitor.

Settings come from ``MOTOR_MONITOR_*`` environment variables so the service
can be deployed without a config file; command line flags override them (see
``services.acquisition_service.main``).
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass
from typing import Optional

ENV_PREFIX = "MOTOR_MONITOR_"

_TRUE = {"1", "true", "yes", "on"}

LOG_FORMAT = "[%(name)s] %(levelname)s: %(message)s"


def env_str(name: str, default: str) -> str:
    val = os.getenv(ENV_PREFIX + name)
    if val is None or not val.strip():
        return default
    return val.strip()


def env_flag(name: str, default: bool = False) -> bool:
    val = os.getenv(ENV_PREFIX + name)
    if val is None:
        return default
    return str(val).strip().lower() in _TRUE


def env_int(name: str, default: Optional[int]) -> Optional[int]:
    val = os.getenv(ENV_PREFIX + name)
    if val is None:
        return default
    try:
        return int(val.strip())
    except ValueError:
        return default


def env_float(name: str, default: Optional[float]) -> Optional[float]:
    val = os.getenv(ENV_PREFIX + name)
    if val is None:
        return default
    try:
        return float(val.strip())
    except ValueError:
        return default


@dataclass
class MonitorConfig:
    # Serial line (9600 8N1, no flow control)
    port: str = "/dev/ttyUSB0"
    baudrate: int = 9600
    unit_id: int = 1
    timeout: float = 1.0

    database_url: str = "sqlite:///motor_data.db"
    output_dir: str = "."

    # Acquisition
    period: float = 1.0
    torque: Optional[float] = None  # None -> rated torque of the motor
    buffer_capacity: Optional[int] = None  # None -> keep every sample
    max_consecutive_failures: int = 5
    render_charts: bool = True

    log_level: str = "INFO"


def load_config() -> MonitorConfig:
    """Build a :class:`MonitorConfig` from the environment.

    Malformed numeric values fall back to the defaults instead of failing, the
    same way a missing variable does.
    """

    d = MonitorConfig()
    capacity = env_int("BUFFER_CAPACITY", d.buffer_capacity)
    if capacity is not None and capacity <= 0:
        capacity = None
    return MonitorConfig(
        port=env_str("PORT", d.port),
        baudrate=env_int("BAUDRATE", d.baudrate),
        unit_id=env_int("UNIT_ID", d.unit_id),
        timeout=env_float("TIMEOUT", d.timeout),
        database_url=env_str("DATABASE_URL", d.database_url),
        output_dir=env_str("OUTPUT_DIR", d.output_dir),
        period=env_float("PERIOD", d.period),
        torque=env_float("TORQUE", d.torque),
        buffer_capacity=capacity,
        max_consecutive_failures=env_int(
            "MAX_CONSECUTIVE_FAILURES", d.max_consecutive_failures
        ),
        render_charts=env_flag("RENDER_CHARTS", d.render_charts),
        log_level=env_str("LOG_LEVEL", d.log_level).upper(),
    )


def configure_logging(level: str = "INFO") -> None:
    """Send all ``motor_monitor`` log records to stderr."""

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root = logging.getLogger("motor_monitor")
    root.handlers[:] = [handler]
    root.setLevel(getattr(logging, level.upper(), logging.INFO))


__all__ = [
    "MonitorConfig",
    "load_config",
    "configure_logging",
    "env_str",
    "env_flag",
    "env_int",
    "env_float",
]
