"""Motor data model and unit conversion utilities.

This module defines the small immutable data structures of one acquisition
cycle and the pure functions that turn raw Modbus register counts into
engineering units (kW, N·m, rpm, °C).

It is intentionally free of any I/O so it can be reused from the acquisition
service, deploy scripts and tests alike.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

# Input register map of the motor drive (one u16 per quantity)
VOLTAGE_REGISTER = 0
CURRENT_REGISTER = 1
HEAT_REGISTER = 2
SPEED_REGISTER = 3

CHANNELS: Tuple[str, ...] = ("power", "torque", "speed", "heat", "cycles")


@dataclass(frozen=True)
class ChannelInfo:
    """How one channel is stored and charted."""

    name: str
    field: str
    title: str
    y_label: str


CHANNEL_INFO: Dict[str, ChannelInfo] = {
    "power": ChannelInfo("power", "current_power", "Current Power", "Power (kW)"),
    "torque": ChannelInfo("torque", "current_torque", "Current Torque", "Torque (Nm)"),
    "speed": ChannelInfo("speed", "current_speed", "Current Speed", "Speed (rpm)"),
    "heat": ChannelInfo("heat", "current_heat", "Current Heat", "Heat (°C)"),
    "cycles": ChannelInfo("cycles", "current_cycles", "Current Cycles", "Cycles (Nm.s)"),
}


@dataclass(frozen=True)
class MotorSpecs:
    """Nameplate data of the monitored motor.

    Attributes
    ----------
    rated_power: float
        kW
    rated_torque: float
        N·m
    rated_speed: float
        rpm
    peak_torque: float
        N·m
    max_speed: float
        rpm
    """

    rated_power: float
    rated_torque: float
    rated_speed: float
    peak_torque: float
    max_speed: float


def default_motor_specs() -> MotorSpecs:
    """Nameplate of the EY630EAK motor the gateway was commissioned with."""

    return MotorSpecs(
        rated_power=2.4,
        rated_torque=10.1,
        rated_speed=1450.0,
        peak_torque=25.9,
        max_speed=4800.0,
    )


@dataclass(frozen=True)
class RawReading:
    """Raw register counts of one cycle, before any conversion."""

    voltage: int
    current: int
    heat: int
    speed: int


@dataclass(frozen=True)
class Sample:
    """Derived engineering values of one acquisition cycle.

    ``current_cycles`` is the contribution of this cycle only
    (torque × period), not a running total.
    """

    timestamp: int
    current_power: float
    current_torque: float
    current_speed: float
    current_heat: float
    current_cycles: float

    def value(self, channel: str) -> float:
        return getattr(self, CHANNEL_INFO[channel].field)

    def values(self) -> Dict[str, float]:
        return {name: self.value(name) for name in CHANNELS}


def calculate_power(volts: float, amps: float) -> float:
    """Electrical power in kW from volts and amps."""

    return volts * amps / 1000.0


def calculate_cycles(torque: float, period: float) -> float:
    """Torque-time contribution (N·m·s) of one sampling period."""

    return torque * period


def derive(
    raw: RawReading,
    period_seconds: float,
    specs: MotorSpecs,
    torque: Optional[float] = None,
    timestamp: Optional[int] = None,
    clock: Callable[[], float] = time.time,
) -> Sample:
    """Convert one :class:`RawReading` into a :class:`Sample`.

    There is no torque sensor on the bus yet, so torque is a constant:
    ``torque`` when given, otherwise the motor's rated torque. The timestamp is
    the wall-clock time of derivation unless supplied, since the device does
    not timestamp its registers.
    """

    if torque is None:
        torque = specs.rated_torque
    if timestamp is None:
        timestamp = int(clock())

    return Sample(
        timestamp=int(timestamp),
        current_power=calculate_power(float(raw.voltage), float(raw.current)),
        current_torque=float(torque),
        current_speed=float(raw.speed),
        current_heat=float(raw.heat),
        current_cycles=calculate_cycles(float(torque), period_seconds),
    )


__all__ = [
    "VOLTAGE_REGISTER",
    "CURRENT_REGISTER",
    "HEAT_REGISTER",
    "SPEED_REGISTER",
    "CHANNELS",
    "CHANNEL_INFO",
    "ChannelInfo",
    "MotorSpecs",
    "RawReading",
    "Sample",
    "default_motor_specs",
    "calculate_power",
    "calculate_cycles",
    "derive",
]
