import dataclasses

import pytest

from conftest import EY630EAK
from motor_monitor.core.motor.motor_model import (
    CHANNEL_INFO,
    CHANNELS,
    RawReading,
    calculate_cycles,
    calculate_power,
    default_motor_specs,
    derive,
)


def test_default_specs_are_ey630eak():
    assert default_motor_specs() == EY630EAK


@pytest.mark.parametrize(
    "volts, amps, expected",
    [(100, 10, 1.0), (0, 10, 0.0), (230, 0, 0.0), (400, 12, 4.8)],
)
def test_power_is_volts_times_amps_in_kw(volts, amps, expected):
    assert calculate_power(volts, amps) == pytest.approx(expected)


def test_cycles_is_torque_times_period():
    assert calculate_cycles(10.1, 1.0) == pytest.approx(10.1)
    assert calculate_cycles(10.0, 0.5) == pytest.approx(5.0)


def test_derive_maps_raw_counts(specs):
    raw = RawReading(voltage=100, current=10, heat=20, speed=1500)
    sample = derive(raw, 1.0, specs, timestamp=42)

    assert sample.timestamp == 42
    assert sample.current_power == pytest.approx(1.0)
    assert sample.current_torque == pytest.approx(10.1)
    assert sample.current_speed == 1500.0
    assert sample.current_heat == 20.0
    assert sample.current_cycles == pytest.approx(10.1)


def test_derive_is_deterministic_apart_from_timestamp(specs):
    raw = RawReading(voltage=321, current=17, heat=55, speed=1234)
    a = derive(raw, 1.0, specs, clock=lambda: 1000.0)
    b = derive(raw, 1.0, specs, clock=lambda: 2000.0)

    assert a.timestamp != b.timestamp
    assert dataclasses.replace(a, timestamp=0) == dataclasses.replace(b, timestamp=0)


def test_cycles_are_not_accumulated_between_calls(specs):
    raw = RawReading(voltage=1, current=1, heat=1, speed=1)
    first = derive(raw, 2.0, specs, timestamp=1)
    second = derive(raw, 2.0, specs, timestamp=2)
    assert first.current_cycles == second.current_cycles == pytest.approx(20.2)


def test_torque_override(specs):
    raw = RawReading(voltage=1, current=1, heat=1, speed=1)
    sample = derive(raw, 0.5, specs, torque=4.0, timestamp=1)
    assert sample.current_torque == 4.0
    assert sample.current_cycles == pytest.approx(2.0)


def test_timestamp_is_integer_wall_clock(specs):
    raw = RawReading(voltage=1, current=1, heat=1, speed=1)
    assert derive(raw, 1.0, specs, clock=lambda: 1700000000.9).timestamp == 1700000000


def test_sample_is_immutable(specs):
    sample = derive(RawReading(1, 1, 1, 1), 1.0, specs, timestamp=1)
    with pytest.raises(dataclasses.FrozenInstanceError):
        sample.current_power = 5.0  # type: ignore[misc]


def test_sample_value_by_channel(specs):
    sample = derive(RawReading(100, 10, 20, 1500), 1.0, specs, timestamp=1)
    values = sample.values()
    assert list(values) == list(CHANNELS)
    assert values["power"] == pytest.approx(1.0)
    assert sample.value("speed") == 1500.0
    assert {info.field for info in CHANNEL_INFO.values()} == {
        "current_power",
        "current_torque",
        "current_speed",
        "current_heat",
        "current_cycles",
    }
