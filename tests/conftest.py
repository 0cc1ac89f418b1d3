import threading
import time
from typing import Dict, List, Optional, Sequence, Tuple

import pytest
from pymodbus.exceptions import ModbusIOException

from motor_monitor.config import MonitorConfig
from motor_monitor.core.errors import TransportError
from motor_monitor.core.motor.motor_model import MotorSpecs, Sample

EY630EAK = MotorSpecs(2.4, 10.1, 1450.0, 25.9, 4800.0)


class FakeResponse:
    def __init__(self, registers: Optional[List[int]] = None, error: bool = False) -> None:
        self.registers = registers
        self._error = error

    def isError(self) -> bool:
        return self._error


class FakeSerialClient:
    """Stands in for pymodbus' ModbusSerialClient."""

    def __init__(self, registers: Optional[Dict[int, int]] = None, connect_ok: bool = True) -> None:
        self.registers = dict(registers or {})
        self.connect_ok = connect_ok
        self.fail_at: Dict[int, Exception] = {}
        self.response_override: Optional[FakeResponse] = None
        self.calls: List[Tuple[int, int, int]] = []
        self.connects = 0
        self.closed = False
        self.kwargs: Dict[str, object] = {}

    def connect(self) -> bool:
        self.connects += 1
        self.closed = False
        return self.connect_ok

    def close(self) -> None:
        self.closed = True

    def read_input_registers(self, address: int, count: int = 1, device_id: int = 1):
        self.calls.append((address, count, device_id))
        if address in self.fail_at:
            raise self.fail_at[address]
        if self.response_override is not None:
            return self.response_override
        return FakeResponse([self.registers.get(address + i, 0) for i in range(count)])


class ScriptedReader:
    """Serves one (voltage, current, heat, speed) frame per cycle.

    A ``None`` frame makes the first read of that cycle fail. The last frame
    repeats once the script runs out.
    """

    def __init__(self, frames: Sequence[Optional[Tuple[int, int, int, int]]]) -> None:
        self.frames = list(frames)
        self.cycle = 0
        self.cycle_starts: List[float] = []

    def read_input_registers(self, address: int, count: int = 1) -> List[int]:
        if address == 0:
            self.cycle += 1
            self.cycle_starts.append(time.monotonic())
        frame = self.frames[min(self.cycle, len(self.frames)) - 1]
        if frame is None:
            raise TransportError("no response from device 1")
        return [frame[address]]


class MemoryStore:
    def __init__(self, delay: float = 0.0) -> None:
        self.delay = delay
        self.rows: List[Sample] = []
        self._lock = threading.Lock()

    def insert(self, sample: Sample) -> None:
        if self.delay:
            time.sleep(self.delay)
        with self._lock:
            self.rows.append(sample)


class SteppingClock:
    """Wall clock that advances one second per call."""

    def __init__(self, start: int = 1_700_000_000) -> None:
        self.now = start - 1

    def __call__(self) -> float:
        self.now += 1
        return float(self.now)


def make_sample(ts: int, value: float = 1.0) -> Sample:
    return Sample(
        timestamp=ts,
        current_power=value,
        current_torque=value,
        current_speed=value,
        current_heat=value,
        current_cycles=value,
    )


@pytest.fixture
def specs() -> MotorSpecs:
    return EY630EAK


@pytest.fixture
def fake_bus() -> FakeSerialClient:
    return FakeSerialClient(registers={0: 100, 1: 10, 2: 20, 3: 1500})


@pytest.fixture
def config(tmp_path) -> MonitorConfig:
    return MonitorConfig(output_dir=str(tmp_path / "charts"), period=1.0)


@pytest.fixture
def io_timeout() -> Exception:
    return ModbusIOException("No response received")


