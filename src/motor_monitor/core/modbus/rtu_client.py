"""Core Modbus RTU client abstraction.

This module provides a small, UI-independent wrapper around pymodbus for RTU
over serial. It only exposes what the motor monitor needs: reading input
registers (function 0x04) from one fixed device. The motor is never written
to, so no write operations are offered.

Every transport problem (port cannot be opened, timeout, exception response,
short or out-of-range payload) is raised as :class:`TransportError`. There is
no retry here; the acquisition service decides what a failed read means for
the current cycle.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

import serial
import serial.rs485
from pymodbus.client import ModbusSerialClient
from pymodbus.exceptions import ModbusException

from motor_monitor.core.errors import TransportError
from motor_monitor.core.motor.motor_model import (
    CURRENT_REGISTER,
    HEAT_REGISTER,
    SPEED_REGISTER,
    VOLTAGE_REGISTER,
    RawReading,
)

logger = logging.getLogger(__name__)

U16_MAX = 0xFFFF


@dataclass
class RtuConfig:
    port: str = "/dev/ttyUSB0"
    baudrate: int = 9600
    bytesize: int = 8
    parity: str = "N"
    stopbits: int = 1
    timeout: float = 1.0
    unit_id: int = 1


class ModbusRtuClient:
    """Thin wrapper for the Modbus RTU reads used by the motor monitor.

    ``client_factory`` builds the underlying pymodbus client from keyword
    arguments; it defaults to :class:`pymodbus.client.ModbusSerialClient` and
    exists so tests can plug in a fake bus.
    """

    def __init__(
        self,
        config: RtuConfig,
        client_factory: Callable[..., Any] = ModbusSerialClient,
    ) -> None:
        self._config = config
        self._factory = client_factory
        self._client: Optional[Any] = None

    def __enter__(self) -> "ModbusRtuClient":
        self.connect()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def config(self) -> RtuConfig:
        return self._config

    @property
    def unit_id(self) -> int:
        return self._config.unit_id

    def connect(self) -> None:
        """Open the serial connection if not already open."""

        if self._client is None:
            # retries=0: a failed exchange is reported to the caller as is
            self._client = self._factory(
                port=self._config.port,
                baudrate=self._config.baudrate,
                bytesize=self._config.bytesize,
                parity=self._config.parity,
                stopbits=self._config.stopbits,
                timeout=self._config.timeout,
                retries=0,
            )

        try:
            ok = self._client.connect()
        except (ModbusException, OSError) as exc:
            self._client = None
            raise TransportError(f"Failed to open serial port {self._config.port}: {exc}") from exc
        if not ok:
            self._client = None
            raise TransportError(f"Failed to open serial port {self._config.port}")

        # Onboard UARTs of industrial gateways need RS485 mode switched on
        # after connect(), once the serial.Serial instance exists.
        if sys.platform.startswith("linux") and "ttyS" in self._config.port:
            port = getattr(self._client, "socket", None)
            if isinstance(port, serial.Serial):
                try:
                    port.rs485_mode = serial.rs485.RS485Settings()
                except (ValueError, OSError) as exc:
                    logger.debug("RS485 mode not available on %s: %s", self._config.port, exc)

    def close(self) -> None:
        """Close the underlying serial connection."""

        if self._client is not None:
            try:
                self._client.close()
            finally:
                self._client = None

    def read_input_registers(self, address: int, count: int = 1) -> List[int]:
        """Read one or more input registers (Function 0x04).

        :param address: 0-based register address.
        :param count: number of consecutive registers to read.
        :return: list of ``count`` unsigned 16-bit values.
        :raises TransportError: on I/O failure, timeout or malformed response.
        """

        if self._client is None:
            self.connect()

        try:
            result = self._client.read_input_registers(  # type: ignore[union-attr]
                address,
                count=count,
                device_id=self._config.unit_id,
            )
        except (ModbusException, OSError) as exc:
            # Drop the link so the next read starts from a clean connection
            self.close()
            raise TransportError(
                f"Modbus RTU read_input_registers failed at {address} (count={count}): {exc}"
            ) from exc

        if result is None or result.isError():
            raise TransportError(
                f"Modbus RTU read_input_registers error response at {address}: {result}"
            )

        registers = getattr(result, "registers", None)
        if registers is None or len(registers) < count:
            raise TransportError(
                f"Modbus RTU read_input_registers returned {0 if registers is None else len(registers)} "
                f"registers at {address}, expected {count}"
            )
        values = [int(v) for v in registers[:count]]
        if any(v < 0 or v > U16_MAX for v in values):
            raise TransportError(f"Modbus RTU register value out of range at {address}: {values}")
        return values


def read_motor_registers(reader: ModbusRtuClient) -> RawReading:
    """Read voltage, current, heat and speed, in that order.

    Each quantity is a single register. The first failing read aborts the
    whole set, so a :class:`RawReading` is always complete.
    """

    voltage = reader.read_input_registers(VOLTAGE_REGISTER, 1)[0]
    current = reader.read_input_registers(CURRENT_REGISTER, 1)[0]
    heat = reader.read_input_registers(HEAT_REGISTER, 1)[0]
    speed = reader.read_input_registers(SPEED_REGISTER, 1)[0]
    return RawReading(voltage=voltage, current=current, heat=heat, speed=speed)


__all__ = ["RtuConfig", "ModbusRtuClient", "read_motor_registers"]
