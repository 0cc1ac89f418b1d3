"""Read the motor registers once per refresh and print raw and derived values.

Commissioning helper: checks wiring and register map without touching the
database or the charts.

    python deploy/monitor_rtu.py --port /dev/ttyUSB0 --count 5
"""

import argparse
import sys
import time

from motor_monitor.core.errors import TransportError
from motor_monitor.core.modbus.rtu_client import ModbusRtuClient, RtuConfig, read_motor_registers
from motor_monitor.core.motor.motor_model import default_motor_specs, derive

# -----------------------------------------------------------------------------
# Defaults (overridable from the command line)
# -----------------------------------------------------------------------------
SERIAL_PORT = "/dev/ttyUSB0"
SERIAL_BAUDRATE = 9600
UNIT_ID = 1
REFRESH_RATE = 1.0  # seconds


def main():
    parser = argparse.ArgumentParser(description="Dump motor input registers 0-3")
    parser.add_argument("--port", default=SERIAL_PORT)
    parser.add_argument("--baudrate", type=int, default=SERIAL_BAUDRATE)
    parser.add_argument("--unit-id", type=int, default=UNIT_ID)
    parser.add_argument("--interval", type=float, default=REFRESH_RATE)
    parser.add_argument("--count", type=int, default=0, help="Reads before exiting (0: forever)")
    args = parser.parse_args()

    specs = default_motor_specs()
    cfg = RtuConfig(port=args.port, baudrate=args.baudrate, unit_id=args.unit_id)
    print(f"Reading unit {cfg.unit_id} on {cfg.port} ({cfg.baudrate},{cfg.parity},{cfg.stopbits})")

    done = 0
    errors = 0
    with ModbusRtuClient(cfg) as client:
        try:
            while args.count <= 0 or done < args.count:
                try:
                    raw = read_motor_registers(client)
                except TransportError as exc:
                    errors += 1
                    print(f"Read error: {exc}")
                else:
                    s = derive(raw, args.interval, specs)
                    print(
                        f"raw V={raw.voltage} I={raw.current} H={raw.heat} N={raw.speed} | "
                        f"P={s.current_power:.3f}kW T={s.current_torque:.1f}Nm "
                        f"S={s.current_speed:.0f}rpm H={s.current_heat:.1f}C"
                    )
                done += 1
                time.sleep(args.interval)
        except KeyboardInterrupt:
            print("Interrupted by user.")

    return 1 if errors and errors == done else 0


if __name__ == "__main__":
    sys.exit(main())
