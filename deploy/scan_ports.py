"""List serial ports that could carry the motor's Modbus RTU line."""

import sys

from serial.tools import list_ports

ports = sorted(list_ports.comports(), key=lambda p: p.device)

print("Scanning serial ports...")

if not ports:
    print("No serial ports found.")
    print("Check that:")
    print("1. the USB/RS485 adapter is plugged in")
    print("2. the current user may open it (e.g. member of the 'dialout' group)")
    sys.exit(1)

for p in ports:
    desc = p.description if p.description and p.description != "n/a" else ""
    print(f"  {p.device:<16} {desc}")

print(f"Found {len(ports)} port(s). Pass one to the monitor with --port.")
