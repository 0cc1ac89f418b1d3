"""Background acquisition service: Modbus RTU sampling, storage and charts.

This module is intended to run *without* any UI. On a fixed period it reads
the motor's four input registers, derives a :class:`Sample`, appends it to
the rolling buffer, hands it to a background thread for storage and then
redraws one chart per channel from the buffer.

Failure policy per cycle:

- a field-bus error skips the cycle; too many in a row stops the service
  with :class:`AcquisitionHealthError`;
- a storage error is reported back to the loop through a queue, logged and
  the sample dropped;
- a chart error only affects that one chart.
"""

from __future__ import annotations

import argparse
import logging
import queue
import signal
import threading
import time
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence, Set

from motor_monitor.config import MonitorConfig, configure_logging, load_config
from motor_monitor.core.chart.line_chart import render_channel
from motor_monitor.core.errors import (
    AcquisitionHealthError,
    RenderError,
    StorageError,
    TransportError,
)
from motor_monitor.core.modbus.rtu_client import (
    ModbusRtuClient,
    RtuConfig,
    read_motor_registers,
)
from motor_monitor.core.motor.motor_model import MotorSpecs, Sample, default_motor_specs, derive
from motor_monitor.core.motor.rolling_buffer import RollingBuffer
from motor_monitor.core.storage.sample_store import setup as setup_store

logger = logging.getLogger(__name__)

# Undrained storage failures kept for the loop to report
ERROR_QUEUE_SIZE = 100
# How long a shutdown waits for in-flight sample writes
SHUTDOWN_FLUSH_TIMEOUT = 10.0


@dataclass(frozen=True)
class PersistenceFailure:
    sample: Sample
    error: BaseException


class AcquisitionService:
    """Fixed-period reader + deriver + recorder for one motor."""

    def __init__(
        self,
        reader: Any,
        store: Any,
        specs: Optional[MotorSpecs] = None,
        config: Optional[MonitorConfig] = None,
        buffer: Optional[RollingBuffer] = None,
        renderer: Callable[..., Any] = render_channel,
        clock: Callable[[], float] = time.time,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._reader = reader
        self._store = store
        self._specs = specs or default_motor_specs()
        self._config = config or MonitorConfig()
        self._buffer = buffer if buffer is not None else RollingBuffer(self._config.buffer_capacity)
        self._renderer = renderer
        self._clock = clock
        self._monotonic = monotonic

        self._output_dir = Path(self._config.output_dir)
        self._stop = threading.Event()

        self._errors: "queue.Queue[PersistenceFailure]" = queue.Queue(maxsize=ERROR_QUEUE_SIZE)
        self._pending: Set[threading.Thread] = set()
        self._pending_lock = threading.Lock()

        self._consecutive_failures = 0
        self._persist_failures = 0

    # ------------------------ state ------------------------

    @property
    def buffer(self) -> RollingBuffer:
        return self._buffer

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    @property
    def persist_failures(self) -> int:
        """Storage failures reported back to the loop so far."""
        return self._persist_failures

    @property
    def pending_writes(self) -> int:
        with self._pending_lock:
            return len(self._pending)

    # ------------------------ one cycle ------------------------

    def run_cycle(self) -> Optional[Sample]:
        """Read, derive, buffer, dispatch storage and render once.

        Returns the new sample, or ``None`` when a field-bus error skipped
        the cycle.

        :raises AcquisitionHealthError: when the configured number of
            consecutive cycles have failed.
        """

        try:
            raw = read_motor_registers(self._reader)
        except TransportError as exc:
            self._consecutive_failures += 1
            limit = self._config.max_consecutive_failures
            logger.warning(
                "Cycle skipped (%d consecutive failure(s)): %s", self._consecutive_failures, exc
            )
            self.drain_errors()
            if limit > 0 and self._consecutive_failures >= limit:
                raise AcquisitionHealthError(self._consecutive_failures, exc) from exc
            return None

        if self._consecutive_failures:
            logger.info("Field bus recovered after %d failed cycle(s)", self._consecutive_failures)
        self._consecutive_failures = 0

        sample = derive(
            raw,
            self._config.period,
            self._specs,
            torque=self._config.torque,
            clock=self._clock,
        )
        self._buffer.append(sample)
        self._dispatch_persist(sample)

        if self._config.render_charts:
            self._render_all()

        self.drain_errors()

        logger.debug("Sample %s (raw %s)", sample, raw)
        logger.info(
            "P:%.2fkW T:%.1fNm S:%.0frpm H:%.1fC C:%.2f",
            sample.current_power,
            sample.current_torque,
            sample.current_speed,
            sample.current_heat,
            sample.current_cycles,
        )
        return sample

    def _render_all(self) -> None:
        try:
            self._output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.warning("Charts not updated, cannot use %s: %s", self._output_dir, exc)
            return
        for channel, series in self._buffer.snapshot_all().items():
            try:
                self._renderer(self._output_dir, channel, series)
            except RenderError as exc:
                logger.warning("Chart for %s not updated: %s", channel, exc)

    # ------------------------ persistence ------------------------

    def _dispatch_persist(self, sample: Sample) -> None:
        worker = threading.Thread(
            target=self._persist,
            args=(sample,),
            name=f"persist-{sample.timestamp}",
            daemon=True,
        )
        with self._pending_lock:
            self._pending.add(worker)
        worker.start()

    def _persist(self, sample: Sample) -> None:
        try:
            self._store.insert(sample)
        except Exception as exc:  # noqa: BLE001 - handed to the loop via the error queue
            if not isinstance(exc, StorageError):
                exc = StorageError(f"Failed to insert sample at {sample.timestamp}: {exc}")
            try:
                self._errors.put_nowait(PersistenceFailure(sample, exc))
            except queue.Full:
                logger.error("Dropped sample %d, error queue full: %s", sample.timestamp, exc)
        finally:
            with self._pending_lock:
                self._pending.discard(threading.current_thread())

    def drain_errors(self) -> List[PersistenceFailure]:
        """Log and return every storage failure reported since the last call."""

        failures: List[PersistenceFailure] = []
        while True:
            try:
                failure = self._errors.get_nowait()
            except queue.Empty:
                break
            failures.append(failure)
            logger.error("Dropped sample %d: %s", failure.sample.timestamp, failure.error)
        self._persist_failures += len(failures)
        return failures

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Wait for in-flight writes; ``True`` when none are left."""

        deadline = None if timeout is None else self._monotonic() + timeout
        with self._pending_lock:
            workers = list(self._pending)
        for worker in workers:
            remaining = None if deadline is None else max(0.0, deadline - self._monotonic())
            worker.join(remaining)
        return self.pending_writes == 0

    # ------------------------ loop ------------------------

    def run_forever(self, max_cycles: Optional[int] = None) -> None:
        """Blocking main loop.

        Cycles start on a fixed grid of ``period`` seconds. A cycle that
        overruns skips the tick boundaries it missed instead of catching up.
        """

        period = self._config.period
        logger.info(
            "Starting acquisition loop (interval=%ss, charts=%s, buffer=%s)",
            period,
            "on" if self._config.render_charts else "off",
            self._buffer.capacity or "unbounded",
        )
        cycles = 0
        next_tick = self._monotonic()
        try:
            while not self._stop.is_set():
                cycles += 1
                self.run_cycle()
                if max_cycles is not None and cycles >= max_cycles:
                    break

                next_tick += period
                now = self._monotonic()
                if now >= next_tick:
                    missed = int((now - next_tick) // period) + 1
                    next_tick += missed * period
                    logger.warning("Cycle overran the period, skipped %d tick(s)", missed)
                self._stop.wait(next_tick - now)
        finally:
            if not self.flush(SHUTDOWN_FLUSH_TIMEOUT):
                logger.warning("%d sample write(s) still pending at shutdown", self.pending_writes)
            self.drain_errors()
            logger.info("Acquisition loop stopped after %d cycle(s)", cycles)

    def stop(self) -> None:
        self._stop.set()


def _install_signal_handlers(service: AcquisitionService) -> None:
    def handler(signum, frame) -> None:  # type: ignore[override]
        logger.info("Received signal %s, stopping...", signum)
        service.stop()

    signal.signal(signal.SIGTERM, handler)
    signal.signal(signal.SIGINT, handler)


def parse_args(argv: Optional[Sequence[str]], defaults: MonitorConfig) -> MonitorConfig:
    parser = argparse.ArgumentParser(description="Log motor data over Modbus RTU")
    parser.add_argument("--port", default=defaults.port, help="Serial port")
    parser.add_argument("--baudrate", type=int, default=defaults.baudrate, help="Baud rate")
    parser.add_argument("--unit-id", type=int, default=defaults.unit_id, help="Modbus device id")
    parser.add_argument(
        "--timeout", type=float, default=defaults.timeout, help="Read timeout in seconds"
    )
    parser.add_argument("--database-url", default=defaults.database_url, help="SQLAlchemy URL")
    parser.add_argument("--output-dir", default=defaults.output_dir, help="Chart directory")
    parser.add_argument(
        "--period", type=float, default=defaults.period, help="Sampling period in seconds"
    )
    parser.add_argument(
        "--torque", type=float, default=defaults.torque, help="Torque in Nm (default: rated)"
    )
    parser.add_argument(
        "--buffer-capacity",
        type=int,
        default=defaults.buffer_capacity,
        help="Points kept per channel (default: all)",
    )
    parser.add_argument(
        "--max-failures",
        type=int,
        default=defaults.max_consecutive_failures,
        help="Consecutive failed cycles before giving up (0: never)",
    )
    parser.add_argument(
        "--no-charts", action="store_true", default=not defaults.render_charts, help="Skip charts"
    )
    parser.add_argument("--log-level", default=defaults.log_level, help="Logging level")
    args = parser.parse_args(argv)

    if args.period <= 0:
        parser.error("--period must be positive")
    capacity = args.buffer_capacity if args.buffer_capacity and args.buffer_capacity > 0 else None

    return replace(
        defaults,
        port=args.port,
        baudrate=args.baudrate,
        unit_id=args.unit_id,
        timeout=args.timeout,
        database_url=args.database_url,
        output_dir=args.output_dir,
        period=args.period,
        torque=args.torque,
        buffer_capacity=capacity,
        max_consecutive_failures=args.max_failures,
        render_charts=not args.no_charts,
        log_level=args.log_level.upper(),
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    config = parse_args(argv, load_config())
    configure_logging(config.log_level)

    try:
        store = setup_store(config.database_url)
    except StorageError as exc:
        logger.error("Cannot start without a sample store: %s", exc)
        return 1

    reader = ModbusRtuClient(
        RtuConfig(
            port=config.port,
            baudrate=config.baudrate,
            timeout=config.timeout,
            unit_id=config.unit_id,
        )
    )
    logger.info(
        "Reading device %d on %s (%d 8N1)",
        reader.unit_id,
        reader.config.port,
        reader.config.baudrate,
    )
    service = AcquisitionService(reader, store, default_motor_specs(), config)
    _install_signal_handlers(service)
    try:
        service.run_forever()
    except AcquisitionHealthError as exc:
        logger.critical("Stopping: %s", exc)
        return 2
    finally:
        reader.close()
        store.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
