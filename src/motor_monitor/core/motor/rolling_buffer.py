"""In-memory per-channel history of acquired samples.

The acquisition service is the only writer; the chart renderer reads copies.
A single lock makes an append of all five channels atomic with respect to
snapshots, and it is only held while appending or copying.
"""

from __future__ import annotations

import threading
from collections import deque
from typing import Deque, Dict, Iterable, Optional, Tuple

from motor_monitor.core.motor.motor_model import CHANNELS, Sample

Point = Tuple[int, float]
Series = Tuple[Point, ...]


class RollingBuffer:
    """Append-only ``(timestamp, value)`` series for every channel.

    With ``capacity=None`` every sample is kept for the life of the process.
    A positive ``capacity`` turns each channel into a ring that evicts its
    oldest point once full.
    """

    def __init__(
        self,
        capacity: Optional[int] = None,
        channels: Iterable[str] = CHANNELS,
    ) -> None:
        if capacity is not None and capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self._capacity = capacity
        self._lock = threading.Lock()
        self._series: Dict[str, Deque[Point]] = {
            name: deque(maxlen=capacity) for name in channels
        }
        self._appends = 0

    @property
    def capacity(self) -> Optional[int]:
        return self._capacity

    @property
    def channels(self) -> Tuple[str, ...]:
        return tuple(self._series)

    def append(self, sample: Sample) -> None:
        """Add one point per channel from ``sample``."""

        # Read every value before taking the lock so a bad sample leaves
        # all channels untouched.
        points = [(name, (sample.timestamp, sample.value(name))) for name in self._series]
        with self._lock:
            for name, point in points:
                self._series[name].append(point)
            self._appends += 1

    def snapshot(self, channel: str) -> Series:
        """Immutable copy of one channel; ``KeyError`` for unknown channels."""

        with self._lock:
            return tuple(self._series[channel])

    def snapshot_all(self) -> Dict[str, Series]:
        """Copy every channel within one lock span."""

        with self._lock:
            return {name: tuple(points) for name, points in self._series.items()}

    @property
    def total_appends(self) -> int:
        with self._lock:
            return self._appends

    def __len__(self) -> int:
        with self._lock:
            if self._capacity is None:
                return self._appends
            return min(self._appends, self._capacity)


__all__ = ["RollingBuffer", "Point", "Series"]
