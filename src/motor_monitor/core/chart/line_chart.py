"""Static line charts of one channel's rolling history.

Charts are drawn on a bare matplotlib :class:`~matplotlib.figure.Figure` with
the Agg canvas, so no pyplot global state is touched and rendering works from
any thread and without a display.

Each render replaces the whole image: the figure is saved to a temporary file
next to the target, then moved over it, so readers never see half a PNG.
"""

from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Sequence, Tuple, Union

from matplotlib.backends.backend_agg import FigureCanvasAgg
from matplotlib.figure import Figure

from motor_monitor.core.errors import RenderError
from motor_monitor.core.motor.motor_model import CHANNEL_INFO

logger = logging.getLogger(__name__)

CHART_SIZE_PX = (640, 480)
CHART_DPI = 100
CHART_EXTENSION = ".png"
LINE_COLOR = "red"

Range = Tuple[float, float]


def axis_ranges(series: Sequence[Tuple[int, float]]) -> Tuple[Range, Range]:
    """Return ``((x_min, x_max), (0, y_max))`` for ``series``.

    x spans the first to the last timestamp, y spans zero to the largest
    finite value. Negative values are not expected and are not handled.

    :raises RenderError: if the series is empty or has no finite value.
    """

    if not series:
        raise RenderError("cannot chart an empty series")
    finite = [v for _, v in series if math.isfinite(v)]
    if not finite:
        raise RenderError("series has no finite values")
    return (series[0][0], series[-1][0]), (0.0, max(finite))


def _widen(low: float, high: float, pad: float) -> Range:
    # matplotlib cannot draw a zero-width axis
    if high > low:
        return low, high
    return low - pad, high + pad


def render(
    path: Union[str, Path],
    series: Sequence[Tuple[int, float]],
    title: str,
    x_label: str,
    y_label: str,
) -> Path:
    """Draw ``series`` as a line chart and write it to ``path``.

    :raises RenderError: if the series is unusable or the image cannot be
        written. The previous image at ``path`` is left as it was.
    """

    path = Path(path)
    (x_min, x_max), (y_min, y_max) = axis_ranges(series)
    xs = [t for t, v in series if math.isfinite(v)]
    ys = [v for _, v in series if math.isfinite(v)]

    fig = Figure(
        figsize=(CHART_SIZE_PX[0] / CHART_DPI, CHART_SIZE_PX[1] / CHART_DPI),
        dpi=CHART_DPI,
    )
    FigureCanvasAgg(fig)
    ax = fig.add_subplot(111)
    ax.plot(xs, ys, color=LINE_COLOR)
    ax.set_title(title)
    ax.set_xlabel(x_label)
    ax.set_ylabel(y_label)
    ax.set_xlim(*_widen(float(x_min), float(x_max), 1.0))
    ax.set_ylim(y_min, y_max if y_max > y_min else y_min + 1.0)
    ax.grid(True, alpha=0.3)
    fig.tight_layout()

    tmp_path = path.with_suffix(".tmp")
    fmt = (path.suffix or CHART_EXTENSION).lstrip(".")
    try:
        fig.savefig(tmp_path, format=fmt)
        tmp_path.replace(path)
    except (OSError, ValueError, RuntimeError) as exc:
        tmp_path.unlink(missing_ok=True)
        raise RenderError(f"Failed to write chart {path}: {exc}") from exc
    return path


def chart_path(output_dir: Union[str, Path], channel: str) -> Path:
    """Fixed image path of ``channel``, e.g. ``<dir>/current_power.png``."""

    return Path(output_dir) / (CHANNEL_INFO[channel].field + CHART_EXTENSION)


def render_channel(
    output_dir: Union[str, Path],
    channel: str,
    series: Sequence[Tuple[int, float]],
) -> Path:
    """Render ``channel`` with its standard title and axis labels."""

    info = CHANNEL_INFO[channel]
    return render(chart_path(output_dir, channel), series, info.title, "Time", info.y_label)


__all__ = ["axis_ranges", "render", "render_channel", "chart_path"]
