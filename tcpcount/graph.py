"""Bar graph of the number of active connections over time."""

from __future__ import annotations

import curses
import time
from typing import Any

from .filters import ConnectionFilter
from .monitor import ConnectionMonitor
from .screen import Rect, draw_box, put_text

_TITLE = "Active Connections (1s interval)"
_BARS = " ▁▂▃▄▅▆▇█"
_SCALE_WIDTH = 6


def _color(color: int) -> int:
    try:
        return curses.color_pair(color + 1)
    except curses.error:
        return 0


def _filter_key(flt: ConnectionFilter) -> tuple:
    return (flt.pid, flt.process_name, flt.remote_host, flt.remote_port)


def round_scale(max_value: int) -> int:
    """Round a value up on its leading digit (e.g. 11 -> 20); zero gives 1."""
    if max_value <= 0:
        return 1
    base = 10 ** (len(str(max_value)) - 1)
    return -(-max_value // base) * base


class ActiveConnectionsGraphWidget:
    """Samples the number of matching active connections once per interval."""

    def __init__(self, monitor: ConnectionMonitor) -> None:
        self.monitor = monitor
        self.filter = ConnectionFilter()
        self.max_points = 100
        self.history_data: list[int] = []
        self.last_sample_time = time.time()
        self.sample_interval = 1.0
        self._last_filter_key = _filter_key(self.filter)

    def set_filter(self, filter: ConnectionFilter) -> None:
        """Switch to a new filter and rebuild the graph from the monitor's history."""
        self.filter = filter
        self._last_filter_key = _filter_key(filter)
        self._rebuild_history_data()

    def with_max_points(self, points: int) -> ActiveConnectionsGraphWidget:
        """Keep at most this many samples; returns the widget itself."""
        self.max_points = points
        return self

    def _trim(self) -> None:
        excess = len(self.history_data) - self.max_points
        if excess > 0:
            del self.history_data[:excess]

    def _rebuild_history_data(self) -> None:
        history = self.monitor.get_connection_history_filtered(self.filter, None, None)
        self.history_data = [count for _, count in history]
        self._trim()

    def update(self) -> None:
        """Take a new sample if the sample interval has passed."""
        now = time.time()
        key = _filter_key(self.filter)
        if key != self._last_filter_key:
            self._last_filter_key = key
            self._rebuild_history_data()
            return
        if now - self.last_sample_time >= self.sample_interval:
            active = len(self.monitor.get_filtered_active_connections(self.filter))
            self.history_data.append(active)
            self._trim()
            self.last_sample_time = now

    def max_value(self) -> int:
        """The largest sampled value, or 0 when there are no samples."""
        return max(self.history_data, default=0)

    def render(self, window: Any, area: Rect) -> None:
        """Draw the graph with its scale into the area."""
        border = _color(curses.COLOR_BLUE)
        if not self.history_data:
            draw_box(window, area, _TITLE, border)
            return

        scale = round_scale(self.max_value())
        inner = draw_box(window, area, _TITLE, border)
        if inner.width < 1 or inner.height < 1:
            return

        if inner.height > 2:
            put_text(window, inner.y, inner.x, f"{scale:4}", 4)
            put_text(window, inner.bottom() - 1, inner.x, f"{0:4}", 4)

        spark = Rect(
            inner.x + _SCALE_WIDTH,
            inner.y,
            max(inner.width - _SCALE_WIDTH, 0),
            inner.height,
        )
        points = spark.width
        if len(self.history_data) <= points:
            data = [0] * (points - len(self.history_data)) + self.history_data
        else:
            data = self.history_data[len(self.history_data) - points :]

        attr = _color(curses.COLOR_CYAN)
        for column, value in enumerate(data):
            remaining = value * spark.height * 8 // scale
            for level in range(spark.height):
                y = spark.bottom() - 1 - level
                put_text(window, y, spark.x + column, _BARS[min(remaining, 8)], 1, attr)
                remaining = max(remaining - 8, 0)