"""The interactive terminal screen that ties the monitor and widgets together."""

from __future__ import annotations

import curses
import time
from collections.abc import Callable, Sequence
from enum import Enum
from typing import Any

import psutil

from .cli import parse_args
from .filter_selector import FilterWidget
from .filters import ConnectionFilter
from .graph import ActiveConnectionsGraphWidget
from .monitor import ConnectionMonitor
from .screen import Rect, put_text
from .summary import SummaryWidget
from .tables import HostTableWidget, ProcessHostTableWidget, ProcessTableWidget, SortBy

# Rows assumed visible when scrolling from the keyboard or mouse.
_SCROLL_VISIBLE_ROWS = 15
_TOP_ROW_HEIGHT = 7
_GRAPH_POINTS = 300

_KEY_BINDINGS = (
    ("1-3", ": Switch Table "),
    ("↑↓", ": Scroll "),
    ("f", ": Filter "),
    ("c", ": Clear "),
    ("r", ": Reset "),
    ("t/a/m", ": Sort "),
    ("q", ": Quit"),
)

Segment = tuple[str, "int | None"]


def _color(color: int) -> int:
    try:
        return curses.color_pair(color + 1)
    except curses.error:
        return 0


class FocusedTable(Enum):
    """The table that scrolling keys act on."""

    PROCESS_HOST = "Process-Host"
    PROCESS = "Process"
    HOST = "Host"


class App:
    """State of the running monitor screen."""

    def __init__(self, monitor: ConnectionMonitor | None = None) -> None:
        self.monitor = monitor if monitor is not None else ConnectionMonitor()
        self.host_table_widget = HostTableWidget(self.monitor)
        self.process_host_table_widget = ProcessHostTableWidget(self.monitor)
        self.process_table_widget = ProcessTableWidget(self.monitor)
        self.summary_widget = SummaryWidget(self.monitor)
        self.active_connections_graph_widget = ActiveConnectionsGraphWidget(
            self.monitor
        ).with_max_points(_GRAPH_POINTS)
        self.filter_widget = FilterWidget()
        self.current_filter = ConnectionFilter()
        self.exit = False
        self.last_tick = time.monotonic()
        self.tick_rate = 0.25
        self.mouse_enabled = False
        self.focused_table = FocusedTable.PROCESS_HOST

    def with_filter(self, filter: ConnectionFilter) -> App:
        """Start with the given filter; returns the app itself."""
        self._apply_filter(filter)
        return self

    def run(self, screen: Any) -> None:
        """Run the event loop on a curses screen until the user quits."""
        self._setup_terminal(screen)
        try:
            self._run_loop(screen)
        finally:
            if self.mouse_enabled:
                try:
                    curses.mousemask(0)
                except curses.error:
                    pass

    def _setup_terminal(self, screen: Any) -> None:
        screen.keypad(True)
        try:
            curses.curs_set(0)
        except curses.error:
            pass
        try:
            curses.start_color()
            curses.use_default_colors()
            for color in range(8):
                curses.init_pair(color + 1, color, -1)
        except curses.error:
            pass
        try:
            available, _ = curses.mousemask(
                curses.ALL_MOUSE_EVENTS | curses.REPORT_MOUSE_POSITION
            )
            self.mouse_enabled = available != 0
        except curses.error:
            self.mouse_enabled = False

    def _run_loop(self, screen: Any) -> None:
        while not self.exit:
            remaining = max(self.tick_rate - (time.monotonic() - self.last_tick), 0.0)
            screen.timeout(int(remaining * 1000))
            try:
                key = screen.get_wch()
            except curses.error:
                key = None
            if key is not None:
                self._dispatch(key)

            if time.monotonic() - self.last_tick >= self.tick_rate:
                self.tick()
                self.last_tick = time.monotonic()

            self.draw(screen)

    def _dispatch(self, key: str | int) -> None:
        if key == curses.KEY_MOUSE:
            try:
                _, _, _, _, button_state = curses.getmouse()
            except curses.error:
                return
            self.handle_mouse(button_state)
        else:
            self.handle_key(key)

    def tick(self) -> None:
        """Sample the system and advance the graph."""
        try:
            self.monitor.refresh()
        except (OSError, psutil.Error):
            pass
        self.active_connections_graph_widget.update()

    def handle_key(self, key: str | int) -> None:
        """React to a key press; while the filter form is open it gets every key."""
        if self.filter_widget.active:
            new_filter = self.filter_widget.handle_key(key)
            if new_filter is not None:
                self._apply_filter(new_filter)
            return

        actions: dict[str | int, Callable[[], None]] = {
            "q": self._quit,
            "r": self.monitor.reset,
            "c": self._clear_all_filters,
            "f": lambda: self.filter_widget.show(self.current_filter),
            "t": lambda: self._set_sort_by(SortBy.TOTAL),
            "a": lambda: self._set_sort_by(SortBy.ACTIVE),
            "m": lambda: self._set_sort_by(SortBy.MAX),
            "1": lambda: self._focus(FocusedTable.PROCESS_HOST),
            "2": lambda: self._focus(FocusedTable.HOST),
            "3": lambda: self._focus(FocusedTable.PROCESS),
            curses.KEY_UP: lambda: self._scroll_up(1),
            curses.KEY_DOWN: lambda: self._scroll_down(1),
            curses.KEY_PPAGE: lambda: self._scroll_up(10),
            curses.KEY_NPAGE: lambda: self._scroll_down(10),
            curses.KEY_HOME: lambda: self._focused_widget().scroll_to_top(),
            curses.KEY_END: self._scroll_to_bottom,
        }
        action = actions.get(key)
        if action is not None:
            action()

    def handle_mouse(self, button_state: int) -> None:
        """Scroll the focused table with the mouse wheel."""
        if not self.mouse_enabled:
            return
        wheel_down = getattr(curses, "BUTTON5_PRESSED", 0)
        if button_state & curses.BUTTON4_PRESSED:
            self._scroll_up(3)
        elif wheel_down and button_state & wheel_down:
            self._scroll_down(3)

    def _segments(self) -> list[Segment]:
        if self.current_filter.is_empty():
            filter_text = "No filters active"
        else:
            filter_text = f"Filter: {self.current_filter}"
        segments: list[Segment] = [
            (filter_text, curses.COLOR_YELLOW),
            (" | ", None),
            (f"Focus: {self.focused_table.value}", curses.COLOR_CYAN),
            (" | ", None),
        ]
        for key, description in _KEY_BINDINGS:
            segments.append((key, curses.COLOR_GREEN))
            segments.append((description, None))
        return segments

    def status_text(self) -> str:
        """The text of the status bar."""
        return "".join(text for text, _ in self._segments())

    def draw(self, screen: Any) -> None:
        """Draw every widget and the status bar onto the screen."""
        height, width = screen.getmaxyx()
        screen.erase()

        area = Rect(1, 1, max(width - 2, 0), max(height - 2, 0))
        top_height = min(_TOP_ROW_HEIGHT, area.height)
        status_height = 1 if area.height > top_height else 0
        middle = max(area.height - top_height - status_height, 0)
        second_height = middle // 2
        third_height = middle - second_height

        top = Rect(area.x, area.y, area.width, top_height)
        second = Rect(area.x, top.bottom(), area.width, second_height)
        third = Rect(area.x, second.bottom(), area.width, third_height)
        status = Rect(area.x, third.bottom(), area.width, status_height)

        graph_width = top.width * 75 // 100
        graph_area = Rect(top.x, top.y, graph_width, top.height)
        summary_area = Rect(top.x + graph_width, top.y, top.width - graph_width, top.height)

        host_width = third.width // 2
        host_area = Rect(third.x, third.y, host_width, third.height)
        process_area = Rect(third.x + host_width, third.y, third.width - host_width, third.height)

        self.active_connections_graph_widget.render(screen, graph_area)
        self.summary_widget.render(screen, summary_area)
        self.process_host_table_widget.render(screen, second)
        self.host_table_widget.render(screen, host_area)
        self.process_table_widget.render(screen, process_area)

        if status.height:
            x = status.x
            for text, color in self._segments():
                room = status.x + status.width - x
                if room <= 0:
                    break
                attr = 0 if color is None else _color(color)
                put_text(screen, status.y, x, text, room, attr)
                x += len(text)

        if self.filter_widget.active:
            self.filter_widget.render(screen, Rect(0, 0, width, height))

        screen.refresh()

    def _focused_widget(self) -> HostTableWidget | ProcessHostTableWidget | ProcessTableWidget:
        return {
            FocusedTable.PROCESS_HOST: self.process_host_table_widget,
            FocusedTable.PROCESS: self.process_table_widget,
            FocusedTable.HOST: self.host_table_widget,
        }[self.focused_table]

    def _focus(self, table: FocusedTable) -> None:
        self.focused_table = table

    def _scroll_up(self, amount: int) -> None:
        self._focused_widget().scroll_up(amount)

    def _scroll_down(self, amount: int) -> None:
        widget = self._focused_widget()
        widget.scroll_down(amount, len(widget.sorted_metrics()), _SCROLL_VISIBLE_ROWS)

    def _scroll_to_bottom(self) -> None:
        widget = self._focused_widget()
        widget.scroll_to_bottom(len(widget.sorted_metrics()), _SCROLL_VISIBLE_ROWS)

    def _clear_all_filters(self) -> None:
        self._apply_filter(ConnectionFilter())

    def _apply_filter(self, filter: ConnectionFilter) -> None:
        self.current_filter = filter
        self.host_table_widget.set_filter(filter)
        self.process_host_table_widget.set_filter(filter)
        self.process_table_widget.set_filter(filter)
        self.summary_widget.set_filter(filter)
        self.active_connections_graph_widget.set_filter(filter)

    def _set_sort_by(self, sort_by: SortBy) -> None:
        self.host_table_widget.set_sort_by(sort_by)
        self.process_host_table_widget.set_sort_by(sort_by)
        self.process_table_widget.set_sort_by(sort_by)

    def _quit(self) -> None:
        self.exit = True


def main(argv: Sequence[str] | None = None) -> int:
    """Parse the command line and run the monitor screen."""
    initial_filter = parse_args(argv)
    curses.wrapper(lambda screen: App().with_filter(initial_filter).run(screen))
    return 0