"""Small drawing helpers for curses windows."""

from __future__ import annotations

import curses
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Rect:
    """A rectangular area of the screen."""

    x: int
    y: int
    width: int
    height: int

    def inner(self) -> Rect:
        """The area left inside a one-cell border."""
        return Rect(self.x + 1, self.y + 1, max(self.width - 2, 0), max(self.height - 2, 0))

    def bottom(self) -> int:
        """The first row below the area."""
        return self.y + self.height


def put_text(window: Any, y: int, x: int, text: str, width: int, attr: int = 0) -> None:
    """Write text clipped to width cells; writes off the screen are dropped."""
    if width <= 0 or not text:
        return
    try:
        window.addnstr(y, x, text, width, attr)
    except curses.error:
        pass


def draw_box(window: Any, area: Rect, title: str = "", attr: int = 0) -> Rect:
    """Draw a bordered box with a title and return the area inside it."""
    if area.width < 2 or area.height < 2:
        return area.inner()
    horizontal = "─" * (area.width - 2)
    right = area.x + area.width - 1
    put_text(window, area.y, area.x, f"┌{horizontal}┐", area.width, attr)
    for row in range(area.y + 1, area.bottom() - 1):
        put_text(window, row, area.x, "│", 1, attr)
        put_text(window, row, right, "│", 1, attr)
    put_text(window, area.bottom() - 1, area.x, f"└{horizontal}┘", area.width, attr)
    if title:
        put_text(window, area.y, area.x + 1, title, area.width - 2, attr | curses.A_BOLD)
    return area.inner()