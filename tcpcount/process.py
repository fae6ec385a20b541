"""Processes that own monitored connections."""

from __future__ import annotations

import time
from dataclasses import InitVar, dataclass, field


@dataclass
class Process:
    """A process with its name, executable and memory usage over time."""

    pid: int
    name: str | None = None
    exe: str | None = None
    memory_usage: InitVar[int] = 0
    current_memory_usage: int = field(default=0, init=False)
    max_memory_usage: int = field(default=0, init=False)
    first_seen: float = field(default=0.0, init=False)
    last_seen: float = field(default=0.0, init=False)

    def __post_init__(self, memory_usage: int) -> None:
        self.current_memory_usage = memory_usage
        self.max_memory_usage = memory_usage
        now = time.time()
        self.first_seen = now
        self.last_seen = now

    def update(self, name: str | None, exe: str | None, memory_usage: int) -> None:
        """Refresh the process details; a missing name or exe keeps the old one."""
        if name is not None:
            self.name = name
        if exe is not None:
            self.exe = exe
        self.current_memory_usage = memory_usage
        self.max_memory_usage = max(self.max_memory_usage, memory_usage)
        self.last_seen = time.time()