"""TCP connections as observed by the monitor."""

from __future__ import annotations

import ipaddress
import random
import time
from dataclasses import dataclass, field
from enum import Enum

IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address


class TcpState(Enum):
    """TCP socket state; values are the status names psutil reports."""

    CLOSED = "CLOSE"
    LISTEN = "LISTEN"
    SYN_SENT = "SYN_SENT"
    SYN_RECEIVED = "SYN_RECV"
    ESTABLISHED = "ESTABLISHED"
    FIN_WAIT1 = "FIN_WAIT1"
    FIN_WAIT2 = "FIN_WAIT2"
    CLOSE_WAIT = "CLOSE_WAIT"
    CLOSING = "CLOSING"
    LAST_ACK = "LAST_ACK"
    TIME_WAIT = "TIME_WAIT"
    DELETE_TCB = "DELETE_TCB"
    UNKNOWN = "NONE"

    @classmethod
    def _missing_(cls, value: object) -> TcpState:
        return cls.UNKNOWN


def _random_id() -> int:
    return random.getrandbits(64)


@dataclass
class Connection:
    """A single TCP connection owned by a process."""

    pid: int
    local_port: int
    remote_port: int
    remote_addr: IPAddress
    remote_hostname: str | None = None
    state: TcpState = TcpState.UNKNOWN
    id: int = field(default_factory=_random_id)
    first_seen: float = field(default=0.0, init=False)
    last_seen: float = field(default=0.0, init=False)
    closed: bool = field(default=False, init=False)

    def __post_init__(self) -> None:
        self.remote_addr = ipaddress.ip_address(self.remote_addr)
        now = time.time()
        self.first_seen = now
        self.last_seen = now

    def update_state(self, state: TcpState) -> None:
        """Record a new state and refresh the last-seen time."""
        self.state = state
        self.last_seen = time.time()

    def mark_closed(self) -> None:
        """Mark the connection as gone and refresh the last-seen time."""
        self.closed = True
        self.last_seen = time.time()