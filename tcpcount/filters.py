"""Filtering of connections by process and remote endpoint."""

from __future__ import annotations

from dataclasses import dataclass, replace

from .connection import Connection


@dataclass
class ConnectionFilter:
    """Criteria a connection has to meet; unset fields match anything."""

    pid: int | None = None
    process_name: str | None = None
    remote_host: str | None = None
    remote_port: int | None = None

    def with_pid(self, pid: int) -> ConnectionFilter:
        return replace(self, pid=pid)

    def with_process_name(self, name: str) -> ConnectionFilter:
        return replace(self, process_name=name)

    def with_remote_host(self, host: str) -> ConnectionFilter:
        return replace(self, remote_host=host)

    def with_remote_port(self, port: int) -> ConnectionFilter:
        return replace(self, remote_port=port)

    def is_empty(self) -> bool:
        return (
            self.pid is None
            and self.process_name is None
            and self.remote_host is None
            and self.remote_port is None
        )

    def __str__(self) -> str:
        parts = []
        if self.pid is not None:
            parts.append(f"PID: {self.pid}")
        if self.process_name is not None:
            parts.append(f"Process: {self.process_name}")
        if self.remote_host is not None:
            parts.append(f"Host: {self.remote_host}")
        if self.remote_port is not None:
            parts.append(f"Port: {self.remote_port}")
        return ", ".join(parts) if parts else "No filters"

    def matches_connection(self, conn: Connection, process_name: str | None = None) -> bool:
        """Whether the connection, owned by a process of the given name, passes."""
        if self.pid is not None and conn.pid != self.pid:
            return False

        if self.process_name is not None:
            if process_name is None or self.process_name not in process_name:
                return False

        if self.remote_host is not None:
            hostname = conn.remote_hostname
            in_hostname = hostname is not None and self.remote_host in hostname
            if not in_hostname and self.remote_host not in str(conn.remote_addr):
                return False

        if self.remote_port is not None and conn.remote_port != self.remote_port:
            return False

        return True