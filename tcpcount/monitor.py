"""Tracking of TCP connections with per-process and per-host counters."""

from __future__ import annotations

import copy
import ipaddress
import socket
import time
from collections import Counter, deque
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass, field

import psutil

from .connection import Connection, IPAddress, TcpState
from .filters import ConnectionFilter
from .process import Process
from .utils import resolve_addr_to_hostname

_HISTORY_LIMIT = 1000
_INACTIVE_STATUSES = frozenset(
    {psutil.STATUS_DEAD, psutil.STATUS_ZOMBIE, psutil.STATUS_STOPPED}
)

ProcessHostKey = tuple[int, str, int]


@dataclass
class SocketInfo:
    """One TCP socket as reported by the operating system."""

    local_port: int
    remote_addr: IPAddress
    remote_port: int
    state: TcpState
    pids: tuple[int, ...] = ()

    def __post_init__(self) -> None:
        self.remote_addr = ipaddress.ip_address(self.remote_addr)
        self.pids = tuple(self.pids)


@dataclass
class ProcessSnapshot:
    """What the operating system reports about a running process."""

    pid: int
    name: str | None = None
    exe: str | None = None
    memory: int = 0
    status: str = psutil.STATUS_RUNNING

    @property
    def alive(self) -> bool:
        """False for dead, zombie and stopped processes."""
        return self.status not in _INACTIVE_STATUSES


@dataclass
class HostMetrics:
    host: str
    port: int
    current_connections: int
    total_connections: int
    max_concurrent: int


@dataclass
class ProcessMetrics:
    pid: int
    name: str
    current_connections: int
    total_connections: int
    max_concurrent: int
    is_alive: bool


@dataclass
class ProcessHostMetrics:
    pid: int
    process_name: str
    host: str
    port: int
    current_connections: int
    total_connections: int
    max_concurrent: int
    is_alive: bool


def _history() -> deque:
    return deque(maxlen=_HISTORY_LIMIT)


@dataclass
class ConnectionMetrics:
    """Running counters kept across refreshes."""

    total_connections_by_pid: dict[int, int] = field(default_factory=dict)
    max_concurrent_by_pid: dict[int, int] = field(default_factory=dict)
    current_concurrent_by_pid: dict[int, int] = field(default_factory=dict)
    total_connections_by_host: dict[str, int] = field(default_factory=dict)
    max_concurrent_by_host: dict[str, int] = field(default_factory=dict)
    current_concurrent_by_host: dict[str, int] = field(default_factory=dict)
    total_connections_by_process_host: dict[ProcessHostKey, int] = field(default_factory=dict)
    max_concurrent_by_process_host: dict[ProcessHostKey, int] = field(default_factory=dict)
    current_concurrent_by_process_host: dict[ProcessHostKey, int] = field(default_factory=dict)
    memory_history: dict[int, deque] = field(default_factory=dict)
    sample_timestamps: deque = field(default_factory=_history)


def read_sockets() -> list[SocketInfo]:
    """All TCP sockets of the system, IPv4 and IPv6."""
    try:
        entries = psutil.net_connections(kind="tcp")
    except psutil.AccessDenied as exc:
        raise PermissionError("not allowed to list TCP sockets") from exc
    sockets = []
    for entry in entries:
        if entry.raddr:
            remote_ip, remote_port = entry.raddr.ip, entry.raddr.port
        else:
            remote_ip = "::" if entry.family == socket.AF_INET6 else "0.0.0.0"
            remote_port = 0
        sockets.append(
            SocketInfo(
                local_port=entry.laddr.port if entry.laddr else 0,
                remote_addr=ipaddress.ip_address(remote_ip),
                remote_port=remote_port,
                state=TcpState(entry.status),
                pids=() if entry.pid is None else (entry.pid,),
            )
        )
    return sockets


def read_processes() -> dict[int, ProcessSnapshot]:
    """A snapshot of every process the system lists, keyed by pid."""
    snapshots = {}
    for proc in psutil.process_iter(["name", "exe", "memory_info", "status"]):
        info = proc.info
        memory_info = info.get("memory_info")
        snapshots[proc.pid] = ProcessSnapshot(
            pid=proc.pid,
            name=info.get("name"),
            exe=info.get("exe") or None,
            memory=memory_info.rss if memory_info else 0,
            status=info.get("status") or psutil.STATUS_RUNNING,
        )
    return snapshots


def _count_opened(key, total: dict, current: dict, maximum: dict) -> None:
    total[key] = total.get(key, 0) + 1
    current[key] = current.get(key, 0) + 1
    maximum[key] = max(maximum.get(key, 0), current[key])


def _count_closed(key, current: dict) -> None:
    current[key] = current.get(key, 1) - 1


class ConnectionMonitor:
    """Keeps the set of seen TCP connections and the counters derived from them."""

    def __init__(
        self,
        socket_source: Callable[[], Iterable[SocketInfo]] | None = None,
        process_source: Callable[[], Mapping[int, ProcessSnapshot]] | None = None,
        resolver: Callable[[IPAddress], str | None] | None = None,
    ) -> None:
        self._socket_source = socket_source or read_sockets
        self._process_source = process_source or read_processes
        self._resolver = resolver or resolve_addr_to_hostname
        self._system: dict[int, ProcessSnapshot] = dict(self._process_source())
        self._clear()
        try:
            self.refresh()
        except OSError:
            pass

    def _clear(self) -> None:
        self._connections: dict[int, Connection] = {}
        self._by_endpoint: dict[tuple[int, int, IPAddress, int], int] = {}
        self._historical: list[Connection] = []
        self._processes: dict[int, Process] = {}
        self.metrics = ConnectionMetrics()
        self.last_refresh = time.time()

    def reset(self) -> None:
        """Forget every connection, process and counter."""
        self._clear()

    def refresh(self) -> None:
        """Take a new sample of the system's TCP sockets."""
        now = time.time()
        sockets = [s for s in self._socket_source() if s.state is not TcpState.LISTEN]
        seen: set[int] = set()
        self._system = dict(self._process_source())

        for info in sockets:
            if not info.pids:
                continue
            pid = info.pids[0]
            key = (pid, info.local_port, info.remote_addr, info.remote_port)
            conn_id = self._by_endpoint.get(key)
            if conn_id is not None:
                seen.add(conn_id)
                self._connections[conn_id].update_state(info.state)
            else:
                conn = Connection(
                    pid,
                    info.local_port,
                    info.remote_port,
                    info.remote_addr,
                    self._resolver(info.remote_addr),
                    info.state,
                )
                seen.add(conn.id)
                self._connections[conn.id] = conn
                self._by_endpoint[key] = conn.id
                self._record_opened(conn)
            self._update_process_info(pid)

        for conn in self._connections.values():
            if conn.id in seen or conn.closed:
                continue
            conn.mark_closed()
            self._record_closed(conn)
            self._historical.append(copy.copy(conn))

        self.metrics.sample_timestamps.append(now)
        self.last_refresh = now

    def _record_opened(self, conn: Connection) -> None:
        m = self.metrics
        _count_opened(
            conn.pid,
            m.total_connections_by_pid,
            m.current_concurrent_by_pid,
            m.max_concurrent_by_pid,
        )
        if conn.remote_hostname is not None:
            _count_opened(
                f"{conn.remote_hostname}:{conn.remote_port}",
                m.total_connections_by_host,
                m.current_concurrent_by_host,
                m.max_concurrent_by_host,
            )
            _count_opened(
                (conn.pid, conn.remote_hostname, conn.remote_port),
                m.total_connections_by_process_host,
                m.current_concurrent_by_process_host,
                m.max_concurrent_by_process_host,
            )

    def _record_closed(self, conn: Connection) -> None:
        m = self.metrics
        _count_closed(conn.pid, m.current_concurrent_by_pid)
        if conn.remote_hostname is not None:
            _count_closed(
                f"{conn.remote_hostname}:{conn.remote_port}", m.current_concurrent_by_host
            )
            _count_closed(
                (conn.pid, conn.remote_hostname, conn.remote_port),
                m.current_concurrent_by_process_host,
            )

    def _update_process_info(self, pid: int) -> None:
        snapshot = self._system.get(pid)
        if snapshot is None:
            return
        process = self._processes.get(pid)
        if process is None:
            self._processes[pid] = Process(pid, snapshot.name, snapshot.exe, snapshot.memory)
        else:
            process.update(snapshot.name, snapshot.exe, snapshot.memory)
        history = self.metrics.memory_history.setdefault(pid, _history())
        history.append((time.time(), snapshot.memory))

    def _process_name(self, pid: int) -> str | None:
        process = self._processes.get(pid)
        return process.name if process is not None else None

    def _all_connections(self) -> Iterator[Connection]:
        yield from self._connections.values()
        yield from self._historical

    def _matching(self, flt: ConnectionFilter, conns: Iterable[Connection]) -> Iterator[Connection]:
        return (c for c in conns if flt.matches_connection(c, self._process_name(c.pid)))

    def _active_pids(self) -> set[int]:
        return {pid for pid, snapshot in self._system.items() if snapshot.alive}

    def get_active_connections(self) -> list[Connection]:
        return [c for c in self._connections.values() if not c.closed]

    def get_filtered_active_connections(self, filter: ConnectionFilter) -> list[Connection]:
        return list(self._matching(filter, self.get_active_connections()))

    def get_historical_connections(self) -> list[Connection]:
        return self._historical

    def get_filtered_historical_connections(self, filter: ConnectionFilter) -> list[Connection]:
        return list(self._matching(filter, self._historical))

    def get_process(self, pid: int) -> Process | None:
        return self._processes.get(pid)

    def get_processes(self) -> list[Process]:
        return list(self._processes.values())

    def get_filtered_processes(self, filter: ConnectionFilter) -> list[Process]:
        def keep(process: Process) -> bool:
            if filter.pid is not None and process.pid != filter.pid:
                return False
            if filter.process_name is not None:
                return process.name is not None and filter.process_name in process.name
            return True

        return [p for p in self._processes.values() if keep(p)]

    def get_connection_history_filtered(
        self,
        filter: ConnectionFilter,
        start_time: float | None = None,
        end_time: float | None = None,
    ) -> list[tuple[float, int]]:
        """Number of matching connections open at each sample time."""
        conns = list(self._matching(filter, self._all_connections()))
        history = []
        for timestamp in self.metrics.sample_timestamps:
            if start_time is not None and timestamp < start_time:
                continue
            if end_time is not None and timestamp > end_time:
                continue
            active = sum(
                1
                for c in conns
                if c.first_seen <= timestamp and (timestamp <= c.last_seen or not c.closed)
            )
            history.append((timestamp, active))
        return history

    def get_memory_history_filtered(
        self,
        filter: ConnectionFilter,
        start_time: float | None = None,
        end_time: float | None = None,
    ) -> dict[int, list[tuple[float, int]]]:
        """Memory samples of the selected processes within the time range."""
        if filter.pid is not None:
            pids = [filter.pid]
        elif filter.process_name is not None:
            pids = [
                pid
                for pid, process in self._processes.items()
                if process.name is not None and filter.process_name in process.name
            ]
        else:
            pids = list(self.metrics.memory_history)

        result = {}
        for pid in pids:
            history = self.metrics.memory_history.get(pid)
            if history is None:
                continue
            samples = [
                (stamp, memory)
                for stamp, memory in history
                if (start_time is None or stamp >= start_time)
                and (end_time is None or stamp <= end_time)
            ]
            if samples:
                result[pid] = samples
        return result

    @staticmethod
    def _host_of(conn: Connection) -> str:
        return conn.remote_hostname if conn.remote_hostname is not None else str(conn.remote_addr)

    def get_host_metrics(self, filter: ConnectionFilter) -> list[HostMetrics]:
        totals: Counter = Counter()
        active: Counter = Counter()
        for conn in self._matching(filter, self._all_connections()):
            key = (self._host_of(conn), conn.remote_port)
            totals[key] += 1
            if not conn.closed:
                active[key] += 1
        return [
            HostMetrics(
                host=host,
                port=port,
                current_connections=active[(host, port)],
                total_connections=total,
                max_concurrent=self.metrics.max_concurrent_by_host.get(f"{host}:{port}", 0),
            )
            for (host, port), total in totals.items()
        ]

    def get_process_metrics(self, filter: ConnectionFilter) -> list[ProcessMetrics]:
        alive = self._active_pids()
        totals: Counter = Counter()
        active: Counter = Counter()
        for conn in self._matching(filter, self._all_connections()):
            totals[conn.pid] += 1
            if not conn.closed:
                active[conn.pid] += 1
        metrics = []
        for pid, total in totals.items():
            name = self._process_name(pid)
            metrics.append(
                ProcessMetrics(
                    pid=pid,
                    name=name if name is not None else "Unknown",
                    current_connections=active[pid],
                    total_connections=total,
                    max_concurrent=self.metrics.max_concurrent_by_pid.get(pid, 0),
                    is_alive=pid in alive,
                )
            )
        return metrics

    def get_process_host_metrics(self, filter: ConnectionFilter) -> list[ProcessHostMetrics]:
        alive = self._active_pids()
        totals: Counter = Counter()
        active: Counter = Counter()
        for conn in self._matching(filter, self._all_connections()):
            key = (conn.pid, self._host_of(conn), conn.remote_port)
            totals[key] += 1
            if not conn.closed:
                active[key] += 1
        metrics = []
        for key, total in totals.items():
            pid, host, port = key
            process = self._processes.get(pid)
            label = None
            if process is not None:
                label = process.exe if process.exe is not None else process.name
            metrics.append(
                ProcessHostMetrics(
                    pid=pid,
                    process_name=label if label is not None else "Unknown",
                    host=host,
                    port=port,
                    current_connections=active[key],
                    total_connections=total,
                    max_concurrent=self.metrics.max_concurrent_by_process_host.get(key, 0),
                    is_alive=pid in alive,
                )
            )
        return metrics