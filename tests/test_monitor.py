import itertools
import os
from unittest.mock import patch

import psutil
import pytest

from tcpcount.connection import TcpState
from tcpcount.filters import ConnectionFilter
from tcpcount.monitor import (
    ConnectionMonitor,
    ProcessSnapshot,
    SocketInfo,
    read_processes,
)


class FakeSystem:
    def __init__(self):
        self.sockets = []
        self.processes = {
            10: ProcessSnapshot(10, "curl", "/usr/bin/curl", 100),
            20: ProcessSnapshot(20, "nginx", None, 200),
        }
        self.names = {"192.0.2.10": "example.com"}
        self.fail = False

    def read_sockets(self):
        if self.fail:
            raise PermissionError("denied")
        return list(self.sockets)

    def read_processes(self):
        return dict(self.processes)

    def resolve(self, addr):
        return self.names.get(str(addr))


def sock(pid, local_port, addr, remote_port, state=TcpState.ESTABLISHED):
    return SocketInfo(local_port, addr, remote_port, state, (pid,))


@pytest.fixture
def system():
    return FakeSystem()


@pytest.fixture
def monitor(system):
    return ConnectionMonitor(system.read_sockets, system.read_processes, system.resolve)


@pytest.fixture
def clock():
    ticks = itertools.count(1000.0, 1.0)
    with patch("time.time", side_effect=lambda: next(ticks)):
        yield


EVERYTHING = ConnectionFilter()


def test_new_connection_is_counted(system, monitor):
    system.sockets = [sock(10, 5000, "192.0.2.10", 443)]
    monitor.refresh()
    active = monitor.get_active_connections()
    assert len(active) == 1
    assert active[0].remote_hostname == "example.com"
    m = monitor.metrics
    assert m.total_connections_by_pid == {10: 1}
    assert m.current_concurrent_by_pid == {10: 1}
    assert m.max_concurrent_by_pid == {10: 1}
    assert m.total_connections_by_host == {"example.com:443": 1}
    assert m.total_connections_by_process_host == {(10, "example.com", 443): 1}


def test_listening_and_unowned_sockets_are_ignored(system, monitor):
    system.sockets = [
        sock(10, 80, "0.0.0.0", 0, TcpState.LISTEN),
        SocketInfo(5001, "192.0.2.10", 443, TcpState.ESTABLISHED, ()),
    ]
    monitor.refresh()
    assert monitor.get_active_connections() == []
    assert monitor.get_processes() == []


def test_existing_connection_gets_new_state(system, monitor):
    system.sockets = [sock(10, 5000, "192.0.2.10", 443)]
    monitor.refresh()
    system.sockets = [sock(10, 5000, "192.0.2.10", 443, TcpState.CLOSE_WAIT)]
    monitor.refresh()
    active = monitor.get_active_connections()
    assert [c.state for c in active] == [TcpState.CLOSE_WAIT]
    assert monitor.metrics.total_connections_by_pid == {10: 1}


def test_vanished_connection_moves_to_history(system, monitor):
    system.sockets = [sock(10, 5000, "192.0.2.10", 443)]
    monitor.refresh()
    system.sockets = []
    monitor.refresh()
    assert monitor.get_active_connections() == []
    historical = monitor.get_historical_connections()
    assert len(historical) == 1 and historical[0].closed
    assert monitor.metrics.current_concurrent_by_pid == {10: 0}
    assert monitor.metrics.max_concurrent_by_pid == {10: 1}
    assert monitor.metrics.current_concurrent_by_host == {"example.com:443": 0}


def test_closed_endpoint_seen_again_stays_closed(system, monitor):
    system.sockets = [sock(10, 5000, "192.0.2.10", 443)]
    monitor.refresh()
    system.sockets = []
    monitor.refresh()
    system.sockets = [sock(10, 5000, "192.0.2.10", 443)]
    monitor.refresh()
    assert monitor.get_active_connections() == []
    assert monitor.metrics.total_connections_by_pid == {10: 1}
    assert len(monitor.get_historical_connections()) == 1


def test_max_concurrent_keeps_peak(system, monitor):
    a = sock(10, 5000, "192.0.2.10", 443)
    b = sock(10, 5001, "192.0.2.10", 443)
    c = sock(10, 5002, "192.0.2.10", 443)
    system.sockets = [a, b]
    monitor.refresh()
    system.sockets = [a]
    monitor.refresh()
    system.sockets = [a, c]
    monitor.refresh()
    m = monitor.metrics
    assert m.max_concurrent_by_pid[10] == 2
    assert m.current_concurrent_by_pid[10] == 2
    assert m.total_connections_by_pid[10] == 3


def test_host_metrics_use_hostname_or_address(system, monitor):
    system.sockets = [
        sock(10, 5000, "192.0.2.10", 443),
        sock(20, 5001, "198.51.100.7", 80),
    ]
    monitor.refresh()
    by_key = {(h.host, h.port): h for h in monitor.get_host_metrics(EVERYTHING)}
    assert set(by_key) == {("example.com", 443), ("198.51.100.7", 80)}
    resolved = by_key[("example.com", 443)]
    assert (resolved.current_connections, resolved.total_connections, resolved.max_concurrent) == (1, 1, 1)
    assert by_key[("198.51.100.7", 80)].max_concurrent == 0


def test_closed_connection_appears_in_both_collections(system, monitor):
    system.sockets = [sock(10, 5000, "192.0.2.10", 443)]
    monitor.refresh()
    system.sockets = []
    monitor.refresh()
    [host] = monitor.get_host_metrics(EVERYTHING)
    assert host.current_connections == 0
    assert host.total_connections == 2


def test_process_metrics_names_and_liveness(system, monitor):
    system.processes[20] = ProcessSnapshot(20, "nginx", None, 200, psutil.STATUS_ZOMBIE)
    system.sockets = [
        sock(10, 5000, "192.0.2.10", 443),
        sock(20, 5001, "198.51.100.7", 80),
        sock(30, 5002, "198.51.100.8", 22),
    ]
    monitor.refresh()
    by_pid = {p.pid: p for p in monitor.get_process_metrics(EVERYTHING)}
    assert (by_pid[10].name, by_pid[10].is_alive) == ("curl", True)
    assert (by_pid[20].name, by_pid[20].is_alive) == ("nginx", False)
    assert (by_pid[30].name, by_pid[30].is_alive) == ("Unknown", False)
    assert by_pid[10].max_concurrent == 1


def test_process_host_metrics_prefer_executable(system, monitor):
    system.sockets = [
        sock(10, 5000, "192.0.2.10", 443),
        sock(20, 5001, "198.51.100.7", 80),
    ]
    monitor.refresh()
    by_pid = {p.pid: p for p in monitor.get_process_host_metrics(EVERYTHING)}
    assert by_pid[10].process_name == "/usr/bin/curl"
    assert by_pid[10].host == "example.com"
    assert by_pid[10].max_concurrent == 1
    assert by_pid[20].process_name == "nginx"
    assert by_pid[20].host == "198.51.100.7"
    assert by_pid[20].max_concurrent == 0


def test_filtered_active_connections(system, monitor):
    system.sockets = [
        sock(10, 5000, "192.0.2.10", 443),
        sock(20, 5001, "198.51.100.7", 80),
    ]
    monitor.refresh()
    pids = lambda flt: {c.pid for c in monitor.get_filtered_active_connections(flt)}
    assert pids(ConnectionFilter(process_name="ngi")) == {20}
    assert pids(ConnectionFilter(remote_host="example")) == {10}
    assert pids(ConnectionFilter(remote_port=80)) == {20}
    assert pids(ConnectionFilter(pid=99)) == set()


def test_filtered_historical_connections(system, monitor):
    system.sockets = [
        sock(10, 5000, "192.0.2.10", 443),
        sock(20, 5001, "198.51.100.7", 80),
    ]
    monitor.refresh()
    system.sockets = []
    monitor.refresh()
    found = monitor.get_filtered_historical_connections(ConnectionFilter(pid=20))
    assert [c.remote_port for c in found] == [80]


def test_filtered_processes(system, monitor):
    system.sockets = [
        sock(10, 5000, "192.0.2.10", 443),
        sock(20, 5001, "198.51.100.7", 80),
    ]
    monitor.refresh()
    assert [p.pid for p in monitor.get_filtered_processes(ConnectionFilter(pid=10))] == [10]
    assert [p.pid for p in monitor.get_filtered_processes(ConnectionFilter(process_name="nginx"))] == [20]
    assert {p.pid for p in monitor.get_filtered_processes(EVERYTHING)} == {10, 20}


def test_process_info_keeps_peak_memory(system, monitor):
    system.sockets = [sock(10, 5000, "192.0.2.10", 443)]
    monitor.refresh()
    system.processes[10] = ProcessSnapshot(10, "curl", "/usr/bin/curl", 50)
    monitor.refresh()
    process = monitor.get_process(10)
    assert process.current_memory_usage == 50
    assert process.max_memory_usage == 100


def test_connection_history_counts_per_sample(system, monitor, clock):
    system.sockets = [sock(10, 5000, "192.0.2.10", 443)]
    monitor.refresh()
    monitor.refresh()
    history = monitor.get_connection_history_filtered(EVERYTHING, None, None)
    stamps = [t for t, _ in history]
    assert stamps == sorted(stamps) and len(set(stamps)) == len(stamps)
    assert [n for _, n in history][-2:] == [0, 1]
    last = monitor.get_connection_history_filtered(EVERYTHING, stamps[-1], None)
    assert last == [history[-1]]
    none_match = monitor.get_connection_history_filtered(ConnectionFilter(pid=20), None, None)
    assert all(n == 0 for _, n in none_match)


def test_sample_history_is_limited(monitor):
    for _ in range(1005):
        monitor.refresh()
    assert len(monitor.metrics.sample_timestamps) == 1000


def test_memory_history_filtered(system, monitor, clock):
    system.sockets = [
        sock(10, 5000, "192.0.2.10", 443),
        sock(20, 5001, "198.51.100.7", 80),
    ]
    monitor.refresh()
    by_pid = monitor.get_memory_history_filtered(ConnectionFilter(pid=10), None, None)
    assert list(by_pid) == [10]
    assert [mem for _, mem in by_pid[10]] == [100]
    by_name = monitor.get_memory_history_filtered(ConnectionFilter(process_name="nginx"), None, None)
    assert list(by_name) == [20]
    everything = monitor.get_memory_history_filtered(EVERYTHING, None, None)
    assert set(everything) == {10, 20}
    latest = max(t for samples in everything.values() for t, _ in samples)
    assert monitor.get_memory_history_filtered(EVERYTHING, latest + 1, None) == {}
    assert monitor.get_memory_history_filtered(ConnectionFilter(pid=99), None, None) == {}


def test_reset_forgets_everything(system, monitor):
    system.sockets = [sock(10, 5000, "192.0.2.10", 443)]
    monitor.refresh()
    monitor.reset()
    assert monitor.get_active_connections() == []
    assert monitor.get_processes() == []
    assert monitor.metrics.total_connections_by_pid == {}
    assert len(monitor.metrics.sample_timestamps) == 0


def test_refresh_propagates_socket_errors(system, monitor):
    system.fail = True
    with pytest.raises(PermissionError):
        monitor.refresh()


def test_constructor_tolerates_socket_errors(system):
    system.fail = True
    monitor = ConnectionMonitor(system.read_sockets, system.read_processes, system.resolve)
    assert len(monitor.metrics.sample_timestamps) == 0
    assert monitor.get_active_connections() == []


@pytest.mark.parametrize(
    "status, alive",
    [
        (psutil.STATUS_RUNNING, True),
        (psutil.STATUS_SLEEPING, True),
        (psutil.STATUS_ZOMBIE, False),
        (psutil.STATUS_DEAD, False),
        (psutil.STATUS_STOPPED, False),
    ],
)
def test_snapshot_liveness(status, alive):
    assert ProcessSnapshot(1, status=status).alive is alive


def test_read_processes_lists_this_process():
    snapshots = read_processes()
    own = snapshots[os.getpid()]
    assert own.pid == os.getpid()
    assert own.alive