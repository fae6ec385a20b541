# tcpcount

A terminal dashboard that watches the machine's TCP connections. It counts
them per process, per remote host and port, and per process–host pair.

The dashboard keeps running while connections open and close. For each row it
shows three numbers:

- how many connections are active now
- how many have been seen in total
- the highest number that were open at the same time

Above the tables are a bar graph of active connections and an overall summary.
The graph takes one sample per second and keeps the last 300.

## Installation

```
pip install .
```

The package needs `psutil`. The screen is drawn with the standard `curses`
module, so it runs on POSIX systems.

Without extra privileges, the owners of sockets can only be read for your own
processes. On some systems you must run as root to see them all. If the system
refuses to list sockets at all, the monitor raises `PermissionError` when it
starts or refreshes.

## Usage

```
tcpcount [-p PID] [-n NAME] [-H HOST] [-P PORT]
```

| Option | Meaning |
| --- | --- |
| `-p`, `--pid PID` | only connections owned by this process ID |
| `-n`, `--process-name NAME` | only processes whose name contains NAME (case-sensitive) |
| `-H`, `--host HOST` | only remote hosts whose resolved name or IP address contains HOST (case-sensitive) |
| `-P`, `--port PORT` | only connections to this remote port |
| `-V`, `--version` | print the version and exit |

A PID must be an unsigned 32-bit number and a port an unsigned 16-bit number.
If either cannot be parsed, a warning is printed to standard error and that
option is ignored.

### Keys

| Key | Action |
| --- | --- |
| `1` / `2` / `3` | focus the process–host, host, or process table |
| `↑` `↓`, PgUp, PgDn, Home, End, mouse wheel | scroll the focused table |
| `f` | open the filter form |
| `c` | clear all filters |
| `r` | forget all recorded connections, processes and counters |
| `t` / `a` / `m` | sort by total, active, or max concurrent |
| `q` | quit |

In the filter form:

- Tab and Shift+Tab move between the fields.
- Enter applies the filter.
- Esc cancels.

An invalid PID or port leaves the form open and shows an error.

Tables are sorted with the largest value first. Ties are broken by host, by
PID, or by PID and then host, depending on the table. The status bar shows the
active filter, the focused table and the key bindings.

Listening sockets are ignored. Loopback and link-local addresses are not looked
up and are shown as plain IP addresses. Other remote addresses are resolved by
reverse lookup where possible.

## Using the monitor from Python

`tcpcount.monitor.ConnectionMonitor` can be used without the screen. Its
optional `socket_source`, `process_source` and `resolver` arguments replace the
system readers (`read_sockets`, `read_processes`) and the reverse lookup.

```python
from tcpcount.filters import ConnectionFilter
from tcpcount.monitor import ConnectionMonitor

monitor = ConnectionMonitor()
monitor.refresh()
for row in monitor.get_host_metrics(ConnectionFilter().with_remote_port(443)):
    print(row.host, row.port, row.current_connections, row.total_connections)
```

`get_process_metrics` and `get_process_host_metrics` give the other two views.
`get_connection_history_filtered` gives the number of matching connections
that were open at each refresh.

## Running the tests

```
pip install .[test]
pytest
```