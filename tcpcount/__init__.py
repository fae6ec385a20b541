"""Monitor and count TCP connections per process and remote host in a terminal dashboard."""

__version__ = "0.1.0"