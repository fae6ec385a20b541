"""Name resolution for remote addresses."""

from __future__ import annotations

import ipaddress
import socket


def resolve_addr_to_hostname(
    addr: str | ipaddress.IPv4Address | ipaddress.IPv6Address,
) -> str | None:
    """Reverse-resolve an address; loopback and link-local addresses give None."""
    ip = ipaddress.ip_address(addr)
    if ip.is_link_local or ip.is_loopback:
        return None
    sockaddr = (str(ip), 0) if ip.version == 4 else (str(ip), 0, 0, 0)
    try:
        host, _ = socket.getnameinfo(sockaddr, 0)
    except OSError:
        return None
    return host