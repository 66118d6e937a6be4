"""Network address parsing helpers."""
from __future__ import annotations

from typing import Tuple, Union


class AddressParseError(ValueError):
    """Raised when a transport address cannot be split into host and port."""

    def __init__(self, address: str, reason: str) -> None:
        self.address = address
        self.reason = reason
        message = f"address {address}: {reason}" if address else reason
        super().__init__(message)


def split_host_port(address: str) -> Tuple[str, str]:
    """Split ``host:port`` or ``[host]:port`` into its host and port parts."""

    addr = address.strip()
    colon = addr.rfind(":")
    if colon < 0:
        raise AddressParseError(addr, "missing port in address")

    if addr.startswith("["):
        end = addr.find("]")
        if end < 0:
            raise AddressParseError(addr, "missing ']' in address")
        if end + 1 == len(addr):
            raise AddressParseError(addr, "missing port in address")
        if end + 1 != colon:
            if addr[end + 1] == ":":
                raise AddressParseError(addr, "too many colons in address")
            raise AddressParseError(addr, "missing port in address")
        host = addr[1:end]
        host_start, port_start = 1, end + 1
    else:
        host = addr[:colon]
        if ":" in host:
            raise AddressParseError(addr, "too many colons in address")
        host_start, port_start = 0, 0

    if "[" in addr[host_start:]:
        raise AddressParseError(addr, "unexpected '[' in address")
    if "]" in addr[port_start:]:
        raise AddressParseError(addr, "unexpected ']' in address")
    return host, addr[colon + 1:]


def join_host_port(host: str, port: Union[int, str, None]) -> str:
    """Combine host and port, bracketing IPv6 literals."""

    port_text = "" if port is None else str(port)
    if ":" in host:
        return f"[{host}]:{port_text}"
    return f"{host}:{port_text}"
