"""Utility helpers."""
from .address import AddressParseError, join_host_port, split_host_port  # noqa: F401
