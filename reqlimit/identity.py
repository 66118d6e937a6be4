"""Client identity extraction for per-client quotas.

``X-Real-Ip`` and ``X-Forwarded-For`` are set by whoever sends the request.
Only enable ``trust_proxy_headers`` when the service is reachable solely
through a reverse proxy that overwrites both headers; otherwise a client can
pick its own key and dodge its quota.
"""
from __future__ import annotations

from typing import Mapping, Optional, Union

from starlette.datastructures import Headers
from starlette.types import Scope

from reqlimit.utils.address import AddressParseError, join_host_port, split_host_port

REAL_IP_HEADER = "x-real-ip"
FORWARDED_FOR_HEADER = "x-forwarded-for"


def _as_headers(headers: Union[Headers, Mapping[str, str], None]) -> Headers:
    if headers is None:
        return Headers()
    if isinstance(headers, Headers):
        return headers
    return Headers(headers=dict(headers))


def forwarded_client(headers: Union[Headers, Mapping[str, str], None]) -> Optional[str]:
    """Return the client named by trusted proxy headers, if any."""

    headers = _as_headers(headers)
    real_ip = headers.get(REAL_IP_HEADER, "").strip()
    if real_ip:
        return real_ip

    forwarded = headers.get(FORWARDED_FOR_HEADER, "").split(",", 1)[0].strip()
    if forwarded:
        return forwarded
    return None


def extract_client_key(
    remote_addr: Optional[str],
    headers: Union[Headers, Mapping[str, str], None] = None,
    *,
    trust_proxy_headers: bool = False,
) -> str:
    """Derive the quota key for a request.

    Raises :class:`AddressParseError` when no header override applies and
    ``remote_addr`` is not in ``host:port`` form.
    """

    if trust_proxy_headers:
        override = forwarded_client(headers)
        if override:
            return override

    host, _ = split_host_port(remote_addr or "")
    if not host:
        raise AddressParseError(remote_addr or "", "missing host in address")
    return host


def remote_address(scope: Scope) -> str:
    """Render the ASGI transport peer as ``host:port`` (empty when unknown)."""

    client = scope.get("client")
    if not client:
        return ""
    host, port = client[0], client[1] if len(client) > 1 else None
    if not host:
        return ""
    return join_host_port(str(host), port)


def client_key_from_scope(scope: Scope, *, trust_proxy_headers: bool = False) -> str:
    return extract_client_key(
        remote_address(scope),
        Headers(scope=scope),
        trust_proxy_headers=trust_proxy_headers,
    )
