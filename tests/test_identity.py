from __future__ import annotations

import pytest

from reqlimit.identity import client_key_from_scope, extract_client_key, remote_address
from reqlimit.utils import AddressParseError, join_host_port, split_host_port


def make_scope(client=("10.0.0.1", 5000), headers=None) -> dict:
    raw = [(k.lower().encode("latin-1"), v.encode("latin-1")) for k, v in (headers or {}).items()]
    return {"type": "http", "client": client, "headers": raw}


def test_split_host_port_strips_port():
    assert split_host_port("3.4.5.6:8080") == ("3.4.5.6", "8080")
    assert split_host_port(" [::1]:443 ") == ("::1", "443")


@pytest.mark.parametrize(
    ("address", "reason"),
    [
        ("", "missing port in address"),
        ("3.4.5.6", "missing port in address"),
        ("::1", "too many colons in address"),
        ("[::1", "missing ']' in address"),
        ("[::1]", "missing port in address"),
        ("[::1]:80:90", "too many colons in address"),
        ("a]b:80", "unexpected ']' in address"),
    ],
)
def test_split_host_port_rejects_malformed(address, reason):
    with pytest.raises(AddressParseError) as excinfo:
        split_host_port(address)

    assert excinfo.value.reason == reason
    assert reason in str(excinfo.value)


def test_join_host_port_brackets_ipv6():
    assert join_host_port("1.2.3.4", 80) == "1.2.3.4:80"
    assert join_host_port("::1", 80) == "[::1]:80"


def test_remote_address_falls_back_to_host_without_port():
    assert extract_client_key("192.168.1.7:1234") == "192.168.1.7"
    assert extract_client_key("[2001:db8::1]:1234") == "2001:db8::1"


def test_headers_ignored_unless_trusted():
    headers = {"X-Real-Ip": "9.9.9.9", "X-Forwarded-For": "8.8.8.8"}

    assert extract_client_key("1.2.3.4:80", headers) == "1.2.3.4"


def test_real_ip_header_wins_when_trusted():
    headers = {"X-Real-Ip": "  9.9.9.9 ", "X-Forwarded-For": "8.8.8.8"}

    assert extract_client_key("1.2.3.4:80", headers, trust_proxy_headers=True) == "9.9.9.9"


def test_first_forwarded_for_entry_used_when_trusted():
    headers = {"X-Real-Ip": "   ", "x-forwarded-for": " 8.8.8.8 , 10.0.0.1, 10.0.0.2"}

    assert extract_client_key("1.2.3.4:80", headers, trust_proxy_headers=True) == "8.8.8.8"


def test_header_override_skips_address_parsing():
    headers = {"X-Real-Ip": "9.9.9.9"}

    assert extract_client_key("garbage", headers, trust_proxy_headers=True) == "9.9.9.9"


def test_blank_headers_fall_back_to_transport_address():
    headers = {"X-Real-Ip": "", "X-Forwarded-For": " , 8.8.8.8"}

    assert extract_client_key("1.2.3.4:80", headers, trust_proxy_headers=True) == "1.2.3.4"


def test_malformed_address_without_override_fails():
    with pytest.raises(AddressParseError):
        extract_client_key("not-an-address", {}, trust_proxy_headers=True)


def test_empty_host_is_rejected():
    with pytest.raises(AddressParseError, match="missing host"):
        extract_client_key(":8080")


def test_scope_client_becomes_key():
    scope = make_scope(client=("3.4.5.6", 41000))

    assert remote_address(scope) == "3.4.5.6:41000"
    assert client_key_from_scope(scope) == "3.4.5.6"


def test_scope_without_client_fails():
    scope = make_scope(client=None)

    assert remote_address(scope) == ""
    with pytest.raises(AddressParseError):
        client_key_from_scope(scope)


def test_scope_headers_are_consulted_when_trusted():
    scope = make_scope(client=None, headers={"X-Forwarded-For": "7.7.7.7"})

    assert client_key_from_scope(scope, trust_proxy_headers=True) == "7.7.7.7"
