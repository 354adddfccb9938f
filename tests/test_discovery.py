"""
Tests for JMAP service discovery (RFC 8620 §2.2).

DNS and HTTP are mocked; no lookups leave the process.
"""

from unittest.mock import Mock, patch

import dns.resolver
import pytest
import requests

from jmap.discovery import (
    DiscoveryError,
    _extract_domain,
    _is_subdomain_or_same,
    _srv_lookup,
    _well_known_lookup,
    discover_service,
)


def _srv_record(target, port=443, priority=10, weight=0):
    rdata = Mock()
    rdata.target = target
    rdata.port = port
    rdata.priority = priority
    rdata.weight = weight
    return rdata


def _http_response(status_code, location=None):
    response = Mock()
    response.status_code = status_code
    response.headers = {"Location": location} if location else {}
    return response


@pytest.mark.parametrize(
    "discovered,original,expected",
    [
        ("jmap.example.com", "example.com", True),
        ("example.com", "example.com", True),
        ("EXAMPLE.com.", "example.com", True),
        ("evil.com", "example.com", False),
        ("exampleXcom.evil.com", "example.com", False),
        ("notexample.com", "example.com", False),
    ],
)
def test_is_subdomain_or_same(discovered, original, expected) -> None:
    assert _is_subdomain_or_same(discovered, original) is expected


@pytest.mark.parametrize(
    "identifier,expected",
    [
        ("user@example.com", ("example.com", "user@example.com")),
        ("example.com", ("example.com", None)),
        ("https://jmap.example.com/path", ("jmap.example.com", None)),
        (" example.com ", ("example.com", None)),
    ],
)
def test_extract_domain(identifier, expected) -> None:
    assert _extract_domain(identifier) == expected


# ---------------------------------------------------------------------------
# SRV
# ---------------------------------------------------------------------------


@patch("jmap.discovery.dns.resolver.resolve")
def test_srv_lookup_sorts_by_priority_then_weight(mock_resolve) -> None:
    mock_resolve.return_value = [
        _srv_record("b.example.com.", priority=20),
        _srv_record("a.example.com.", priority=10, weight=1),
        _srv_record("c.example.com.", priority=10, weight=5),
    ]
    results = _srv_lookup("example.com")
    assert [r[0] for r in results] == ["c.example.com", "a.example.com", "b.example.com"]
    mock_resolve.assert_called_once_with("_jmap._tcp.example.com", "SRV")


@patch("jmap.discovery.dns.resolver.resolve")
def test_srv_lookup_skips_unavailable_target(mock_resolve) -> None:
    mock_resolve.return_value = [_srv_record(".")]
    assert _srv_lookup("example.com") == []


@patch("jmap.discovery.dns.resolver.resolve")
def test_srv_lookup_nxdomain(mock_resolve) -> None:
    mock_resolve.side_effect = dns.resolver.NXDOMAIN()
    assert _srv_lookup("example.com") == []


@patch("jmap.discovery.dns.resolver.resolve")
def test_discover_via_srv(mock_resolve) -> None:
    mock_resolve.return_value = [_srv_record("jmap.example.com.")]
    info = discover_service("alice@example.com")
    assert info.url == "https://jmap.example.com/.well-known/jmap"
    assert info.source == "srv"
    assert info.username == "alice@example.com"


@patch("jmap.discovery.dns.resolver.resolve")
def test_discover_via_srv_with_port(mock_resolve) -> None:
    mock_resolve.return_value = [_srv_record("jmap.example.com.", port=8443)]
    info = discover_service("example.com")
    assert info.url == "https://jmap.example.com:8443/.well-known/jmap"
    assert info.port == 8443


@patch("jmap.discovery.requests.get")
@patch("jmap.discovery.dns.resolver.resolve")
def test_foreign_srv_target_is_rejected(mock_resolve, mock_get) -> None:
    mock_resolve.return_value = [_srv_record("jmap.provider.net.")]
    mock_get.return_value = _http_response(200)
    info = discover_service("example.com")
    assert info.source == "well-known"
    assert info.url == "https://example.com/.well-known/jmap"


@patch("jmap.discovery.dns.resolver.resolve")
def test_foreign_srv_target_can_be_allowed(mock_resolve) -> None:
    mock_resolve.return_value = [_srv_record("jmap.provider.net.")]
    info = discover_service("example.com", allow_foreign_target=True)
    assert info.url == "https://jmap.provider.net/.well-known/jmap"


@patch("jmap.discovery.requests.get")
@patch("jmap.discovery.dns.resolver.resolve")
def test_srv_can_be_disabled(mock_resolve, mock_get) -> None:
    mock_get.return_value = _http_response(401)
    info = discover_service("user@example.com", use_srv=False)
    mock_resolve.assert_not_called()
    assert info.url == "https://example.com/.well-known/jmap"
    assert info.username == "user@example.com"


@patch("jmap.discovery.requests.get")
@patch("jmap.discovery.dns.resolver.resolve")
def test_discover_fails(mock_resolve, mock_get) -> None:
    mock_resolve.side_effect = dns.resolver.NXDOMAIN()
    mock_get.side_effect = requests.exceptions.ConnectionError("refused")
    assert discover_service("example.com") is None


def test_discover_without_domain() -> None:
    with pytest.raises(DiscoveryError):
        discover_service("")


# ---------------------------------------------------------------------------
# Well-known URI
# ---------------------------------------------------------------------------


@patch("jmap.discovery.requests.get")
def test_well_known_redirect(mock_get) -> None:
    mock_get.return_value = _http_response(301, "https://jmap.example.com/session")
    info = _well_known_lookup("example.com")
    assert info.url == "https://jmap.example.com/session"
    assert info.hostname == "jmap.example.com"
    assert mock_get.call_args[1]["allow_redirects"] is False


@patch("jmap.discovery.requests.get")
def test_well_known_relative_redirect(mock_get) -> None:
    mock_get.return_value = _http_response(307, "/jmap/session")
    info = _well_known_lookup("example.com")
    assert info.url == "https://example.com/jmap/session"


@patch("jmap.discovery.requests.get")
def test_well_known_redirect_to_http_is_rejected(mock_get) -> None:
    mock_get.return_value = _http_response(302, "http://example.com/session")
    assert _well_known_lookup("example.com") is None


@patch("jmap.discovery.requests.get")
def test_well_known_redirect_to_other_domain_is_rejected(mock_get) -> None:
    mock_get.return_value = _http_response(302, "https://evil.com/session")
    assert _well_known_lookup("example.com") is None


@patch("jmap.discovery.requests.get")
def test_well_known_not_found(mock_get) -> None:
    mock_get.return_value = _http_response(404)
    assert _well_known_lookup("example.com") is None
