"""
Locating the JMAP session resource from a domain or e-mail address
(RFC 8620 §2.2).

Two sources are tried, in order:

1. The DNS SRV record ``_jmap._tcp.<domain>``.  The session resource is
   then ``https://<target>[:<port>]/.well-known/jmap``.
2. ``https://<domain>/.well-known/jmap`` itself, or where it redirects to.

SECURITY CONSIDERATIONS:
    Without DNSSEC an SRV answer can be forged, sending the client and its
    credentials to a host of the attacker's choosing.  Discovery therefore

    - only ever produces HTTPS URLs, so certificates are checked
      (unless ``ssl_verify_cert=False``);
    - rejects SRV targets and redirects outside the queried domain and
      its subdomains, unless ``allow_foreign_target=True``.

    Where this is not good enough, configure the session URL explicitly.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from urllib.parse import urljoin, urlparse

import dns.exception
import dns.resolver
import requests

from jmap.constants import SRV_SERVICE, WELL_KNOWN_PATH
from jmap.lib.error import JMAPError

log = logging.getLogger(__name__)

_REDIRECT_CODES = (301, 302, 303, 307, 308)


class DiscoveryError(JMAPError):
    """No JMAP service could be located"""

    error_type = "discoveryError"


@dataclass
class ServiceInfo:
    """Where the session resource of a domain was found.

    ``source`` is ``"srv"`` or ``"well-known"``; ``username`` is the
    e-mail address discovery was started from, if any.
    """

    url: str
    hostname: str
    port: int = 443
    priority: int = 0
    weight: int = 0
    source: str = "unknown"
    username: str | None = None


def _is_subdomain_or_same(hostname: str, domain: str) -> bool:
    """
    True if ``hostname`` is ``domain`` or lies below it.

        >>> _is_subdomain_or_same('jmap.example.com', 'example.com')
        True
        >>> _is_subdomain_or_same('notexample.com', 'example.com')
        False
    """
    hostname = hostname.lower().strip(".")
    domain = domain.lower().strip(".")
    return hostname == domain or hostname.endswith("." + domain)


def _extract_domain(identifier: str) -> tuple[str, str | None]:
    """
    Split an identifier into (domain, username).

    An e-mail address yields its domain and the full address, since JMAP
    servers commonly log in with it.  A URL yields its hostname.

        >>> _extract_domain('alice@example.com')
        ('example.com', 'alice@example.com')
        >>> _extract_domain('https://jmap.example.com/path')
        ('jmap.example.com', None)
    """
    identifier = identifier.strip()
    if "://" in identifier:
        return (urlparse(identifier).hostname or identifier, None)
    if "@" in identifier:
        return (identifier.rsplit("@", 1)[-1], identifier)
    return (identifier, None)


def _srv_lookup(domain: str) -> list[tuple[str, int, int, int]]:
    """
    Resolve ``_jmap._tcp.<domain>``.

    Returns (hostname, port, priority, weight) tuples, best first: lowest
    priority, then highest weight.  Lookup failures give an empty list.
    """
    qname = f"_{SRV_SERVICE}._tcp.{domain}"
    try:
        answers = dns.resolver.resolve(qname, "SRV")
    except dns.exception.DNSException as e:
        log.debug(f"no SRV record {qname}: {e}")
        return []

    records = []
    for rdata in answers:
        hostname = str(rdata.target).rstrip(".")
        ## RFC 2782: a target of "." means the service is decidedly not available
        if not hostname:
            log.debug(f"SRV record {qname} says there is no JMAP service")
            continue
        records.append((hostname, int(rdata.port), int(rdata.priority), int(rdata.weight)))

    records.sort(key=lambda r: (r[2], -r[3]))
    log.debug(f"SRV records for {qname}: {records}")
    return records


def _srv_service_url(hostname: str, port: int) -> str:
    if port == 443:
        return f"https://{hostname}{WELL_KNOWN_PATH}"
    return f"https://{hostname}:{port}{WELL_KNOWN_PATH}"


def _well_known_lookup(domain: str, timeout: int = 10, ssl_verify_cert=True) -> ServiceInfo | None:
    """
    Probe ``https://<domain>/.well-known/jmap``.

    A 200, or a 401 asking for credentials, means the well-known URI is
    the session resource.  A redirect is followed one step, provided it
    stays on HTTPS inside the domain.
    """
    url = f"https://{domain}{WELL_KNOWN_PATH}"
    try:
        response = requests.get(url, timeout=timeout, verify=ssl_verify_cert, allow_redirects=False)
    except requests.exceptions.RequestException as e:
        log.debug(f"probing {url} failed: {e}")
        return None

    if response.status_code in _REDIRECT_CODES:
        location = response.headers.get("Location")
        if not location:
            return None
        target = urljoin(url, location)
        parsed = urlparse(target)
        hostname = parsed.hostname or domain
        if parsed.scheme != "https":
            log.warning(f"ignoring redirect from {url} to non-HTTPS {target}")
            return None
        if not _is_subdomain_or_same(hostname, domain):
            log.warning(f"ignoring redirect from {url} to {target}, outside of {domain}")
            return None
        return ServiceInfo(url=target, hostname=hostname, port=parsed.port or 443, source="well-known")

    if response.status_code in (200, 401):
        return ServiceInfo(url=url, hostname=domain, source="well-known")

    log.debug(f"{url} answered {response.status_code}")
    return None


def discover_service(
    identifier: str,
    timeout: int = 10,
    ssl_verify_cert=True,
    allow_foreign_target: bool = False,
    use_srv: bool = True,
) -> ServiceInfo | None:
    """
    Find the JMAP session resource for a domain or e-mail address.

    Args:
        identifier: ``example.com``, ``alice@example.com`` or a URL.
        timeout: Timeout for the well-known probe, in seconds.
        ssl_verify_cert: Passed on to requests as ``verify``.
        allow_foreign_target: Accept SRV targets outside the domain.
            Hosted providers sometimes publish such records
            (``_jmap._tcp.example.com`` → ``api.provider.net``); only
            enable this if DNS can be trusted.
        use_srv: Query DNS before probing the well-known URI.

    Returns:
        A :class:`ServiceInfo`, or ``None`` if nothing was found.

    Raises:
        DiscoveryError: If ``identifier`` contains no domain.
    """
    domain, username = _extract_domain(identifier)
    if not domain:
        raise DiscoveryError(reason=f"no domain in {identifier!r}")

    if use_srv:
        for hostname, port, priority, weight in _srv_lookup(domain):
            if not allow_foreign_target and not _is_subdomain_or_same(hostname, domain):
                log.warning(
                    f"ignoring SRV target {hostname} for {domain}: outside of the domain. "
                    f"This may indicate DNS hijacking or misconfiguration."
                )
                continue
            info = ServiceInfo(
                url=_srv_service_url(hostname, port),
                hostname=hostname,
                port=port,
                priority=priority,
                weight=weight,
                source="srv",
                username=username,
            )
            log.info(f"JMAP service for {domain} found via SRV: {info.url}")
            return info

    info = _well_known_lookup(domain, timeout, ssl_verify_cert)
    if info is None:
        log.warning(f"no JMAP service found for {domain}")
        return None
    info.username = username
    log.info(f"JMAP service for {domain} found via well-known URI: {info.url}")
    return info
