"""Connectivity detection and destination resolution."""

import logging
import socket

from ..errors import ConfigurationError

logger = logging.getLogger(__name__)

IPV4_TARGETS = [("8.8.8.8", 53), ("1.1.1.1", 53)]
IPV6_TARGETS = [("2001:4860:4860::8888", 53), ("2606:4700:4700::1111", 53)]


def _can_connect(family: int, targets: list[tuple[str, int]], timeout: float) -> bool:
    for host, port in targets:
        try:
            with socket.socket(family, socket.SOCK_STREAM) as sock:
                sock.settimeout(timeout)
                sock.connect((host, port))
            return True
        except OSError as e:
            logger.debug(f"Connectivity check to {host}:{port} failed: {e}")
    return False


def get_network(timeout: float = 2.0) -> tuple[bool, bool]:
    """Probe IPv4 and IPv6 reachability."""
    ipv4 = _can_connect(socket.AF_INET, IPV4_TARGETS, timeout)
    ipv6 = _can_connect(socket.AF_INET6, IPV6_TARGETS, timeout)
    return ipv4, ipv6


def resolve_destination(host: str, port: int) -> tuple[bool, bool]:
    """
    Resolve the collector address.

    Returns whether the first resolved address is IPv4 or IPv6.
    """
    try:
        infos = socket.getaddrinfo(host, port, type=socket.SOCK_STREAM)
    except socket.gaierror as e:
        raise ConfigurationError(f"cannot resolve {host}:{port}: {e}") from e
    if not infos:
        raise ConfigurationError(f"no address for {host}:{port}")
    family = infos[0][0]
    return family == socket.AF_INET, family == socket.AF_INET6
