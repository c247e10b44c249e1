"""
Latency probes.

Each probe measures TCP connect time to a fixed reference endpoint once per
second on its own thread. Loss is the failure ratio over a sliding window.
"""

import logging
import socket
import threading
import time
from collections import deque
from typing import Optional

from ..errors import ConfigurationError
from ..models import PingStats

logger = logging.getLogger(__name__)

PROBE_INTERVAL = 1.0
PROBE_TIMEOUT = 1.0
LOSS_WINDOW = 60


def split_host_port(addr: str, default_port: int = 80) -> tuple[str, int]:
    """Split ``host:port``; bracketed IPv6 literals are accepted."""
    if addr.startswith("["):
        host, _, rest = addr[1:].partition("]")
        port = rest.lstrip(":")
    elif addr.count(":") == 1:
        host, port = addr.split(":")
    else:
        host, port = addr, ""
    if not port:
        return host, default_port
    try:
        return host, int(port)
    except ValueError:
        raise ConfigurationError(f"bad probe addr {addr!r}") from None


class Probe:
    """One probe target and its rolling results."""

    def __init__(self, name: str, addr: str, window: int = LOSS_WINDOW):
        self.name = name
        self.addr = addr
        self.host, self.port = split_host_port(addr)
        self._results: deque[bool] = deque(maxlen=window)
        self._latency_ms = 0
        self._lock = threading.Lock()

    def measure(self, timeout: float = PROBE_TIMEOUT) -> None:
        start = time.monotonic()
        try:
            with socket.create_connection((self.host, self.port), timeout=timeout):
                elapsed = int((time.monotonic() - start) * 1000)
            ok = True
        except OSError as e:
            logger.debug(f"Probe {self.name} ({self.addr}) failed: {e}")
            elapsed = None
            ok = False

        with self._lock:
            self._results.append(ok)
            if elapsed is not None:
                self._latency_ms = elapsed

    def stats(self) -> PingStats:
        with self._lock:
            if not self._results:
                return PingStats()
            lost = sum(1 for ok in self._results if not ok)
            return PingStats(
                latency_ms=self._latency_ms,
                loss_rate=round(lost / len(self._results), 4),
            )


class PingCollector:
    """Runs a background thread per probe."""

    def __init__(self, targets: dict[str, str], interval: float = PROBE_INTERVAL):
        self.probes = {name: Probe(name, addr) for name, addr in targets.items()}
        self.interval = interval
        self._stopped = threading.Event()
        self._threads: list[threading.Thread] = []

    def start(self) -> None:
        if self._threads:
            return
        for probe in self.probes.values():
            thread = threading.Thread(
                target=self._run, args=(probe,), name=f"ping-{probe.name}", daemon=True
            )
            thread.start()
            self._threads.append(thread)

    def stop(self) -> None:
        self._stopped.set()
        self._threads = []

    def _run(self, probe: Probe) -> None:
        while not self._stopped.is_set():
            probe.measure()
            self._stopped.wait(self.interval)

    def current_ping_stats(self, probe_set: Optional[list[str]] = None) -> dict[str, PingStats]:
        names = probe_set if probe_set is not None else list(self.probes)
        return {name: self.probes[name].stats() for name in names if name in self.probes}
