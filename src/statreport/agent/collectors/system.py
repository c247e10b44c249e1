"""
System Metrics Collector.

Background CPU and network-throughput sampling plus an on-demand host
snapshot (uptime, load, memory, disk, socket and process counts).
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional
import psutil

from ..errors import UnsupportedPlatformError

logger = logging.getLogger(__name__)

NET_SAMPLE_INTERVAL = 1.0

IfaceFilter = Callable[[str], bool]


def check_platform() -> None:
    """Fail fast on operating systems psutil cannot fully sample."""
    if not (psutil.LINUX or psutil.MACOS or psutil.WINDOWS or psutil.FREEBSD):
        raise UnsupportedPlatformError(
            "unsupported platform for system sampling"
        )


def make_iface_filter(include: list[str], exclude: list[str]) -> IfaceFilter:
    """
    Build a predicate that returns True for interfaces to skip.

    A non-empty include list admits only exact name matches. Otherwise any
    interface whose name contains an excluded substring is skipped.
    """
    include = list(include)
    exclude = list(exclude)

    def skip(name: str) -> bool:
        if include:
            return name not in include
        return any(sk in name for sk in exclude)

    return skip


@dataclass
class InterfaceRate:
    """Per-interface counters and the latest one-second rates."""
    bytes_recv: int = 0
    bytes_sent: int = 0
    rx_rate: int = 0
    tx_rate: int = 0


@dataclass
class HostSnapshot:
    """Point-in-time host figures that need no background sampling."""
    uptime: int = 0
    load_1: float = 0.0
    load_5: float = 0.0
    load_15: float = 0.0
    memory_total: int = 0
    memory_used: int = 0
    swap_total: int = 0
    swap_used: int = 0
    hdd_total: int = 0
    hdd_used: int = 0
    tcp: int = 0
    udp: int = 0
    process: int = 0
    thread: int = 0


class _SamplerThread(threading.Thread):
    """Daemon thread that calls ``step`` until stopped."""

    def __init__(self, name: str, step: Callable[[], None], pause: float = 0.0):
        super().__init__(name=name, daemon=True)
        self._step = step
        self._pause = pause
        self._stopped = threading.Event()

    def run(self):
        while not self._stopped.is_set():
            try:
                self._step()
            except Exception as e:
                logger.debug(f"{self.name} sample failed: {e}")
            if self._pause:
                self._stopped.wait(self._pause)

    def stop(self):
        self._stopped.set()


class SystemCollector:
    """Collects system-level metrics using psutil."""

    def __init__(self, collect_counts: bool = True):
        """Initialize the system collector."""
        self.collect_counts = collect_counts
        self._lock = threading.Lock()
        self._cpu_percent = 0.0
        self._interfaces: dict[str, InterfaceRate] = {}
        self._last_net_time = 0.0
        self._threads: list[_SamplerThread] = []

    def start(self) -> None:
        """Start the CPU and network sampling threads."""
        if self._threads:
            return
        # prime the counter so the first blocking call measures a full interval
        psutil.cpu_percent(interval=None)
        self._threads = [
            _SamplerThread("cpu-sampler", self._sample_cpu),
            _SamplerThread("net-sampler", self._sample_network, NET_SAMPLE_INTERVAL),
        ]
        for thread in self._threads:
            thread.start()

    def stop(self) -> None:
        for thread in self._threads:
            thread.stop()
        self._threads = []

    def _sample_cpu(self) -> None:
        percent = psutil.cpu_percent(interval=1)
        with self._lock:
            self._cpu_percent = percent

    def _sample_network(self) -> None:
        now = time.monotonic()
        counters = psutil.net_io_counters(pernic=True)
        with self._lock:
            elapsed = now - self._last_net_time if self._last_net_time else 0.0
            for name, stats in counters.items():
                prev = self._interfaces.get(name)
                rate = InterfaceRate(bytes_recv=stats.bytes_recv, bytes_sent=stats.bytes_sent)
                if prev is not None and elapsed > 0:
                    # counters can reset when an interface is recreated
                    rate.rx_rate = max(0, int((stats.bytes_recv - prev.bytes_recv) / elapsed))
                    rate.tx_rate = max(0, int((stats.bytes_sent - prev.bytes_sent) / elapsed))
                self._interfaces[name] = rate
            for name in set(self._interfaces) - set(counters):
                del self._interfaces[name]
            self._last_net_time = now

    def current_cpu_percent(self) -> float:
        with self._lock:
            return round(self._cpu_percent, 2)

    def current_net_throughput(self, skip: Optional[IfaceFilter] = None) -> tuple[int, int]:
        """Summed (rx, tx) bytes per second over non-skipped interfaces."""
        rx = tx = 0
        with self._lock:
            for name, rate in self._interfaces.items():
                if skip is not None and skip(name):
                    continue
                rx += rate.rx_rate
                tx += rate.tx_rate
        return rx, tx

    def current_net_totals(self, skip: Optional[IfaceFilter] = None) -> tuple[int, int]:
        """Summed (in, out) byte counters over non-skipped interfaces."""
        total_in = total_out = 0
        with self._lock:
            for name, rate in self._interfaces.items():
                if skip is not None and skip(name):
                    continue
                total_in += rate.bytes_recv
                total_out += rate.bytes_sent
        return total_in, total_out

    def snapshot(self) -> HostSnapshot:
        """Collect the host figures that are cheap to read directly."""
        snap = HostSnapshot()

        snap.uptime = int(time.time() - psutil.boot_time())

        try:
            snap.load_1, snap.load_5, snap.load_15 = (round(v, 2) for v in psutil.getloadavg())
        except (OSError, AttributeError):
            pass

        mem = psutil.virtual_memory()
        swap = psutil.swap_memory()
        snap.memory_total = mem.total
        snap.memory_used = mem.total - mem.available
        snap.swap_total = swap.total
        snap.swap_used = swap.used

        snap.hdd_total, snap.hdd_used = self._collect_disks()

        if self.collect_counts:
            self._collect_counts(snap)

        return snap

    def _collect_disks(self) -> tuple[int, int]:
        """Total and used bytes across physical filesystems."""
        total = used = 0
        seen = set()

        for partition in psutil.disk_partitions():
            # Skip special filesystems
            if partition.fstype in ('squashfs', 'tmpfs', 'devtmpfs', 'overlay'):
                continue
            if partition.device in seen:
                continue
            seen.add(partition.device)

            try:
                usage = psutil.disk_usage(partition.mountpoint)
            except (PermissionError, OSError):
                continue
            total += usage.total
            used += usage.used

        return total, used

    def _collect_counts(self, snap: HostSnapshot) -> None:
        try:
            snap.tcp = len(psutil.net_connections(kind='tcp'))
            snap.udp = len(psutil.net_connections(kind='udp'))
        except (psutil.AccessDenied, OSError) as e:
            logger.debug(f"Socket counts unavailable: {e}")

        process = thread = 0
        for proc in psutil.process_iter(['num_threads']):
            process += 1
            thread += proc.info.get('num_threads') or 0
        snap.process = process
        snap.thread = thread
